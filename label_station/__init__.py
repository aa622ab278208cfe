"""
Label Station package

This module provides an application factory with minimal wiring:
- Configures logging via label_station.core.logging
- Creates a Flask app serving the health and JSON API blueprints
- Initializes CSRF protection
- Attaches the SQLite printer store
- Optionally builds and starts the printer presence and registration monitors
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from flask import Flask, g
from flask_wtf import CSRFProtect

csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def _default_secret_key() -> str:
    return os.environ.get("LABELSTATION_SECRET_KEY", "labelstation_dev_secret_key")


def _set_request_id() -> None:
    import uuid

    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def create_app(
    config_overrides: Optional[dict] = None,
    register_monitors: bool = True,
    monitors=None,
    store=None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values to inject into app.config after defaults
    - register_monitors: if True, builds the monitors from settings and starts them
    - monitors: a prebuilt Monitors bundle to attach instead (not started here)
    - store: a printer store to attach instead of the default SQLite file

    Returns:
    - Flask app instance
    """
    from label_station.core import db as dbh
    from label_station.core.config import MonitorSettings, load_config
    from label_station.core.logging import configure_logging
    from label_station.web import api_bp, health_bp

    configure_logging()

    app = Flask("label_station")
    app.secret_key = _default_secret_key()
    app.url_map.strict_slashes = False
    if config_overrides:
        app.config.update(config_overrides)

    csrf.init_app(app)
    printer_store = dbh.init_app(app, store)

    @app.before_request
    def _before_request():
        _set_request_id()

    app.register_blueprint(health_bp)
    app.register_blueprint(api_bp)

    if monitors is not None:
        app.extensions["monitors"] = monitors
    elif register_monitors:
        from label_station.monitor.scheduler import build_monitors

        try:
            cfg = load_config()
        except Exception as e:
            logger.warning("config unreadable, using defaults: %s", e)
            cfg = None
        settings = MonitorSettings.from_env(cfg)
        built = build_monitors(settings, printer_store)
        built.start()
        app.extensions["monitors"] = built
        app.logger.info(
            "Printer monitors started (device_dir=%s prefix=%s)", settings.device_dir, settings.printer_prefix
        )

    app.logger.info("Label Station app created")
    return app


__all__ = ["create_app", "csrf"]

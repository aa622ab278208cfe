"""
Run Label Station: start the printer monitors and serve the diagnostics API.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional, Sequence

from label_station.core.config import MonitorSettings, get_config_path, load_config, save_config


def write_resolved_config(path: Optional[str] = None) -> str:
    """
    Persist the currently resolved settings (env > existing config > defaults) as the JSON config.
    """
    target = path or get_config_path()
    settings = MonitorSettings.from_env(load_config(target))
    save_config(settings.to_dict(), path=target)
    return target


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Label printer presence and registration service")
    parser.add_argument("--host", default=os.environ.get("LABELSTATION_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("LABELSTATION_PORT", "5000")))
    parser.add_argument(
        "--write-config",
        action="store_true",
        help="write the resolved monitor settings to the config file and exit",
    )
    args = parser.parse_args(argv)

    if args.write_config:
        print(f"Wrote {write_resolved_config()}")
        return

    from label_station import create_app

    app = create_app()
    app.logger.info("Starting Label Station on http://%s:%d", args.host, args.port)
    try:
        app.run(host=args.host, port=args.port, debug=False, use_reloader=False)
    finally:
        monitors = app.extensions.get("monitors")
        if monitors is not None:
            monitors.stop()


if __name__ == "__main__":
    main()

"""
Core utilities for Label Station.

This package groups non-Flask helpers used across the station:
- config: paths, JSON load/save, MonitorSettings
- logging: Request ID aware logging filters/formatters and root logger config
- errors: failure taxonomy and the try_or_default guard
- db: SQLite printer store

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    MonitorSettings,
    default_config_path,
    get_config_path,
    load_config,
    save_config,
)
from .errors import (
    InvalidatedSubscription,
    PersistenceFailure,
    ReconcilerError,
    TransientIOFailure,
    try_or_default,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "MonitorSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "save_config",
    # errors
    "InvalidatedSubscription",
    "PersistenceFailure",
    "ReconcilerError",
    "TransientIOFailure",
    "try_or_default",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]

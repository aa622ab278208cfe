"""
Config utilities for Label Station.

Responsibilities:
- Resolve the config path with environment and XDG support
- Provide JSON load/save helpers for the station's config
- Build MonitorSettings from env vars, the JSON config and defaults
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

DEFAULT_DEVICE_DIR = "/dev/usb/"
DEFAULT_PRINTER_PREFIX = "Alfio"
DEFAULT_PRESENCE_INTERVAL = 1.0
DEFAULT_REGISTRATION_INTERVAL = 5.0
DEFAULT_POLL_TIMEOUT = 0.5
DEFAULT_SPOOLER_TIMEOUT = 10.0
DEFAULT_RESCAN_EVERY = 30


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/labelstation/config.json
    2) ~/.config/labelstation/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "labelstation" / "config.json")
    return str(Path.home() / ".config" / "labelstation" / "config.json")


def get_config_path() -> str:
    """
    Return the config path honoring LABELSTATION_CONFIG_PATH override.
    """
    return os.environ.get("LABELSTATION_CONFIG_PATH", default_config_path())


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def _pick(name: str, key: str, config: Mapping[str, Any], default: Any) -> Any:
    if name in os.environ:
        return os.environ[name]
    if key in config and config[key] not in (None, ""):
        return config[key]
    return default


def _as_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _as_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


@dataclass(frozen=True)
class MonitorSettings:
    device_dir: str = DEFAULT_DEVICE_DIR
    printer_prefix: str = DEFAULT_PRINTER_PREFIX
    presence_interval: float = DEFAULT_PRESENCE_INTERVAL
    registration_interval: float = DEFAULT_REGISTRATION_INTERVAL
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    lpstat_path: str = "lpstat"
    lpadmin_path: str = "/usr/sbin/lpadmin"
    spooler_timeout: float = DEFAULT_SPOOLER_TIMEOUT
    rescan_every: int = DEFAULT_RESCAN_EVERY

    @property
    def bounded_poll_timeout(self) -> float:
        # Must stay below the tick interval so the cleanup pass runs every tick.
        return min(self.poll_timeout, self.presence_interval / 2)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, config: Optional[Mapping[str, Any]] = None) -> "MonitorSettings":
        """
        Resolve settings with precedence: LABELSTATION_* env vars, then JSON config keys, then defaults.
        """
        cfg = config or {}
        return cls(
            device_dir=str(_pick("LABELSTATION_DEVICE_DIR", "device_dir", cfg, DEFAULT_DEVICE_DIR)),
            printer_prefix=str(_pick("LABELSTATION_PRINTER_PREFIX", "printer_prefix", cfg, DEFAULT_PRINTER_PREFIX)),
            presence_interval=_as_float(
                _pick("LABELSTATION_PRESENCE_INTERVAL", "presence_interval", cfg, DEFAULT_PRESENCE_INTERVAL),
                DEFAULT_PRESENCE_INTERVAL,
            ),
            registration_interval=_as_float(
                _pick("LABELSTATION_REGISTRATION_INTERVAL", "registration_interval", cfg, DEFAULT_REGISTRATION_INTERVAL),
                DEFAULT_REGISTRATION_INTERVAL,
            ),
            poll_timeout=_as_float(
                _pick("LABELSTATION_POLL_TIMEOUT", "poll_timeout", cfg, DEFAULT_POLL_TIMEOUT),
                DEFAULT_POLL_TIMEOUT,
            ),
            lpstat_path=str(_pick("LABELSTATION_LPSTAT_PATH", "lpstat_path", cfg, "lpstat")),
            lpadmin_path=str(_pick("LABELSTATION_LPADMIN_PATH", "lpadmin_path", cfg, "/usr/sbin/lpadmin")),
            spooler_timeout=_as_float(
                _pick("LABELSTATION_SPOOLER_TIMEOUT", "spooler_timeout", cfg, DEFAULT_SPOOLER_TIMEOUT),
                DEFAULT_SPOOLER_TIMEOUT,
            ),
            rescan_every=_as_int(
                _pick("LABELSTATION_RESCAN_EVERY", "rescan_every", cfg, DEFAULT_RESCAN_EVERY),
                DEFAULT_RESCAN_EVERY,
            ),
        )


__all__ = [
    "DEFAULT_DEVICE_DIR",
    "DEFAULT_PRINTER_PREFIX",
    "MonitorSettings",
    "default_config_path",
    "get_config_path",
    "load_config",
    "save_config",
]

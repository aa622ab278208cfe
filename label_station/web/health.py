from __future__ import annotations

"""
Health endpoints for Label Station.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Monitor thread liveness and run counters
- Presence state and connected printer count
- Last registration pass
"""

from typing import Any, Dict

from flask import Blueprint, current_app

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    status: Dict[str, Any] = {"status": "ok"}
    monitors = current_app.extensions.get("monitors")
    if monitors is None:
        status["status"] = "degraded"
        status["reason"] = "monitors_not_started"
        return status, 200

    snapshot = monitors.status()
    status["tasks"] = snapshot["tasks"]
    presence = snapshot["presence"]
    status["presence_state"] = presence["state"]
    status["connected_count"] = len(presence["connected"])
    status["registration"] = snapshot["registration"]

    dead = [name for name, t in snapshot["tasks"].items() if not t["alive"]]
    if dead:
        status["status"] = "degraded"
        status["reason"] = "monitor_stopped: " + ",".join(sorted(dead))
    elif presence["state"] != "watching":
        status["status"] = "degraded"
        status["reason"] = "device_dir_unavailable"
    return status, 200

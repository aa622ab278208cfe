from __future__ import annotations

"""
JSON API (v1) for Label Station.

Endpoints:
- GET  /api/v1/devices                : Connected device snapshot and watcher state
- GET  /api/v1/printers               : Persisted printers
- GET  /api/v1/printers/<id>          : One persisted printer (404 if unknown)
- POST /api/v1/printers/<id>/active   : {"active": bool} toggles activation
"""

from typing import Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import ValidationError

from label_station import csrf
from label_station.core import db as dbh
from label_station.monitor.scheduler import Monitors
from . import schemas

api_bp = Blueprint("api", __name__, url_prefix="/api/v1")


def _json_error(msg: str, code: int = 400):
    return jsonify({"error": msg}), code


def _monitors() -> Optional[Monitors]:
    return current_app.extensions.get("monitors")


def _printer_out(p: dbh.PersistedPrinter) -> dict:
    return schemas.PrinterOut.model_validate(p.to_dict()).model_dump()


@api_bp.get("/devices")
def devices():
    monitors = _monitors()
    if monitors is None:
        return _json_error("monitors not running", 503)
    status = monitors.presence.status()
    return schemas.DevicesOut.model_validate(status).model_dump()


@api_bp.get("/printers")
def printers():
    items = dbh.find_all_registered_printers(dbh.get_store())
    return schemas.PrinterList(printers=[_printer_out(p) for p in items]).model_dump()


@api_bp.get("/printers/<int:printer_id>")
def printer(printer_id: int):
    p = dbh.find_printer(dbh.get_store(), printer_id)
    if p is None:
        return _json_error("not_found", 404)
    return _printer_out(p)


@csrf.exempt
@api_bp.post("/printers/<int:printer_id>/active")
def toggle_activation(printer_id: int):
    """
    Set the active flag of a persisted printer.
    """
    if not request.is_json:
        return _json_error("Expected application/json body", 415)
    try:
        req = schemas.ActivationRequest.model_validate(request.get_json(silent=True) or {})
    except ValidationError as e:
        try:
            msg = e.errors()[0].get("msg") or str(e)
        except Exception:
            msg = str(e)
        return _json_error(msg, 400)

    store = dbh.get_store()
    if dbh.find_printer(store, printer_id) is None:
        return _json_error("not_found", 404)
    if not dbh.toggle_printer_activation(store, printer_id, req.active):
        return _json_error("update_failed", 500)

    current_app.logger.info("printer %s active=%s", printer_id, req.active)
    updated = dbh.find_printer(store, printer_id)
    if updated is None:
        return _json_error("not_found", 404)
    return _printer_out(updated)

from __future__ import annotations

"""
Pydantic schemas for the Label Station API (v1).
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ActivationRequest(BaseModel):
    """Body of POST /api/v1/printers/<id>/active."""

    model_config = ConfigDict(extra="forbid")

    active: bool = Field(description="New activation state for the printer")


class PrinterOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    active: bool


class PrinterList(BaseModel):
    printers: List[PrinterOut]


class DevicesOut(BaseModel):
    state: str
    device_dir: str
    prefix: str
    connected: List[str]
    watch_valid: bool


__all__ = ["ActivationRequest", "DevicesOut", "PrinterList", "PrinterOut"]

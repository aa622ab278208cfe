"""
Web module for Label Station.

Exposes blueprints for:
- Health endpoint: health_bp
- JSON API (devices, printers): api_bp
"""

from .api import api_bp
from .health import health_bp

__all__ = ["api_bp", "health_bp"]

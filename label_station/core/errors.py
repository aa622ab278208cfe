"""
Failure types raised by the collaborator adapters and a helper that turns them
into safe defaults at the boundary of a scheduled tick.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ReconcilerError(Exception):
    """Base class for recoverable printer reconciliation failures."""


class TransientIOFailure(ReconcilerError):
    """Directory listing, watch subscription or spooler call failed temporarily."""


class InvalidatedSubscription(ReconcilerError):
    """The directory watch can no longer deliver events and must be replaced."""


class PersistenceFailure(ReconcilerError):
    """Reading or writing the printer store failed."""


def try_or_default(fn: Callable[..., T], default: T, message: str, *args: Any) -> T:
    """
    Run fn(); on any exception log `message % args` with the traceback and return default.
    """
    try:
        return fn()
    except Exception:
        logger.exception(message, *args)
        return default


__all__ = [
    "InvalidatedSubscription",
    "PersistenceFailure",
    "ReconcilerError",
    "TransientIOFailure",
    "try_or_default",
]

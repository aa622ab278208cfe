from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from label_station.core.db import PrinterStore
from label_station.printing.spooler import SpoolerClient

logger = logging.getLogger(__name__)


class PrinterRegistrationSynchronizer:
    """
    Registers every spooler queue that has no persisted printer record yet.

    Names match case-insensitively. Existing records are never updated or
    deactivated here; activation is toggled through the API.
    """

    def __init__(self, spooler: SpoolerClient, store: PrinterStore) -> None:
        self.spooler = spooler
        self.store = store
        self.last_run: Optional[float] = None
        self.last_inserted: List[str] = []

    def reconcile(self) -> List[str]:
        """
        Insert records for unregistered queues. Returns the names inserted; never raises.
        """
        self.last_run = time.time()
        try:
            existing = self.store.load_all()
        except Exception:
            logger.exception("error while loading registered printers")
            return []
        try:
            queues = self.spooler.list_queues()
        except Exception as e:
            logger.error("cannot list spooler queues: %s", e)
            return []
        logger.debug("spooler returned %d queues: %s", len(queues), sorted(q.name for q in queues))

        known = {p.name.casefold() for p in existing}
        inserted: List[str] = []
        for q in sorted(queues, key=lambda q: q.name):
            key = q.name.casefold()
            if key in known:
                continue
            known.add(key)
            try:
                rows = self.store.insert(q.name, "", True)
            except Exception:
                logger.exception("cannot register printer %s", q.name)
                continue
            if not rows:
                logger.warning("printer %s not registered: no rows affected", q.name)
                continue
            logger.info("registered printer %s", q.name)
            inserted.append(q.name)
        self.last_inserted = inserted
        return inserted

    def status(self) -> Dict[str, Any]:
        return {"last_run": self.last_run, "last_inserted": list(self.last_inserted)}


__all__ = ["PrinterRegistrationSynchronizer"]

"""
Fixed-delay scheduling for the printer monitors.

This module owns:
- FixedDelayTask: a daemon thread that runs a callable, then waits `interval`
  seconds before the next run (the wait starts after the run finishes)
- MonitorScheduler: the shared pool holding the presence and registration tasks
- build_monitors(): wires settings, spooler and store into a ready-to-start bundle

Tasks never share state; each run is guarded so an unexpected exception is
logged and the schedule continues.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from label_station.core.config import MonitorSettings
from label_station.core.db import PrinterStore
from label_station.monitor.presence import PrinterPresenceMonitor
from label_station.monitor.registration import PrinterRegistrationSynchronizer
from label_station.printing.spooler import CupsSpoolerClient, SpoolerClient

logger = logging.getLogger(__name__)

PRESENCE_TASK = "printer-presence"
REGISTRATION_TASK = "printer-registration"


class FixedDelayTask:
    def __init__(self, name: str, interval: float, fn: Callable[[], Any]) -> None:
        self.name = name
        self.interval = interval
        self._fn = fn
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.failures = 0
        self.last_run: Optional[float] = None
        self.last_duration: Optional[float] = None

    def _loop(self) -> None:
        while not self._stop.is_set():
            started = time.monotonic()
            try:
                self._fn()
            except Exception:
                self.failures += 1
                logger.exception("scheduled task %s failed", self.name)
            finally:
                self.runs += 1
                self.last_run = time.time()
                self.last_duration = time.monotonic() - started
            self._stop.wait(self.interval)

    def start(self) -> None:
        """
        Start the task thread (idempotent).
        """
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        t = threading.Thread(target=self._loop, daemon=True, name=self.name)
        t.start()
        self._thread = t
        logger.info("scheduled task %s started (every %.1fs)", self.name, self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        t = self._thread
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout)

    def is_alive(self) -> bool:
        return bool(self._thread) and self._thread.is_alive()  # type: ignore[union-attr]

    def status(self) -> Dict[str, Any]:
        return {
            "alive": self.is_alive(),
            "interval": self.interval,
            "runs": self.runs,
            "failures": self.failures,
            "last_run": self.last_run,
            "last_duration": self.last_duration,
        }


class MonitorScheduler:
    def __init__(self) -> None:
        self._tasks: Dict[str, FixedDelayTask] = {}
        self._lock = threading.Lock()

    def add(self, name: str, interval: float, fn: Callable[[], Any]) -> FixedDelayTask:
        with self._lock:
            if name in self._tasks:
                raise ValueError(f"task {name!r} already scheduled")
            task = FixedDelayTask(name, interval, fn)
            self._tasks[name] = task
            return task

    def get(self, name: str) -> Optional[FixedDelayTask]:
        with self._lock:
            return self._tasks.get(name)

    def tasks(self) -> List[FixedDelayTask]:
        with self._lock:
            return list(self._tasks.values())

    def start(self) -> None:
        for task in self.tasks():
            task.start()

    def stop(self, timeout: float = 5.0) -> None:
        for task in self.tasks():
            task.stop(timeout)

    def status(self) -> Dict[str, Dict[str, Any]]:
        return {t.name: t.status() for t in self.tasks()}


@dataclass
class Monitors:
    presence: PrinterPresenceMonitor
    registration: PrinterRegistrationSynchronizer
    scheduler: MonitorScheduler

    def start(self) -> None:
        self.scheduler.start()

    def stop(self, timeout: float = 5.0) -> None:
        self.scheduler.stop(timeout)
        task = self.scheduler.get(PRESENCE_TASK)
        if task is not None and task.is_alive():
            # Closing now would race the tick still running on that thread
            logger.warning("task %s did not stop within %.1fs, leaving watch open", task.name, timeout)
            return
        self.presence.close()

    def status(self) -> Dict[str, Any]:
        return {
            "tasks": self.scheduler.status(),
            "presence": self.presence.status(),
            "registration": self.registration.status(),
        }


def build_monitors(
    settings: MonitorSettings,
    store: PrinterStore,
    spooler: Optional[SpoolerClient] = None,
) -> Monitors:
    """
    Create the presence monitor and registration synchronizer and schedule both.
    """
    spooler = spooler or CupsSpoolerClient.from_settings(settings)
    presence = PrinterPresenceMonitor(
        spooler,
        device_dir=settings.device_dir,
        prefix=settings.printer_prefix,
        poll_timeout=settings.bounded_poll_timeout,
        rescan_every=settings.rescan_every,
    )
    registration = PrinterRegistrationSynchronizer(spooler, store)
    scheduler = MonitorScheduler()
    scheduler.add(PRESENCE_TASK, settings.presence_interval, presence.tick)
    scheduler.add(REGISTRATION_TASK, settings.registration_interval, registration.reconcile)
    return Monitors(presence, registration, scheduler)


__all__ = ["FixedDelayTask", "MonitorScheduler", "Monitors", "PRESENCE_TASK", "REGISTRATION_TASK", "build_monitors"]

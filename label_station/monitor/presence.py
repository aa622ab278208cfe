"""
Printer presence monitor.

Keeps the connected-device set in step with the USB device directory and, on
every tick, removes managed CUPS queues whose device is no longer attached.

State machine:
- UNINITIALIZED: the directory has not been scanned (or the watch broke).
  A tick with the directory present subscribes, scans, and moves to WATCHING.
  A missing directory (driver not loaded yet) is retried on the next tick.
- WATCHING: a tick drains watcher events with a bounded wait. An invalidated
  subscription is closed and the monitor drops back to UNINITIALIZED, so the
  next tick rescans the whole directory. Every `rescan_every` polls the set
  is also compared with a fresh listing; any drift forces the same rescan.

The stale-queue cleanup runs on every tick regardless of the watcher state.
"""

from __future__ import annotations

import enum
import logging
import os
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from label_station.core.errors import InvalidatedSubscription, try_or_default
from label_station.monitor.devices import ConnectedDeviceSet
from label_station.monitor.watcher import DeviceEvent, DeviceEventKind, DeviceEventWatcher, WatchSubscription
from label_station.printing.spooler import SpoolerClient

logger = logging.getLogger(__name__)


class PresenceState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    WATCHING = "watching"


class PrinterPresenceMonitor:
    def __init__(
        self,
        spooler: SpoolerClient,
        *,
        device_dir: str,
        prefix: str,
        watcher: Optional[DeviceEventWatcher] = None,
        devices: Optional[ConnectedDeviceSet] = None,
        poll_timeout: float = 0.5,
        list_directory: Callable[[str], Iterable[str]] = os.listdir,
        directory_exists: Callable[[str], bool] = os.path.isdir,
        rescan_every: int = 30,
    ) -> None:
        self.spooler = spooler
        self.device_dir = device_dir
        self.prefix = prefix
        self.watcher = watcher or DeviceEventWatcher()
        self.devices = devices if devices is not None else ConnectedDeviceSet()
        self.poll_timeout = poll_timeout
        self._list_directory = list_directory
        self._directory_exists = directory_exists
        self.rescan_every = rescan_every
        self._polls_since_scan = 0
        self._state = PresenceState.UNINITIALIZED
        self._subscription: Optional[WatchSubscription] = None
        self.last_tick: Optional[float] = None
        self.last_removed: List[str] = []

    @property
    def state(self) -> PresenceState:
        return self._state

    @property
    def subscription(self) -> Optional[WatchSubscription]:
        return self._subscription

    def is_managed(self, name: str) -> bool:
        return name.startswith(self.prefix)

    # ----- tick ---------------------------------------------------------------

    def tick(self) -> None:
        """
        One scheduled run: synchronize devices, then prune stale queues. Never raises.
        """
        try:
            self.synchronize_devices()
        except Exception:
            logger.exception("unexpected error while synchronizing devices in %s", self.device_dir)
        self.last_removed = try_or_default(self.remove_stale_queues, [], "unexpected error while removing stale printers")
        self.last_tick = time.time()

    def synchronize_devices(self) -> None:
        if self._state is PresenceState.UNINITIALIZED:
            self._initialize()
        else:
            self._drain_events()

    def _initialize(self) -> None:
        if not self._directory_exists(self.device_dir):
            logger.debug("device directory %s not present yet", self.device_dir)
            return

        # Subscribe before listing so nothing created in between is missed;
        # replayed creations are idempotent.
        try:
            subscription = self.watcher.subscribe(self.device_dir)
        except Exception as e:
            logger.warning("cannot watch %s, will retry: %s", self.device_dir, e)
            return
        try:
            entries = [str(n) for n in self._list_directory(self.device_dir)]
        except Exception as e:
            logger.warning("cannot list %s, will retry: %s", self.device_dir, e)
            subscription.close()
            return

        connected = [n for n in entries if self.is_managed(n)]
        previous = self._subscription
        self.devices.replace(connected)
        self._subscription = subscription
        self._state = PresenceState.WATCHING
        self._polls_since_scan = 0
        if previous is not None:
            previous.close()
        logger.info("watching %s, %d printer(s) connected: %s", self.device_dir, len(connected), sorted(connected))

    def _drain_events(self) -> None:
        subscription = self._subscription
        if subscription is None:
            self._state = PresenceState.UNINITIALIZED
            return
        try:
            events, still_valid = self.watcher.poll_or_block(subscription, self.poll_timeout)
        except InvalidatedSubscription as e:
            logger.warning("watch on %s unusable (%s), rescanning on next run", self.device_dir, e)
            self._reset()
            return
        except Exception:
            logger.exception("error while polling %s, resubscribing", self.device_dir)
            events, still_valid = [], False

        for event in events:
            self.apply(event)

        if not still_valid:
            logger.warning(
                "watch on %s no longer valid (%s), rescanning on next run",
                self.device_dir,
                getattr(subscription, "reason", None) or "unknown",
            )
            self._reset()
            return

        self._polls_since_scan += 1
        if self.rescan_every > 0 and self._polls_since_scan >= self.rescan_every:
            self._polls_since_scan = 0
            self._verify_against_directory()

    def _verify_against_directory(self) -> None:
        # inotify queue overflows are dropped by watchdog without a callback,
        # so missed events only show up as drift against a fresh listing.
        try:
            listed = frozenset(str(n) for n in self._list_directory(self.device_dir) if self.is_managed(str(n)))
        except Exception as e:
            logger.warning("cannot list %s for consistency check: %s", self.device_dir, e)
            return
        current = self.devices.snapshot()
        if listed != current:
            logger.warning(
                "device set drifted from %s (missing=%s, stale=%s), rescanning on next run",
                self.device_dir,
                sorted(listed - current),
                sorted(current - listed),
            )
            self._reset()

    def apply(self, event: DeviceEvent) -> None:
        if not self.is_managed(event.name):
            return
        if event.kind is DeviceEventKind.CREATED:
            if self.devices.add(event.name):
                logger.info("printer %s connected", event.name)
        elif self.devices.discard(event.name):
            logger.info("printer %s disconnected", event.name)

    def _reset(self) -> None:
        subscription, self._subscription = self._subscription, None
        self._state = PresenceState.UNINITIALIZED
        if subscription is not None:
            try:
                subscription.close()
            except Exception:
                logger.debug("error while closing watch on %s", self.device_dir, exc_info=True)

    # ----- cleanup ------------------------------------------------------------

    def remove_stale_queues(self) -> List[str]:
        """
        Delete managed spooler queues that have no connected device. Returns the removed names.
        """
        try:
            queues = self.spooler.list_queues()
        except Exception as e:
            logger.error("cannot list spooler queues: %s", e)
            return []

        connected = {d.casefold() for d in self.devices.snapshot()}
        removed: List[str] = []
        for q in sorted(queues, key=lambda q: q.name):
            if not q.is_managed(self.prefix) or q.name.casefold() in connected:
                continue
            logger.debug("printer %s to be removed", q.name)
            try:
                result = self.spooler.delete_queue(q.name)
            except Exception:
                logger.exception("error while removing printer %s", q.name)
                continue
            if result == 0:
                logger.warning("removed printer %s, device %s", q.name, os.path.join(self.device_dir, q.name))
                removed.append(q.name)
            else:
                logger.error("cannot remove printer %s: lpadmin exited with %s", q.name, result)
        return removed

    def status(self) -> Dict[str, Any]:
        subscription = self._subscription
        return {
            "state": self._state.value,
            "device_dir": self.device_dir,
            "prefix": self.prefix,
            "connected": sorted(self.devices.snapshot()),
            "watch_valid": bool(subscription is not None and subscription.is_valid()),
            "last_tick": self.last_tick,
            "last_removed": list(self.last_removed),
        }

    def close(self) -> None:
        self._reset()


__all__ = ["PresenceState", "PrinterPresenceMonitor"]

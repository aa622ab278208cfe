"""
Directory change notification for the USB device directory.

A WatchSubscription wraps a watchdog Observer scheduled non-recursively on one
directory. Its handler turns create/delete/move notifications into
DeviceEvent items on a queue; DeviceEventWatcher.poll_or_block drains that
queue with a bounded wait so callers running on a fixed interval are never
blocked past their tick.

Naming-convention filtering is left to the caller.
"""

from __future__ import annotations

import enum
import logging
import os
import queue
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from label_station.core.errors import InvalidatedSubscription, TransientIOFailure

logger = logging.getLogger(__name__)


class DeviceEventKind(str, enum.Enum):
    CREATED = "created"
    DELETED = "deleted"


@dataclass(frozen=True)
class DeviceEvent:
    name: str
    kind: DeviceEventKind


def _norm(path) -> str:
    return os.path.normpath(os.fsdecode(path))


class _QueueingHandler(FileSystemEventHandler):
    def __init__(self, subscription: "WatchSubscription") -> None:
        super().__init__()
        self._subscription = subscription

    def on_created(self, event: FileSystemEvent) -> None:
        self._subscription._push(event.src_path, DeviceEventKind.CREATED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if _norm(event.src_path) == self._subscription.directory:
            self._subscription.invalidate("watched directory deleted")
            return
        self._subscription._push(event.src_path, DeviceEventKind.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if _norm(event.src_path) == self._subscription.directory:
            self._subscription.invalidate("watched directory moved")
            return
        self._subscription._push(event.src_path, DeviceEventKind.DELETED)
        if isinstance(event, FileSystemMovedEvent):
            self._subscription._push(event.dest_path, DeviceEventKind.CREATED)


class WatchSubscription:
    """
    Handle for one watched directory. Invalid once closed, once the observer
    thread dies, or once the directory itself disappears.
    """

    def __init__(self, directory: str, observer_factory: Callable[[], Observer] = Observer) -> None:
        self.directory = _norm(directory)
        self._events: "queue.Queue[DeviceEvent]" = queue.Queue()
        self._invalid = threading.Event()
        self._reason: Optional[str] = None
        self._closed = False
        self._observer = observer_factory()
        self._observer.schedule(_QueueingHandler(self), self.directory, recursive=False)

    def start(self) -> None:
        self._observer.start()

    def _push(self, path, kind: DeviceEventKind) -> None:
        p = _norm(path)
        # Only direct children of the watched directory are device entries
        if os.path.dirname(p) != self.directory:
            return
        self._events.put(DeviceEvent(os.path.basename(p), kind))

    def invalidate(self, reason: str) -> None:
        if not self._invalid.is_set():
            self._reason = reason
            self._invalid.set()
            logger.debug("watch on %s invalidated: %s", self.directory, reason)

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def is_valid(self) -> bool:
        if self._invalid.is_set():
            return False
        if not self._observer.is_alive():
            self.invalidate("observer thread stopped")
            return False
        if not os.path.isdir(self.directory):
            self.invalidate("watched directory missing")
            return False
        return True

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self, timeout: float = 2.0) -> None:
        self._closed = True
        self.invalidate("closed")
        try:
            self._observer.stop()
            if self._observer.is_alive():
                self._observer.join(timeout)
        except Exception:
            logger.debug("error while stopping observer for %s", self.directory, exc_info=True)


class DeviceEventWatcher:
    def __init__(self, observer_factory: Callable[[], Observer] = Observer) -> None:
        self._observer_factory = observer_factory

    def subscribe(self, directory: str) -> WatchSubscription:
        """
        Start watching `directory`. Raises TransientIOFailure if the watch cannot be set up.
        """
        try:
            subscription = WatchSubscription(directory, self._observer_factory)
            subscription.start()
        except OSError as e:
            raise TransientIOFailure(f"cannot watch {directory}: {e}") from e
        logger.debug("watching %s", subscription.directory)
        return subscription

    def poll_or_block(self, subscription: WatchSubscription, timeout: float) -> Tuple[List[DeviceEvent], bool]:
        """
        Return (events, still_valid). Waits at most `timeout` seconds for the
        first event when nothing is queued; never waits on an invalid handle.

        Raises InvalidatedSubscription if the handle was already closed.
        """
        if subscription.closed:
            raise InvalidatedSubscription(f"watch on {subscription.directory} was closed")
        events: List[DeviceEvent] = []
        pending = subscription._events
        if timeout > 0 and pending.empty() and subscription.is_valid():
            try:
                events.append(pending.get(timeout=timeout))
            except queue.Empty:
                pass
        while True:
            try:
                events.append(pending.get_nowait())
            except queue.Empty:
                break
        return events, subscription.is_valid()


__all__ = [
    "DeviceEvent",
    "DeviceEventKind",
    "DeviceEventWatcher",
    "WatchSubscription",
]

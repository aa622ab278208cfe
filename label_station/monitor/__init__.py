"""
Printer presence and registration reconciler.

- watcher: watchdog-backed directory subscriptions with bounded polling
- devices: copy-on-write set of connected device identifiers
- presence: device tracking state machine and stale queue cleanup
- registration: persists spooler queues that are not yet known
- scheduler: fixed-delay daemon threads running both passes
"""

from .devices import ConnectedDeviceSet
from .presence import PresenceState, PrinterPresenceMonitor
from .registration import PrinterRegistrationSynchronizer
from .scheduler import FixedDelayTask, MonitorScheduler, Monitors, build_monitors
from .watcher import DeviceEvent, DeviceEventKind, DeviceEventWatcher, WatchSubscription

__all__ = [
    "ConnectedDeviceSet",
    "DeviceEvent",
    "DeviceEventKind",
    "DeviceEventWatcher",
    "FixedDelayTask",
    "MonitorScheduler",
    "Monitors",
    "PresenceState",
    "PrinterPresenceMonitor",
    "PrinterRegistrationSynchronizer",
    "WatchSubscription",
    "build_monitors",
]

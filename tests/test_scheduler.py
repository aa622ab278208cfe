import threading

import pytest

from conftest import FakeSpooler, FakeStore, FakeWatcher
from label_station.core.config import MonitorSettings
from label_station.monitor.presence import PrinterPresenceMonitor
from label_station.monitor.registration import PrinterRegistrationSynchronizer
from label_station.monitor.scheduler import PRESENCE_TASK, FixedDelayTask, MonitorScheduler, Monitors, build_monitors


def test_task_keeps_running_after_failures():
    calls = []
    done = threading.Event()

    def _flaky():
        calls.append(1)
        if len(calls) >= 3:
            done.set()
        raise RuntimeError("tick failed")

    task = FixedDelayTask("flaky", 0.01, _flaky)
    task.start()
    try:
        assert done.wait(5.0)
    finally:
        task.stop(2.0)
    assert task.failures >= 3
    assert not task.is_alive()


def test_start_is_idempotent():
    task = FixedDelayTask("idle", 10.0, lambda: None)
    task.start()
    first = task._thread
    task.start()
    try:
        assert task._thread is first
    finally:
        task.stop(2.0)


def test_scheduler_rejects_duplicate_names():
    scheduler = MonitorScheduler()
    scheduler.add("a", 1.0, lambda: None)
    with pytest.raises(ValueError):
        scheduler.add("a", 1.0, lambda: None)


def test_build_monitors_runs_both_passes(tmp_path):
    (tmp_path / "AlfioP1").write_text("")
    spooler = FakeSpooler(["AlfioP1", "AlfioP2"])
    store = FakeStore()
    settings = MonitorSettings(
        device_dir=str(tmp_path),
        presence_interval=0.05,
        registration_interval=0.05,
        poll_timeout=0.01,
    )
    monitors = build_monitors(settings, store, spooler)

    assert [t.name for t in monitors.scheduler.tasks()] == ["printer-presence", "printer-registration"]
    assert monitors.presence.poll_timeout == pytest.approx(0.01)

    monitors.start()
    try:
        deadline = threading.Event()
        for _ in range(100):
            if monitors.registration.last_run and monitors.presence.state.value == "watching":
                break
            deadline.wait(0.05)
    finally:
        monitors.stop(2.0)

    # AlfioP2 may already be pruned by the time registration lists the queues
    inserted = {n for n, _, _ in store.inserts}
    assert "AlfioP1" in inserted
    assert inserted <= {"AlfioP1", "AlfioP2"}
    assert monitors.presence.devices.snapshot() == frozenset({"AlfioP1"})
    assert "AlfioP2" in spooler.delete_calls
    assert "AlfioP1" not in spooler.delete_calls
    status = monitors.status()
    assert set(status["tasks"]) == {"printer-presence", "printer-registration"}


def test_stop_leaves_watch_open_while_presence_tick_is_running():
    spooler = FakeSpooler()
    presence = PrinterPresenceMonitor(
        spooler,
        device_dir="/dev/usb/",
        prefix="Alfio",
        watcher=FakeWatcher(),
        list_directory=lambda path: ["AlfioP1"],
        directory_exists=lambda path: True,
    )
    presence.tick()
    subscription = presence.subscription
    assert subscription is not None

    entered = threading.Event()
    release = threading.Event()

    def _slow_tick():
        entered.set()
        release.wait(5.0)

    scheduler = MonitorScheduler()
    scheduler.add(PRESENCE_TASK, 10.0, _slow_tick)
    monitors = Monitors(presence, PrinterRegistrationSynchronizer(spooler, FakeStore()), scheduler)
    monitors.start()
    try:
        assert entered.wait(5.0)
        monitors.stop(0.05)
        assert not subscription.closed
        assert presence.subscription is subscription
    finally:
        release.set()

    monitors.stop(2.0)
    assert not scheduler.get(PRESENCE_TASK).is_alive()
    assert subscription.closed
    assert presence.subscription is None


def test_stop_closes_watch_once_tasks_have_exited():
    spooler = FakeSpooler()
    presence = PrinterPresenceMonitor(
        spooler,
        device_dir="/dev/usb/",
        prefix="Alfio",
        watcher=FakeWatcher(),
        list_directory=lambda path: [],
        directory_exists=lambda path: True,
    )
    scheduler = MonitorScheduler()
    scheduler.add(PRESENCE_TASK, 10.0, presence.tick)
    monitors = Monitors(presence, PrinterRegistrationSynchronizer(spooler, FakeStore()), scheduler)
    monitors.start()
    for _ in range(100):
        if presence.subscription is not None:
            break
        threading.Event().wait(0.01)
    subscription = presence.subscription
    assert subscription is not None

    monitors.stop(2.0)

    assert subscription.closed
    assert presence.state.value == "uninitialized"

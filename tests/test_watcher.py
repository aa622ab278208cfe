import time

import pytest

from label_station.core.errors import InvalidatedSubscription
from label_station.monitor.watcher import DeviceEvent, DeviceEventKind, DeviceEventWatcher


def _poll_until(watcher, sub, predicate, deadline=5.0):
    collected = []
    valid = True
    end = time.monotonic() + deadline
    while time.monotonic() < end:
        events, valid = watcher.poll_or_block(sub, 0.2)
        collected.extend(events)
        if predicate(collected, valid):
            break
    return collected, valid


@pytest.fixture
def watcher():
    return DeviceEventWatcher()


def test_create_and_delete_are_reported(tmp_path, watcher):
    sub = watcher.subscribe(str(tmp_path))
    try:
        entry = tmp_path / "AlfioP1"
        entry.write_text("")
        events, valid = _poll_until(
            watcher, sub, lambda ev, ok: DeviceEvent("AlfioP1", DeviceEventKind.CREATED) in ev
        )
        assert valid
        assert DeviceEvent("AlfioP1", DeviceEventKind.CREATED) in events

        entry.unlink()
        events, valid = _poll_until(
            watcher, sub, lambda ev, ok: DeviceEvent("AlfioP1", DeviceEventKind.DELETED) in ev
        )
        assert valid
        assert DeviceEvent("AlfioP1", DeviceEventKind.DELETED) in events
    finally:
        sub.close()


def test_symlink_creation_is_reported(tmp_path, watcher):
    target = tmp_path / "lp0"
    target.write_text("")
    watched = tmp_path / "usb"
    watched.mkdir()
    sub = watcher.subscribe(str(watched))
    try:
        (watched / "AlfioLabel").symlink_to(target)
        events, _ = _poll_until(watcher, sub, lambda ev, ok: any(e.name == "AlfioLabel" for e in ev))
        assert DeviceEvent("AlfioLabel", DeviceEventKind.CREATED) in events
    finally:
        sub.close()


def test_poll_without_events_is_bounded(tmp_path, watcher):
    sub = watcher.subscribe(str(tmp_path))
    try:
        started = time.monotonic()
        events, valid = watcher.poll_or_block(sub, 0.3)
        elapsed = time.monotonic() - started
        assert events == []
        assert valid
        assert elapsed < 2.0
    finally:
        sub.close()


def test_removed_directory_invalidates_subscription(tmp_path, watcher):
    watched = tmp_path / "usb"
    watched.mkdir()
    sub = watcher.subscribe(str(watched))
    try:
        watched.rmdir()
        _, valid = _poll_until(watcher, sub, lambda ev, ok: not ok)
        assert valid is False
        assert not sub.is_valid()
    finally:
        sub.close()


def test_polling_closed_subscription_raises_without_blocking(tmp_path, watcher):
    sub = watcher.subscribe(str(tmp_path))
    sub.close()
    started = time.monotonic()
    with pytest.raises(InvalidatedSubscription):
        watcher.poll_or_block(sub, 5.0)
    assert time.monotonic() - started < 1.0
    assert sub.closed
    assert not sub.is_valid()
    assert sub.reason == "closed"

# Ensure the repository root is on sys.path so `label_station` can be imported in tests.

import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

from label_station.core.errors import InvalidatedSubscription  # noqa: E402
from label_station.printing.spooler import SpoolerQueue  # noqa: E402


class FakeSpooler:
    """In-memory spooler; `fail_on` maps queue name -> exit code or exception."""

    def __init__(self, names=(), fail_on=None):
        self.queues = {SpoolerQueue(n) for n in names}
        self.fail_on = dict(fail_on or {})
        self.delete_calls = []
        self.list_error = None

    def list_queues(self):
        if self.list_error is not None:
            raise self.list_error
        return set(self.queues)

    def delete_queue(self, name):
        self.delete_calls.append(name)
        outcome = self.fail_on.get(name)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome:
            return outcome
        self.queues = {q for q in self.queues if q.name != name}
        return 0


class FakeSubscription:
    def __init__(self, directory):
        self.directory = directory
        self.closed = False
        self.reason = None

    def is_valid(self):
        return not self.closed

    def close(self):
        self.closed = True


class FakeWatcher:
    """Hands out FakeSubscriptions; poll returns whatever is in `pending`."""

    def __init__(self):
        self.subscriptions = []
        self.pending = []
        self.still_valid = True
        self.subscribe_error = None
        self.poll_timeouts = []

    def subscribe(self, directory):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        sub = FakeSubscription(directory)
        self.subscriptions.append(sub)
        return sub

    def poll_or_block(self, subscription, timeout):
        if subscription.closed:
            raise InvalidatedSubscription(f"watch on {subscription.directory} was closed")
        self.poll_timeouts.append(timeout)
        events, self.pending = self.pending, []
        return events, self.still_valid


class FakeStore:
    def __init__(self, names=(), fail_on=()):
        from label_station.core.db import PersistedPrinter

        self._cls = PersistedPrinter
        self.printers = [PersistedPrinter(i + 1, n, None, True) for i, n in enumerate(names)]
        self.fail_on = set(fail_on)
        self.inserts = []
        self.load_error = None

    def load_all(self):
        if self.load_error is not None:
            raise self.load_error
        return list(self.printers)

    def insert(self, name, description, active):
        self.inserts.append((name, description, active))
        if name in self.fail_on:
            raise RuntimeError(f"insert failed for {name}")
        self.printers.append(self._cls(len(self.printers) + 1, name, description, active))
        return 1

"""
CUPS spooler access for Label Station.

Queues are enumerated with `lpstat -v` and removed with `lpadmin -x`. Queue
creation happens out-of-band when the OS printer driver is installed, so it is
not offered here.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from typing import Optional, Protocol, Set

from label_station.core.errors import TransientIOFailure

logger = logging.getLogger(__name__)

_DEVICE_LINE = re.compile(r"^device for (?P<name>[^:\s]+):\s*(?P<uri>.*)$")
_NO_DESTINATIONS = "no destinations added"

EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class SpoolerQueue:
    name: str
    device_uri: Optional[str] = field(default=None, compare=False)

    def is_managed(self, prefix: str) -> bool:
        return self.name.startswith(prefix)


class SpoolerClient(Protocol):
    def list_queues(self) -> Set[SpoolerQueue]: ...

    def delete_queue(self, name: str) -> int: ...


def parse_lpstat_devices(output: str) -> Set[SpoolerQueue]:
    """
    Parse `lpstat -v` output into queues; unrecognized lines are skipped.
    """
    queues: Set[SpoolerQueue] = set()
    for line in output.splitlines():
        m = _DEVICE_LINE.match(line.strip())
        if m:
            queues.add(SpoolerQueue(m.group("name"), m.group("uri").strip() or None))
    return queues


class CupsSpoolerClient:
    def __init__(
        self,
        lpstat_path: str = "lpstat",
        lpadmin_path: str = "/usr/sbin/lpadmin",
        timeout: float = 10.0,
    ) -> None:
        self.lpstat_path = lpstat_path
        self.lpadmin_path = lpadmin_path
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "CupsSpoolerClient":
        return cls(settings.lpstat_path, settings.lpadmin_path, settings.spooler_timeout)

    def _env(self) -> dict:
        # lpstat output is localized; parsing relies on the C locale
        env = dict(os.environ)
        env["LC_ALL"] = "C"
        return env

    def list_queues(self) -> Set[SpoolerQueue]:
        """
        Return the queues currently registered with CUPS.

        Raises TransientIOFailure if lpstat cannot be run or reports an error.
        """
        try:
            proc = subprocess.run(
                [self.lpstat_path, "-v"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env(),
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise TransientIOFailure(f"lpstat failed: {e}") from e

        if proc.returncode != 0:
            if _NO_DESTINATIONS in (proc.stderr or "").lower():
                return set()
            raise TransientIOFailure(f"lpstat exited with {proc.returncode}: {(proc.stderr or '').strip()}")
        queues = parse_lpstat_devices(proc.stdout or "")
        logger.debug("lpstat returned %d queues: %s", len(queues), sorted(q.name for q in queues))
        return queues

    def delete_queue(self, name: str) -> int:
        """
        Remove a queue. Returns the lpadmin exit code; failures to run it map to 124/127.
        """
        try:
            proc = subprocess.run(
                [self.lpadmin_path, "-x", name],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env(),
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.error("lpadmin -x %s timed out after %.1fs", name, self.timeout)
            return EXIT_TIMEOUT
        except OSError as e:
            logger.error("cannot run %s to remove %s: %s", self.lpadmin_path, name, e)
            return EXIT_NOT_FOUND
        if proc.returncode != 0 and proc.stderr:
            logger.debug("lpadmin -x %s stderr: %s", name, proc.stderr.strip())
        return proc.returncode


__all__ = [
    "CupsSpoolerClient",
    "EXIT_NOT_FOUND",
    "EXIT_TIMEOUT",
    "SpoolerClient",
    "SpoolerQueue",
    "parse_lpstat_devices",
]

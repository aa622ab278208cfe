from __future__ import annotations

"""
SQLite persistence for Label Station printers.

Features:
- DB path resolution with env/XDG defaults
- One short-lived connection per operation, so the registration thread and
  Flask request threads never share a sqlite3.Connection
- PRAGMAs for reliability: foreign_keys=ON, WAL, synchronous=NORMAL
- Schema bootstrap and simple migrations (schema_version = 1)
- PrinterStore operations: load_all, insert, find_by_id, toggle_activation
"""

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol

from label_station.core.errors import PersistenceFailure, try_or_default

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class PersistedPrinter:
    id: int
    name: str
    description: Optional[str]
    active: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PrinterStore(Protocol):
    def load_all(self) -> List[PersistedPrinter]: ...

    def insert(self, name: str, description: str, active: bool) -> int: ...


# ----- Path resolution -------------------------------------------------------


def get_db_path() -> str:
    """
    Resolve the database path using:
    1) LABELSTATION_DB_PATH (env)
    2) $XDG_DATA_HOME/labelstation/data.db
    3) ~/.local/share/labelstation/data.db
    """
    if "LABELSTATION_DB_PATH" in os.environ:
        return os.environ["LABELSTATION_DB_PATH"]
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return str(Path(xdg) / "labelstation" / "data.db")
    return str(Path.home() / ".local" / "share" / "labelstation" / "data.db")


# ----- Connection management -------------------------------------------------


def _apply_pragmas(db: sqlite3.Connection) -> None:
    db.execute("PRAGMA foreign_keys = ON")
    try:
        db.execute("PRAGMA journal_mode = WAL")
    except sqlite3.DatabaseError:
        pass
    db.execute("PRAGMA synchronous = NORMAL")


def _ensure_schema(db: sqlite3.Connection) -> None:
    """
    Create tables if not present and ensure schema_version is initialized.
    """
    with db:
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
              version INTEGER NOT NULL
            )
            """,
        )
        db.execute(
            """
            CREATE TABLE IF NOT EXISTS printer (
              id           INTEGER PRIMARY KEY AUTOINCREMENT,
              name         TEXT NOT NULL UNIQUE COLLATE NOCASE,
              description  TEXT,
              active       INTEGER NOT NULL DEFAULT 1
            )
            """,
        )
        row = db.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1").fetchone()
        if row is None:
            db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        elif int(row["version"]) > SCHEMA_VERSION:
            logger.warning("DB schema v%s is newer than supported v%s", row["version"], SCHEMA_VERSION)


def _row_to_printer(row: sqlite3.Row) -> PersistedPrinter:
    return PersistedPrinter(
        id=int(row["id"]),
        name=row["name"],
        description=row["description"],
        active=bool(row["active"]),
    )


class SqlitePrinterStore:
    """
    Printer repository backed by a SQLite file.

    sqlite3.Error is re-raised as PersistenceFailure so callers only need to
    handle the reconciler's own failure types.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or get_db_path()
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self.path, timeout=5.0)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceFailure(f"cannot open printer DB at {self.path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            _apply_pragmas(conn)
            if not self._schema_ready:
                with self._schema_lock:
                    if not self._schema_ready:
                        _ensure_schema(conn)
                        self._schema_ready = True
            yield conn
        except sqlite3.Error as e:
            raise PersistenceFailure(str(e)) from e
        finally:
            conn.close()

    def load_all(self) -> List[PersistedPrinter]:
        with self._connection() as db:
            rows = db.execute("SELECT id, name, description, active FROM printer ORDER BY name").fetchall()
        return [_row_to_printer(r) for r in rows]

    def find_by_id(self, printer_id: int) -> Optional[PersistedPrinter]:
        with self._connection() as db:
            row = db.execute(
                "SELECT id, name, description, active FROM printer WHERE id = ?",
                (printer_id,),
            ).fetchone()
        return _row_to_printer(row) if row else None

    def insert(self, name: str, description: str, active: bool) -> int:
        """
        Insert a printer record. Returns the number of affected rows.
        """
        with self._connection() as db:
            with db:
                cur = db.execute(
                    "INSERT INTO printer (name, description, active) VALUES (?,?,?)",
                    (name, description, 1 if active else 0),
                )
                return cur.rowcount

    def toggle_activation(self, printer_id: int, state: bool) -> int:
        """
        Set the active flag for a printer. Returns the number of affected rows.
        """
        with self._connection() as db:
            with db:
                cur = db.execute(
                    "UPDATE printer SET active = ? WHERE id = ?",
                    (1 if state else 0, printer_id),
                )
                return cur.rowcount


# ----- Guarded helpers -------------------------------------------------------


def find_all_registered_printers(store: PrinterStore) -> List[PersistedPrinter]:
    """
    Return all persisted printers, or an empty list if the store cannot be read.
    """
    return try_or_default(store.load_all, [], "error while loading printers")


def find_printer(store: SqlitePrinterStore, printer_id: int) -> Optional[PersistedPrinter]:
    return try_or_default(lambda: store.find_by_id(printer_id), None, "error while loading printer %s", printer_id)


def toggle_printer_activation(store: SqlitePrinterStore, printer_id: int, state: bool) -> bool:
    """
    Update the active state of a printer. True only if exactly one row changed.
    """
    return try_or_default(
        lambda: store.toggle_activation(printer_id, state) == 1,
        False,
        "error while trying to update active state to %s for printer %s",
        state,
        printer_id,
    )


def init_app(app, store: Optional[SqlitePrinterStore] = None) -> SqlitePrinterStore:
    """
    Attach a printer store to a Flask app (app.extensions["printer_store"]).
    """
    store = store or SqlitePrinterStore(app.config.get("DB_PATH"))
    app.extensions["printer_store"] = store
    return store


def get_store() -> SqlitePrinterStore:
    from flask import current_app

    return current_app.extensions["printer_store"]


__all__ = [
    "PersistedPrinter",
    "PrinterStore",
    "SCHEMA_VERSION",
    "SqlitePrinterStore",
    "find_all_registered_printers",
    "find_printer",
    "get_db_path",
    "get_store",
    "init_app",
    "toggle_printer_activation",
]

"""
SQLite Adapter - Relational engine used by LinesDB

Thin layer over the standard library sqlite3 module exposing the small
surface the store needs:
- prepare(sql) -> Statement with run/get/all over positional parameters
- exec(sql) for DDL and transaction control
- foreign key enforcement toggle
- close() that tolerates being called more than once

The connection runs in autocommit mode; transactions are driven explicitly
with BEGIN / COMMIT / ROLLBACK and SAVEPOINT.
"""

import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from ..log import get_logger
from ..core.errors import ConstraintError

logger = get_logger('sqlite')


@dataclass
class RunResult:
    """Outcome of a mutating statement"""
    changes: int = 0
    last_insert_rowid: int = 0

    def __add__(self, other: 'RunResult') -> 'RunResult':
        return RunResult(
            changes=self.changes + other.changes,
            last_insert_rowid=other.last_insert_rowid or self.last_insert_rowid,
        )


def _execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
    logger.debug("SQL %s params=%r", sql, list(params))
    try:
        return conn.execute(sql, tuple(params))
    except sqlite3.IntegrityError as e:
        raise ConstraintError(str(e)) from e


class Statement:
    """A prepared statement bound to one connection"""

    def __init__(self, db: 'SQLiteDatabase', sql: str):
        self.db = db
        self.sql = sql

    def run(self, params: Sequence[Any] = ()) -> RunResult:
        cursor = _execute(self.db.connection, self.sql, params)
        return RunResult(changes=max(cursor.rowcount, 0), last_insert_rowid=cursor.lastrowid or 0)

    def get(self, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        row = _execute(self.db.connection, self.sql, params).fetchone()
        return dict(row) if row is not None else None

    def all(self, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        return [dict(row) for row in _execute(self.db.connection, self.sql, params).fetchall()]


class SQLiteDatabase:
    """
    Owns a single sqlite3 connection.

    Usage:
        db = SQLiteDatabase(':memory:')
        db.exec('CREATE TABLE t (id INTEGER PRIMARY KEY)')
        db.prepare('INSERT INTO t (id) VALUES (?)').run([1])
        rows = db.prepare('SELECT * FROM t').all()
        db.close()
    """

    def __init__(self, path: str = ':memory:', foreign_keys: bool = True):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = sqlite3.connect(path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self.set_foreign_keys(foreign_keys)

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Cannot operate on a closed database.")
        return self._conn

    @property
    def closed(self) -> bool:
        return self._conn is None

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    def prepare(self, sql: str) -> Statement:
        return Statement(self, sql)

    def exec(self, sql: str) -> None:
        """Execute a single statement without parameters"""
        _execute(self.connection, sql)

    def set_foreign_keys(self, enabled: bool) -> None:
        self.exec(f"PRAGMA foreign_keys = {'ON' if enabled else 'OFF'}")

    def foreign_keys_enabled(self) -> bool:
        return bool(self.connection.execute('PRAGMA foreign_keys').fetchone()[0])

    def close(self) -> None:
        """Close the connection; later calls are no-ops"""
        if self._conn is None:
            return
        try:
            self._conn.close()
        finally:
            self._conn = None

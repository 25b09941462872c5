"""
Transaction Coordinator - Atomic mutation sequences

States: IDLE -> ACTIVE -> (COMMITTED | ROLLED_BACK) -> IDLE

While ACTIVE, mutations skip their automatic per-table file sync. After a
successful COMMIT every loaded table is synced; after a ROLLBACK nothing is
written. Nested transactions are rejected.
"""

import logging
from contextlib import contextmanager
from enum import Enum, auto
from typing import Any, Callable, Iterator, Optional

from ..storage.sqlite import SQLiteDatabase
from ..log import get_logger
from .errors import UnsupportedOperationError


class TransactionState(Enum):
    IDLE = auto()
    ACTIVE = auto()
    COMMITTED = auto()
    ROLLED_BACK = auto()


class TransactionCoordinator:

    def __init__(
        self,
        db: SQLiteDatabase,
        after_commit: Optional[Callable[[], None]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.after_commit = after_commit
        self.logger = logger or get_logger('transactions')
        self.state = TransactionState.IDLE
        self.last_outcome: Optional[TransactionState] = None

    @property
    def active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def _begin(self) -> None:
        if self.active:
            raise UnsupportedOperationError("Nested transactions are not supported")
        self.db.exec('BEGIN')
        self.state = TransactionState.ACTIVE
        self.logger.debug("Transaction started")

    def _finish(self, outcome: TransactionState) -> None:
        self.last_outcome = outcome
        self.state = TransactionState.IDLE
        self.logger.debug("Transaction %s", outcome.name.lower())

    def _rollback(self) -> None:
        try:
            if self.db.in_transaction:
                self.db.exec('ROLLBACK')
        finally:
            self._finish(TransactionState.ROLLED_BACK)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """
        Run the with-block in a transaction.

        Commits and syncs all tables when the block exits normally; rolls
        back and re-raises when it raises.
        """
        self._begin()
        try:
            yield
            self.db.exec('COMMIT')
        except BaseException:
            self._rollback()
            raise

        self._finish(TransactionState.COMMITTED)
        if self.after_commit is not None:
            self.after_commit()

    def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Call fn(*args) inside atomic() and return its result"""
        with self.atomic():
            return fn(*args)

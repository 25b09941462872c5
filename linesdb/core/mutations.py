"""
Mutation & Sync Coordinator - Writes to SQLite and mirrors them to JSONL

Every mutation validates (where applicable), writes through parameterized
SQL, then syncs the table's source file. Outside a transaction that sync is
best-effort: failures are logged and never raised. Inside a transaction
syncing is left to commit.

Sync always rewrites the whole file from the table's current rows.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from ..storage.jsonl import JsonlWriter
from ..storage.sqlite import RunResult, SQLiteDatabase
from ..log import get_logger
from .errors import (
    MissingPrimaryKeyError, RowNotFoundError, RowValidationError,
    UnsupportedOperationError, ValidationError,
)
from .executor import QueryExecutor
from .predicates import WhereCondition
from .schema import Table, quote_identifier
from .transactions import TransactionCoordinator
from .types import TypeValidator
from .validation import ValidationPipeline

Row = Dict[str, Any]


class MutationCoordinator:
    """
    Implements insert / update / delete (single and batch) and table sync.

    Batch writes run inside a SAVEPOINT so a constraint failure part-way
    through leaves neither the database nor the file half-written.
    """

    def __init__(
        self,
        db: SQLiteDatabase,
        executor: QueryExecutor,
        pipeline: ValidationPipeline,
        transactions: TransactionCoordinator,
        sources: Dict[str, str],
        logger: Optional[logging.Logger] = None,
    ):
        self.db = db
        self.executor = executor
        self.pipeline = pipeline
        self.transactions = transactions
        self.sources = sources
        self.logger = logger or get_logger('mutations')

    # --- Insert ---------------------------------------------------------------------

    def insert(self, table_name: str, row: Row) -> RunResult:
        """Validate and insert one row over exactly the row's own keys"""
        table = self.executor.require_table(table_name)
        value = self.pipeline.validate_row(table_name, row)
        result = self._insert_row(table, value)
        self._auto_sync(table_name)
        return result

    def batch_insert(self, table_name: str, rows: Sequence[Row]) -> RunResult:
        """Validate every row first, then insert them all"""
        table = self.executor.require_table(table_name)
        if not rows:
            return RunResult()

        values = self.pipeline.validate_rows(table_name, rows)
        total = RunResult()
        with self.savepoint('batch_insert'):
            for value in values:
                total += self._insert_row(table, value)

        self._auto_sync(table_name)
        return total

    def _insert_row(self, table: Table, value: Row) -> RunResult:
        name = quote_identifier(table.name)
        if not value:
            return self.executor.execute(f"INSERT INTO {name} DEFAULT VALUES")

        columns = ', '.join(quote_identifier(key) for key in value)
        placeholders = ', '.join('?' for _ in value)
        params = [TypeValidator.normalize(v) for v in value.values()]
        return self.executor.execute(f"INSERT INTO {name} ({columns}) VALUES ({placeholders})", params)

    def materialize(self, table: Table, values: Sequence[Row]) -> None:
        """(Re)create a table with its indexes and load already-validated rows"""
        with self.savepoint('materialize'):
            self.db.exec(f"DROP TABLE IF EXISTS {quote_identifier(table.name)}")
            self.db.exec(table.create_table_sql())
            for statement in table.create_index_sql():
                self.db.exec(statement)
            for value in values:
                self._insert_row(table, value)

    # --- Update ---------------------------------------------------------------------

    def update(self, table_name: str, patch: Row, where: WhereCondition, validate: bool = True) -> RunResult:
        """
        Apply a partial update to every row matching `where`.

        When validating, each matching row is merged with the patch (patch
        keys win) and the merged row is validated; the bare patch never is.
        Callable leaves are rejected.
        """
        table = self.executor.require_table(table_name)
        self._reject_functions(where, 'update')

        if validate and self.pipeline.has(table_name):
            existing = self.executor.find(table_name, where)
            failures = self._check_merged(table_name, [(row, patch) for row in existing])
            if failures:
                raise ValidationError.aggregate(table_name, failures)

        result = self._update_rows(table, patch, where)
        self._auto_sync(table_name)
        return result

    def batch_update(self, table_name: str, records: Sequence[Row], validate: bool = True) -> RunResult:
        """
        Update rows identified by the primary key carried in each record.

        All merged records are validated before any write; one failure
        means no record is updated.
        """
        table = self.executor.require_table(table_name)
        if not records:
            return RunResult()

        pk = self._primary_key(table)
        keys = [self._pk_value(record, pk, i) for i, record in enumerate(records)]

        if validate and self.pipeline.has(table_name):
            condition = [dict(zip(pk, key)) for key in keys]
            existing = {
                tuple(row.get(col) for col in pk): row
                for row in self.executor.find(table_name, condition)
            }

            pairs = []
            for key, record in zip(keys, records):
                if key not in existing:
                    raise RowNotFoundError(
                        f"No existing row found in '{table_name}' with "
                        + ', '.join(f"{col}={val!r}" for col, val in zip(pk, key))
                    )
                pairs.append((existing[key], record))

            failures = self._check_merged(table_name, pairs)
            if failures:
                for failure in failures:
                    key = keys[failure.row_index]
                    failure.primary_key = key if len(pk) > 1 else key[0]
                raise ValidationError.aggregate(table_name, failures)

        total = RunResult()
        with self.savepoint('batch_update'):
            for key, record in zip(keys, records):
                patch = {k: v for k, v in record.items() if k not in pk}
                if patch:
                    total += self._update_rows(table, patch, dict(zip(pk, key)))

        self._auto_sync(table_name)
        return total

    def _check_merged(self, table_name: str, pairs: List[Tuple[Row, Row]]) -> List[RowValidationError]:
        failures = []
        for row_index, (existing, patch) in enumerate(pairs):
            merged = {**existing, **patch}
            issues = self.pipeline.check_merged(table_name, merged)
            if issues:
                failures.append(RowValidationError(row_index=row_index, row_data=merged, issues=issues))
        return failures

    def _update_rows(self, table: Table, patch: Row, where: WhereCondition) -> RunResult:
        if not patch:
            raise ValueError("Update patch must contain at least one column")

        compiled = self.executor.compiler.compile(where)
        assignments = ', '.join(f"{quote_identifier(key)} = ?" for key in patch)
        params = [TypeValidator.normalize(v) for v in patch.values()] + compiled.params
        sql = f"UPDATE {quote_identifier(table.name)} SET {assignments} WHERE {compiled.sql}"
        return self.executor.execute(sql, params)

    # --- Delete ---------------------------------------------------------------------

    def delete(self, table_name: str, where: WhereCondition) -> RunResult:
        """Delete rows matching a literal-only condition"""
        table = self.executor.require_table(table_name)
        self._reject_functions(where, 'delete')

        compiled = self.executor.compiler.compile(where)
        result = self.executor.execute(
            f"DELETE FROM {quote_identifier(table.name)} WHERE {compiled.sql}", compiled.params,
        )
        self._auto_sync(table_name)
        return result

    def batch_delete(self, table_name: str, records: Sequence[Row]) -> RunResult:
        """Delete rows by the primary key carried in each record, in one statement"""
        table = self.executor.require_table(table_name)
        if not records:
            return RunResult()

        pk = self._primary_key(table)
        keys = [self._pk_value(record, pk, i) for i, record in enumerate(records)]
        params = [TypeValidator.normalize(v) for key in keys for v in key]

        name = quote_identifier(table.name)
        if len(pk) == 1:
            placeholders = ', '.join('?' for _ in keys)
            sql = f"DELETE FROM {name} WHERE {quote_identifier(pk[0])} IN ({placeholders})"
        else:
            row_value = '(' + ', '.join('?' for _ in pk) + ')'
            columns = ', '.join(quote_identifier(col) for col in pk)
            sql = f"DELETE FROM {name} WHERE ({columns}) IN (VALUES {', '.join(row_value for _ in keys)})"

        result = self.executor.execute(sql, params)
        self._auto_sync(table_name)
        return result

    # --- Sync -----------------------------------------------------------------------

    def sync_table(self, table_name: str) -> None:
        """Rewrite the table's source file from its current rows"""
        path = self.sources.get(table_name)
        if path is None:
            raise KeyError(f"No source file registered for table '{table_name}'")

        rows = self.executor.select_all(table_name)
        schema = self.pipeline.get(table_name)
        if schema is not None and schema.backward is not None:
            rows = [schema.backward(row) for row in rows]

        JsonlWriter.write(path, rows)
        self.logger.debug("Synced %d row(s) of '%s' to %s", len(rows), table_name, path)

    def sync_all(self) -> None:
        for table_name in self.executor.catalog.list_tables():
            self.sync_table(table_name)

    def _auto_sync(self, table_name: str) -> None:
        if self.transactions.active:
            return
        try:
            self.sync_table(table_name)
        except Exception:
            self.logger.exception("Failed to sync table '%s'", table_name)

    # --- Helpers --------------------------------------------------------------------

    def _reject_functions(self, where: WhereCondition, operation: str) -> None:
        if self.executor.compiler.has_function(where):
            raise UnsupportedOperationError(f"Function filters are not supported in {operation} operations")

    @staticmethod
    def _primary_key(table: Table) -> Tuple[str, ...]:
        if not table.primary_key:
            raise MissingPrimaryKeyError(f"Table '{table.name}' does not have a primary key")
        return table.primary_key

    @staticmethod
    def _pk_value(record: Row, pk: Tuple[str, ...], index: int) -> Tuple[Any, ...]:
        missing = [col for col in pk if col not in record]
        if missing:
            raise MissingPrimaryKeyError(
                f"Record at index {index} is missing primary key {', '.join(repr(c) for c in missing)}"
            )
        return tuple(record[col] for col in pk)

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        self.db.exec(f"SAVEPOINT {name}")
        try:
            yield
        except BaseException:
            self.db.exec(f"ROLLBACK TO {name}")
            self.db.exec(f"RELEASE {name}")
            raise
        self.db.exec(f"RELEASE {name}")

"""
Database - Main entry point for LinesDB

LinesDB treats a directory of JSONL files as a transient relational store.
Each `<table>.jsonl` file is loaded into an SQLite table at initialize();
every mutation made through this class is written back to the file, so the
database and the files never diverge outside an open transaction.
"""

import logging
import sqlite3
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..config import LinesDBConfig, TableConfig
from ..storage.jsonl import JsonlReader
from ..storage.scanner import DirectoryScanner, SchemaLoader
from ..storage.sqlite import RunResult, SQLiteDatabase
from ..log import get_logger
from .errors import InferenceError, LinesDBError, SchemaLoadError
from .executor import QueryExecutor
from .inference import infer_schema
from .mutations import MutationCoordinator
from .predicates import WhereCompiler, WhereCondition
from .schema import Catalog, Table
from .transactions import TransactionCoordinator
from .validation import ValidationPipeline, ValidationSchema

Row = Dict[str, Any]


class LinesDB:
    """
    LinesDB store instance.

    Usage:
        with LinesDB('./data') as db:
            db.initialize()
            db.insert('users', {'id': 3, 'name': 'Carol'})
            adults = db.find('users', {'age': lambda age: age >= 18})

    One instance owns one SQLite connection and must be driven by a single
    caller at a time.

    Note: update() and batch_update() validate the merged rows by default,
    like insert(); pass validate=False to skip. They are the only mutations
    that can skip validation.
    """

    def __init__(self, config: Union[LinesDBConfig, str], logger: Optional[logging.Logger] = None):
        """
        Create a store. Tables are loaded by initialize().

        Args:
            config: LinesDBConfig, or a data directory path
            logger: Logger for load warnings and sync failures
        """
        if isinstance(config, str):
            config = LinesDBConfig(data_dir=config)
        self.config = config
        self.logger = logger or get_logger()
        if config.log_level:
            self.logger.setLevel(config.log_level)

        self.db = SQLiteDatabase(config.db_path, foreign_keys=config.foreign_keys)
        self.catalog = Catalog()
        self.sources: Dict[str, str] = {}
        self.load_errors: Dict[str, Exception] = {}

        self.pipeline = ValidationPipeline(self.logger.getChild('validation'))
        self.executor = QueryExecutor(self.db, self.catalog, WhereCompiler())
        self.transactions = TransactionCoordinator(self.db, logger=self.logger.getChild('transactions'))
        self.mutations = MutationCoordinator(
            self.db, self.executor, self.pipeline, self.transactions, self.sources,
            logger=self.logger.getChild('mutations'),
        )
        self.transactions.after_commit = self.mutations.sync_all

    @classmethod
    def create(cls, data_dir: str, db_path: str = ':memory:', **kwargs) -> 'LinesDB':
        """Create and initialize a store in one call"""
        logger = kwargs.pop('logger', None)
        db = cls(LinesDBConfig(data_dir=data_dir, db_path=db_path, **kwargs), logger=logger)
        db.initialize()
        return db

    # --- Loading --------------------------------------------------------------------

    def initialize(self) -> None:
        """
        Load every table found in the data directory.

        A table that fails to load is logged, recorded in load_errors and
        left out; the remaining tables still load. Foreign keys are not
        enforced while loading so tables can load in any order; violations
        found afterwards are logged.
        """
        tables = DirectoryScanner.scan_directory(self.config.data_dir)
        tables.update(self.config.tables)

        self.db.set_foreign_keys(False)
        try:
            for table_name, table_config in tables.items():
                try:
                    self._load_table(table_name, table_config)
                except (LinesDBError, OSError, sqlite3.Error) as e:
                    self.load_errors[table_name] = e
                    self.logger.warning("Failed to load table '%s': %s", table_name, e)
        finally:
            self.db.set_foreign_keys(self.config.foreign_keys)

        if self.config.foreign_keys:
            self._report_foreign_key_violations()

    def _report_foreign_key_violations(self) -> None:
        try:
            violations = self.executor.query("PRAGMA foreign_key_check")
        except sqlite3.Error as e:
            self.logger.warning("Foreign key check failed: %s", e)
            return
        for violation in violations:
            self.logger.warning(
                "Foreign key violation in '%s' (rowid %s) referencing '%s'",
                violation["table"], violation["rowid"], violation["parent"],
            )

    def _resolve_validation_schema(self, table_name: str, config: TableConfig) -> Optional[ValidationSchema]:
        if config.validation_schema is not None:
            return config.validation_schema
        try:
            return SchemaLoader.load_schema(config.source_path)
        except SchemaLoadError as e:
            self.logger.warning("Table '%s' loads without validation: %s", table_name, e)
            return None

    def _load_table(self, table_name: str, config: TableConfig) -> None:
        rows = JsonlReader.read(config.source_path)
        validation_schema = self._resolve_validation_schema(table_name, config)

        self.pipeline.register(table_name, validation_schema)
        try:
            values = self.pipeline.validate_rows(table_name, rows)

            if config.schema is not None:
                table = replace(config.schema, name=table_name)
            elif config.auto_infer:
                table = infer_schema(table_name, values)
            else:
                raise InferenceError(
                    f"No schema provided for table '{table_name}' and auto inference is disabled"
                )

            if validation_schema is not None:
                table = table.enhance(
                    primary_key=validation_schema.primary_key,
                    foreign_keys=validation_schema.foreign_keys,
                    indexes=validation_schema.indexes,
                )

            self.mutations.materialize(table, values)
        except BaseException:
            self.pipeline.register(table_name, None)
            raise

        self.catalog.register(table)
        self.sources[table_name] = config.source_path
        self.load_errors.pop(table_name, None)
        self.logger.debug("Loaded table '%s' (%d rows)", table_name, len(values))

    # --- Raw SQL --------------------------------------------------------------------

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        """Execute a raw SQL query and return all rows"""
        return self.executor.query(sql, params)

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        """Execute a raw SQL query and return the first row, or None"""
        return self.executor.query_one(sql, params)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        """
        Execute a raw SQL statement (INSERT, UPDATE, DELETE).

        Raw statements are not validated and do not trigger a file sync;
        call sync() afterwards.
        """
        return self.executor.execute(sql, params)

    # --- Structured API -------------------------------------------------------------

    def find(self, table_name: str, where: Optional[WhereCondition] = None) -> List[Row]:
        """
        Find rows by condition.

        Args:
            table_name: Table to search
            where: dict of column -> value or predicate (AND), or a list of
                such conditions (OR). None returns every row; [] returns none.
        """
        return self.executor.find(table_name, where)

    def find_one(self, table_name: str, where: Optional[WhereCondition] = None) -> Optional[Row]:
        return self.executor.find_one(table_name, where)

    def insert(self, table_name: str, row: Row) -> RunResult:
        """Insert one row after validating it"""
        return self.mutations.insert(table_name, row)

    def batch_insert(self, table_name: str, rows: Sequence[Row]) -> RunResult:
        """Insert many rows; all rows are validated before any is written"""
        return self.mutations.batch_insert(table_name, rows)

    def update(self, table_name: str, patch: Row, where: WhereCondition, validate: bool = True) -> RunResult:
        """
        Update rows matching a literal-only condition.

        Args:
            table_name: Table to update
            patch: Columns to set
            where: Condition without predicate functions
            validate: Validate each matching row merged with the patch
        """
        return self.mutations.update(table_name, patch, where, validate=validate)

    def batch_update(self, table_name: str, records: Sequence[Row], validate: bool = True) -> RunResult:
        """Update rows by primary key; nothing is written if any record fails validation"""
        return self.mutations.batch_update(table_name, records, validate=validate)

    def delete(self, table_name: str, where: WhereCondition) -> RunResult:
        """Delete rows matching a literal-only condition"""
        return self.mutations.delete(table_name, where)

    def batch_delete(self, table_name: str, records: Sequence[Row]) -> RunResult:
        """Delete rows by the primary key carried in each record"""
        return self.mutations.batch_delete(table_name, records)

    # --- Transactions & sync --------------------------------------------------------

    def transaction(self, fn: Callable[['LinesDB'], Any]) -> Any:
        """
        Run fn(self) atomically.

        Commits and syncs every table if fn returns; rolls back without
        syncing and re-raises if it raises.
        """
        return self.transactions.run(fn, self)

    def atomic(self):
        """Context manager form of transaction()"""
        return self.transactions.atomic()

    def sync(self) -> None:
        """Write every loaded table back to its JSONL file"""
        self.mutations.sync_all()

    # --- Metadata -------------------------------------------------------------------

    def get_schema(self, table_name: str) -> Optional[Table]:
        return self.catalog.get_table(table_name)

    def get_table_names(self) -> List[str]:
        return self.catalog.list_tables()

    def get_validation_schema(self, table_name: str) -> Optional[ValidationSchema]:
        return self.pipeline.get(table_name)

    def close(self) -> None:
        """Close the SQLite connection; safe to call more than once"""
        self.db.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

"""
Query Executor - Reads rows from SQLite for LinesDB

Handles raw SQL passthrough (query / query_one / execute) and the
structured find / find_one lookups, which combine SQL filtering with
in-memory residual predicates.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..storage.sqlite import RunResult, SQLiteDatabase
from .errors import TableNotFoundError
from .predicates import MATCH_ALL, WhereCompiler, WhereCondition
from .schema import Catalog, Table, quote_identifier
from .types import TypeValidator

Row = Dict[str, Any]


class QueryExecutor:
    """
    Executes read queries against the store.

    Rows returned by find/find_one are decoded: JSON columns are parsed and
    boolean columns come back as bool. Raw query() rows are returned as
    SQLite produced them.
    """

    def __init__(self, db: SQLiteDatabase, catalog: Catalog, compiler: Optional[WhereCompiler] = None):
        self.db = db
        self.catalog = catalog
        self.compiler = compiler or WhereCompiler()

    def require_table(self, table_name: str) -> Table:
        table = self.catalog.get_table(table_name)
        if table is None:
            raise TableNotFoundError(table_name)
        return table

    # --- Raw SQL --------------------------------------------------------------------

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[Row]:
        return self.db.prepare(sql).all(params)

    def query_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Row]:
        return self.db.prepare(sql).get(params)

    def execute(self, sql: str, params: Sequence[Any] = ()) -> RunResult:
        return self.db.prepare(sql).run(params)

    # --- Structured lookups ---------------------------------------------------------

    def select(self, table: Table, where_sql: str = MATCH_ALL, params: Sequence[Any] = ()) -> List[Row]:
        """SELECT * with a where clause, decoding every row"""
        sql = f"SELECT * FROM {quote_identifier(table.name)}"
        if where_sql != MATCH_ALL:
            sql += f" WHERE {where_sql}"
        return [TypeValidator.deserialize_row(row, table) for row in self.query(sql, params)]

    def select_all(self, table_name: str) -> List[Row]:
        return self.select(self.require_table(table_name))

    def find(self, table_name: str, where: Optional[WhereCondition] = None) -> List[Row]:
        """
        Find rows matching a where-condition.

        Args:
            table_name: Table to search
            where: dict (AND) or list (OR) condition; None returns all rows

        Returns:
            Decoded rows in table order
        """
        table = self.require_table(table_name)
        if where is None:
            return self.select(table)
        if isinstance(where, list) and not where:
            return []

        compiled = self.compiler.compile(where)
        where_sql, params = compiled.candidate_sql
        return compiled.apply(self.select(table, where_sql, params))

    def find_one(self, table_name: str, where: Optional[WhereCondition] = None) -> Optional[Row]:
        """First row matching the condition, or None"""
        rows = self.find(table_name, where)
        return rows[0] if rows else None

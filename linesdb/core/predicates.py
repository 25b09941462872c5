"""
Predicate Compiler - Turns where-conditions into SQL plus residual filters

A where-condition is either:
- a dict of column -> literal | callable, combined with AND
- a list of where-conditions, combined with OR (nestable)

Literal leaves become bound equality comparisons. Callable leaves cannot be
pushed into SQL and are evaluated in memory against candidate rows. Under
AND that is a simple intersection, but under OR a callable leaf means SQL
cannot rule any row out, so the whole condition is evaluated in memory.
An empty list matches nothing.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Tuple, Union

from .schema import quote_identifier
from .types import TypeValidator

WhereCondition = Union[Dict[str, Any], List[Any]]
Residual = Tuple[str, Callable[[Any], bool]]

MATCH_ALL = '1'
MATCH_NONE = '0'


@dataclass
class CompiledWhere:
    """Result of compiling a where-condition"""
    sql: str
    params: List[Any] = field(default_factory=list)
    residual_predicates: List[Residual] = field(default_factory=list)
    memory_only: bool = False
    condition: Any = None

    @property
    def has_functions(self) -> bool:
        return bool(self.residual_predicates)

    @property
    def candidate_sql(self) -> Tuple[str, List[Any]]:
        """WHERE clause and parameters used to fetch candidate rows"""
        if self.memory_only:
            return MATCH_ALL, []
        return self.sql, self.params

    def apply(self, rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Filter candidate rows in memory"""
        if self.memory_only:
            return [row for row in rows if WhereCompiler.matches(row, self.condition)]
        if not self.residual_predicates:
            return list(rows)
        return [
            row for row in rows
            if all(fn(row.get(key)) for key, fn in self.residual_predicates)
        ]


class WhereCompiler:
    """Compiles where-conditions; stateless"""

    def compile(self, condition: WhereCondition) -> CompiledWhere:
        compiled = CompiledWhere(sql='', condition=condition)
        compiled.sql = self._compile_node(condition, compiled)
        compiled.memory_only = isinstance(condition, list) and self.has_function(condition)
        return compiled

    def _compile_node(self, node: Any, compiled: CompiledWhere) -> str:
        if isinstance(node, list):
            if not node:
                return MATCH_NONE
            return ' OR '.join(f"({self._compile_node(child, compiled)})" for child in node)

        if isinstance(node, dict):
            clauses = []
            for key, value in node.items():
                if callable(value):
                    compiled.residual_predicates.append((key, value))
                elif value is None:
                    clauses.append(f"{quote_identifier(key)} IS NULL")
                else:
                    clauses.append(f"{quote_identifier(key)} = ?")
                    compiled.params.append(TypeValidator.normalize(value))
            return ' AND '.join(clauses) if clauses else MATCH_ALL

        raise TypeError(f"Where condition must be a dict or list, got {type(node).__name__}")

    @staticmethod
    def has_function(node: Any) -> bool:
        """True if any leaf in the tree is a callable"""
        if isinstance(node, list):
            return any(WhereCompiler.has_function(child) for child in node)
        if isinstance(node, dict):
            return any(callable(value) for value in node.values())
        return False

    @staticmethod
    def matches(row: Dict[str, Any], node: Any) -> bool:
        """Evaluate a full condition tree against a decoded row"""
        if isinstance(node, list):
            return any(WhereCompiler.matches(row, child) for child in node)

        for key, expected in node.items():
            actual = row.get(key)
            if callable(expected):
                if not expected(actual):
                    return False
            elif not WhereCompiler.literal_equal(actual, expected):
                return False
        return True

    @staticmethod
    def literal_equal(actual: Any, expected: Any) -> bool:
        """
        Equality as SQLite applies it to a column compared with a literal.

        A numeric column converts a numeric-looking string literal to a
        number; a text column renders a numeric literal as text. The same
        literal therefore matches the same rows in memory and in SQL.
        """
        if actual == expected:
            return True
        if isinstance(actual, bool) or isinstance(expected, bool):
            return False
        if isinstance(actual, (int, float)) and isinstance(expected, str):
            try:
                return float(expected) == actual
            except ValueError:
                return False
        if isinstance(actual, str) and isinstance(expected, (int, float)):
            return actual == str(expected)
        return False

"""
Errors - Exception hierarchy for LinesDB

Per-table load failures (SchemaLoadError, InferenceError, and a ValidationError
raised while loading) are caught by the loader and downgraded to warnings.
Everything else propagates to the caller.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

PathSegment = Union[str, int]


@dataclass(frozen=True)
class Issue:
    """A single validation problem: a message plus the path to the offending value"""
    message: str
    path: Tuple[PathSegment, ...] = ()

    @property
    def path_str(self) -> str:
        if not self.path:
            return 'root'
        return '.'.join(str(segment) for segment in self.path)

    def __str__(self) -> str:
        return f"{self.path_str}: {self.message}"


@dataclass
class RowValidationError:
    """Validation failure for one row of a multi-row operation"""
    row_index: int
    row_data: Any
    issues: List[Issue] = field(default_factory=list)
    primary_key: Any = None


class LinesDBError(Exception):
    """Base class for all LinesDB errors"""


class SchemaLoadError(LinesDBError):
    """A validation schema file exists but could not be loaded"""


class InferenceError(LinesDBError):
    """No column definitions could be derived for a table"""


class ConstraintError(LinesDBError):
    """Primary key, unique, foreign key or not-null violation reported by SQLite"""


class UnsupportedOperationError(LinesDBError):
    """Nested transaction, async validator, or function filter in update/delete"""


class TableNotFoundError(LinesDBError):
    """Operation on a table that is not loaded"""

    def __init__(self, table_name: str):
        super().__init__(f"Table '{table_name}' does not exist")
        self.table_name = table_name


class MissingPrimaryKeyError(LinesDBError):
    """Table has no primary key, or a record lacks its primary key value"""


class RowNotFoundError(LinesDBError):
    """batch_update targeted a primary key with no existing row"""


class RecordParseError(LinesDBError):
    """A line of a JSONL file is not a JSON object"""

    def __init__(self, path: str, line_number: int, line: str, reason: str):
        super().__init__(f"{path}:{line_number}: failed to parse JSON line: {reason}: {line[:200]}")
        self.path = path
        self.line_number = line_number
        self.line = line


class ValidationError(LinesDBError):
    """
    Raised when one or more rows fail validation.

    `issues` holds the issues of the (first) failing row. For multi-row
    operations `validation_errors` lists every failing row with its index,
    data and issues so callers can report all problems at once.
    """

    def __init__(
        self,
        message: str,
        issues: Sequence[Issue] = (),
        validation_errors: Sequence[RowValidationError] = (),
        table_name: Optional[str] = None,
    ):
        super().__init__(message)
        self.issues = list(issues)
        self.validation_errors = list(validation_errors)
        self.table_name = table_name

    @classmethod
    def for_row(cls, table_name: str, issues: Sequence[Issue]) -> 'ValidationError':
        lines = '\n'.join(f"  - {issue}" for issue in issues)
        return cls(
            f"Validation failed for table '{table_name}':\n{lines}",
            issues=issues,
            table_name=table_name,
        )

    @classmethod
    def aggregate(cls, table_name: str, failures: Sequence[RowValidationError]) -> 'ValidationError':
        return cls(
            f"Validation failed for {len(failures)} row(s) in table '{table_name}'",
            issues=failures[0].issues if failures else (),
            validation_errors=failures,
            table_name=table_name,
        )

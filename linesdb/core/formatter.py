"""
Error Formatter - Human readable validation diagnostics

Two styles:
- compact: one `file:line • field: message` line per issue
- verbose: a tree block per failing row with field, error and row data

Row indices are 0-based everywhere else in LinesDB; line numbers printed
here are 1-based.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .errors import Issue
from .types import dumps

_UNSET = object()


@dataclass
class RowIssues:
    """Validation issues for one row of one file"""
    file: str
    row_index: int
    issues: Sequence[Issue] = field(default_factory=list)
    data: Any = _UNSET
    original_data: Any = _UNSET


@dataclass
class ForeignKeyIssue:
    """A row whose foreign key value has no match in the referenced table"""
    file: str
    row_index: int
    column: str
    value: Any
    referenced_table: str
    referenced_column: str
    data: Any = _UNSET


class ErrorFormatter:

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def format_validation_errors(self, errors: Sequence[RowIssues]) -> str:
        if self.verbose:
            return self._validation_verbose(errors)
        return self._validation_compact(errors)

    def format_foreign_key_error(self, error: ForeignKeyIssue) -> str:
        if self.verbose:
            return self._foreign_key_verbose(error)
        return self._foreign_key_compact(error)

    def _validation_compact(self, errors: Sequence[RowIssues]) -> str:
        lines = []
        for error in errors:
            for issue in error.issues:
                lines.append(f"{error.file}:{error.row_index + 1} • {issue.path_str}: {issue.message}")
        return '\n'.join(lines)

    def _validation_verbose(self, errors: Sequence[RowIssues]) -> str:
        blocks = []
        for i, error in enumerate(errors):
            last = i == len(errors) - 1
            prefix = '└─' if last else '├─'
            indent = '   ' if last else '│  '

            lines = [f"{prefix} {error.file}:{error.row_index + 1}"]
            for issue in error.issues:
                lines.append(f"{indent}Field: {issue.path_str}")
                lines.append(f"{indent}Error: {issue.message}")

            has_original = error.original_data is not _UNSET
            if has_original:
                lines.append(f"{indent}Original data: {dumps(error.original_data)}")
            if error.data is not _UNSET:
                label = 'Transformed data' if has_original else 'Data'
                lines.append(f"{indent}{label}: {dumps(error.data)}")

            blocks.append('\n'.join(lines))
        return '\n│\n'.join(blocks)

    @staticmethod
    def _foreign_key_compact(error: ForeignKeyIssue) -> str:
        return (
            f"{error.file}:{error.row_index + 1} • {error.column}: Foreign key constraint failed - "
            f"Referenced value {dumps(error.value)} does not exist in "
            f"{error.referenced_table}({error.referenced_column})"
        )

    @staticmethod
    def _foreign_key_verbose(error: ForeignKeyIssue) -> str:
        lines = [
            f"└─ {error.file}:{error.row_index + 1}",
            "   Type: Foreign Key Violation",
            f"   Field: {error.column}",
            f"   Value: {dumps(error.value)}",
            f"   References: {error.referenced_table}({error.referenced_column})",
            "   Error: Referenced value does not exist in target table",
        ]
        if error.data is not _UNSET:
            lines.append(f"   Data: {dumps(error.data)}")
        return '\n'.join(lines)

    @staticmethod
    def format_error_header(count: int, file: Optional[str] = None) -> str:
        file_info = f" in {file}" if file else ''
        return f"✗ Found {count} error(s){file_info}"

    @staticmethod
    def format_migration_failure_header() -> str:
        return "\n✗ Migration failed and was rolled back"

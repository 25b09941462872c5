"""
File Validator - Checks JSONL files against their validation schemas offline

Validates a single `.jsonl` file or every `.jsonl` file in a directory
without loading them into SQLite. For directories, foreign keys declared in
the schemas are also checked across tables: every referencing value must
exist in the referenced table's file.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..log import get_logger
from ..storage.jsonl import JsonlReader
from ..storage.scanner import JSONL_EXT, SchemaLoader, table_name_for
from .errors import Issue
from .formatter import ForeignKeyIssue, RowIssues
from .types import dumps
from .validation import ValidationPipeline, ValidationSchema

logger = get_logger('checker')

SCHEMA_ERROR = 'schema'
FOREIGN_KEY_ERROR = 'foreign_key'


@dataclass
class ForeignKeyDetail:
    column: str
    value: Any
    referenced_table: str
    referenced_column: str


@dataclass
class ValidationErrorDetail:
    """One failing row found by FileValidator"""
    file: str
    table_name: str
    row_index: int
    issues: List[Issue] = field(default_factory=list)
    type: str = SCHEMA_ERROR
    foreign_key: Optional[ForeignKeyDetail] = None

    def to_row_issues(self) -> RowIssues:
        return RowIssues(file=self.file, row_index=self.row_index, issues=self.issues)

    def to_foreign_key_issue(self) -> ForeignKeyIssue:
        fk = self.foreign_key
        return ForeignKeyIssue(
            file=self.file,
            row_index=self.row_index,
            column=fk.column,
            value=fk.value,
            referenced_table=fk.referenced_table,
            referenced_column=fk.referenced_column,
        )


@dataclass
class FileValidationResult:
    valid: bool
    errors: List[ValidationErrorDetail] = field(default_factory=list)

    def by_file(self) -> Dict[str, List[ValidationErrorDetail]]:
        """Errors grouped by file, in first-seen order"""
        grouped: Dict[str, List[ValidationErrorDetail]] = {}
        for error in self.errors:
            grouped.setdefault(error.file, []).append(error)
        return grouped


@dataclass
class _LoadedFile:
    file: str
    table_name: str
    rows: List[Dict[str, Any]]
    schema: Optional[ValidationSchema]


class FileValidator:
    """
    Validates JSONL files.

    Usage:
        result = FileValidator('./data').validate()
        if not result.valid:
            for error in result.errors:
                print(error.file, error.row_index, error.issues)
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def validate(self) -> FileValidationResult:
        """
        Validate the file or directory.

        Raises:
            FileNotFoundError: If the path does not exist
            ValueError: If the path is neither a directory nor a .jsonl file,
                or the directory holds no .jsonl files
        """
        if os.path.isdir(self.path):
            return self._validate_directory(self.path)
        if os.path.isfile(self.path) and self.path.endswith(JSONL_EXT):
            return self._validate_file(self._load(self.path))
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Path not found: {self.path}")
        raise ValueError(f"Invalid path: {self.path}. Must be a directory or .jsonl file.")

    @staticmethod
    def _load(file: str) -> _LoadedFile:
        """Read a file's rows and import its schema, once per validate()"""
        return _LoadedFile(
            file=file,
            table_name=table_name_for(file),
            rows=JsonlReader.read(file),
            schema=SchemaLoader.load_schema(file),
        )

    def _validate_directory(self, dir_path: str) -> FileValidationResult:
        files = [
            os.path.join(dir_path, name)
            for name in sorted(os.listdir(dir_path))
            if name.endswith(JSONL_EXT) and os.path.isfile(os.path.join(dir_path, name))
        ]
        if not files:
            raise ValueError(f"No JSONL files found in directory: {dir_path}")

        loaded = [self._load(file) for file in files]
        errors: List[ValidationErrorDetail] = []
        for entry in loaded:
            errors.extend(self._validate_file(entry).errors)
        errors.extend(self._validate_foreign_keys(loaded))
        return FileValidationResult(valid=not errors, errors=errors)

    def _validate_file(self, entry: _LoadedFile) -> FileValidationResult:
        if entry.schema is None:
            logger.debug("No schema for '%s', skipping row validation", entry.table_name)
            return FileValidationResult(valid=True)

        errors = []
        for row_index, row in enumerate(entry.rows):
            result = ValidationPipeline.run(entry.schema, row)
            if result.issues:
                errors.append(ValidationErrorDetail(
                    file=entry.file, table_name=entry.table_name, row_index=row_index, issues=list(result.issues),
                ))
        return FileValidationResult(valid=not errors, errors=errors)

    def _validate_foreign_keys(self, loaded: Sequence[_LoadedFile]) -> List[ValidationErrorDetail]:
        tables = {entry.table_name: entry for entry in loaded}

        errors = []
        for entry in loaded:
            if entry.schema is None:
                continue
            for fk in entry.schema.foreign_keys:
                referenced = tables.get(fk.ref_table)
                if referenced is None:
                    logger.debug("Referenced table '%s' not found, skipping foreign key check", fk.ref_table)
                    continue

                existing = {dumps([row.get(col) for col in fk.ref_columns]) for row in referenced.rows}
                for row_index, row in enumerate(entry.rows):
                    values = [row.get(col) for col in fk.columns]
                    if dumps(values) in existing:
                        continue
                    errors.append(ValidationErrorDetail(
                        file=entry.file,
                        table_name=entry.table_name,
                        row_index=row_index,
                        type=FOREIGN_KEY_ERROR,
                        foreign_key=ForeignKeyDetail(
                            column=', '.join(fk.columns),
                            value=values[0] if len(values) == 1 else values,
                            referenced_table=fk.ref_table,
                            referenced_column=', '.join(fk.ref_columns),
                        ),
                    ))
        return errors

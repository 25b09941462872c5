"""
LinesDB - A relational view over a directory of JSONL files

Each `<table>.jsonl` file is loaded into an SQLite table; rows are
validated on the way in and every change is written back to the file.
"""

__version__ = "1.0.0"

from .config import LinesDBConfig, TableConfig
from .core.database import LinesDB
from .core.errors import (
    LinesDBError, SchemaLoadError, InferenceError, ValidationError, ConstraintError,
    UnsupportedOperationError, TableNotFoundError, MissingPrimaryKeyError,
    RowNotFoundError, RecordParseError, Issue,
)
from .core.schema import Column, ForeignKey, Index, Table
from .core.types import StorageType
from .core.validation import ValidationResult, define_schema, from_pydantic, from_callable
from .core.formatter import ErrorFormatter
from .core.checker import FileValidator
from .core.migration import ensure_table_rows_valid
from .storage.jsonl import JsonlReader, JsonlWriter
from .log import configure_logging, get_logger

__all__ = [
    'LinesDB', 'LinesDBConfig', 'TableConfig',
    'LinesDBError', 'SchemaLoadError', 'InferenceError', 'ValidationError', 'ConstraintError',
    'UnsupportedOperationError', 'TableNotFoundError', 'MissingPrimaryKeyError',
    'RowNotFoundError', 'RecordParseError', 'Issue',
    'Column', 'ForeignKey', 'Index', 'Table', 'StorageType',
    'ValidationResult', 'define_schema', 'from_pydantic', 'from_callable',
    'ErrorFormatter', 'FileValidator', 'ensure_table_rows_valid',
    'JsonlReader', 'JsonlWriter',
    'configure_logging', 'get_logger',
]

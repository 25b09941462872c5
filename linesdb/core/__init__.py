"""Core module - Errors, Types, Schema, Inference, Validation, Predicates"""

from .errors import (
    LinesDBError, SchemaLoadError, InferenceError, ValidationError, ConstraintError,
    UnsupportedOperationError, TableNotFoundError, MissingPrimaryKeyError,
    RowNotFoundError, RecordParseError, Issue, RowValidationError,
)
from .types import StorageType, LogicalType, TypeValidator
from .schema import Column, ForeignKey, Index, Table, Catalog
from .inference import infer_schema
from .validation import (
    ValidationResult, Validator, CallableValidator, PydanticValidator,
    ValidationSchema, ValidationPipeline, define_schema, from_pydantic, from_callable,
)
from .predicates import WhereCompiler, CompiledWhere

__all__ = [
    'LinesDBError', 'SchemaLoadError', 'InferenceError', 'ValidationError', 'ConstraintError',
    'UnsupportedOperationError', 'TableNotFoundError', 'MissingPrimaryKeyError',
    'RowNotFoundError', 'RecordParseError', 'Issue', 'RowValidationError',
    'StorageType', 'LogicalType', 'TypeValidator',
    'Column', 'ForeignKey', 'Index', 'Table', 'Catalog',
    'infer_schema',
    'ValidationResult', 'Validator', 'CallableValidator', 'PydanticValidator',
    'ValidationSchema', 'ValidationPipeline', 'define_schema', 'from_pydantic', 'from_callable',
    'WhereCompiler', 'CompiledWhere',
]

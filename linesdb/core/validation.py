"""
Validation Pipeline - Pluggable row validation for LinesDB

A ValidationSchema composes:
- a Validator (the one required capability: validate(value) -> ValidationResult)
- an optional backward transform (validated shape -> file shape)
- primary key, foreign key and index declarations used to enhance the table

Validators are chosen explicitly by adapter class (PydanticValidator,
CallableValidator) rather than by probing arbitrary objects. Validation is
strictly synchronous: a validator returning an awaitable is rejected.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pydantic

from ..log import get_logger
from .errors import Issue, RowValidationError, UnsupportedOperationError, ValidationError
from .schema import ForeignKey, Index, foreign_key_from_dict

Row = Dict[str, Any]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one value"""
    value: Any = None
    issues: Tuple[Issue, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.issues


class Validator(ABC):
    """Vendor-neutral validator contract"""

    vendor: str = 'linesdb'

    @abstractmethod
    def validate(self, value: Any) -> ValidationResult:
        """Validate a value, returning the (possibly transformed) value and any issues"""


class CallableValidator(Validator):
    """
    Adapts a plain function.

    The function may return a ValidationResult, or a list of issues
    (Issue objects or message strings) in which case the value passes
    through unchanged.
    """

    vendor = 'callable'

    def __init__(self, fn: Callable[[Any], Any]):
        self.fn = fn

    def validate(self, value: Any) -> Any:
        result = self.fn(value)
        if isinstance(result, ValidationResult) or inspect.isawaitable(result):
            return result
        if result is None:
            return ValidationResult(value=value)
        issues = tuple(item if isinstance(item, Issue) else Issue(str(item)) for item in result)
        return ValidationResult(value=value, issues=issues)


class PydanticValidator(Validator):
    """Adapts a pydantic v2 model class"""

    vendor = 'pydantic'

    def __init__(self, model: type):
        self.model = model

    def validate(self, value: Any) -> ValidationResult:
        try:
            instance = self.model.model_validate(value)
        except pydantic.ValidationError as e:
            issues = tuple(Issue(err['msg'], tuple(err.get('loc', ()))) for err in e.errors())
            return ValidationResult(issues=issues)
        return ValidationResult(
            value=instance.model_dump(mode='json', by_alias=True),
        )


@dataclass(frozen=True)
class ValidationSchema:
    """A validator plus backward transform and constraint metadata"""
    validator: Validator
    backward: Optional[Callable[[Row], Row]] = None
    primary_key: Tuple[str, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()
    indexes: Tuple[Index, ...] = ()

    @property
    def vendor(self) -> str:
        return self.validator.vendor

    @property
    def has_backward(self) -> bool:
        return self.backward is not None

    def validate(self, value: Any) -> Any:
        return self.validator.validate(value)


def _coerce_foreign_keys(foreign_keys: Iterable[Union[ForeignKey, dict]]) -> Tuple[ForeignKey, ...]:
    return tuple(fk if isinstance(fk, ForeignKey) else foreign_key_from_dict(fk) for fk in foreign_keys)


def _coerce_indexes(indexes: Iterable[Union[Index, dict]]) -> Tuple[Index, ...]:
    result = []
    for idx in indexes:
        if not isinstance(idx, Index):
            idx = Index(columns=tuple(idx['columns']), name=idx.get('name'), unique=idx.get('unique', False))
        result.append(idx)
    return tuple(result)


def define_schema(
    validator: Validator,
    backward: Optional[Callable[[Row], Row]] = None,
    primary_key: Union[str, Sequence[str], None] = None,
    foreign_keys: Iterable[Union[ForeignKey, dict]] = (),
    indexes: Iterable[Union[Index, dict]] = (),
) -> ValidationSchema:
    """
    Build a ValidationSchema.

    Args:
        validator: Validator adapter instance
        backward: Inverse of the validator's transform. Required whenever
            validated rows differ in shape from the rows in the file.
        primary_key: Column name or names forming the primary key
        foreign_keys: ForeignKey objects or dicts of the form
            {"columns": [...], "references": {"table": ..., "columns": [...]}}
        indexes: Index objects or dicts of the form {"columns": [...], "unique": bool}
    """
    if not isinstance(validator, Validator):
        raise TypeError(f"Expected a Validator, got {type(validator).__name__}")
    if isinstance(primary_key, str):
        primary_key = (primary_key,)
    return ValidationSchema(
        validator=validator,
        backward=backward,
        primary_key=tuple(primary_key or ()),
        foreign_keys=_coerce_foreign_keys(foreign_keys),
        indexes=_coerce_indexes(indexes),
    )


def from_pydantic(model: type, **options) -> ValidationSchema:
    """define_schema() over a pydantic model class"""
    return define_schema(PydanticValidator(model), **options)


def from_callable(fn: Callable[[Any], Any], **options) -> ValidationSchema:
    """define_schema() over a plain validation function"""
    return define_schema(CallableValidator(fn), **options)


class ValidationPipeline:
    """
    Runs table validation schemas.

    Single rows raise ValidationError with that row's issues. Multi-row
    runs scan every row first and raise one aggregate error listing all
    failures.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger('validation')
        self.schemas: Dict[str, ValidationSchema] = {}

    def register(self, table_name: str, schema: Optional[ValidationSchema]) -> None:
        if schema is None:
            self.schemas.pop(table_name, None)
        else:
            self.schemas[table_name] = schema

    def get(self, table_name: str) -> Optional[ValidationSchema]:
        return self.schemas.get(table_name)

    def has(self, table_name: str) -> bool:
        return table_name in self.schemas

    @staticmethod
    def run(schema: ValidationSchema, value: Any) -> ValidationResult:
        """Call the validator and insist on a synchronous result"""
        result = schema.validate(value)
        if inspect.isawaitable(result):
            close = getattr(result, 'close', None)
            if close is not None:
                close()
            raise UnsupportedOperationError(
                "Asynchronous validation is not supported. Please use synchronous validation schemas."
            )
        if not isinstance(result, ValidationResult):
            raise TypeError(f"Validator returned {type(result).__name__}, expected ValidationResult")
        return result

    def validate_row(self, table_name: str, row: Row) -> Row:
        """
        Validate one row and return the row to store.

        The validator's output is stored only when the schema has a backward
        transform to turn it back into file shape. Otherwise the input row is
        stored as given, so keys the validator drops or fills in never reach
        the file. Rows of tables without a validation schema are returned
        unchanged.
        """
        schema = self.schemas.get(table_name)
        if schema is None:
            return row

        result = self.run(schema, row)
        if result.issues:
            raise ValidationError.for_row(table_name, result.issues)
        if schema.backward is None or result.value is None:
            return row
        return result.value

    def validate_rows(self, table_name: str, rows: Sequence[Row]) -> List[Row]:
        """Validate every row, then raise one aggregate error if any failed"""
        if table_name not in self.schemas:
            return list(rows)

        validated: List[Row] = []
        failures: List[RowValidationError] = []
        for row_index, row in enumerate(rows):
            try:
                validated.append(self.validate_row(table_name, row))
            except ValidationError as e:
                failures.append(RowValidationError(row_index=row_index, row_data=row, issues=e.issues))

        if failures:
            self.logger.debug("%d of %d row(s) failed validation in '%s'", len(failures), len(rows), table_name)
            raise ValidationError.aggregate(table_name, failures)
        return validated

    def check_merged(self, table_name: str, merged: Row) -> List[Issue]:
        """
        Issues for a stored row merged with a patch.

        Stored rows are in validated shape; when the schema has a backward
        transform the merged row is mapped back to file shape before being
        validated.
        """
        schema = self.schemas.get(table_name)
        if schema is None:
            return []
        candidate = schema.backward(merged) if schema.backward else merged
        return list(self.run(schema, candidate).issues)

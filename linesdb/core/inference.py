"""
Schema Inference - Derives column definitions from sample records

Used when a table has no explicit schema. Each key seen in the sample
becomes a column, in first-seen order. No primary key is assumed; that
comes from a validation schema, if any.
"""

from typing import Any, Dict, List, Sequence

from .errors import InferenceError
from .schema import Column, Table
from .types import LogicalType, StorageType, TypeValidator


def _resolve(types: List[StorageType]) -> StorageType:
    """Pick one storage type for a column given every type observed in it"""
    non_null = [t for t in types if t is not StorageType.NULL]
    if not non_null:
        return StorageType.NULL
    if len(non_null) == 1:
        return non_null[0]
    if set(non_null) <= {StorageType.INTEGER, StorageType.REAL}:
        return StorageType.REAL
    # Mixed kinds fall back to TEXT
    return StorageType.TEXT


def infer_schema(table_name: str, sample_rows: Sequence[Dict[str, Any]]) -> Table:
    """
    Infer a Table from sample rows.

    Raises InferenceError when the sample is empty.
    """
    if not sample_rows:
        raise InferenceError(f"Cannot infer schema for table '{table_name}' from empty data")

    observed: Dict[str, List[StorageType]] = {}
    boolean_columns = set()
    non_boolean_columns = set()

    for row in sample_rows:
        for key, value in row.items():
            types = observed.setdefault(key, [])
            stype = TypeValidator.classify(value)
            if stype not in types:
                types.append(stype)

            if isinstance(value, bool):
                boolean_columns.add(key)
            elif value is not None:
                non_boolean_columns.add(key)

    columns = []
    for name, types in observed.items():
        is_boolean = name in boolean_columns and name not in non_boolean_columns
        columns.append(Column(
            name=name,
            storage_type=_resolve(types),
            logical_type=LogicalType.BOOLEAN if is_boolean else None,
        ))

    return Table(name=table_name, columns=tuple(columns))

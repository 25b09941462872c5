"""
Data Types Module - Storage classes and value conversion for LinesDB

Storage types mirror SQLite's storage classes plus JSON, which is kept as
TEXT in SQLite and decoded again on read. Booleans have no storage class of
their own: they are stored as INTEGER and carry a logical type so reads can
hand back True/False.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from ..log import get_logger

logger = get_logger('types')


class StorageType(Enum):
    """Supported column storage types"""
    TEXT = 'TEXT'
    INTEGER = 'INTEGER'
    REAL = 'REAL'
    BLOB = 'BLOB'
    NULL = 'NULL'
    JSON = 'JSON'

    @property
    def sql_type(self) -> str:
        """Type name used in CREATE TABLE (JSON lives in a TEXT column)"""
        if self is StorageType.JSON:
            return 'TEXT'
        return self.value

    def __str__(self) -> str:
        return self.value


class LogicalType(Enum):
    """Logical types layered on top of a storage type"""
    BOOLEAN = 'boolean'


def dumps(value: Any) -> str:
    """Compact JSON encoding shared by JSON columns and JSONL lines"""
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'))


class TypeValidator:
    """Classifies JSON values and converts them to and from SQLite values"""

    TYPE_MAP = {
        'TEXT': StorageType.TEXT,
        'STRING': StorageType.TEXT,
        'VARCHAR': StorageType.TEXT,
        'INTEGER': StorageType.INTEGER,
        'INT': StorageType.INTEGER,
        'BOOLEAN': StorageType.INTEGER,
        'REAL': StorageType.REAL,
        'FLOAT': StorageType.REAL,
        'DOUBLE': StorageType.REAL,
        'BLOB': StorageType.BLOB,
        'NULL': StorageType.NULL,
        'JSON': StorageType.JSON,
    }

    @staticmethod
    def parse_type(type_str: str) -> StorageType:
        """Parse a type name into a StorageType"""
        key = type_str.upper().strip()
        if key in TypeValidator.TYPE_MAP:
            return TypeValidator.TYPE_MAP[key]
        raise ValueError(f"Unknown storage type: {type_str}")

    @staticmethod
    def classify(value: Any) -> StorageType:
        """Storage type of a single decoded JSON value"""
        if value is None:
            return StorageType.NULL
        # bool is a subclass of int, so it must be checked first
        if isinstance(value, bool):
            return StorageType.INTEGER
        if isinstance(value, int):
            return StorageType.INTEGER
        if isinstance(value, float):
            return StorageType.REAL
        if isinstance(value, str):
            return StorageType.TEXT
        if isinstance(value, (bytes, bytearray, memoryview)):
            return StorageType.BLOB
        if isinstance(value, (dict, list, tuple)):
            return StorageType.JSON
        return StorageType.TEXT

    @staticmethod
    def normalize(value: Any) -> Any:
        """Convert a Python value into something sqlite3 can bind"""
        if value is None:
            return None
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, (int, float, str, bytes)):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)
        if isinstance(value, (dict, list, tuple)):
            return dumps(value)
        return str(value)

    @staticmethod
    def deserialize(value: Any, storage_type: StorageType, logical_type: Optional[LogicalType] = None) -> Any:
        """Convert a value read from SQLite back to its JSON shape"""
        if value is None:
            return None

        if storage_type is StorageType.JSON and isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError as e:
                logger.warning("Failed to parse JSON column value %r: %s", value[:80], e)
                return value

        if logical_type is LogicalType.BOOLEAN and isinstance(value, int):
            return value != 0

        return value

    @staticmethod
    def deserialize_row(row: Dict[str, Any], table: Any) -> Dict[str, Any]:
        """Decode JSON and boolean columns of a row using the table's column definitions"""
        decoded = dict(row)
        for col in table.columns:
            if col.name in decoded:
                decoded[col.name] = TypeValidator.deserialize(
                    decoded[col.name], col.storage_type, col.logical_type,
                )
        return decoded

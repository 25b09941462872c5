"""
Schema Module - Defines table structure, columns, and constraints

Supports:
- Column definitions with storage and logical types
- PRIMARY KEY (single or composite), UNIQUE and NOT NULL constraints
- Foreign key references with ON DELETE / ON UPDATE actions
- Secondary indexes
- Constraint enhancement from a validation schema

Tables are built once per load and never modified afterwards; enhancement
returns a new Table instead of mutating the old one.
"""

import re
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .types import LogicalType, StorageType, TypeValidator

FK_ACTIONS = ('CASCADE', 'SET NULL', 'RESTRICT', 'NO ACTION')


def quote_identifier(identifier: str) -> str:
    """Quote an identifier for SQL, doubling embedded quotes"""
    return '"' + identifier.replace('"', '""') + '"'


@dataclass(frozen=True)
class Column:
    """Represents a column in a table"""
    name: str
    storage_type: StorageType = StorageType.TEXT
    primary_key: bool = False
    not_null: bool = False
    unique: bool = False
    logical_type: Optional[LogicalType] = None

    @property
    def is_boolean(self) -> bool:
        return self.logical_type is LogicalType.BOOLEAN


@dataclass(frozen=True)
class ForeignKey:
    """FOREIGN KEY (columns) REFERENCES ref_table (ref_columns)"""
    columns: Tuple[str, ...]
    ref_table: str
    ref_columns: Tuple[str, ...]
    on_delete: Optional[str] = None
    on_update: Optional[str] = None

    def __post_init__(self):
        if len(self.columns) != len(self.ref_columns):
            raise ValueError(
                f"Foreign key column count mismatch: {self.columns} -> {self.ref_table}{self.ref_columns}"
            )
        for action in (self.on_delete, self.on_update):
            if action is not None and action not in FK_ACTIONS:
                raise ValueError(f"Unsupported foreign key action: {action}")

    def to_sql(self) -> str:
        cols = ', '.join(quote_identifier(c) for c in self.columns)
        refs = ', '.join(quote_identifier(c) for c in self.ref_columns)
        parts = [f"FOREIGN KEY ({cols})", f"REFERENCES {quote_identifier(self.ref_table)}({refs})"]
        if self.on_delete:
            parts.append(f"ON DELETE {self.on_delete}")
        if self.on_update:
            parts.append(f"ON UPDATE {self.on_update}")
        return ' '.join(parts)


@dataclass(frozen=True)
class Index:
    """A secondary index over one or more columns"""
    columns: Tuple[str, ...]
    name: Optional[str] = None
    unique: bool = False


@dataclass(frozen=True)
class Table:
    """Represents the schema of a table"""
    name: str
    columns: Tuple[Column, ...] = ()
    foreign_keys: Tuple[ForeignKey, ...] = ()
    indexes: Tuple[Index, ...] = ()

    def get_column(self, name: str) -> Optional[Column]:
        """Get column by name"""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def get_column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    @property
    def primary_key(self) -> Tuple[str, ...]:
        """Names of the primary key columns, in column order"""
        return tuple(col.name for col in self.columns if col.primary_key)

    def create_table_sql(self) -> str:
        """CREATE TABLE statement for this table"""
        pk_columns = self.primary_key
        composite = len(pk_columns) > 1

        defs = []
        for col in self.columns:
            parts = [quote_identifier(col.name), col.storage_type.sql_type]
            if col.primary_key and not composite:
                parts.append('PRIMARY KEY')
            if col.not_null:
                parts.append('NOT NULL')
            if col.unique:
                parts.append('UNIQUE')
            defs.append(' '.join(parts))

        if composite:
            defs.append(f"PRIMARY KEY ({', '.join(quote_identifier(c) for c in pk_columns)})")
        defs.extend(fk.to_sql() for fk in self.foreign_keys)

        return f"CREATE TABLE IF NOT EXISTS {quote_identifier(self.name)} ({', '.join(defs)})"

    def create_index_sql(self) -> List[str]:
        """CREATE INDEX statements, generating names for unnamed indexes"""
        safe_table = re.sub(r'[^a-zA-Z0-9]', '_', self.name)
        statements = []
        for i, index in enumerate(self.indexes):
            name = index.name or f"idx_{safe_table}_{'_'.join(index.columns)}_{i}"
            unique = 'UNIQUE ' if index.unique else ''
            cols = ', '.join(quote_identifier(c) for c in index.columns)
            statements.append(
                f"CREATE {unique}INDEX IF NOT EXISTS {quote_identifier(name)} "
                f"ON {quote_identifier(self.name)} ({cols})"
            )
        return statements

    def enhance(
        self,
        primary_key: Sequence[str] = (),
        foreign_keys: Sequence[ForeignKey] = (),
        indexes: Sequence[Index] = (),
    ) -> 'Table':
        """
        Return a copy with constraints declared by a validation schema.

        Primary key columns are only applied when no column is already
        marked as primary key; foreign keys and indexes replace any the
        table had.
        """
        columns = self.columns
        if primary_key and not self.primary_key:
            wanted = set(primary_key)
            columns = tuple(replace(col, primary_key=True) if col.name in wanted else col for col in columns)

        return replace(
            self,
            columns=columns,
            foreign_keys=tuple(foreign_keys) or self.foreign_keys,
            indexes=tuple(indexes) or self.indexes,
        )

    def to_dict(self) -> dict:
        """Serialize schema to dictionary"""
        return {
            'name': self.name,
            'columns': [
                {
                    'name': col.name,
                    'type': str(col.storage_type),
                    'primary_key': col.primary_key,
                    'not_null': col.not_null,
                    'unique': col.unique,
                    'logical_type': col.logical_type.value if col.logical_type else None,
                }
                for col in self.columns
            ],
            'foreign_keys': [
                {
                    'columns': list(fk.columns),
                    'references': {'table': fk.ref_table, 'columns': list(fk.ref_columns)},
                    'on_delete': fk.on_delete,
                    'on_update': fk.on_update,
                }
                for fk in self.foreign_keys
            ],
            'indexes': [
                {'name': idx.name, 'columns': list(idx.columns), 'unique': idx.unique}
                for idx in self.indexes
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Table':
        """Deserialize schema from dictionary"""
        columns = tuple(
            Column(
                name=col_data['name'],
                storage_type=TypeValidator.parse_type(col_data.get('type', 'TEXT')),
                primary_key=col_data.get('primary_key', False),
                not_null=col_data.get('not_null', False),
                unique=col_data.get('unique', False),
                logical_type=LogicalType(col_data['logical_type']) if col_data.get('logical_type') else None,
            )
            for col_data in data['columns']
        )
        foreign_keys = tuple(foreign_key_from_dict(fk) for fk in data.get('foreign_keys', ()))
        indexes = tuple(
            Index(columns=tuple(idx['columns']), name=idx.get('name'), unique=idx.get('unique', False))
            for idx in data.get('indexes', ())
        )
        return cls(name=data['name'], columns=columns, foreign_keys=foreign_keys, indexes=indexes)


def foreign_key_from_dict(data: Dict[str, Any]) -> ForeignKey:
    """Build a ForeignKey from {columns, references: {table, columns}, on_delete?, on_update?}"""
    columns = data.get('columns') or [data['column']]
    refs = data['references']
    ref_columns = refs.get('columns') or [refs['column']]
    return ForeignKey(
        columns=tuple(columns),
        ref_table=refs['table'],
        ref_columns=tuple(ref_columns),
        on_delete=data.get('on_delete'),
        on_update=data.get('on_update'),
    )


class Catalog:
    """
    Registry of loaded tables.
    This is the metadata store for the database.
    """

    def __init__(self):
        self.tables: Dict[str, Table] = {}

    def register(self, table: Table) -> None:
        """Register a table schema, replacing any earlier load of the same table"""
        self.tables[table.name] = table

    def get_table(self, name: str) -> Optional[Table]:
        return self.tables.get(name)

    def table_exists(self, name: str) -> bool:
        return name in self.tables

    def list_tables(self) -> List[str]:
        """List all table names in load order"""
        return list(self.tables.keys())

    def to_dict(self) -> dict:
        return {'tables': {name: table.to_dict() for name, table in self.tables.items()}}

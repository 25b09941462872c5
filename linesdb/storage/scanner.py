"""
Directory Scanner - Discovers tables and their validation schemas

Every `<table>.jsonl` file in the data directory becomes a table. A
validation schema is picked up from `<table>.schema.py` next to it, which
must expose a ValidationSchema as `schema` (or `default`).
"""

import hashlib
import importlib.util
import os
import sys
from typing import Dict, Optional

from ..config import TableConfig
from ..log import get_logger
from ..core.errors import SchemaLoadError
from ..core.validation import ValidationSchema

logger = get_logger('scanner')

JSONL_EXT = '.jsonl'
SCHEMA_SUFFIX = '.schema.py'


def table_name_for(path: str) -> str:
    name = os.path.basename(path)
    return name[:-len(JSONL_EXT)] if name.endswith(JSONL_EXT) else name


class DirectoryScanner:

    @staticmethod
    def scan_directory(data_dir: str) -> Dict[str, TableConfig]:
        """Map table name -> TableConfig for each JSONL file, sorted by name"""
        try:
            files = sorted(os.listdir(data_dir))
        except OSError as e:
            raise OSError(f"Failed to scan directory {data_dir}: {e}") from e

        tables = {}
        for file in files:
            path = os.path.join(data_dir, file)
            if file.endswith(JSONL_EXT) and os.path.isfile(path):
                tables[table_name_for(file)] = TableConfig(source_path=path, auto_infer=True)

        if not tables:
            logger.warning("No JSONL files found in directory: %s", data_dir)
        return tables


class SchemaLoader:

    @staticmethod
    def schema_path(jsonl_path: str) -> str:
        directory = os.path.dirname(jsonl_path)
        return os.path.join(directory, table_name_for(jsonl_path) + SCHEMA_SUFFIX)

    @staticmethod
    def module_name(schema_path: str) -> str:
        """sys.modules key for a schema file, unique per absolute path"""
        digest = hashlib.sha1(os.path.abspath(schema_path).encode('utf-8')).hexdigest()[:12]
        stem = table_name_for(schema_path[:-len(SCHEMA_SUFFIX)]).replace('-', '_').replace('.', '_')
        return f"_linesdb_schema_{stem}_{digest}"

    @staticmethod
    def has_schema(jsonl_path: str) -> bool:
        return os.path.isfile(SchemaLoader.schema_path(jsonl_path))

    @staticmethod
    def load_schema(jsonl_path: str) -> Optional[ValidationSchema]:
        """
        Load the validation schema for a JSONL file.

        Returns None when there is no schema file. Raises SchemaLoadError
        when the file exists but cannot be imported or exports no schema.
        """
        path = SchemaLoader.schema_path(jsonl_path)
        if not os.path.isfile(path):
            return None

        table_name = table_name_for(jsonl_path)
        module_name = SchemaLoader.module_name(path)
        try:
            spec = importlib.util.spec_from_file_location(module_name, path)
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise SchemaLoadError(f"Failed to load schema for table '{table_name}' from {path}: {e}") from e

        schema = getattr(module, 'schema', None) or getattr(module, 'default', None)
        if not isinstance(schema, ValidationSchema):
            raise SchemaLoadError(f"Schema file {path} does not export a ValidationSchema")
        return schema

"""
Configuration for LinesDB stores.

LinesDBConfig can be built directly or from the environment:
    LINESDB_DATA_DIR        directory containing *.jsonl files
    LINESDB_DB_PATH         SQLite path (default :memory:)
    LINESDB_FOREIGN_KEYS    1/0, enforce foreign keys (default 1)
    LINESDB_LOG_LEVEL       DEBUG/INFO/WARNING/ERROR
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from .core.schema import Table
from .core.validation import ValidationSchema
from .log import get_logger

logger = get_logger('config')

DEFAULT_DB_PATH = ':memory:'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')


@dataclass
class TableConfig:
    """How to load one table"""
    source_path: str
    schema: Optional[Table] = None
    auto_infer: bool = True
    validation_schema: Optional[ValidationSchema] = None


@dataclass
class LinesDBConfig:
    data_dir: str
    db_path: str = DEFAULT_DB_PATH
    foreign_keys: bool = True
    tables: Dict[str, TableConfig] = field(default_factory=dict)
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, data_dir: Optional[str] = None) -> 'LinesDBConfig':
        data_dir = data_dir or os.environ.get('LINESDB_DATA_DIR')
        if not data_dir:
            raise ValueError("No data directory given and LINESDB_DATA_DIR is not set")

        raw_fk = os.environ.get('LINESDB_FOREIGN_KEYS', '1')
        if raw_fk not in ('0', '1'):
            logger.warning("Invalid LINESDB_FOREIGN_KEYS=%r, using 1", raw_fk)
            raw_fk = '1'

        log_level = os.environ.get('LINESDB_LOG_LEVEL')
        if log_level is not None:
            log_level = log_level.upper()
            if log_level not in LOG_LEVELS:
                logger.warning("Invalid LINESDB_LOG_LEVEL=%r, ignoring", log_level)
                log_level = None

        return cls(
            data_dir=data_dir,
            db_path=os.environ.get('LINESDB_DB_PATH', DEFAULT_DB_PATH),
            foreign_keys=raw_fk == '1',
            log_level=log_level,
        )

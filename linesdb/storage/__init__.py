"""Storage module - JSONL files, SQLite engine, directory scanning"""

from .jsonl import JsonlReader, JsonlWriter
from .sqlite import RunResult, SQLiteDatabase, Statement
from .scanner import DirectoryScanner, SchemaLoader

__all__ = [
    'JsonlReader', 'JsonlWriter',
    'RunResult', 'SQLiteDatabase', 'Statement',
    'DirectoryScanner', 'SchemaLoader',
]

"""
JSONL Storage - Reads and writes line-delimited JSON record files

Features:
- One JSON object per line, blank lines ignored
- Full-file rewrite on write (no incremental diffing)
- Append with file creation
- Temporary in-memory overrides for specific paths, used to validate
  candidate rows through the normal load pipeline
"""

import copy
import json
import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..core.errors import RecordParseError
from ..core.types import dumps

Record = Dict[str, Any]


def _key(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


class JsonlReader:
    """Reads JSONL files"""

    _overrides: Optional[Dict[str, List[Record]]] = None

    @classmethod
    @contextmanager
    def overrides(cls, rows_by_path: Mapping[str, List[Record]]) -> Iterator[None]:
        """Serve the given rows instead of file contents for these paths"""
        previous = cls._overrides
        cls._overrides = {_key(path): rows for path, rows in rows_by_path.items()}
        try:
            yield
        finally:
            cls._overrides = previous

    @classmethod
    def read(cls, path: str) -> List[Record]:
        """Read a JSONL file and parse each non-blank line"""
        if cls._overrides is not None:
            rows = cls._overrides.get(_key(path))
            if rows is not None:
                return copy.deepcopy(rows)

        records = []
        with open(path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except ValueError as e:
                    raise RecordParseError(path, line_number, line, str(e)) from e
                if not isinstance(record, dict):
                    raise RecordParseError(path, line_number, line, 'not a JSON object')
                records.append(record)
        return records


class JsonlWriter:
    """Writes JSONL files"""

    @staticmethod
    def write(path: str, records: List[Record]) -> None:
        """Overwrite the file with one JSON object per line"""
        content = ''.join(dumps(record) + '\n' for record in records)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)

    @staticmethod
    def append(path: str, records: List[Record]) -> None:
        """Append records, creating the file if it does not exist"""
        if not os.path.exists(path):
            JsonlWriter.write(path, records)
            return

        with open(path, 'r', encoding='utf-8') as f:
            existing = f.read().strip()
        lines = [dumps(record) for record in records]
        if existing:
            lines.insert(0, existing)
        with open(path, 'w', encoding='utf-8') as f:
            f.write('\n'.join(lines) + '\n')

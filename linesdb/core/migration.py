"""
Row Migration Check - Validates candidate rows through the normal load path

ensure_table_rows_valid() loads the data directory with one table's file
contents replaced by in-memory rows, so the rows go through exactly the
same validation, inference and constraint handling as a real load.
"""

import os
from typing import Any, Dict, List

from ..config import LinesDBConfig
from ..storage.jsonl import JsonlReader
from .database import LinesDB
from .errors import ValidationError


def ensure_table_rows_valid(data_dir: str, table_name: str, rows: List[Dict[str, Any]]) -> None:
    """
    Raise the validation error the given rows would cause for `table_name`.

    Only validation failures are raised. Other load failures, such as the
    inference error an empty row set causes, do not make the rows invalid.

    Args:
        data_dir: Directory containing `<table_name>.jsonl`
        table_name: Table whose contents are replaced
        rows: Candidate rows, e.g. the output of a transform

    Raises:
        ValidationError: If any row fails the table's validation schema
    """
    table_path = os.path.join(data_dir, f"{table_name}.jsonl")
    with JsonlReader.overrides({table_path: rows}):
        with LinesDB(LinesDBConfig(data_dir=data_dir)) as db:
            db.initialize()
            error = db.load_errors.get(table_name)

    if isinstance(error, ValidationError):
        raise error

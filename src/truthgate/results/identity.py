"""Deterministic, content-derived finding ids."""

import hashlib
import json
from typing import Any, Optional

ID_PREFIX = "finding_"
DEFAULT_ID_LENGTH = 16

def normalize_file(file: Optional[str]) -> str:
    return str(file or "").replace("\\", "/").lower()

def compute_finding_id(
    file: Optional[str],
    line: Optional[int],
    column: Optional[int],
    kind: Optional[str],
    value: Any,
    length: int = DEFAULT_ID_LENGTH,
) -> str:
    """
    Hash the normalised (file, line, column, kind, value) tuple.

    Path separators and the case of the file path and the promise kind do
    not affect the result.
    """
    key = json.dumps(
        [
            normalize_file(file),
            line if line is not None else "",
            column if column is not None else "",
            str(kind or "").lower(),
            "" if value is None else str(value),
        ],
        separators=(",", ":"),
    )
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return ID_PREFIX + digest[:length]

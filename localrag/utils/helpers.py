"""Shared utility functions used across the package."""
from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson


# --- Text Utilities -----------------------------------------------------------

def truncate_text(text: str, max_chars: int = 300) -> str:
    """Truncate text for display purposes."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


# --- File I/O -----------------------------------------------------------------

def parse_json_bytes(raw: bytes) -> Any:
    """Decode a JSON payload with orjson.  Raises orjson.JSONDecodeError."""
    return orjson.loads(raw)


def save_json(data: Any, path: str | Path) -> None:
    """Serialise data to JSON using orjson (fast, handles numpy arrays)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        f.write(orjson.dumps(data, option=orjson.OPT_INDENT_2 | orjson.OPT_SERIALIZE_NUMPY))


"""JSON snapshot helpers shared by the in-process stores."""

import json
import os
from typing import Any

from shared.exceptions.errors import StorageUnavailable


def atomic_json_save(path: str, data: Any) -> None:
    """Persist JSON data atomically via temporary file replacement.

    Args:
        path: Destination JSON path.
        data: JSON-serialisable payload.

    Raises:
        StorageUnavailable: If the file cannot be written.
    """
    tmp = path + ".tmp"
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, path)
    except OSError as exc:
        raise StorageUnavailable(f"Cannot write snapshot {path}: {exc}") from exc


def load_json(path: str, default: Any) -> Any:
    """Load a JSON snapshot, returning default when the file does not exist.

    Raises:
        StorageUnavailable: If the file exists but cannot be read or parsed.
    """
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as exc:
        raise StorageUnavailable(f"Cannot read snapshot {path}: {exc}") from exc

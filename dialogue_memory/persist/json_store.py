"""
JSON file persistence.

Missing files read as a caller-supplied default; every other failure is a
StorageError. Writes go to a sibling temp file that is renamed into place,
so a crash never leaves a truncated document behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..errors import StorageError


def read_json(path: Path, default: Any = None) -> Any:
    """
    Load a JSON document.

    Args:
        path: File to read
        default: Value returned when the file does not exist

    Returns:
        Decoded JSON value, or ``default``

    Raises:
        StorageError: If the file exists but cannot be read or decoded
    """
    path = Path(path)
    if not path.exists():
        return default

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to read: {e}", path=path) from e
    except json.JSONDecodeError as e:
        raise StorageError(f"Corrupt JSON: {e}", path=path) from e


def write_json(path: Path, data: Any) -> None:
    """
    Atomically replace ``path`` with ``data`` encoded as JSON.

    Raises:
        StorageError: If the directory cannot be created or the write fails
    """
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
        tmp_name = None
    except (OSError, TypeError, ValueError) as e:
        raise StorageError(f"Failed to write: {e}", path=path) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)


def delete_file(path: Path) -> bool:
    """
    Remove a file if present.

    Returns:
        True if a file was removed, False if it did not exist

    Raises:
        StorageError: If the file exists but cannot be removed
    """
    path = Path(path)
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StorageError(f"Failed to delete: {e}", path=path) from e

"""
Persistence layer.

Provides:
- Per-conversation path management under a storage root
- Atomic JSON file reads/writes that surface failures as StorageError
"""

from .paths import StoragePaths, validate_conversation_id
from .json_store import read_json, write_json, delete_file

__all__ = [
    "StoragePaths",
    "validate_conversation_id",
    "read_json",
    "write_json",
    "delete_file",
]

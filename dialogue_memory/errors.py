"""Exception taxonomy for the memory engine."""

from pathlib import Path
from typing import Optional, Union


class MemoryEngineError(Exception):
    """Base class for all dialogue_memory errors."""


class StorageError(MemoryEngineError):
    """
    Persisted state could not be read, decoded, validated or written.

    Attributes:
        path: File involved in the failure, when known
    """

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        base = super().__str__()
        if self.path is not None:
            return f"{base} ({self.path})"
        return base


class ParseError(MemoryEngineError):
    """LLM output did not contain a decodable JSON value."""

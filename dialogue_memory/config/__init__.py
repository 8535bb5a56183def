"""Configuration schema for dialogue_memory."""

from .settings import KnowledgeCfg, MemoryCfg, Paths, Settings

__all__ = ["KnowledgeCfg", "MemoryCfg", "Paths", "Settings"]

"""In-memory fakes used by the test suite and local experiments."""

from .memory_store import MemoryRecordStore

__all__ = ["MemoryRecordStore"]

"""
Store adapter and blob backends for the reminder list.
"""

from typing import TYPE_CHECKING

from .base import BlobStore, ReminderStore
from .file_store import FileBlobStore
from .memory_store import MemoryBlobStore
from .postgres_store import PostgresBlobStore, init_blob_schema

if TYPE_CHECKING:
    from remindq.config.settings import Settings

__all__ = [
    "BlobStore",
    "ReminderStore",
    "FileBlobStore",
    "MemoryBlobStore",
    "PostgresBlobStore",
    "create_store",
    "init_blob_schema",
]


def create_store(settings: "Settings") -> ReminderStore:
    """Build the ``ReminderStore`` for the backend selected by *settings*."""
    backend = settings.store_backend
    if backend == "file":
        blobs: BlobStore = FileBlobStore(settings.store_path)
    elif backend == "postgres":
        blobs = PostgresBlobStore()
    elif backend == "memory":
        blobs = MemoryBlobStore()
    else:
        raise ValueError(f"Unknown store backend: {backend}")
    return ReminderStore(blobs, name=settings.store_name)

"""
In-memory blob store for tests and dry runs.
"""

import threading
from typing import Dict, Optional

from remindq.store.base import BlobStore


class MemoryBlobStore(BlobStore):
    def __init__(self):
        self._blobs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_blob(self, name: str) -> Optional[str]:
        with self._lock:
            return self._blobs.get(name)

    def put_blob(self, name: str, body: str) -> None:
        with self._lock:
            self._blobs[name] = body

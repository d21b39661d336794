"""
Blob store keeping each blob as a JSON file in a directory.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

from remindq.errors import StoreUnavailable
from remindq.store.base import BlobStore

logger = logging.getLogger(__name__)


class FileBlobStore(BlobStore):
    """One ``<name>.json`` file per blob; writes are atomic replacements."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9._-]", "_", name)
        return self.directory / f"{safe}.json"

    def get_blob(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error(f"Error reading blob {path}: {e}")
            raise StoreUnavailable(f"Cannot read blob '{name}': {e}") from e

    def put_blob(self, name: str, body: str) -> None:
        path = self.path_for(name)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.directory, prefix=f".{path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(body)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            logger.error(f"Error writing blob {path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreUnavailable(f"Cannot write blob '{name}': {e}") from e

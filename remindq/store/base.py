"""
Store adapter: the reminder list persisted as one opaque named blob.

``save()`` is a full overwrite, never a merge, so callers must hold the
mutex lease from ``load()`` through ``save()``.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from remindq.core.models import ReminderList

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Whole-blob get/put by name. Transport errors raise ``StoreUnavailable``."""

    @abstractmethod
    def get_blob(self, name: str) -> Optional[str]:
        """Return the blob body, or ``None`` when no blob exists under *name*."""

    @abstractmethod
    def put_blob(self, name: str, body: str) -> None:
        """Replace the blob stored under *name*."""


class ReminderStore:
    """Loads and saves the ``ReminderList`` through a ``BlobStore``."""

    def __init__(self, blobs: BlobStore, name: str = "reminders"):
        self.blobs = blobs
        self.name = name

    def load(self) -> ReminderList:
        body = self.blobs.get_blob(self.name)
        if body is None:
            logger.info(f"No reminder blob '{self.name}' yet, starting with an empty list")
            return ReminderList()
        reminders = ReminderList.from_json(body)
        logger.debug(f"Loaded {len(reminders)} reminders from '{self.name}'")
        return reminders

    def save(self, reminders: ReminderList) -> None:
        self.blobs.put_blob(self.name, reminders.to_json())
        logger.info(f"Saved {len(reminders)} reminders to '{self.name}'")

"""
Reminder data model.

A ``ReminderList`` is the single source of truth persisted as one JSON blob:
an array of ``ReminderRecord`` objects in insertion order. Unknown fields in
a stored record are kept on the model and written back untouched.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from remindq.core.clock import is_due
from remindq.errors import DuplicateGuid, StoreCorrupted

logger = logging.getLogger(__name__)


def normalize_targets(targets: Iterable[str]) -> List[str]:
    """Strip targets and drop blanks and repeats, keeping first-seen order."""
    seen: Set[str] = set()
    ordered = []
    for target in targets:
        target = target.strip()
        if target and target not in seen:
            seen.add(target)
            ordered.append(target)
    return ordered


class ReminderRecord(BaseModel):
    """One scheduled reminder."""

    model_config = ConfigDict(extra="allow", frozen=True)

    guid: str = Field(..., min_length=1, description="Unique, immutable identifier")
    remind_at: datetime = Field(..., description="When the reminder falls due (offset-aware)")
    message: str = Field(..., description="Payload delivered verbatim to the agent")
    session_ref: str = Field(..., description="URL of the target agent session")
    cc_targets: List[str] = Field(
        default_factory=list, description="Users or tags mentioned in the chat notification"
    )
    created_at: Optional[datetime] = Field(None, description="Creation time, informational")

    @field_validator("remind_at", "created_at")
    @classmethod
    def _assume_utc_when_naive(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Older blobs may carry naive timestamps; they were always written in UTC.
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_serializer("remind_at", "created_at")
    def _keep_offset(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value is not None else None

    @classmethod
    def new(
        cls,
        remind_at: datetime,
        message: str,
        session_ref: str,
        cc_targets: Optional[Iterable[str]] = None,
        now: Optional[datetime] = None,
    ) -> "ReminderRecord":
        """Create a record with a fresh guid and creation timestamp."""
        return cls(
            guid=str(uuid.uuid4()),
            remind_at=remind_at,
            message=message,
            session_ref=session_ref,
            cc_targets=normalize_targets(cc_targets or ()),
            created_at=now or datetime.now(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class ReminderList:
    """Ordered collection of reminders with unique guids."""

    def __init__(self, records: Optional[Iterable[ReminderRecord]] = None):
        self._records: List[ReminderRecord] = []
        self._guids: Set[str] = set()
        for record in records or ():
            self.append(record)

    def append(self, record: ReminderRecord) -> None:
        """Append *record*, refusing a guid that is already present."""
        if record.guid in self._guids:
            raise DuplicateGuid(record.guid)
        self._records.append(record)
        self._guids.add(record.guid)

    def partition_due(self, now: datetime) -> Tuple[List[ReminderRecord], List[ReminderRecord]]:
        """Split into ``(due, not_due)``, keeping list order within each part."""
        due: List[ReminderRecord] = []
        not_due: List[ReminderRecord] = []
        for record in self._records:
            (due if is_due(record.remind_at, now) else not_due).append(record)
        return due, not_due

    def without(self, guids: Iterable[str]) -> "ReminderList":
        """Return a new list excluding *guids*. Unknown guids are ignored."""
        drop = set(guids)
        return ReminderList(r for r in self._records if r.guid not in drop)

    def guids(self) -> List[str]:
        return [r.guid for r in self._records]

    def get(self, guid: str) -> Optional[ReminderRecord]:
        for record in self._records:
            if record.guid == guid:
                return record
        return None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ReminderRecord]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReminderList):
            return NotImplemented
        return self._records == other._records

    def __repr__(self) -> str:
        return f"ReminderList({len(self._records)} records)"

    # -- serialization --

    def to_data(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._records]

    def to_json(self) -> str:
        return json.dumps(self.to_data(), ensure_ascii=False)

    @classmethod
    def from_data(cls, data: Any) -> "ReminderList":
        if not isinstance(data, list):
            raise StoreCorrupted(
                f"Reminder blob must be a JSON array, got {type(data).__name__}"
            )
        records = []
        for index, item in enumerate(data):
            try:
                records.append(ReminderRecord.model_validate(item))
            except pydantic.ValidationError as e:
                raise StoreCorrupted(f"Invalid reminder at index {index}: {e}") from e
        return cls(records)

    @classmethod
    def from_json(cls, text: str) -> "ReminderList":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreCorrupted(f"Reminder blob is not valid JSON: {e}") from e
        return cls.from_data(data)

"""
Exception taxonomy for the reminder queue.

Validation, lock and store errors abort a whole invocation. Delivery errors
(``AgentPingFailed``, ``NotificationFailed``) are raised by the transports and
captured per record by the dispatcher.
"""

from typing import Optional


class ReminderQueueError(Exception):
    """Base class for all reminder queue errors."""

    exit_code = 1


class ValidationError(ReminderQueueError):
    """Input rejected before any lock or load happened."""

    exit_code = 2


class InvalidTimestamp(ValidationError):
    """Timestamp is not an absolute instant with an explicit offset."""


class OutOfWindow(ValidationError):
    """Timestamp is not in the future or lies beyond the allowed horizon."""


class LockTimeout(ReminderQueueError):
    """The mutex lease could not be acquired before the deadline."""

    exit_code = 3

    def __init__(self, resource: str, waited: float):
        super().__init__(f"Timed out after {waited:.1f}s waiting for lock '{resource}'")
        self.resource = resource
        self.waited = waited


class StoreUnavailable(ReminderQueueError):
    """The blob store transport failed."""

    exit_code = 4


class StoreCorrupted(ReminderQueueError):
    """The stored blob is not a valid reminder list."""

    exit_code = 4


class DuplicateGuid(ReminderQueueError):
    """Two records share a guid. Internal invariant violation."""

    def __init__(self, guid: str):
        super().__init__(f"Duplicate reminder guid: {guid}")
        self.guid = guid


class AgentPingFailed(ReminderQueueError):
    """The agent session did not acknowledge the ping."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotificationFailed(ReminderQueueError):
    """The chat notification could not be sent."""


class ConfigError(ReminderQueueError):
    """Exception raised for configuration errors."""

    exit_code = 2


def truncate_error(message: str, max_length: int = 200) -> str:
    """Truncate an error message if it exceeds *max_length*."""
    if len(message) <= max_length:
        return message
    return message[: max_length - 3] + "..."

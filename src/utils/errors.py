"""
Exceptions raised by the reconciliation pipeline.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for pipeline errors."""


class FetchError(PipelineError):
    """A calendar feed could not be retrieved."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class CalendarParseError(PipelineError):
    """A calendar feed could not be parsed into traceable bookings."""

    def __init__(self, message: str, fatal_entries: int = 0):
        super().__init__(message)
        self.fatal_entries = fatal_entries


class MailboxConnectionError(PipelineError):
    """The mailbox could not be opened."""


class MessageDecodeError(PipelineError):
    """A message body could not be buffered or decoded."""

    def __init__(self, message: str, uid: str = ""):
        super().__init__(message)
        self.uid = uid


class StoreError(PipelineError):
    """A storage operation failed."""


class ReservationValidationError(PipelineError):
    """A reservation breaks one of its invariants."""

"""
Data models for the rental reservation reconciliation pipeline.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Union
from enum import Enum

from .errors import ReservationValidationError


class Platform(Enum):
    """Supported listing platforms."""
    AIRBNB = "airbnb"


class ReservationKind(Enum):
    """Kind of calendar occupancy."""
    RESERVATION = "reservation"
    MANUAL_BLOCK_DATE = "manual_block_date"


class ReservationStatus(Enum):
    """Reservation lifecycle states."""
    CONFIRMED = "confirmed"
    PAID = "paid"
    CANCELED = "canceled"


class NotificationKind(Enum):
    """Kinds of events extracted from notification emails."""
    PAYOUT = "payout"
    CREATION = "creation"
    CANCELLATION = "cancellation"


class PriceSource(Enum):
    """Where the stored reservation price came from."""
    CALENDAR = "calendar"
    NOTIFICATION = "notification"


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class CalendarSource:
    """A calendar feed registered for synchronization."""
    id: str
    url: str
    platform: Union[Platform, str]
    is_active: bool = True
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        # Unknown tags stay as plain strings so the source can be skipped on its own
        if isinstance(self.platform, str):
            tag = self.platform.strip().lower()
            try:
                self.platform = Platform(tag)
            except ValueError:
                self.platform = tag

    @property
    def platform_name(self) -> str:
        return self.platform.value if isinstance(self.platform, Platform) else self.platform

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CalendarSource':
        """Create CalendarSource from a stored row."""
        return cls(
            id=str(data['id']),
            url=data['url'],
            platform=data['platform'],
            is_active=data.get('is_active', True),
            name=data.get('name'),
            description=data.get('description'),
        )


@dataclass
class CalendarEvent:
    """A VEVENT entry parsed from a calendar feed. Never persisted."""
    uid: str
    start_date: datetime
    end_date: datetime
    summary: str = ""
    description: Optional[str] = None
    dtstamp: Optional[datetime] = None
    reservation_url: Optional[str] = None
    phone_number: Optional[str] = None
    external_id: Optional[str] = None
    is_manual_block: bool = False


@dataclass
class Reservation:
    """Canonical reservation record."""
    external_id: str
    start_date: datetime
    end_date: datetime
    price: float = 0.0
    number_of_travelers: int = 1
    kind: ReservationKind = ReservationKind.RESERVATION
    status: ReservationStatus = ReservationStatus.CONFIRMED
    internal_id: Optional[str] = None
    calendar_source_id: Optional[str] = None
    price_source: PriceSource = PriceSource.CALENDAR
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = ReservationKind(self.kind)
        if isinstance(self.status, str):
            self.status = ReservationStatus(self.status)
        if self.status is None:
            self.status = ReservationStatus.CONFIRMED
        if isinstance(self.price_source, str):
            self.price_source = PriceSource(self.price_source)
        if self.price_source is None:
            self.price_source = PriceSource.CALENDAR

    @property
    def is_manual_block(self) -> bool:
        return self.kind == ReservationKind.MANUAL_BLOCK_DATE

    def validate(self):
        """Check the record invariants before it is written."""
        if not self.external_id:
            raise ReservationValidationError("Reservation has no external id")
        if self.start_date >= self.end_date:
            raise ReservationValidationError(
                f"Reservation {self.external_id} starts on or after its end date"
            )
        if self.price is not None and self.price < 0:
            raise ReservationValidationError(
                f"Reservation {self.external_id} has a negative price"
            )
        if not self.is_manual_block and self.number_of_travelers < 1:
            raise ReservationValidationError(
                f"Reservation {self.external_id} has no travelers"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert reservation to a dictionary for storage."""
        return {
            'internal_id': self.internal_id,
            'external_id': self.external_id,
            'start_date': _isoformat(self.start_date),
            'end_date': _isoformat(self.end_date),
            'price': self.price,
            'number_of_travelers': self.number_of_travelers,
            'kind': self.kind.value,
            'status': self.status.value,
            'calendar_source_id': self.calendar_source_id,
            'price_source': self.price_source.value,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Reservation':
        """Create Reservation from a stored row."""
        source_id = data.get('calendar_source_id')
        return cls(
            internal_id=data.get('internal_id'),
            external_id=data['external_id'],
            start_date=_parse_datetime(data['start_date']),
            end_date=_parse_datetime(data['end_date']),
            price=float(data['price']) if data.get('price') is not None else 0.0,
            number_of_travelers=int(data.get('number_of_travelers') or 1),
            kind=data.get('kind') or ReservationKind.RESERVATION.value,
            status=data.get('status') or ReservationStatus.CONFIRMED.value,
            calendar_source_id=str(source_id) if source_id is not None else None,
            price_source=data.get('price_source') or PriceSource.CALENDAR.value,
            created_at=_parse_datetime(data.get('created_at')),
            updated_at=_parse_datetime(data.get('updated_at')),
        )

    def __str__(self) -> str:
        return (f"Reservation(external_id='{self.external_id}', "
                f"kind='{self.kind.value}', "
                f"start='{self.start_date}', "
                f"end='{self.end_date}', "
                f"status='{self.status.value}')")


@dataclass
class EmailMessage:
    """Email fetched from the mailbox."""
    uid: str
    subject: str
    sender: str
    received_at: datetime
    body: str = ""
    html: str = ""
    raw_body: str = ""


@dataclass
class ParsedNotification:
    """Structured content extracted from a notification email."""
    booking_id: str
    kind: NotificationKind
    price: Optional[float] = None


@dataclass
class NotificationEvent:
    """Event extracted from a notification email."""
    booking_id: str
    received_at: datetime
    kind: NotificationKind
    price: Optional[float] = None
    consumed: bool = False
    id: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.kind, str):
            self.kind = NotificationKind(self.kind)
        self.received_at = to_utc(self.received_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to a dictionary for storage."""
        data = {
            'booking_id': self.booking_id,
            'received_at': self.received_at.isoformat(),
            'kind': self.kind.value,
            'price': self.price,
            'consumed': self.consumed,
        }
        if self.id is not None:
            data['id'] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NotificationEvent':
        """Create NotificationEvent from a stored row."""
        price = data.get('price')
        return cls(
            id=str(data['id']) if data.get('id') is not None else None,
            booking_id=data['booking_id'],
            received_at=_parse_datetime(data['received_at']),
            kind=data['kind'],
            price=float(price) if price is not None else None,
            consumed=bool(data.get('consumed', False)),
        )


@dataclass
class MailboxPollResult:
    """Outcome of one mailbox poll."""
    messages: List[EmailMessage] = field(default_factory=list)
    processed_uids: List[str] = field(default_factory=list)
    failed_uids: List[str] = field(default_factory=list)


@dataclass
class CalendarSyncResult:
    """Aggregate counters of a calendar synchronization."""
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int = 0

    def merge(self, other: 'CalendarSyncResult'):
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.errors += other.errors

    def to_dict(self) -> Dict[str, int]:
        return {
            'created': self.created,
            'updated': self.updated,
            'unchanged': self.unchanged,
            'errors': self.errors,
        }


@dataclass
class EmailSyncResult:
    """Aggregate counters of an email synchronization."""
    fetched: int = 0
    created: int = 0
    ignored: int = 0
    duplicates: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'fetched': self.fetched,
            'created': self.created,
            'ignored': self.ignored,
            'duplicates': self.duplicates,
            'errors': self.errors,
        }


@dataclass
class EventProcessingResult:
    """Aggregate counters of an event processing run."""
    processed: int = 0
    orphaned: int = 0
    errors: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'processed': self.processed,
            'orphaned': self.orphaned,
            'errors': self.errors,
        }

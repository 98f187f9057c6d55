"""
Airbnb iCal feed parsing and reservation mapping.
"""
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from icalendar import Calendar

from .platforms import CalendarPlatform
from ..utils.errors import CalendarParseError
from ..utils.logger import get_logger
from ..utils.models import (
    CalendarEvent, Platform, Reservation, ReservationKind, to_utc
)
from config.settings import app_config

MANUAL_BLOCK_PREFIX = "MANUAL_BLOCK_"


def to_utc_datetime(value: Any) -> datetime:
    """Convert an iCal DATE or DATE-TIME value to an aware UTC datetime."""
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        # Bare dates are UTC midnight
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Unsupported iCal date value: {value!r}")


def manual_block_id(uid: str, start_date: datetime, end_date: datetime) -> str:
    """Deterministic external id for a host-created blackout entry."""
    uid_prefix = (uid or "").split("@", 1)[0].strip()
    if uid_prefix:
        return f"{MANUAL_BLOCK_PREFIX}{uid_prefix}"
    return f"{MANUAL_BLOCK_PREFIX}{start_date:%Y%m%d}_{end_date:%Y%m%d}"


class AirbnbCalendarParser:
    """Parser for Airbnb iCal exports."""

    RESERVATION_URL_PATTERN = re.compile(r'Reservation URL:\s*(https?://\S+)', re.IGNORECASE)
    PHONE_PATTERN = re.compile(r'Phone Number \(Last 4 Digits\):\s*(\d+)', re.IGNORECASE)
    EXTERNAL_ID_PATTERN = re.compile(r'/details/([A-Z0-9]+)')

    def __init__(self, markers: Optional[Dict[str, str]] = None):
        self.logger = get_logger("airbnb_calendar_parser")
        self.markers = markers or app_config.calendar_markers["airbnb"]

    def parse(self, feed_text: str) -> List[CalendarEvent]:
        """
        Parse an Airbnb feed into calendar events.

        Entries missing DTSTART or DTEND are skipped. Entries that are not
        manual blocks and carry no extractable reservation id make the whole
        feed fail, since such a booking cannot be reconciled.

        Args:
            feed_text: Raw iCal text

        Returns:
            Parsed calendar events

        Raises:
            CalendarParseError: if the text is not a calendar or an entry has
                no traceable reservation id
        """
        try:
            calendar = Calendar.from_ical(feed_text)
        except ValueError as e:
            raise CalendarParseError(f"Invalid calendar data: {e}") from e

        if calendar.name != "VCALENDAR":
            raise CalendarParseError(f"Expected a VCALENDAR, got {calendar.name}")

        events: List[CalendarEvent] = []
        skipped = 0
        fatal: List[str] = []

        for component in calendar.walk("VEVENT"):
            uid = str(component.get("UID", ""))
            dtstart = component.get("DTSTART")
            dtend = component.get("DTEND")
            if dtstart is None or dtend is None:
                skipped += 1
                self.logger.debug("Skipping entry without start or end", uid=uid)
                continue

            try:
                start_date = to_utc_datetime(dtstart.dt)
                end_date = to_utc_datetime(dtend.dt)
            except (AttributeError, TypeError):
                skipped += 1
                self.logger.debug("Skipping entry with unreadable dates", uid=uid)
                continue

            event = self._build_event(component, uid, start_date, end_date)
            if event.external_id is None:
                fatal.append(uid)
                continue
            events.append(event)

        self.logger.info(
            "Calendar parsed",
            events=len(events),
            skipped=skipped,
            missing_id=len(fatal),
        )

        if fatal:
            self.logger.error("Entries without a reservation id", uids=fatal)
            raise CalendarParseError(
                f"Could not extract the reservation id of {len(fatal)} entr{'y' if len(fatal) == 1 else 'ies'}",
                fatal_entries=len(fatal),
            )

        return events

    def _build_event(self, component, uid: str, start_date: datetime, end_date: datetime) -> CalendarEvent:
        summary = str(component.get("SUMMARY", "")).strip()
        description = str(component.get("DESCRIPTION", ""))
        try:
            dtstamp = to_utc_datetime(component.get("DTSTAMP").dt)
        except (AttributeError, TypeError):
            dtstamp = datetime.now(timezone.utc)

        reservation_url = self._search(self.RESERVATION_URL_PATTERN, description)
        is_manual_block = summary == self.markers["not_available"] and reservation_url is None

        if is_manual_block:
            external_id = manual_block_id(uid, start_date, end_date)
        else:
            external_id = self.extract_external_id(reservation_url)

        return CalendarEvent(
            uid=uid,
            start_date=start_date,
            end_date=end_date,
            summary=summary,
            description=description or None,
            dtstamp=dtstamp,
            reservation_url=reservation_url,
            phone_number=self._search(self.PHONE_PATTERN, description),
            external_id=external_id,
            is_manual_block=is_manual_block,
        )

    def extract_external_id(self, reservation_url: Optional[str]) -> Optional[str]:
        """Return the booking id from a `/details/<ID>` reservation URL."""
        if not reservation_url:
            return None
        return self._search(self.EXTERNAL_ID_PATTERN, reservation_url)

    @staticmethod
    def _search(pattern: re.Pattern, text: str) -> Optional[str]:
        match = pattern.search(text or "")
        return match.group(1) if match else None


class AirbnbReservationMapper:
    """Maps parsed Airbnb entries to canonical reservations."""

    def __init__(self, markers: Optional[Dict[str, str]] = None):
        self.markers = markers or app_config.calendar_markers["airbnb"]

    def map_event(self, event: CalendarEvent) -> Optional[Reservation]:
        """Map one entry, or return None when it is not a booking."""
        if event.is_manual_block:
            kind = ReservationKind.MANUAL_BLOCK_DATE
        elif event.summary == self.markers["reserved"] and event.reservation_url:
            kind = ReservationKind.RESERVATION
        else:
            return None

        # Feeds carry neither price nor guest count
        return Reservation(
            external_id=event.external_id,
            start_date=event.start_date,
            end_date=event.end_date,
            price=0.0,
            number_of_travelers=1,
            kind=kind,
        )

    def map_events(self, events: List[CalendarEvent]) -> List[Reservation]:
        reservations = []
        for event in events:
            reservation = self.map_event(event)
            if reservation is not None:
                reservations.append(reservation)
        return reservations


class AirbnbPlatform(CalendarPlatform):
    """Airbnb calendar support."""

    platform = Platform.AIRBNB

    def __init__(self):
        self.parser = AirbnbCalendarParser()
        self.mapper = AirbnbReservationMapper()

    def parse(self, feed_text: str) -> List[CalendarEvent]:
        return self.parser.parse(feed_text)

    def map(self, events: List[CalendarEvent]) -> List[Reservation]:
        return self.mapper.map_events(events)

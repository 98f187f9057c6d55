"""
Shared fixtures for the test suite.
"""
import itertools
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from src.utils.models import (
    CalendarSource, EmailMessage, NotificationEvent, Platform, Reservation
)


class InMemoryStore:
    """Dict-backed stand-in for SupabaseStore with the same method set."""

    def __init__(self):
        self.reservations: Dict[str, Reservation] = {}
        self.events: Dict[str, NotificationEvent] = {}
        self.sources: Dict[str, CalendarSource] = {}
        self._event_ids = itertools.count(1)

    # Reservations
    def find_reservation_by_external_id(self, external_id: str) -> Optional[Reservation]:
        reservation = self.reservations.get(external_id)
        return replace(reservation) if reservation else None

    def create_reservation(self, reservation: Reservation) -> Reservation:
        self.reservations.setdefault(reservation.external_id, replace(reservation))
        return reservation

    def update_reservation(self, internal_id: str, changes: Dict[str, Any]) -> None:
        for external_id, reservation in self.reservations.items():
            if reservation.internal_id == internal_id:
                self.reservations[external_id] = replace(reservation, **changes)
                return

    def list_reservations(self) -> List[Reservation]:
        return list(self.reservations.values())

    # Calendar sources
    def add_source(self, source: CalendarSource) -> CalendarSource:
        self.sources[source.id] = source
        return source

    def list_active_calendar_sources(self) -> List[CalendarSource]:
        return [source for source in self.sources.values() if source.is_active]

    def get_calendar_source(self, source_id: str) -> Optional[CalendarSource]:
        return self.sources.get(source_id)

    # Notification events
    def create_event(self, event: NotificationEvent) -> NotificationEvent:
        event.id = str(next(self._event_ids))
        self.events[event.id] = replace(event)
        return event

    def find_events_by_booking_id(self, booking_id: str) -> List[NotificationEvent]:
        return [event for event in self.events.values() if event.booking_id == booking_id]

    def find_unconsumed_events(self) -> List[NotificationEvent]:
        return [replace(event) for event in self.events.values() if not event.consumed]

    def mark_event_consumed(self, event_id: str) -> None:
        self.events[event_id].consumed = True


AIRBNB_FEED = """BEGIN:VCALENDAR
PRODID:-//Airbnb Inc//Hosting Calendar 1.0//EN
CALSCALE:GREGORIAN
VERSION:2.0
BEGIN:VEVENT
DTEND;VALUE=DATE:20251222
DTSTART;VALUE=DATE:20251221
UID:1418fb94e984-0f5e1c0e9c9d1f4c@airbnb.com
DESCRIPTION:Reservation URL: https://www.airbnb.com/hosting/reservations/details/HMPSS2HE58\\nPhone Number (Last 4 Digits): 4821
SUMMARY:Reserved
DTSTAMP:20251201T120000Z
END:VEVENT
BEGIN:VEVENT
DTEND;VALUE=DATE:20260105
DTSTART;VALUE=DATE:20260102
UID:abc123@airbnb.com
SUMMARY:Airbnb (Not available)
DTSTAMP:20251201T120000Z
END:VEVENT
END:VCALENDAR
"""


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def airbnb_feed():
    return AIRBNB_FEED


@pytest.fixture
def calendar_source():
    return CalendarSource(
        id="source-1",
        url="https://www.airbnb.com/calendar/ical/12345.ics?s=secret",
        platform=Platform.AIRBNB,
        name="Sea view flat",
    )


@pytest.fixture
def sample_reservation():
    return Reservation(
        internal_id="11111111-2222-3333-4444-555555555555",
        external_id="HMPSS2HE58",
        start_date=datetime(2025, 12, 21, tzinfo=timezone.utc),
        end_date=datetime(2025, 12, 22, tzinfo=timezone.utc),
        calendar_source_id="source-1",
    )


@pytest.fixture
def make_email():
    """Factory for decoded notification emails."""
    def _make(uid="101", subject="", body="", html="", raw_body="", sender="automated@airbnb.com",
              received_at=None) -> EmailMessage:
        return EmailMessage(
            uid=uid,
            subject=subject,
            sender=sender,
            received_at=received_at or datetime(2025, 12, 1, 9, 30, tzinfo=timezone.utc),
            body=body,
            html=html,
            raw_body=raw_body,
        )
    return _make

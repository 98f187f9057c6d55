"""
Supabase-backed store for reservations, notification events and calendar sources.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from supabase import create_client

from ..utils.errors import StoreError
from ..utils.models import CalendarSource, NotificationEvent, Reservation
from ..utils.logger import get_logger
from config.settings import supabase_config, app_config


class SupabaseStore:
    """
    Keyed store used by both synchronization flows.

    Every write is a single-row statement addressed by id, so a multi-field
    update is applied atomically by the database.
    """

    def __init__(self):
        self.logger = get_logger("supabase_store")
        self.client = None
        self.initialized = False

    def initialize(self) -> bool:
        """Initialize Supabase client from environment configuration."""
        if self.initialized:
            return True

        auth_key = supabase_config.get_auth_key()
        if not supabase_config.url or not auth_key:
            self.logger.error("Supabase configuration missing", url=bool(supabase_config.url))
            return False

        try:
            self.client = create_client(supabase_config.url, auth_key)
        except Exception as e:
            self.logger.error("Failed to initialize Supabase client", error=str(e))
            self.initialized = False
            return False

        self.initialized = True
        self.logger.info("Supabase client initialized successfully", url=supabase_config.url)
        return True

    def _table(self, name: str):
        if not self.initialized and not self.initialize():
            raise StoreError("Supabase client not initialized")
        return self.client.table(name)

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively convert datetimes and enums to JSON-serializable values."""

        def serialize_value(value):
            if isinstance(value, datetime):
                return value.isoformat()
            if isinstance(value, Enum):
                return value.value
            if isinstance(value, dict):
                return {k: serialize_value(v) for k, v in value.items()}
            if isinstance(value, list):
                return [serialize_value(v) for v in value]
            return value

        return {k: serialize_value(v) for k, v in payload.items()}

    def _execute(self, query, action: str, **context):
        try:
            return query.execute()
        except Exception as e:
            self.logger.error(f"Error during {action}", error=str(e), **context)
            raise StoreError(f"Error during {action}: {e}") from e

    @staticmethod
    def _rows(res) -> List[Dict[str, Any]]:
        return getattr(res, "data", None) or []

    # Reservations
    def find_reservation_by_external_id(self, external_id: str) -> Optional[Reservation]:
        res = self._execute(
            self._table(app_config.reservations_table).select("*").eq("external_id", external_id).limit(1),
            "reservation lookup",
            external_id=external_id,
        )
        rows = self._rows(res)
        return Reservation.from_dict(rows[0]) if rows else None

    def create_reservation(self, reservation: Reservation) -> Reservation:
        """Insert a reservation; an existing row with the same external id is kept."""
        now = datetime.now(timezone.utc)
        reservation.created_at = reservation.created_at or now
        reservation.updated_at = now
        payload = self._serialize_payload(reservation.to_dict())

        self._execute(
            self._table(app_config.reservations_table).upsert(payload, on_conflict="external_id", ignore_duplicates=True),
            "reservation create",
            external_id=reservation.external_id,
        )
        self.logger.debug("Reservation stored", external_id=reservation.external_id)
        return reservation

    def update_reservation(self, internal_id: str, changes: Dict[str, Any]) -> None:
        """Apply a partial update to one reservation."""
        payload = dict(changes)
        payload["updated_at"] = datetime.now(timezone.utc)
        self._execute(
            self._table(app_config.reservations_table)
            .update(self._serialize_payload(payload))
            .eq("internal_id", internal_id),
            "reservation update",
            internal_id=internal_id,
        )

    def list_reservations(self) -> List[Reservation]:
        res = self._execute(
            self._table(app_config.reservations_table).select("*").order("start_date", desc=True),
            "reservation listing",
        )
        return [Reservation.from_dict(row) for row in self._rows(res)]

    # Calendar sources
    def list_active_calendar_sources(self) -> List[CalendarSource]:
        res = self._execute(
            self._table(app_config.calendar_sources_table).select("*").eq("is_active", True),
            "calendar source listing",
        )
        sources = []
        for row in self._rows(res):
            try:
                sources.append(CalendarSource.from_dict(row))
            except (KeyError, TypeError, AttributeError) as e:
                self.logger.warning("Skipping malformed calendar source", source_id=row.get("id"), error=str(e))
        return sources

    def get_calendar_source(self, source_id: str) -> Optional[CalendarSource]:
        res = self._execute(
            self._table(app_config.calendar_sources_table).select("*").eq("id", source_id).limit(1),
            "calendar source lookup",
            source_id=source_id,
        )
        rows = self._rows(res)
        return CalendarSource.from_dict(rows[0]) if rows else None

    # Notification events
    def create_event(self, event: NotificationEvent) -> NotificationEvent:
        payload = event.to_dict()
        payload.pop("id", None)
        res = self._execute(
            self._table(app_config.events_table).insert(payload),
            "event create",
            booking_id=event.booking_id,
        )
        rows = self._rows(res)
        if rows and rows[0].get("id") is not None:
            event.id = str(rows[0]["id"])
        return event

    def find_events_by_booking_id(self, booking_id: str) -> List[NotificationEvent]:
        res = self._execute(
            self._table(app_config.events_table).select("*").eq("booking_id", booking_id),
            "event lookup",
            booking_id=booking_id,
        )
        return [NotificationEvent.from_dict(row) for row in self._rows(res)]

    def find_unconsumed_events(self) -> List[NotificationEvent]:
        res = self._execute(
            self._table(app_config.events_table).select("*").eq("consumed", False).order("received_at"),
            "unconsumed event listing",
        )
        return [NotificationEvent.from_dict(row) for row in self._rows(res)]

    def mark_event_consumed(self, event_id: str) -> None:
        self._execute(
            self._table(app_config.events_table).update({"consumed": True}).eq("id", event_id),
            "event consume",
            event_id=event_id,
        )

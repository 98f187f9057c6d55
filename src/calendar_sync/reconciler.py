"""
Reconciliation of freshly mapped calendar bookings against stored reservations.
"""
import uuid
from dataclasses import replace
from typing import Any, Dict, List

from ..utils.logger import get_logger
from ..utils.models import (
    CalendarSyncResult, PriceSource, Reservation, ReservationStatus
)


def reservation_changes(existing: Reservation, incoming: Reservation, source_id: str) -> Dict[str, Any]:
    """
    Compute the fields a calendar pass would change on a stored reservation.

    Dates are compared as instants. Price is left alone once a notification
    has set it, since notification amounts are authoritative.

    Args:
        existing: Stored reservation
        incoming: Reservation mapped from the feed
        source_id: Calendar source the feed belongs to

    Returns:
        Mapping of field name to new value, empty when nothing differs
    """
    changes: Dict[str, Any] = {}
    if existing.start_date != incoming.start_date:
        changes['start_date'] = incoming.start_date
    if existing.end_date != incoming.end_date:
        changes['end_date'] = incoming.end_date
    if existing.price_source == PriceSource.CALENDAR and existing.price != incoming.price:
        changes['price'] = incoming.price
    if existing.number_of_travelers != incoming.number_of_travelers:
        changes['number_of_travelers'] = incoming.number_of_travelers
    if existing.kind != incoming.kind:
        changes['kind'] = incoming.kind
    if existing.calendar_source_id != source_id:
        changes['calendar_source_id'] = source_id
    return changes


class CalendarReconciler:
    """Creates or updates reservations from one calendar source."""

    def __init__(self, store):
        self.logger = get_logger("calendar_reconciler")
        self.store = store

    def reconcile(self, bookings: List[Reservation], source_id: str, dry_run: bool = False) -> CalendarSyncResult:
        """
        Apply mapped bookings to the reservation store.

        Bookings missing from the feed are never removed.

        Args:
            bookings: Reservations mapped from the feed
            source_id: Calendar source id attached to created reservations
            dry_run: Count what would change without writing

        Returns:
            Created/updated/unchanged/error counts
        """
        result = CalendarSyncResult()

        for booking in bookings:
            try:
                existing = self.store.find_reservation_by_external_id(booking.external_id)
                if existing is None:
                    self._create(booking, source_id, dry_run)
                    result.created += 1
                    continue

                changes = reservation_changes(existing, booking, source_id)
                if not changes:
                    result.unchanged += 1
                    continue

                replace(existing, **changes).validate()
                if not dry_run:
                    self.store.update_reservation(existing.internal_id, changes)
                result.updated += 1
                self.logger.info(
                    "Reservation updated from calendar",
                    external_id=booking.external_id,
                    fields=sorted(changes),
                    dry_run=dry_run,
                )
            except Exception as e:
                result.errors += 1
                self.logger.error(
                    "Error reconciling reservation",
                    external_id=booking.external_id,
                    error=str(e),
                    exc_info=True,
                )

        return result

    def _create(self, booking: Reservation, source_id: str, dry_run: bool):
        reservation = replace(
            booking,
            internal_id=str(uuid.uuid4()),
            calendar_source_id=source_id,
            status=ReservationStatus.CONFIRMED,
            price_source=PriceSource.CALENDAR,
        )
        reservation.validate()
        if not dry_run:
            self.store.create_reservation(reservation)
        self.logger.info(
            "Reservation created from calendar",
            external_id=reservation.external_id,
            kind=reservation.kind.value,
            dry_run=dry_run,
        )

"""
Applies stored notification events to reservations.
"""
from typing import Any, Dict

from ..utils.logger import get_logger
from ..utils.models import (
    EventProcessingResult, NotificationEvent, NotificationKind, PriceSource,
    ReservationStatus
)

STATUS_BY_KIND = {
    NotificationKind.PAYOUT: ReservationStatus.PAID,
    NotificationKind.CREATION: ReservationStatus.CONFIRMED,
    NotificationKind.CANCELLATION: ReservationStatus.CANCELED,
}


class EventProcessor:
    """Drives reservation status from unconsumed notification events."""

    def __init__(self, store):
        self.logger = get_logger("event_processor")
        self.store = store

    def process_events(self) -> EventProcessingResult:
        """
        Apply every unconsumed event, in any order.

        Returns:
            Processed/orphaned/error counts
        """
        self.logger.info("Starting event processing")
        result = EventProcessingResult()

        try:
            events = self.store.find_unconsumed_events()
        except Exception as e:
            self.logger.error("Could not load unconsumed events", error=str(e))
            result.errors += 1
            return result

        self.logger.info("Unconsumed events found", count=len(events))

        for event in events:
            try:
                if self.process_event(event):
                    result.processed += 1
                else:
                    result.orphaned += 1
            except Exception as e:
                result.errors += 1
                self.logger.error(
                    "Error processing event",
                    event_id=event.id,
                    booking_id=event.booking_id,
                    error=str(e),
                    exc_info=True,
                )

        self.logger.info("Event processing finished", **result.to_dict())
        return result

    def process_event(self, event: NotificationEvent) -> bool:
        """
        Apply one event and mark it consumed.

        Returns:
            False when no reservation matches the booking id
        """
        reservation = self.store.find_reservation_by_external_id(event.booking_id)
        if reservation is None:
            # Orphans stay stored for audit but are never retried
            self.logger.warning(
                "Reservation not found for event, marking it consumed",
                event_id=event.id,
                booking_id=event.booking_id,
                kind=event.kind.value,
            )
            self.store.mark_event_consumed(event.id)
            return False

        changes: Dict[str, Any] = {'status': STATUS_BY_KIND[event.kind]}
        if event.price is not None:
            changes['price'] = event.price
            changes['price_source'] = PriceSource.NOTIFICATION

        self.store.update_reservation(reservation.internal_id, changes)
        self.store.mark_event_consumed(event.id)

        self.logger.info(
            "Reservation updated from event",
            external_id=reservation.external_id,
            status=changes['status'].value,
            price=event.price if event.price is not None else reservation.price,
        )
        return True

"""
Turns polled notification emails into stored, deduplicated events.
"""
from datetime import datetime
from typing import Callable, Iterable, Optional

from ..email_reader.mailbox_client import MailboxClient
from ..notification_parser.parser import NotificationParser
from ..utils.errors import MailboxConnectionError
from ..utils.logger import get_logger
from ..utils.models import (
    EmailSyncResult, NotificationEvent, NotificationKind, to_utc
)


def is_duplicate_event(
    existing: Iterable[NotificationEvent],
    kind: NotificationKind,
    received_at: datetime,
) -> bool:
    """Whether an event of the same kind was received on the same UTC day."""
    day = to_utc(received_at).date()
    return any(
        event.kind == kind and to_utc(event.received_at).date() == day
        for event in existing
    )


class EmailSyncService:
    """Polls the mailbox, parses notifications and stores new events."""

    def __init__(
        self,
        store,
        parser: Optional[NotificationParser] = None,
        mailbox_factory: Callable[[], MailboxClient] = MailboxClient,
    ):
        self.logger = get_logger("email_sync")
        self.store = store
        self.parser = parser or NotificationParser()
        self.mailbox_factory = mailbox_factory

    def sync_emails(self) -> EmailSyncResult:
        """
        Run one email synchronization.

        Redelivered messages produce events already stored for the same
        booking, kind and day; those are dropped here.

        Returns:
            Fetched/created/ignored/duplicate/error counts
        """
        self.logger.info("Starting email synchronization")
        result = EmailSyncResult()

        try:
            with self.mailbox_factory() as mailbox:
                poll = mailbox.poll()
        except MailboxConnectionError as e:
            self.logger.error("Email synchronization aborted, mailbox unavailable", error=str(e))
            result.errors += 1
            return result
        except Exception as e:
            self.logger.error("Email synchronization aborted", error=str(e), exc_info=True)
            result.errors += 1
            return result

        result.fetched = len(poll.messages)

        for message in poll.messages:
            try:
                parsed = self.parser.parse(message)
                if parsed is None:
                    result.ignored += 1
                    continue

                existing = self.store.find_events_by_booking_id(parsed.booking_id)
                if is_duplicate_event(existing, parsed.kind, message.received_at):
                    result.duplicates += 1
                    self.logger.debug(
                        "Duplicate event ignored",
                        booking_id=parsed.booking_id,
                        kind=parsed.kind.value,
                    )
                    continue

                self.store.create_event(NotificationEvent(
                    booking_id=parsed.booking_id,
                    received_at=message.received_at,
                    kind=parsed.kind,
                    price=parsed.price,
                ))
                result.created += 1
                self.logger.info(
                    "Event stored",
                    booking_id=parsed.booking_id,
                    kind=parsed.kind.value,
                    price=parsed.price,
                )
            except Exception as e:
                result.errors += 1
                self.logger.error(
                    "Error processing email",
                    uid=message.uid,
                    subject=message.subject,
                    error=str(e),
                    exc_info=True,
                )

        self.logger.info("Email synchronization finished", **result.to_dict())
        return result

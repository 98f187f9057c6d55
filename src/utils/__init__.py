"""
Utility modules for the rental reservation reconciliation pipeline.
"""

from .models import (
    Platform, ReservationKind, ReservationStatus, NotificationKind, PriceSource,
    CalendarSource, CalendarEvent, Reservation, EmailMessage, ParsedNotification,
    NotificationEvent, MailboxPollResult, CalendarSyncResult, EmailSyncResult,
    EventProcessingResult
)
from .logger import setup_logger, get_logger, RunLogger

__all__ = [
    'Platform', 'ReservationKind', 'ReservationStatus', 'NotificationKind',
    'PriceSource', 'CalendarSource', 'CalendarEvent', 'Reservation',
    'EmailMessage', 'ParsedNotification', 'NotificationEvent',
    'MailboxPollResult', 'CalendarSyncResult', 'EmailSyncResult',
    'EventProcessingResult', 'setup_logger', 'get_logger', 'RunLogger'
]

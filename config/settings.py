"""
Configuration settings for the rental reservation reconciliation pipeline.
"""
import os
from typing import Dict, List
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class MailboxConfig:
    """IMAP mailbox configuration settings."""
    email: str = os.getenv("EMAIL_USER", "")
    password: str = os.getenv("EMAIL_PASSWORD", "")
    imap_server: str = os.getenv("EMAIL_HOST", "imap.gmail.com")
    imap_port: int = int(os.getenv("EMAIL_PORT", "993"))
    folder: str = os.getenv("EMAIL_FOLDER", "INBOX")
    timeout: float = float(os.getenv("EMAIL_TIMEOUT", "30"))

    # Notifications are forwarded from a personal mailbox, so the platform
    # domain is looked for in the sender and the body alike.
    relevance_markers: Dict[str, str] = None

    def __post_init__(self):
        if self.relevance_markers is None:
            self.relevance_markers = {
                "airbnb": "@airbnb.com",
            }


@dataclass
class SupabaseConfig:
    """Supabase configuration settings."""
    url: str = os.getenv("SUPABASE_URL", "")
    anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    def get_auth_key(self) -> str:
        """Prefer service role key for server-side operations when available."""
        return self.service_role_key or self.anon_key


@dataclass
class AppConfig:
    """Application configuration settings."""
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    max_emails_per_run: int = int(os.getenv("MAX_EMAILS_PER_RUN", "100"))
    calendar_fetch_timeout: float = float(os.getenv("CALENDAR_FETCH_TIMEOUT", "10"))

    # Job schedules
    calendar_sync_interval_minutes: int = int(os.getenv("CALENDAR_SYNC_INTERVAL_MINUTES", "60"))
    email_sync_interval_minutes: int = int(os.getenv("EMAIL_SYNC_INTERVAL_MINUTES", "360"))
    event_processor_interval_minutes: int = int(os.getenv("EVENT_PROCESSOR_INTERVAL_MINUTES", "5"))

    # Data storage table names
    reservations_table: str = "reservations"
    events_table: str = "notification_events"
    calendar_sources_table: str = "calendar_sources"

    # Calendar feed markers per platform
    calendar_markers: Dict[str, Dict[str, str]] = None

    # Notification subject markers per event kind
    subject_markers: Dict[str, List[str]] = None

    def __post_init__(self):
        if self.calendar_markers is None:
            self.calendar_markers = {
                "airbnb": {
                    "reserved": "Reserved",
                    "not_available": "Airbnb (Not available)",
                },
            }
        if self.subject_markers is None:
            self.subject_markers = {
                "payout": ["Nous avons envoyé un versement", "sent a payout"],
                "creation": ["Réservation confirmée", "Reservation confirmed"],
                "cancellation": ["Annulation de la réservation", "cancellation"],
            }


mailbox_config = MailboxConfig()
supabase_config = SupabaseConfig()
app_config = AppConfig()

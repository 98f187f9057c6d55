"""
IMAP client polling the mailbox that receives forwarded platform notifications.
"""
import imaplib
import email
import email.utils
from email.header import decode_header
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..utils.errors import MailboxConnectionError, MessageDecodeError
from ..utils.models import EmailMessage, MailboxPollResult
from ..utils.logger import get_logger
from config.settings import mailbox_config, app_config


class MailboxClient:
    """IMAP client that reads unread notification emails."""

    def __init__(
        self,
        relevance_marker: Optional[str] = None,
        limit: Optional[int] = None,
    ):
        self.logger = get_logger("mailbox_client")
        self.connection: Optional[imaplib.IMAP4_SSL] = None
        self.connected = False
        self.relevance_marker = (relevance_marker or mailbox_config.relevance_markers["airbnb"]).lower()
        self.limit = limit if limit is not None else app_config.max_emails_per_run

    def connect(self) -> bool:
        """
        Connect, log in and open the configured folder read-write.

        Raises:
            MailboxConnectionError: if any step fails
        """
        if not mailbox_config.email or not mailbox_config.password:
            raise MailboxConnectionError("Mailbox configuration missing: EMAIL_USER and EMAIL_PASSWORD are required")

        try:
            self.logger.info(
                "Connecting to IMAP server",
                server=mailbox_config.imap_server,
                port=mailbox_config.imap_port,
            )
            self.connection = imaplib.IMAP4_SSL(
                mailbox_config.imap_server,
                mailbox_config.imap_port,
                timeout=mailbox_config.timeout,
            )
            self.connection.login(mailbox_config.email, mailbox_config.password)
            status, _ = self.connection.select(mailbox_config.folder)
            if status != "OK":
                raise MailboxConnectionError(f"Could not open folder {mailbox_config.folder}: {status}")
        except MailboxConnectionError:
            self.disconnect()
            raise
        except Exception as e:
            self.logger.error("Failed to connect to mailbox", error=str(e))
            self.disconnect()
            raise MailboxConnectionError(f"Failed to connect to mailbox: {e}") from e

        self.connected = True
        self.logger.info("Successfully connected to mailbox", folder=mailbox_config.folder)
        return True

    def disconnect(self):
        """Disconnect from the IMAP server."""
        if self.connection is None:
            return
        try:
            self.connection.logout()
            self.logger.info("Disconnected from mailbox")
        except Exception as e:
            self.logger.error("Error disconnecting from mailbox", error=str(e))
        finally:
            self.connection = None
            self.connected = False

    def search_unread(self) -> List[str]:
        """Return the UIDs of unread messages, capped at the configured limit."""
        self._require_connection()
        status, data = self.connection.uid("SEARCH", None, "UNSEEN")
        if status != "OK":
            raise MailboxConnectionError(f"Unread search failed: {status}")

        uids = [uid.decode() for uid in (data[0] or b"").split()]
        if self.limit:
            uids = uids[:self.limit]

        self.logger.info("Unread emails found", count=len(uids))
        return uids

    def fetch_message(self, uid: str) -> EmailMessage:
        """
        Fetch and decode one message without setting its \\Seen flag.

        Raises:
            MessageDecodeError: if the body cannot be fetched or decoded
        """
        self._require_connection()
        try:
            status, msg_data = self.connection.uid("FETCH", uid, "(BODY.PEEK[])")
        except imaplib.IMAP4.error as e:
            raise MessageDecodeError(f"Fetch failed: {e}", uid=uid) from e

        raw_email = self._raw_bytes(msg_data) if status == "OK" else None
        if not raw_email:
            raise MessageDecodeError(f"Could not fetch message body (status {status})", uid=uid)

        try:
            email_message = email.message_from_bytes(raw_email)
            subject = self._decode_header(email_message["subject"])
            sender = self._decode_header(email_message["from"])
            body, html, raw_body = self._extract_body(email_message)
        except Exception as e:
            raise MessageDecodeError(f"Could not decode message: {e}", uid=uid) from e

        return EmailMessage(
            uid=uid,
            subject=subject,
            sender=sender,
            received_at=self._parse_date(email_message["date"]),
            body=body,
            html=html,
            raw_body=raw_body,
        )

    def is_relevant(self, message: EmailMessage) -> bool:
        """Whether the sender or the body mentions the platform email domain."""
        return any(
            self.relevance_marker in (text or "").lower()
            for text in (message.sender, message.body, message.html)
        )

    def poll(self) -> MailboxPollResult:
        """
        Read every unread message and mark the handled ones as read.

        Messages that decode, relevant or not, are marked read. Messages
        whose decoding fails stay unread and are offered again next poll.

        Returns:
            Relevant messages plus the processed and failed UIDs
        """
        result = MailboxPollResult()

        for uid in self.search_unread():
            try:
                message = self.fetch_message(uid)
            except MessageDecodeError as e:
                result.failed_uids.append(uid)
                self.logger.warning("Email could not be decoded, leaving it unread", uid=uid, error=str(e))
                continue

            result.processed_uids.append(uid)
            if self.is_relevant(message):
                result.messages.append(message)
                self.logger.info("Platform email found", uid=uid, subject=message.subject)
            else:
                self.logger.debug("Email ignored, no platform marker", uid=uid)

        if result.processed_uids:
            self.mark_as_read(result.processed_uids)

        self.logger.info(
            "Mailbox polled",
            relevant=len(result.messages),
            processed=len(result.processed_uids),
            failed=len(result.failed_uids),
        )
        return result

    def mark_as_read(self, uids: List[str]) -> bool:
        """Set the \\Seen flag on the given UIDs."""
        self._require_connection()
        try:
            status, _ = self.connection.uid("STORE", ",".join(uids), "+FLAGS", "(\\Seen)")
            if status != "OK":
                self.logger.warning("Could not mark emails as read", uids=uids, status=status)
                return False
            self.logger.debug("Marked emails as read", count=len(uids))
            return True
        except Exception as e:
            self.logger.warning("Error marking emails as read", uids=uids, error=str(e))
            return False

    def _require_connection(self):
        if not self.connected or self.connection is None:
            raise MailboxConnectionError("Not connected to mailbox")

    @staticmethod
    def _raw_bytes(msg_data) -> Optional[bytes]:
        for item in msg_data or []:
            if isinstance(item, tuple) and len(item) > 1 and isinstance(item[1], bytes):
                return item[1]
        return None

    def _parse_date(self, date_str: Optional[str]) -> datetime:
        try:
            date = email.utils.parsedate_to_datetime(date_str)
        except (TypeError, ValueError):
            return datetime.now(timezone.utc)
        if date.tzinfo is None:
            return date.replace(tzinfo=timezone.utc)
        return date.astimezone(timezone.utc)

    def _decode_header(self, header: Optional[str]) -> str:
        """Decode email header safely."""
        if not header:
            return ""

        try:
            decoded_parts = decode_header(header)
            decoded_string = ""
            for part, encoding in decoded_parts:
                if isinstance(part, bytes):
                    if encoding:
                        decoded_string += part.decode(encoding)
                    else:
                        decoded_string += part.decode("utf-8", errors="ignore")
                else:
                    decoded_string += str(part)
            return decoded_string
        except Exception:
            return str(header)

    def _extract_body(self, email_message) -> Tuple[str, str, str]:
        """
        Extract text, html and undecoded text bodies.

        Decoding is strict: a part whose bytes do not match its charset
        makes the whole message fail.
        """
        body_text = ""
        body_html = ""
        raw_text = ""

        parts = email_message.walk() if email_message.is_multipart() else [email_message]
        for part in parts:
            if part.is_multipart():
                continue
            if "attachment" in str(part.get("Content-Disposition")):
                continue

            content_type = part.get_content_type()
            if not content_type.startswith("text/"):
                continue

            payload = part.get_payload(decode=True) or b""
            body = payload.decode(part.get_content_charset() or "utf-8")

            if content_type == "text/html":
                body_html += body
            else:
                body_text += body
                raw_text += str(part.get_payload(decode=False))

        return body_text, body_html, raw_text

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

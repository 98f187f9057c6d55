"""
Parser extracting reservation events from forwarded platform notification emails.
"""
import quopri
import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from ..utils.models import EmailMessage, NotificationKind, ParsedNotification
from ..utils.logger import get_logger
from config.settings import app_config

# Amounts use a comma decimal separator and may contain grouping spaces
AMOUNT = r'(\d[\d\s.,]*?)'
# Euro sign, decoded or still quoted-printable, optionally after a (no-break) space
EURO = r'(?:\s|=C2=A0|=E2=80=AF)*(?:€|=E2=?=?82=AC)'


class NotificationParser:
    """Parser for payout, confirmation and cancellation notification emails."""

    BOOKING_ID_PATTERN = re.compile(r'\b([A-Z0-9]{10})\b')

    def __init__(self, subject_markers: Optional[Dict[str, List[str]]] = None):
        self.logger = get_logger("notification_parser")
        self.subject_markers = subject_markers or app_config.subject_markers

        self.patterns = {
            NotificationKind.PAYOUT: [
                re.compile(r'(?:versement\s+de|payout\s+of)\s+' + AMOUNT + EURO, re.IGNORECASE),
            ],
            NotificationKind.CREATION: [
                re.compile(r'(?:VOUS\s+GAGNEZ|YOU\s+EARN)\s+' + AMOUNT + EURO, re.IGNORECASE),
            ],
            NotificationKind.CANCELLATION: [
                re.compile(
                    r'(?:Son\s+montant\s+est\s+maintenant\s+de|amount\s+is\s+now)\s+' + AMOUNT + EURO,
                    re.IGNORECASE,
                ),
            ],
        }
        self.full_refund_patterns = [
            re.compile(
                r"remboursement\s+total\s+a\s+(?:été|=C3=A9t=C3=A9)\s+envoy(?:é|=C3=A9)",
                re.IGNORECASE,
            ),
            re.compile(r'full\s+refund\s+(?:has\s+been\s+|was\s+)?sent', re.IGNORECASE),
        ]

    def parse(self, message: EmailMessage) -> Optional[ParsedNotification]:
        """
        Extract a notification event from an email.

        Args:
            message: Decoded email

        Returns:
            The parsed event, or None when the email is not classifiable
        """
        subject = message.subject or ""
        texts = self._candidate_texts(message)

        booking_id = self._find_booking_id(texts)
        if booking_id is None:
            self.logger.debug("No booking id found, email ignored", uid=message.uid, subject=subject)
            return None

        kind = self.classify(subject)
        if kind is None:
            self.logger.debug("Unrecognized subject, email ignored", uid=message.uid, subject=subject)
            return None

        if kind == NotificationKind.PAYOUT:
            price = self._extract_amount(kind, [subject])
        elif kind == NotificationKind.CANCELLATION and self._is_full_refund(texts):
            price = 0.0
        else:
            price = self._extract_amount(kind, texts)

        self.logger.info(
            "Notification parsed",
            uid=message.uid,
            booking_id=booking_id,
            kind=kind.value,
            price=price,
        )
        return ParsedNotification(booking_id=booking_id, kind=kind, price=price)

    def classify(self, subject: str) -> Optional[NotificationKind]:
        """Route a subject to an event kind by its markers."""
        folded = subject.casefold()
        for kind in (NotificationKind.PAYOUT, NotificationKind.CREATION, NotificationKind.CANCELLATION):
            markers = self.subject_markers.get(kind.value, [])
            if any(marker.casefold() in folded for marker in markers):
                return kind
        return None

    def _candidate_texts(self, message: EmailMessage) -> List[str]:
        """Body variants to search, since upstream decoding is not reliable."""
        texts = [message.body, message.raw_body]
        texts.extend(self._decode_quoted_printable(text) for text in (message.raw_body, message.body))
        if message.html:
            texts.append(BeautifulSoup(message.html, 'html.parser').get_text(" "))

        candidates = []
        for text in texts:
            if text and text not in candidates:
                candidates.append(text)
        return candidates

    @staticmethod
    def _decode_quoted_printable(text: str) -> str:
        if not text or "=" not in text:
            return ""
        decoded = quopri.decodestring(text.encode("utf-8", errors="replace"))
        return decoded.decode("utf-8", errors="replace")

    def _find_booking_id(self, texts: List[str]) -> Optional[str]:
        for text in texts:
            match = self.BOOKING_ID_PATTERN.search(text)
            if match:
                return match.group(1)
        return None

    def _is_full_refund(self, texts: List[str]) -> bool:
        return any(pattern.search(text) for text in texts for pattern in self.full_refund_patterns)

    def _extract_amount(self, kind: NotificationKind, texts: List[str]) -> Optional[float]:
        for text in texts:
            for pattern in self.patterns[kind]:
                match = pattern.search(text)
                if match:
                    amount = parse_amount(match.group(1))
                    if amount is not None:
                        return amount
        return None


def parse_amount(value: str) -> Optional[float]:
    """
    Parse an amount written with either a comma or a dot decimal separator.

    The last separator present is the decimal one; the other groups thousands.

    Returns:
        The amount, or None when it cannot be read
    """
    cleaned = re.sub(r'\s', '', value or "")
    if cleaned.rfind(',') > cleaned.rfind('.'):
        cleaned = cleaned.replace('.', '').replace(',', '.')
    else:
        cleaned = cleaned.replace(',', '')
    try:
        return float(cleaned)
    except ValueError:
        return None

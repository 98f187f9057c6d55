"""
Per-platform calendar parsing and mapping registry.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..utils.models import CalendarEvent, Platform, Reservation


class CalendarPlatform(ABC):
    """Parses a platform's feed and maps its entries to reservations."""

    platform: Platform

    @abstractmethod
    def parse(self, feed_text: str) -> List[CalendarEvent]:
        """Turn raw feed text into calendar events."""

    @abstractmethod
    def map(self, events: List[CalendarEvent]) -> List[Reservation]:
        """Keep booking events and map them to reservations."""


_registry: Dict[Platform, CalendarPlatform] = {}


def register_platform(implementation: CalendarPlatform) -> CalendarPlatform:
    """Register (or replace) the implementation for its platform."""
    _registry[implementation.platform] = implementation
    return implementation


def get_platform(platform: Platform) -> Optional[CalendarPlatform]:
    """Return the registered implementation, or None if unsupported."""
    return _registry.get(platform)
"""
Synchronization of every active calendar source into the reservation store.
"""
from typing import List, Optional

from .fetcher import HttpCalendarFetcher
from .platforms import get_platform
from .reconciler import CalendarReconciler
from ..utils.errors import PipelineError
from ..utils.logger import get_logger
from ..utils.models import CalendarSource, CalendarSyncResult, Platform, Reservation


class CalendarSyncService:
    """Runs fetch, parse, map and reconcile for each calendar source."""

    def __init__(self, store, fetcher: Optional[HttpCalendarFetcher] = None):
        self.logger = get_logger("calendar_sync")
        self.store = store
        self.fetcher = fetcher or HttpCalendarFetcher()
        self.reconciler = CalendarReconciler(store)

    def sync_all_calendars(self, dry_run: bool = False) -> CalendarSyncResult:
        """
        Synchronize all active calendar sources.

        A failing source is logged and counted as one error; the remaining
        sources are still processed.

        Returns:
            Aggregate counts over every source
        """
        self.logger.info("Starting calendar synchronization", dry_run=dry_run)
        total = CalendarSyncResult()

        try:
            sources = self.store.list_active_calendar_sources()
        except Exception as e:
            self.logger.error("Could not load calendar sources", error=str(e), exc_info=True)
            total.errors += 1
            return total

        self.logger.info("Active calendars to synchronize", count=len(sources))

        for source in sources:
            try:
                total.merge(self.sync_source(source, dry_run=dry_run))
            except Exception as e:
                total.errors += 1
                self.logger.error(
                    "Error synchronizing calendar",
                    source_id=source.id,
                    url=source.url,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=not isinstance(e, PipelineError),
                )

        self.logger.info("Calendar synchronization finished", **total.to_dict())
        return total

    def sync_calendar(self, source_id: str, dry_run: bool = False) -> CalendarSyncResult:
        """Synchronize a single calendar source by id, isolating its failures."""
        result = CalendarSyncResult()
        try:
            source = self.store.get_calendar_source(source_id)
            if source is None:
                raise PipelineError(f"Calendar source {source_id} not found")
            result = self.sync_source(source, dry_run=dry_run)
        except Exception as e:
            result.errors += 1
            self.logger.error(
                "Error synchronizing calendar",
                source_id=source_id,
                error=str(e),
                error_type=type(e).__name__,
            )
        return result

    def sync_source(self, source: CalendarSource, dry_run: bool = False) -> CalendarSyncResult:
        """
        Synchronize one source. Errors propagate to the caller.

        Args:
            source: Calendar source to synchronize
            dry_run: Count what would change without writing

        Returns:
            Counts for this source
        """
        implementation = get_platform(source.platform)
        if implementation is None:
            self.logger.warning("Unsupported calendar platform", platform=source.platform_name, source_id=source.id)
            return CalendarSyncResult()

        self.logger.debug("Synchronizing calendar", source_id=source.id, url=source.url)
        feed_text = self.fetcher.fetch(source.url)
        events = implementation.parse(feed_text)
        bookings = implementation.map(events)
        self.logger.debug("Bookings found in calendar", source_id=source.id, count=len(bookings))

        result = self.reconciler.reconcile(bookings, source.id, dry_run=dry_run)
        self.logger.info("Calendar synchronized", source_id=source.id, **result.to_dict())
        return result

    def preview(self, url: str, platform: Platform = Platform.AIRBNB) -> List[Reservation]:
        """Fetch, parse and map a feed without touching the store."""
        implementation = get_platform(platform)
        if implementation is None:
            raise PipelineError(f"Unsupported calendar platform: {platform.value}")
        return implementation.map(implementation.parse(self.fetcher.fetch(url)))

"""
Main orchestrator and CLI for the rental reservation reconciliation pipeline.
"""
import click
from typing import Any, Callable, Dict, List, Optional

from .calendar_sync.fetcher import HttpCalendarFetcher
from .calendar_sync.sync_service import CalendarSyncService
from .email_reader.mailbox_client import MailboxClient
from .events.email_sync import EmailSyncService
from .events.processor import EventProcessor
from .scheduler.jobs import JobRegistry
from .supabase_sync.supabase_client import SupabaseStore
from .utils.logger import setup_logger, RunLogger
from .utils.models import (
    CalendarSyncResult, EmailSyncResult, EventProcessingResult, Platform, Reservation
)
from config.settings import app_config

CALENDAR_SYNC_JOB = "calendar-sync"
EMAIL_SYNC_JOB = "email-sync"
EVENT_PROCESSOR_JOB = "event-processor"


class ReservationPipeline:
    """Wires both ingestion flows to the store and to the job table."""

    def __init__(
        self,
        store=None,
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        fetcher: Optional[HttpCalendarFetcher] = None,
        mailbox_factory: Callable[[], MailboxClient] = MailboxClient,
    ):
        self.logger = setup_logger(level=log_level, log_file=log_file)

        self.store = store if store is not None else SupabaseStore()
        self.calendar_sync = CalendarSyncService(self.store, fetcher)
        self.email_sync = EmailSyncService(self.store, mailbox_factory=mailbox_factory)
        self.event_processor = EventProcessor(self.store)

        self.jobs = JobRegistry()
        self.jobs.register(
            CALENDAR_SYNC_JOB,
            self.calendar_sync.sync_all_calendars,
            app_config.calendar_sync_interval_minutes,
        )
        self.jobs.register(
            EMAIL_SYNC_JOB,
            self.email_sync.sync_emails,
            app_config.email_sync_interval_minutes,
        )
        self.jobs.register(
            EVENT_PROCESSOR_JOB,
            self.event_processor.process_events,
            app_config.event_processor_interval_minutes,
        )

    def sync_all_calendars(self) -> Optional[CalendarSyncResult]:
        """Run the calendar synchronization now."""
        return self.jobs.run_now(CALENDAR_SYNC_JOB)

    def sync_emails(self) -> Optional[EmailSyncResult]:
        """Run the email synchronization now."""
        return self.jobs.run_now(EMAIL_SYNC_JOB)

    def process_events(self) -> Optional[EventProcessingResult]:
        """Run the event processor now."""
        return self.jobs.run_now(EVENT_PROCESSOR_JOB)

    def sync_calendar(self, source_id: str, dry_run: bool = False) -> CalendarSyncResult:
        """Synchronize one calendar source."""
        return self.calendar_sync.sync_calendar(source_id, dry_run=dry_run)

    def preview_calendar(self, url: str, platform: Platform = Platform.AIRBNB) -> List[Reservation]:
        """Show what a feed maps to without storing anything."""
        return self.calendar_sync.preview(url, platform)

    def run_scheduler(self, run_immediately: bool = False):
        """Block and run every job on its own timer."""
        self.jobs.run_forever(run_immediately=run_immediately)

    def job_status(self) -> List[Dict[str, Any]]:
        return self.jobs.status()


def _report(pipeline: ReservationPipeline, job_name: str, result) -> None:
    if result is None:
        click.echo(f"Error: {job_name} did not complete, see logs")
        click.get_current_context().exit(1)

    run_logger = RunLogger(pipeline.logger, job_name)
    for counter, value in result.to_dict().items():
        run_logger.increment(counter, value)
    run_logger.print_summary()


def _pipeline(ctx: click.Context) -> ReservationPipeline:
    options = ctx.obj
    if 'pipeline' not in options:
        options['pipeline'] = ReservationPipeline(
            log_level=options['log_level'],
            log_file=options['log_file'],
        )
    return options['pipeline']


@click.group()
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              default=app_config.log_level.upper(), help='Logging level')
@click.option('--log-file', type=str,
              help='Log file path (optional)')
@click.pass_context
def cli(ctx, log_level, log_file):
    """
    Rental reservation reconciliation.

    Synchronizes listing calendars and booking notification emails into
    the reservation store.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(log_level=log_level, log_file=log_file)


@cli.command('sync-calendars')
@click.option('--source-id', type=str,
              help='Synchronize a single calendar source')
@click.option('--dry-run', is_flag=True,
              help='Report changes without writing them')
@click.pass_context
def sync_calendars(ctx, source_id, dry_run):
    """Synchronize active calendar feeds now."""
    pipeline = _pipeline(ctx)
    if source_id or dry_run:
        if source_id:
            result = pipeline.sync_calendar(source_id, dry_run=dry_run)
        else:
            result = pipeline.calendar_sync.sync_all_calendars(dry_run=True)
    else:
        result = pipeline.sync_all_calendars()
    _report(pipeline, CALENDAR_SYNC_JOB, result)
    if dry_run:
        click.echo("\n⚠️  DRY RUN MODE - No reservation was written")


@cli.command('sync-emails')
@click.pass_context
def sync_emails(ctx):
    """Poll the mailbox for notification emails now."""
    pipeline = _pipeline(ctx)
    _report(pipeline, EMAIL_SYNC_JOB, pipeline.sync_emails())


@cli.command('process-events')
@click.pass_context
def process_events(ctx):
    """Apply unconsumed notification events now."""
    pipeline = _pipeline(ctx)
    _report(pipeline, EVENT_PROCESSOR_JOB, pipeline.process_events())


@cli.command('preview-calendar')
@click.argument('url')
@click.option('--platform', type=click.Choice([p.value for p in Platform]),
              default=Platform.AIRBNB.value, help='Calendar platform')
@click.pass_context
def preview_calendar(ctx, url, platform):
    """Fetch a feed and print the reservations it maps to."""
    pipeline = _pipeline(ctx)
    try:
        reservations = pipeline.preview_calendar(url, Platform(platform))
    except Exception as e:
        click.echo(f"Error: {e}")
        ctx.exit(1)

    click.echo(f"{len(reservations)} reservation(s) found:")
    for reservation in reservations:
        click.echo(
            f"  {reservation.external_id}  {reservation.start_date:%Y-%m-%d} -> "
            f"{reservation.end_date:%Y-%m-%d}  {reservation.kind.value}"
        )


@cli.command('run-scheduler')
@click.option('--run-now', is_flag=True,
              help='Run every job once before waiting for the timers')
@click.pass_context
def run_scheduler(ctx, run_now):
    """Run all jobs on their schedules until interrupted."""
    pipeline = _pipeline(ctx)
    try:
        pipeline.run_scheduler(run_immediately=run_now)
    except KeyboardInterrupt:
        pipeline.jobs.stop()
        click.echo("Scheduler stopped")


@cli.command('jobs')
@click.pass_context
def list_jobs(ctx):
    """
    List registered jobs and their schedules.

    Run history lives in the process running the scheduler and is not shown here.
    """
    pipeline = _pipeline(ctx)
    for status in pipeline.job_status():
        click.echo(f"{status['name']}: every {status['interval_minutes']} minute(s)")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()

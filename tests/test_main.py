"""
Unit tests for the main orchestrator and CLI functionality.
"""
import pytest
from unittest.mock import Mock, MagicMock, patch
from datetime import datetime, timezone
from click.testing import CliRunner

from src.main import (
    ReservationPipeline, cli, CALENDAR_SYNC_JOB, EMAIL_SYNC_JOB, EVENT_PROCESSOR_JOB
)
from src.utils.models import (
    CalendarSyncResult, EmailSyncResult, EventProcessingResult, MailboxPollResult,
    Platform, Reservation, ReservationKind, ReservationStatus
)


class TestReservationPipeline:
    """Test cases for ReservationPipeline class."""

    @pytest.fixture
    def fetcher(self, airbnb_feed):
        fetcher = Mock()
        fetcher.fetch.return_value = airbnb_feed
        return fetcher

    @pytest.fixture
    def mailbox_factory(self, make_email):
        mailbox = MagicMock()
        mailbox.__enter__.return_value = mailbox
        mailbox.poll.return_value = MailboxPollResult(
            messages=[make_email(
                subject="Nous avons envoyé un versement de 124,74 € EUR",
                body="Réservation HMPSS2HE58",
            )],
            processed_uids=["101"],
        )
        return Mock(return_value=mailbox)

    @pytest.fixture
    def pipeline(self, store, calendar_source, fetcher, mailbox_factory):
        store.add_source(calendar_source)
        return ReservationPipeline(store=store, fetcher=fetcher, mailbox_factory=mailbox_factory)

    def test_initialization_registers_jobs(self, pipeline):
        names = [status['name'] for status in pipeline.job_status()]

        assert names == [CALENDAR_SYNC_JOB, EMAIL_SYNC_JOB, EVENT_PROCESSOR_JOB]
        intervals = {s['name']: s['interval_minutes'] for s in pipeline.job_status()}
        assert intervals == {CALENDAR_SYNC_JOB: 60, EMAIL_SYNC_JOB: 360, EVENT_PROCESSOR_JOB: 5}

    def test_end_to_end_run(self, pipeline, store):
        calendar_result = pipeline.sync_all_calendars()
        email_result = pipeline.sync_emails()
        processing_result = pipeline.process_events()

        assert calendar_result.created == 2
        assert email_result.created == 1
        assert processing_result.processed == 1
        reservation = store.reservations["HMPSS2HE58"]
        assert reservation.status == ReservationStatus.PAID
        assert reservation.price == 124.74

        pipeline.sync_all_calendars()
        assert store.reservations["HMPSS2HE58"].price == 124.74

    def test_manual_run_is_recorded(self, pipeline):
        pipeline.sync_all_calendars()

        status = {s['name']: s for s in pipeline.job_status()}[CALENDAR_SYNC_JOB]
        assert status['run_count'] == 1
        assert status['last_result']['created'] == 2

    def test_sync_single_calendar(self, pipeline):
        assert pipeline.sync_calendar("source-1").created == 2

    def test_preview_calendar(self, pipeline, store):
        reservations = pipeline.preview_calendar("https://example.com/cal.ics")

        assert len(reservations) == 2
        assert store.reservations == {}


class TestCLI:
    """Test cases for CLI functionality."""

    @pytest.fixture
    def runner(self):
        """Create CLI runner for testing."""
        return CliRunner()

    @pytest.fixture
    def mock_pipeline(self):
        with patch('src.main.ReservationPipeline') as pipeline_class:
            pipeline = Mock()
            pipeline_class.return_value = pipeline
            yield pipeline_class, pipeline

    def test_sync_calendars(self, mock_pipeline, runner):
        pipeline_class, pipeline = mock_pipeline
        pipeline.sync_all_calendars.return_value = CalendarSyncResult(created=3, unchanged=4)

        result = runner.invoke(cli, ['sync-calendars'])

        assert result.exit_code == 0
        assert "CALENDAR-SYNC SUMMARY" in result.output
        assert "Created: 3" in result.output
        assert "Unchanged: 4" in result.output
        pipeline_class.assert_called_once_with(log_level='INFO', log_file=None)

    def test_sync_single_calendar(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.sync_calendar.return_value = CalendarSyncResult(updated=1)

        result = runner.invoke(cli, ['sync-calendars', '--source-id', 'source-1'])

        assert result.exit_code == 0
        pipeline.sync_calendar.assert_called_once_with('source-1', dry_run=False)
        assert "Updated: 1" in result.output

    def test_sync_calendars_dry_run(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.calendar_sync.sync_all_calendars.return_value = CalendarSyncResult(created=2)

        result = runner.invoke(cli, ['sync-calendars', '--dry-run'])

        assert result.exit_code == 0
        pipeline.calendar_sync.sync_all_calendars.assert_called_once_with(dry_run=True)
        assert "DRY RUN MODE" in result.output

    def test_sync_emails(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.sync_emails.return_value = EmailSyncResult(fetched=2, created=1, duplicates=1)

        result = runner.invoke(cli, ['sync-emails'])

        assert result.exit_code == 0
        assert "Fetched: 2" in result.output
        assert "Duplicates: 1" in result.output

    def test_process_events(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.process_events.return_value = EventProcessingResult(processed=4, orphaned=1)

        result = runner.invoke(cli, ['process-events'])

        assert result.exit_code == 0
        assert "Processed: 4" in result.output
        assert "Orphaned: 1" in result.output

    def test_skipped_run_exits_with_error(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.process_events.return_value = None

        result = runner.invoke(cli, ['process-events'])

        assert result.exit_code == 1
        assert "did not complete" in result.output

    def test_preview_calendar(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.preview_calendar.return_value = [Reservation(
            external_id="HMPSS2HE58",
            start_date=datetime(2025, 12, 21, tzinfo=timezone.utc),
            end_date=datetime(2025, 12, 22, tzinfo=timezone.utc),
            kind=ReservationKind.RESERVATION,
        )]

        result = runner.invoke(cli, ['preview-calendar', 'https://example.com/cal.ics'])

        assert result.exit_code == 0
        assert "1 reservation(s) found" in result.output
        assert "HMPSS2HE58  2025-12-21 -> 2025-12-22  reservation" in result.output
        pipeline.preview_calendar.assert_called_once_with('https://example.com/cal.ics', Platform.AIRBNB)

    def test_preview_calendar_failure(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.preview_calendar.side_effect = Exception("HTTP 404")

        result = runner.invoke(cli, ['preview-calendar', 'https://example.com/cal.ics'])

        assert result.exit_code == 1
        assert "Error: HTTP 404" in result.output

    def test_run_scheduler(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline

        result = runner.invoke(cli, ['run-scheduler', '--run-now'])

        assert result.exit_code == 0
        pipeline.run_scheduler.assert_called_once_with(run_immediately=True)

    def test_run_scheduler_interrupted(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.run_scheduler.side_effect = KeyboardInterrupt

        result = runner.invoke(cli, ['run-scheduler'])

        assert result.exit_code == 0
        pipeline.jobs.stop.assert_called_once()
        assert "Scheduler stopped" in result.output

    def test_jobs(self, mock_pipeline, runner):
        _, pipeline = mock_pipeline
        pipeline.job_status.return_value = [
            {'name': 'calendar-sync', 'interval_minutes': 60, 'run_count': 2},
            {'name': 'event-processor', 'interval_minutes': 5, 'run_count': 0},
        ]

        result = runner.invoke(cli, ['jobs'])

        assert result.exit_code == 0
        assert "calendar-sync: every 60 minute(s)" in result.output
        assert "event-processor: every 5 minute(s)" in result.output
        assert "runs=" not in result.output

    def test_jobs_help_mentions_schedules_only(self, runner):
        result = runner.invoke(cli, ['jobs', '--help'])

        assert result.exit_code == 0
        assert "schedules" in result.output

    def test_log_level_option(self, mock_pipeline, runner):
        pipeline_class, pipeline = mock_pipeline
        pipeline.sync_emails.return_value = EmailSyncResult()

        result = runner.invoke(cli, ['--log-level', 'DEBUG', '--log-file', 'sync.log', 'sync-emails'])

        assert result.exit_code == 0
        pipeline_class.assert_called_once_with(log_level='DEBUG', log_file='sync.log')


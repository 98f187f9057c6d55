"""
Unit tests for the Supabase store module.
"""
import pytest
from unittest.mock import Mock, patch
from datetime import datetime, timezone

from src.supabase_sync.supabase_client import SupabaseStore
from src.utils.errors import StoreError
from src.utils.models import (
    NotificationEvent, NotificationKind, Platform, PriceSource, Reservation, ReservationStatus
)


@pytest.fixture
def supabase_store():
    store = SupabaseStore()
    store.initialized = True
    store.client = Mock()
    return store


@pytest.fixture
def reservation_row():
    return {
        "internal_id": "11111111-2222-3333-4444-555555555555",
        "external_id": "HMPSS2HE58",
        "start_date": "2025-12-21T00:00:00+00:00",
        "end_date": "2025-12-22T00:00:00+00:00",
        "price": "124.74",
        "number_of_travelers": 2,
        "kind": "reservation",
        "status": "paid",
        "calendar_source_id": 3,
        "price_source": "notification",
        "created_at": "2025-12-01T09:00:00Z",
        "updated_at": None,
    }


def _mock_select_return(mock_client, rows):
    table = Mock()
    mock_client.table.return_value = table
    table.select.return_value = table
    table.eq.return_value = table
    table.limit.return_value = table
    table.order.return_value = table
    table.update.return_value = table
    table.insert.return_value = table
    table.upsert.return_value = table

    res = Mock()
    res.data = rows
    table.execute.return_value = res
    return table


def test_find_reservation(supabase_store, reservation_row):
    table = _mock_select_return(supabase_store.client, [reservation_row])

    reservation = supabase_store.find_reservation_by_external_id("HMPSS2HE58")

    assert reservation.internal_id == reservation_row["internal_id"]
    assert reservation.status == ReservationStatus.PAID
    assert reservation.price == 124.74
    assert reservation.price_source == PriceSource.NOTIFICATION
    assert reservation.calendar_source_id == "3"
    assert reservation.start_date == datetime(2025, 12, 21, tzinfo=timezone.utc)
    supabase_store.client.table.assert_called_with("reservations")
    table.eq.assert_called_with("external_id", "HMPSS2HE58")


def test_find_reservation_missing(supabase_store):
    _mock_select_return(supabase_store.client, [])

    assert supabase_store.find_reservation_by_external_id("HMPSS2HE58") is None


def test_create_reservation_keeps_existing_row(supabase_store):
    table = _mock_select_return(supabase_store.client, [])
    reservation = Reservation(
        internal_id="abc",
        external_id="HMPSS2HE58",
        start_date=datetime(2025, 12, 21, tzinfo=timezone.utc),
        end_date=datetime(2025, 12, 22, tzinfo=timezone.utc),
    )

    supabase_store.create_reservation(reservation)

    payload = table.upsert.call_args.args[0]
    assert payload["external_id"] == "HMPSS2HE58"
    assert payload["kind"] == "reservation"
    assert payload["start_date"] == "2025-12-21T00:00:00+00:00"
    assert payload["created_at"] is not None
    assert table.upsert.call_args.kwargs == {"on_conflict": "external_id", "ignore_duplicates": True}


def test_update_reservation_serializes_changes(supabase_store):
    table = _mock_select_return(supabase_store.client, [])

    supabase_store.update_reservation("abc", {
        "status": ReservationStatus.PAID,
        "price": 124.74,
        "price_source": PriceSource.NOTIFICATION,
        "end_date": datetime(2025, 12, 23, tzinfo=timezone.utc),
    })

    payload = table.update.call_args.args[0]
    assert payload["status"] == "paid"
    assert payload["price_source"] == "notification"
    assert payload["end_date"] == "2025-12-23T00:00:00+00:00"
    assert "updated_at" in payload
    table.eq.assert_called_with("internal_id", "abc")


def test_list_active_calendar_sources(supabase_store):
    table = _mock_select_return(supabase_store.client, [
        {"id": 1, "url": "https://www.airbnb.com/calendar/ical/1.ics", "platform": "AIRBNB", "is_active": True},
    ])

    sources = supabase_store.list_active_calendar_sources()

    assert sources[0].id == "1"
    assert sources[0].platform == Platform.AIRBNB
    table.eq.assert_called_with("is_active", True)


def test_list_sources_keeps_unknown_platform_rows(supabase_store):
    _mock_select_return(supabase_store.client, [
        {"id": 1, "url": "https://www.airbnb.com/calendar/ical/1.ics", "platform": "airbnb", "is_active": True},
        {"id": 2, "url": "https://www.booking.com/ical/2.ics", "platform": "booking", "is_active": True},
    ])

    sources = supabase_store.list_active_calendar_sources()

    assert [s.id for s in sources] == ["1", "2"]
    assert sources[0].platform == Platform.AIRBNB
    assert sources[1].platform == "booking"
    assert sources[1].platform_name == "booking"


def test_list_sources_skips_malformed_rows(supabase_store):
    _mock_select_return(supabase_store.client, [
        {"id": 1, "platform": "airbnb", "is_active": True},
        {"id": 2, "url": "https://www.airbnb.com/calendar/ical/2.ics", "platform": "airbnb", "is_active": True},
    ])

    sources = supabase_store.list_active_calendar_sources()

    assert [s.id for s in sources] == ["2"]


def test_create_event_sets_id(supabase_store):
    table = _mock_select_return(supabase_store.client, [{"id": 42}])
    event = NotificationEvent(
        booking_id="HMPSS2HE58",
        kind=NotificationKind.PAYOUT,
        price=124.74,
        received_at=datetime(2025, 12, 1, 9, 0, tzinfo=timezone.utc),
    )

    supabase_store.create_event(event)

    assert event.id == "42"
    payload = table.insert.call_args.args[0]
    assert "id" not in payload
    assert payload["kind"] == "payout"
    assert payload["consumed"] is False


def test_find_unconsumed_events(supabase_store):
    table = _mock_select_return(supabase_store.client, [{
        "id": 5,
        "booking_id": "HMPSS2HE58",
        "kind": "cancellation",
        "price": None,
        "consumed": False,
        "received_at": "2025-12-01T09:00:00+00:00",
    }])

    events = supabase_store.find_unconsumed_events()

    assert events[0].id == "5"
    assert events[0].kind == NotificationKind.CANCELLATION
    assert events[0].price is None
    table.eq.assert_called_with("consumed", False)
    supabase_store.client.table.assert_called_with("notification_events")


def test_mark_event_consumed(supabase_store):
    table = _mock_select_return(supabase_store.client, [])

    supabase_store.mark_event_consumed("5")

    table.update.assert_called_once_with({"consumed": True})
    table.eq.assert_called_with("id", "5")


def test_execute_failure_raises_store_error(supabase_store):
    table = _mock_select_return(supabase_store.client, [])
    table.execute.side_effect = Exception("connection reset")

    with pytest.raises(StoreError):
        supabase_store.find_reservation_by_external_id("HMPSS2HE58")


def test_uninitialized_store_raises():
    store = SupabaseStore()

    with patch.object(store, "initialize", return_value=False):
        with pytest.raises(StoreError):
            store.list_reservations()


def test_initialize_without_configuration(monkeypatch):
    from config.settings import supabase_config

    monkeypatch.setattr(supabase_config, "url", "")
    store = SupabaseStore()

    assert store.initialize() is False
    assert store.initialized is False


def test_initialize_creates_client(monkeypatch):
    from config.settings import supabase_config

    monkeypatch.setattr(supabase_config, "url", "https://project.supabase.co")
    monkeypatch.setattr(supabase_config, "service_role_key", "service-key")
    store = SupabaseStore()

    with patch("src.supabase_sync.supabase_client.create_client") as create_client:
        assert store.initialize() is True

    create_client.assert_called_once_with("https://project.supabase.co", "service-key")

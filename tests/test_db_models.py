from datetime import datetime, timezone
from http import HTTPStatus

import pytest

from strecklistan.currency import Currency
from strecklistan.db_models import (
    BookAccountRow,
    Event,
    EventRange,
    EventWithSignups,
    IZettleStatus,
    IZettleTransactionPartial,
    IZettleTransactionRow,
    NewEvent,
    TransactionRow,
)
from strecklistan.models import BookAccountType
from strecklistan.status import StatusJson


@pytest.mark.parametrize("low,high", [(0, 0), (3, 1), (-1, -1), (5, -5)])
def test_event_range_rejects_high_not_greater(low, high):
    with pytest.raises(StatusJson) as info:
        EventRange(low, high).validate()
    assert info.value.status == HTTPStatus.BAD_REQUEST
    assert info.value.description == "EventRange: high must be greater than low"


@pytest.mark.parametrize("low,high", [(-1, 1), (0, 1), (-5, -2)])
def test_event_range_accepts_valid(low, high):
    assert EventRange(low, high).validate() is None


def test_event_times_parsed_from_text():
    event = EventWithSignups(
        id=1,
        title="Party",
        background="bg.png",
        location="Hall",
        start_time="2024-01-01T10:00:00Z",
        end_time="2024-01-01 12:30:00",
        price=50,
        published=1,
        signups=3,
    )
    assert event.start_time == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
    assert event.end_time == datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
    assert event.published is True


def test_event_to_dict_round_trips_times():
    event = EventWithSignups(
        id=7,
        title="Party",
        background="bg.png",
        location="Hall",
        start_time="2024-01-01T10:00:00Z",
        end_time="2024-01-01T12:00:00Z",
        price=0,
        published=False,
        signups=0,
    )
    data = event.to_dict()
    assert data["start_time"] == "2024-01-01T10:00:00Z"
    assert data["end_time"] == "2024-01-01T12:00:00Z"
    assert EventWithSignups(**data) .to_dict() == data


def test_event_with_signups_copies_fields():
    start = datetime(2024, 5, 1, 18, tzinfo=timezone.utc)
    end = datetime(2024, 5, 1, 23, tzinfo=timezone.utc)
    event = Event(2, "Gasque", "bg", "Kalle", start, end, 100, True)
    ws = event.with_signups()
    assert ws.signups == 0
    assert (ws.id, ws.title, ws.location, ws.price) == (2, "Gasque", "Kalle", 100)
    assert (ws.start_time, ws.end_time, ws.published) == (start, end, True)


def test_new_event_price_optional():
    event = NewEvent("t", "b", "l", "2024-01-01T00:00:00Z", "2024-01-02T00:00:00Z")
    assert event.price is None
    assert event.end_time > event.start_time


def test_book_account_row_to_common():
    row = BookAccountRow(4, "Kalle", "Liabilities", 9)
    account = row.to_common()
    assert account.account_type is BookAccountType.LIABILITIES
    assert account.balance == Currency(0)
    assert (account.id, account.name, account.creditor) == (4, "Kalle", 9)


def test_book_account_row_rejects_unknown_type():
    with pytest.raises(ValueError):
        BookAccountRow(1, "x", "Gifts", None)


def test_transaction_row_optional_deleted_at():
    row = TransactionRow(1, None, "2024-01-01T00:00:00Z", 1, 2, 300)
    assert row.deleted_at is None
    deleted = TransactionRow(1, None, "2024-01-01T00:00:00Z", 1, 2, 300, "2024-01-02T00:00:00Z")
    assert deleted.deleted_at > deleted.time


def test_izettle_rows():
    partial = IZettleTransactionPartial(id=3, amount=1500)
    assert partial.to_dict() == {"id": 3, "amount": 1500}
    row = IZettleTransactionRow(3, "sale", "2024-01-01T00:00:00.123Z", 1, 2, 1500)
    assert row.time.microsecond == 123000


def test_izettle_status_values():
    assert IZettleStatus("in_progress") is IZettleStatus.IN_PROGRESS
    assert IZettleStatus.PAID == "paid"
    assert [s.value for s in IZettleStatus] == ["in_progress", "paid", "cancelled", "failed"]
"""Rows as they are stored in the database."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from strecklistan.currency import Currency
from strecklistan.models import BookAccount, BookAccountType
from strecklistan.status import StatusJson


def _parse_time(value: datetime | str) -> datetime:
    """Read a stored timestamp; naive values are taken to be UTC."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if not isinstance(value, datetime):
        raise TypeError(f"expected a timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _optional_time(value: datetime | str | None) -> datetime | None:
    return None if value is None else _parse_time(value)


def _format_time(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().removesuffix("+00:00") + "Z"


@dataclass(frozen=True)
class EventRange:
    """A window of events relative to now: negative is past, positive upcoming."""

    low: int
    high: int

    def validate(self) -> None:
        """Raise StatusJson 400 unless ``high`` is greater than ``low``."""
        if self.low >= self.high:
            raise StatusJson(
                HTTPStatus.BAD_REQUEST, "EventRange: high must be greater than low"
            )


@dataclass
class EventWithSignups:
    id: int
    title: str
    background: str
    location: str
    start_time: datetime
    end_time: datetime
    price: int
    published: bool
    signups: int

    def __post_init__(self) -> None:
        self.start_time = _parse_time(self.start_time)
        self.end_time = _parse_time(self.end_time)
        self.published = bool(self.published)
        self.signups = int(self.signups)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "background": self.background,
            "location": self.location,
            "start_time": _format_time(self.start_time),
            "end_time": _format_time(self.end_time),
            "price": self.price,
            "published": self.published,
            "signups": self.signups,
        }


@dataclass
class Event:
    id: int
    title: str
    background: str
    location: str
    start_time: datetime
    end_time: datetime
    price: int
    published: bool

    def __post_init__(self) -> None:
        self.start_time = _parse_time(self.start_time)
        self.end_time = _parse_time(self.end_time)
        self.published = bool(self.published)

    def with_signups(self) -> EventWithSignups:
        """This event with no signups counted."""
        return EventWithSignups(
            id=self.id,
            title=self.title,
            background=self.background,
            location=self.location,
            start_time=self.start_time,
            end_time=self.end_time,
            price=self.price,
            published=self.published,
            signups=0,
        )


@dataclass
class NewEvent:
    title: str
    background: str
    location: str
    start_time: datetime
    end_time: datetime
    price: int | None = None

    def __post_init__(self) -> None:
        self.start_time = _parse_time(self.start_time)
        self.end_time = _parse_time(self.end_time)


@dataclass
class Signup:
    """Metadata about a signed up attendee of an event."""

    id: int
    event: int
    name: str
    email: str


@dataclass
class NewSignup:
    event: int
    name: str
    email: str


@dataclass
class BookAccountRow:
    id: int
    name: str
    account_type: BookAccountType
    creditor: int | None = None

    def __post_init__(self) -> None:
        self.account_type = BookAccountType(self.account_type)

    def to_common(self) -> BookAccount:
        """The shared account model, with a zero balance."""
        return BookAccount(
            id=self.id,
            name=self.name,
            account_type=self.account_type,
            creditor=self.creditor,
            balance=Currency(0),
        )


@dataclass
class InventoryBundleRow:
    id: int
    name: str
    price: int
    image_url: str | None = None


@dataclass
class InventoryBundleItemRow:
    id: int
    bundle_id: int
    item_id: int


@dataclass
class TransactionRow:
    id: int
    description: str | None
    time: datetime
    debited_account: int
    credited_account: int
    amount: int
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        self.time = _parse_time(self.time)
        self.deleted_at = _optional_time(self.deleted_at)


@dataclass
class TransactionBundleRow:
    id: int
    transaction_id: int
    description: str | None
    price: int | None
    change: int


@dataclass
class TransactionItemRow:
    id: int
    bundle_id: int
    item_id: int


@dataclass
class IZettleTransactionPartial:
    id: int
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "amount": self.amount}


@dataclass
class IZettleTransactionRow:
    id: int
    description: str | None
    time: datetime
    debited_account: int
    credited_account: int
    amount: int

    def __post_init__(self) -> None:
        self.time = _parse_time(self.time)


@dataclass
class IZettlePostTransaction:
    izettle_transaction_id: int
    transaction_id: int | None
    status: str
    error: str | None = None


class IZettleStatus(str, enum.Enum):
    """The states recorded for a card payment."""

    IN_PROGRESS = "in_progress"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"
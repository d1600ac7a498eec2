"""Database connections and event queries."""

from __future__ import annotations

import os
import sqlite3
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from strecklistan.db_models import EventWithSignups
from strecklistan.status import NotFoundInDatabase

_EVENT_COLUMNS = (
    "id, title, background, location, start_time, end_time, price, published, signups"
)


def _path_from_url(url: str) -> str:
    if url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
        if not path:
            return ":memory:"
        return path[1:] if path.startswith("/") else path
    if "://" in url:
        raise ValueError(f"unsupported database url scheme: {url.split('://', 1)[0]}")
    return url


def connect(url: str) -> sqlite3.Connection:
    """Open a database from a ``sqlite://`` url or a plain file path."""
    connection = sqlite3.connect(_path_from_url(url), check_same_thread=False)
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


def connect_from_env() -> sqlite3.Connection:
    """Open the database named by the DATABASE_URL environment variable."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    return connect(url)


def _records(cursor: sqlite3.Cursor) -> Iterator[dict[str, Any]]:
    names = [column[0] for column in cursor.description]
    for row in cursor:
        yield dict(zip(names, row))


def get_event_ws(
    connection: sqlite3.Connection, event_id: int, published_only: bool
) -> EventWithSignups:
    """One event with its signup count; raises NotFoundInDatabase if absent."""
    cursor = connection.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events_with_signups "
        "WHERE id = ? AND (published OR NOT ?)",
        (event_id, bool(published_only)),
    )
    record = next(_records(cursor), None)
    if record is None:
        raise NotFoundInDatabase(f"no event with id {event_id}")
    return EventWithSignups(**record)


def _load_events(
    connection: sqlite3.Connection,
    condition: str,
    order: str,
    now: str,
    published_only: bool,
    limit: int,
) -> list[EventWithSignups]:
    cursor = connection.execute(
        f"SELECT {_EVENT_COLUMNS} FROM events_with_signups "
        f"WHERE julianday(end_time) {condition} julianday(?) AND (published OR NOT ?) "
        f"ORDER BY julianday(start_time) {order} LIMIT ?",
        (now, bool(published_only), limit),
    )
    return [EventWithSignups(**record) for record in _records(cursor)]


def get_event_ws_range(
    connection: sqlite3.Connection, low: int, high: int, published_only: bool
) -> list[EventWithSignups]:
    """Events around now, latest first.

    Negative positions count past events backwards from now, positive
    positions count upcoming events forwards; ``low`` is inclusive.
    """
    if high <= low:
        raise ValueError("high must be greater than low")

    now = datetime.now(timezone.utc).isoformat()

    previous = (
        _load_events(connection, "<=", "DESC", now, published_only, -low) if low < 0 else []
    )
    upcoming = (
        _load_events(connection, ">", "ASC", now, published_only, high) if high > 0 else []
    )

    if high < 0:
        previous = previous[-high:]
    if low > 0:
        upcoming = upcoming[low:]

    upcoming.reverse()
    return upcoming + previous
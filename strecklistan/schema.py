"""The database tables and views."""

from __future__ import annotations

import sqlite3

_NOW = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

_TABLES: dict[str, str] = {
    "book_accounts": """
        CREATE TABLE IF NOT EXISTS book_accounts (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            account_type TEXT NOT NULL
                CHECK (account_type IN ('Expenses', 'Assets', 'Liabilities', 'Revenue')),
            creditor INTEGER REFERENCES members (id)
        )""",
    "event_signups": """
        CREATE TABLE IF NOT EXISTS event_signups (
            id INTEGER PRIMARY KEY,
            event INTEGER NOT NULL REFERENCES events (id) ON DELETE CASCADE,
            name TEXT NOT NULL,
            email TEXT NOT NULL
        )""",
    "events": """
        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            background TEXT NOT NULL,
            location TEXT NOT NULL,
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            price INTEGER NOT NULL DEFAULT 0,
            published INTEGER NOT NULL DEFAULT 0
        )""",
    "inventory": """
        CREATE TABLE IF NOT EXISTS inventory (
            id INTEGER PRIMARY KEY,
            name TEXT,
            price INTEGER,
            image_url TEXT
        )""",
    "inventory_bundle_items": """
        CREATE TABLE IF NOT EXISTS inventory_bundle_items (
            id INTEGER PRIMARY KEY,
            bundle_id INTEGER NOT NULL REFERENCES inventory_bundles (id) ON DELETE CASCADE,
            item_id INTEGER NOT NULL REFERENCES inventory (id)
        )""",
    "inventory_bundles": """
        CREATE TABLE IF NOT EXISTS inventory_bundles (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            price INTEGER NOT NULL,
            image_url TEXT
        )""",
    "inventory_tags": """
        CREATE TABLE IF NOT EXISTS inventory_tags (
            tag TEXT NOT NULL,
            item_id INTEGER NOT NULL REFERENCES inventory (id),
            PRIMARY KEY (tag, item_id)
        )""",
    "izettle_post_transaction": """
        CREATE TABLE IF NOT EXISTS izettle_post_transaction (
            izettle_transaction_id INTEGER PRIMARY KEY,
            transaction_id INTEGER REFERENCES transactions (id),
            status TEXT NOT NULL,
            error TEXT
        )""",
    "izettle_transaction": f"""
        CREATE TABLE IF NOT EXISTS izettle_transaction (
            id INTEGER PRIMARY KEY,
            description TEXT,
            time TEXT NOT NULL DEFAULT {_NOW},
            debited_account INTEGER NOT NULL REFERENCES book_accounts (id),
            credited_account INTEGER NOT NULL REFERENCES book_accounts (id),
            amount INTEGER NOT NULL
        )""",
    "izettle_transaction_bundle": """
        CREATE TABLE IF NOT EXISTS izettle_transaction_bundle (
            id INTEGER PRIMARY KEY,
            transaction_id INTEGER NOT NULL
                REFERENCES izettle_transaction (id) ON DELETE CASCADE,
            description TEXT,
            price INTEGER,
            change INTEGER NOT NULL
        )""",
    "izettle_transaction_item": """
        CREATE TABLE IF NOT EXISTS izettle_transaction_item (
            id INTEGER PRIMARY KEY,
            bundle_id INTEGER NOT NULL
                REFERENCES izettle_transaction_bundle (id) ON DELETE CASCADE,
            item_id INTEGER NOT NULL REFERENCES inventory (id)
        )""",
    "members": """
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY,
            first_name TEXT NOT NULL,
            last_name TEXT NOT NULL,
            nickname TEXT
        )""",
    "transaction_bundles": """
        CREATE TABLE IF NOT EXISTS transaction_bundles (
            id INTEGER PRIMARY KEY,
            transaction_id INTEGER NOT NULL REFERENCES transactions (id),
            description TEXT,
            price INTEGER,
            change INTEGER NOT NULL
        )""",
    "transaction_items": """
        CREATE TABLE IF NOT EXISTS transaction_items (
            id INTEGER PRIMARY KEY,
            bundle_id INTEGER NOT NULL REFERENCES transaction_bundles (id),
            item_id INTEGER NOT NULL REFERENCES inventory (id)
        )""",
    "transactions": f"""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY,
            description TEXT,
            time TEXT NOT NULL DEFAULT {_NOW},
            debited_account INTEGER NOT NULL REFERENCES book_accounts (id),
            credited_account INTEGER NOT NULL REFERENCES book_accounts (id),
            amount INTEGER NOT NULL,
            deleted_at TEXT
        )""",
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            name TEXT PRIMARY KEY,
            display_name TEXT,
            salted_pass TEXT NOT NULL,
            hash_iterations INTEGER NOT NULL
        )""",
}

_VIEWS: dict[str, str] = {
    "events_with_signups": """
        CREATE VIEW IF NOT EXISTS events_with_signups AS
        SELECT e.id, e.title, e.background, e.location, e.start_time, e.end_time,
               e.price, e.published, COUNT(s.id) AS signups
        FROM events AS e
        LEFT JOIN event_signups AS s ON s.event = e.id
        GROUP BY e.id""",
    "inventory_stock": """
        CREATE VIEW IF NOT EXISTS inventory_stock AS
        SELECT i.id, i.name, i.price, i.image_url,
               CAST(COALESCE(SUM(CASE WHEN t.id IS NOT NULL THEN b.change END), 0)
                    AS INTEGER) AS stock
        FROM inventory AS i
        LEFT JOIN transaction_items AS ti ON ti.item_id = i.id
        LEFT JOIN transaction_bundles AS b ON b.id = ti.bundle_id
        LEFT JOIN transactions AS t
            ON t.id = b.transaction_id AND t.deleted_at IS NULL
        WHERE i.name IS NOT NULL
        GROUP BY i.id""",
}


def table_names() -> tuple[str, ...]:
    """The names of all tables, in creation order."""
    return tuple(_TABLES)


def create_schema(connection: sqlite3.Connection) -> list[tuple[str, bool]]:
    """Create missing tables and views.

    Returns each table and view name with whether it already existed.
    """
    existing = {
        row[0]
        for row in connection.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view')"
        )
    }
    report = []
    with connection:
        for name, ddl in (*_TABLES.items(), *_VIEWS.items()):
            report.append((name, name in existing))
            connection.execute(ddl)
    return report
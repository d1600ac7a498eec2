"""The REST operations on accounts, events, inventory, members and transactions."""

from __future__ import annotations

import sqlite3
from collections import Counter
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from strecklistan.currency import Currency
from strecklistan.database import get_event_ws, get_event_ws_range
from strecklistan.db_models import (
    BookAccountRow,
    EventRange,
    EventWithSignups,
    TransactionRow,
)
from strecklistan.models import (
    BookAccount,
    BookAccountId,
    BookAccountType,
    InventoryBundle,
    InventoryBundleId,
    InventoryItemId,
    InventoryItemStock,
    InventoryItemTag,
    MasterAccounts,
    Member,
    MemberId,
    NewBookAccount,
    NewMember,
    NewTransaction,
    Transaction,
    TransactionBundle,
    TransactionId,
)
from strecklistan.status import NotFoundInDatabase

API_VERSION = "1.0.0"

BANK_ACCOUNT_NAME = "Bankkonto"
CASH_ACCOUNT_NAME = "Kontantkassa"
SALES_ACCOUNT_NAME = "Försäljning"
PURCHASES_ACCOUNT_NAME = "Inköp"


def _records(cursor: sqlite3.Cursor) -> Iterator[dict[str, Any]]:
    names = [column[0] for column in cursor.description]
    for row in cursor:
        yield dict(zip(names, row))


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def get_api_version() -> str:
    """The version of the API served."""
    return API_VERSION


def get_accounts(connection: sqlite3.Connection) -> dict[BookAccountId, BookAccount]:
    """All book accounts with balances computed from non-deleted transactions."""
    with connection:
        transactions = [
            TransactionRow(**record)
            for record in _records(
                connection.execute(
                    "SELECT id, description, time, debited_account, credited_account, "
                    "amount, deleted_at FROM transactions WHERE deleted_at IS NULL"
                )
            )
        ]
        rows = [
            BookAccountRow(**record)
            for record in _records(
                connection.execute(
                    "SELECT id, name, account_type, creditor FROM book_accounts"
                )
            )
        ]

    accounts = {row.id: row.to_common() for row in rows}
    for transaction in transactions:
        amount = Currency(transaction.amount)
        if (account := accounts.get(transaction.credited_account)) is not None:
            account.credit(amount)
        if (account := accounts.get(transaction.debited_account)) is not None:
            account.debit(amount)
    return accounts


def add_account(connection: sqlite3.Connection, account: NewBookAccount) -> BookAccountId:
    """Create a book account and return its id."""
    with connection:
        cursor = connection.execute(
            "INSERT INTO book_accounts (name, account_type, creditor) VALUES (?, ?, ?)",
            (account.name, account.account_type.value, account.creditor),
        )
    return cursor.lastrowid


def _account_id(connection: sqlite3.Connection, name: str) -> BookAccountId:
    row = connection.execute(
        "SELECT id FROM book_accounts WHERE name = ?", (name,)
    ).fetchone()
    if row is None:
        raise NotFoundInDatabase(f"no book account named {name!r}")
    return row[0]


def get_master_accounts(connection: sqlite3.Connection) -> MasterAccounts:
    """The ids of the master accounts, creating any that are missing."""
    wanted = (
        (BANK_ACCOUNT_NAME, BookAccountType.ASSETS),
        (CASH_ACCOUNT_NAME, BookAccountType.ASSETS),
        (SALES_ACCOUNT_NAME, BookAccountType.REVENUE),
        (PURCHASES_ACCOUNT_NAME, BookAccountType.EXPENSES),
    )
    with connection:
        connection.executemany(
            "INSERT OR IGNORE INTO book_accounts (name, account_type) VALUES (?, ?)",
            [(name, account_type.value) for name, account_type in wanted],
        )
        return MasterAccounts(
            bank_account_id=_account_id(connection, BANK_ACCOUNT_NAME),
            cash_account_id=_account_id(connection, CASH_ACCOUNT_NAME),
            sales_account_id=_account_id(connection, SALES_ACCOUNT_NAME),
            purchases_account_id=_account_id(connection, PURCHASES_ACCOUNT_NAME),
        )


def get_event(connection: sqlite3.Connection, event_id: int) -> EventWithSignups:
    """A published event; raises NotFoundInDatabase otherwise."""
    return get_event_ws(connection, event_id, True)


def get_event_range(
    connection: sqlite3.Connection, low: int, high: int
) -> list[EventWithSignups]:
    """Published events around now; raises StatusJson 400 unless high > low."""
    EventRange(low, high).validate()
    return get_event_ws_range(connection, low, high, True)


def get_inventory(
    connection: sqlite3.Connection,
) -> dict[InventoryItemId, InventoryItemStock]:
    """All named inventory items with their stock."""
    cursor = connection.execute(
        "SELECT id, name, price, image_url, stock FROM inventory_stock"
    )
    return {
        record["id"]: InventoryItemStock(**record) for record in _records(cursor)
    }


def get_tags(connection: sqlite3.Connection) -> list[InventoryItemTag]:
    """All inventory tags."""
    cursor = connection.execute("SELECT tag, item_id FROM inventory_tags")
    return [InventoryItemTag(**record) for record in _records(cursor)]


def get_inventory_bundles(
    connection: sqlite3.Connection,
) -> dict[InventoryBundleId, InventoryBundle]:
    """All inventory bundles with the ids of the items they hold."""
    cursor = connection.execute(
        "SELECT b.id, b.name, b.price, b.image_url, i.item_id "
        "FROM inventory_bundles AS b "
        "LEFT JOIN inventory_bundle_items AS i ON i.bundle_id = b.id "
        "ORDER BY b.id, i.id"
    )
    bundles: dict[InventoryBundleId, InventoryBundle] = {}
    for record in _records(cursor):
        bundle = bundles.get(record["id"])
        if bundle is None:
            bundle = InventoryBundle(
                id=record["id"],
                name=record["name"],
                price=Currency(record["price"]),
                image_url=record["image_url"],
            )
            bundles[bundle.id] = bundle
        if record["item_id"] is not None:
            bundle.item_ids.append(record["item_id"])
    return bundles


def get_members(connection: sqlite3.Connection) -> dict[MemberId, Member]:
    """All members by id."""
    cursor = connection.execute(
        "SELECT id, first_name, last_name, nickname FROM members"
    )
    return {record["id"]: Member(**record) for record in _records(cursor)}


def add_member_with_book_account(
    connection: sqlite3.Connection, new_member: NewMember, account_name: str
) -> tuple[MemberId, BookAccountId]:
    """Create a member and a liability account owned by them."""
    with connection:
        member_id = connection.execute(
            "INSERT INTO members (first_name, last_name, nickname) VALUES (?, ?, ?)",
            (new_member.first_name, new_member.last_name, new_member.nickname),
        ).lastrowid
        account_id = connection.execute(
            "INSERT INTO book_accounts (name, account_type, creditor) VALUES (?, ?, ?)",
            (account_name, BookAccountType.LIABILITIES.value, member_id),
        ).lastrowid
    return member_id, account_id


def post_transaction(
    connection: sqlite3.Connection, transaction: NewTransaction
) -> TransactionId:
    """Store a transaction with its bundles and items; returns its id."""
    with connection:
        transaction_id = connection.execute(
            "INSERT INTO transactions "
            "(description, debited_account, credited_account, amount) "
            "VALUES (?, ?, ?, ?)",
            (
                transaction.description,
                transaction.debited_account,
                transaction.credited_account,
                int(transaction.amount),
            ),
        ).lastrowid
        for bundle in transaction.bundles:
            bundle_id = connection.execute(
                "INSERT INTO transaction_bundles "
                "(transaction_id, description, price, change) VALUES (?, ?, ?, ?)",
                (
                    transaction_id,
                    bundle.description,
                    None if bundle.price is None else int(bundle.price),
                    bundle.change,
                ),
            ).lastrowid
            connection.executemany(
                "INSERT INTO transaction_items (bundle_id, item_id) VALUES (?, ?)",
                [
                    (bundle_id, item_id)
                    for item_id, count in bundle.item_ids.items()
                    for _ in range(count)
                ],
            )
    return transaction_id


def delete_transaction(
    connection: sqlite3.Connection, transaction_id: TransactionId
) -> TransactionId:
    """Mark a transaction as deleted; raises NotFoundInDatabase if absent."""
    with connection:
        cursor = connection.execute(
            "UPDATE transactions SET deleted_at = ? WHERE id = ?",
            (_now(), transaction_id),
        )
    if cursor.rowcount == 0:
        raise NotFoundInDatabase(f"no transaction with id {transaction_id}")
    return transaction_id


def get_transactions(connection: sqlite3.Connection) -> list[Transaction]:
    """All non-deleted transactions, newest id first."""
    cursor = connection.execute(
        "SELECT t.id, t.description, t.time, t.debited_account, t.credited_account, "
        "t.amount, b.id AS bundle_id, b.description AS bundle_description, "
        "b.price AS bundle_price, b.change AS bundle_change, i.item_id "
        "FROM transactions AS t "
        "LEFT JOIN transaction_bundles AS b ON b.transaction_id = t.id "
        "LEFT JOIN transaction_items AS i ON i.bundle_id = b.id "
        "WHERE t.deleted_at IS NULL "
        "ORDER BY t.id DESC, b.id, i.id"
    )

    transactions: dict[TransactionId, Transaction] = {}
    item_counts: dict[TransactionId, dict[int, tuple[TransactionBundle, Counter]]] = {}
    for record in _records(cursor):
        transaction = transactions.get(record["id"])
        if transaction is None:
            row = TransactionRow(
                id=record["id"],
                description=record["description"],
                time=record["time"],
                debited_account=record["debited_account"],
                credited_account=record["credited_account"],
                amount=record["amount"],
            )
            transaction = Transaction(
                id=row.id,
                time=row.time,
                debited_account=row.debited_account,
                credited_account=row.credited_account,
                amount=Currency(row.amount),
                description=row.description,
            )
            transactions[transaction.id] = transaction
            item_counts[transaction.id] = {}

        bundle_id = record["bundle_id"]
        if bundle_id is None:
            continue
        bundles = item_counts[transaction.id]
        if bundle_id not in bundles:
            bundle = TransactionBundle(
                description=record["bundle_description"],
                price=None
                if record["bundle_price"] is None
                else Currency(record["bundle_price"]),
                change=record["bundle_change"],
            )
            bundles[bundle_id] = (bundle, Counter())
            transaction.bundles.append(bundle)
        if record["item_id"] is not None:
            bundles[bundle_id][1][record["item_id"]] += 1

    for bundles in item_counts.values():
        for bundle, counts in bundles.values():
            bundle.item_ids = dict(counts)
    return list(transactions.values())
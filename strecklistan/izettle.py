"""Card payments handed to a payment bridge, and their results."""

from __future__ import annotations

import enum
import logging
import sqlite3
from collections.abc import Iterator
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from strecklistan.db_models import (
    IZettlePostTransaction,
    IZettleStatus,
    IZettleTransactionPartial,
)
from strecklistan.models import (
    IZettlePayment,
    IZettlePaymentStatus,
    NewTransaction,
    TransactionId,
)
from strecklistan.status import StatusJson

log = logging.getLogger(__name__)


def _records(cursor: sqlite3.Cursor) -> Iterator[dict[str, Any]]:
    names = [column[0] for column in cursor.description]
    for row in cursor:
        yield dict(zip(names, row))


@dataclass(frozen=True)
class BridgePollResult:
    """What the bridge gets when it asks for work: a pending payment or none."""

    pending: IZettleTransactionPartial | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.pending is None:
            return {"type": "NoPendingTransaction"}
        return {"type": "PendingPayment", **self.pending.to_dict()}


class PaymentResponseKind(enum.Enum):
    TRANSACTION_PAID = "TransactionPaid"
    TRANSACTION_FAILED = "TransactionFailed"
    TRANSACTION_CANCELLED = "TransactionCancelled"


@dataclass(frozen=True)
class PaymentResponse:
    """The outcome of a payment as reported by the bridge."""

    kind: PaymentResponseKind
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.kind is PaymentResponseKind.TRANSACTION_FAILED and self.reason is None:
            raise ValueError("a failed payment needs a reason")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.kind is PaymentResponseKind.TRANSACTION_FAILED:
            data["reason"] = self.reason
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentResponse:
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError("a payment response needs a type")
        kind = PaymentResponseKind(data["type"])
        if kind is PaymentResponseKind.TRANSACTION_FAILED:
            if "reason" not in data:
                raise ValueError("a failed payment response needs a reason")
            return cls(kind, str(data["reason"]))
        return cls(kind)


def poll_for_transaction(connection: sqlite3.Connection) -> BridgePollResult:
    """The oldest payment waiting for the bridge, if any."""
    row = connection.execute(
        "SELECT id, amount FROM izettle_transaction "
        "ORDER BY julianday(time) ASC, id ASC LIMIT 1"
    ).fetchone()
    if row is None:
        return BridgePollResult()
    return BridgePollResult(IZettleTransactionPartial(id=row[0], amount=row[1]))


def _update_post_transaction(
    connection: sqlite3.Connection,
    izettle_transaction_id: int,
    status: IZettleStatus,
    transaction_id: int | None,
    error: str | None,
) -> None:
    connection.execute(
        "UPDATE izettle_post_transaction "
        "SET transaction_id = ?, status = ?, error = ? "
        "WHERE izettle_transaction_id = ?",
        (transaction_id, status.value, error, izettle_transaction_id),
    )


def _commit_paid(connection: sqlite3.Connection, rows: list[dict[str, Any]]) -> int:
    first = rows[0]
    transaction_id = connection.execute(
        "INSERT INTO transactions "
        "(description, time, debited_account, credited_account, amount) "
        "VALUES (?, ?, ?, ?, ?)",
        (
            first["description"],
            first["time"],
            first["debited_account"],
            first["credited_account"],
            first["amount"],
        ),
    ).lastrowid

    new_bundle_ids: dict[int, int] = {}
    for row in rows:
        bundle_id = row["bundle_id"]
        if bundle_id is None:
            continue
        if bundle_id not in new_bundle_ids:
            new_bundle_ids[bundle_id] = connection.execute(
                "INSERT INTO transaction_bundles "
                "(transaction_id, description, price, change) VALUES (?, ?, ?, ?)",
                (
                    transaction_id,
                    row["bundle_description"],
                    row["bundle_price"],
                    row["bundle_change"],
                ),
            ).lastrowid
        if row["item_id"] is not None:
            connection.execute(
                "INSERT INTO transaction_items (bundle_id, item_id) VALUES (?, ?)",
                (new_bundle_ids[bundle_id], row["item_id"]),
            )
    return transaction_id


def complete_izettle_transaction(
    connection: sqlite3.Connection,
    reference: int,
    payment_response: PaymentResponse,
) -> StatusJson:
    """Record the bridge's result for a pending payment.

    A paid payment becomes a regular transaction. Raises StatusJson 400
    when no payment is pending under ``reference``.
    """
    with connection:
        rows = list(
            _records(
                connection.execute(
                    "SELECT t.id, t.description, t.time, t.debited_account, "
                    "t.credited_account, t.amount, b.id AS bundle_id, "
                    "b.description AS bundle_description, b.price AS bundle_price, "
                    "b.change AS bundle_change, i.item_id "
                    "FROM izettle_transaction AS t "
                    "LEFT JOIN izettle_transaction_bundle AS b ON b.transaction_id = t.id "
                    "LEFT JOIN izettle_transaction_item AS i ON i.bundle_id = b.id "
                    "WHERE t.id = ? ORDER BY b.id, i.id",
                    (reference,),
                )
            )
        )
        if not rows:
            raise StatusJson(
                HTTPStatus.BAD_REQUEST,
                f"No pending transaction with reference {reference}",
            )
        izettle_transaction_id = rows[0]["id"]

        connection.execute(
            "DELETE FROM izettle_transaction WHERE id = ?", (izettle_transaction_id,)
        )

        kind = payment_response.kind
        if kind is PaymentResponseKind.TRANSACTION_PAID:
            new_transaction_id = _commit_paid(connection, rows)
            _update_post_transaction(
                connection,
                izettle_transaction_id,
                IZettleStatus.PAID,
                new_transaction_id,
                None,
            )
            return StatusJson(HTTPStatus.OK, "Transcation completed")
        if kind is PaymentResponseKind.TRANSACTION_FAILED:
            log.info("IZettle failed due to: %s", payment_response.reason)
            _update_post_transaction(
                connection,
                izettle_transaction_id,
                IZettleStatus.FAILED,
                None,
                payment_response.reason,
            )
            return StatusJson(HTTPStatus.OK, "Transcation cancelled with failure")
        _update_post_transaction(
            connection, izettle_transaction_id, IZettleStatus.CANCELLED, None, None
        )
        return StatusJson(HTTPStatus.OK, "Transaction cancelled")


def begin_izettle_transaction(
    connection: sqlite3.Connection, transaction: NewTransaction
) -> int:
    """Queue a transaction for card payment; returns its reference."""
    with connection:
        reference = connection.execute(
            "INSERT INTO izettle_transaction "
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
                "INSERT INTO izettle_transaction_bundle "
                "(transaction_id, description, price, change) VALUES (?, ?, ?, ?)",
                (
                    reference,
                    bundle.description,
                    None if bundle.price is None else int(bundle.price),
                    bundle.change,
                ),
            ).lastrowid
            connection.executemany(
                "INSERT INTO izettle_transaction_item (bundle_id, item_id) VALUES (?, ?)",
                [
                    (bundle_id, item_id)
                    for item_id, count in bundle.item_ids.items()
                    for _ in range(count)
                ],
            )
        connection.execute(
            "INSERT INTO izettle_post_transaction "
            "(izettle_transaction_id, transaction_id, status, error) "
            "VALUES (?, NULL, ?, NULL)",
            (reference, IZettleStatus.IN_PROGRESS.value),
        )
    return reference


def poll_for_izettle(
    connection: sqlite3.Connection, izettle_transaction_id: int
) -> IZettlePayment:
    """The state of the payment queued under ``izettle_transaction_id``."""
    record = next(
        _records(
            connection.execute(
                "SELECT izettle_transaction_id, transaction_id, status, error "
                "FROM izettle_post_transaction WHERE izettle_transaction_id = ? LIMIT 1",
                (izettle_transaction_id,),
            )
        ),
        None,
    )
    if record is None:
        return IZettlePayment(IZettlePaymentStatus.NO_TRANSACTION)
    post = IZettlePostTransaction(**record)

    if post.status == IZettleStatus.IN_PROGRESS.value:
        return IZettlePayment(IZettlePaymentStatus.PENDING)
    if post.status == IZettleStatus.PAID.value:
        if post.transaction_id is None:
            log.error(
                "izettle_post_transaction %s marked as paid, but transaction_id was None",
                izettle_transaction_id,
            )
            raise StatusJson(HTTPStatus.INTERNAL_SERVER_ERROR, "Internal Server Error")
        transaction_id: TransactionId = post.transaction_id
        return IZettlePayment(IZettlePaymentStatus.PAID, transaction_id=transaction_id)
    if post.status == IZettleStatus.CANCELLED.value:
        return IZettlePayment(IZettlePaymentStatus.CANCELLED)
    if post.status == IZettleStatus.FAILED.value:
        return IZettlePayment(
            IZettlePaymentStatus.FAILED,
            reason=post.error if post.error is not None else "Unknown error",
        )
    raise StatusJson(
        HTTPStatus.INTERNAL_SERVER_ERROR,
        f"Invalid status {post.status}, perhaps add it to the match.",
    )
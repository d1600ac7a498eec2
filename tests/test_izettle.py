import pytest

from strecklistan.api import get_accounts, get_transactions
from strecklistan.currency import Currency
from strecklistan.database import connect
from strecklistan.izettle import (
    BridgePollResult,
    PaymentResponse,
    PaymentResponseKind,
    begin_izettle_transaction,
    complete_izettle_transaction,
    poll_for_izettle,
    poll_for_transaction,
)
from strecklistan.models import (
    IZettlePaymentStatus,
    NewTransaction,
    TransactionBundle,
)
from strecklistan.schema import create_schema
from strecklistan.status import StatusJson


@pytest.fixture
def connection():
    conn = connect("sqlite://")
    create_schema(conn)
    with conn:
        conn.execute(
            "INSERT INTO book_accounts (id, name, account_type) VALUES (1, 'Cash', 'Assets')"
        )
        conn.execute(
            "INSERT INTO book_accounts (id, name, account_type) VALUES (2, 'Sales', 'Revenue')"
        )
        conn.execute("INSERT INTO inventory (id, name, price) VALUES (10, 'Cola', 1000)")
        conn.execute("INSERT INTO inventory (id, name, price) VALUES (11, 'Chips', 1500)")
    yield conn
    conn.close()


def _new_transaction(amount=2500):
    return NewTransaction(
        debited_account=1,
        credited_account=2,
        amount=Currency(amount),
        description="sale",
        bundles=[
            TransactionBundle(
                description=None, price=Currency(1000), change=-1, item_ids={10: 2}
            ),
            TransactionBundle(
                description="combo", price=Currency(1500), change=-1, item_ids={11: 1}
            ),
        ],
    )


def test_poll_with_nothing_pending(connection):
    result = poll_for_transaction(connection)
    assert result.to_dict() == {"type": "NoPendingTransaction"}


def test_poll_returns_oldest_pending(connection):
    first = begin_izettle_transaction(connection, _new_transaction(2500))
    begin_izettle_transaction(connection, _new_transaction(700))
    result = poll_for_transaction(connection)
    assert result.to_dict() == {"type": "PendingPayment", "id": first, "amount": 2500}


def test_begun_payment_is_pending(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    assert poll_for_izettle(connection, reference).status is IZettlePaymentStatus.PENDING


def test_unknown_payment_has_no_transaction(connection):
    payment = poll_for_izettle(connection, 999)
    assert payment.status is IZettlePaymentStatus.NO_TRANSACTION
    assert payment.to_dict() == "NoTransaction"


def test_paid_payment_becomes_transaction(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    original_time = connection.execute(
        "SELECT time FROM izettle_transaction WHERE id = ?", (reference,)
    ).fetchone()[0]

    status = complete_izettle_transaction(
        connection, reference, PaymentResponse(PaymentResponseKind.TRANSACTION_PAID)
    )
    assert status.status == 200
    assert status.description == "Transcation completed"

    payment = poll_for_izettle(connection, reference)
    assert payment.status is IZettlePaymentStatus.PAID

    (transaction,) = get_transactions(connection)
    assert transaction.id == payment.transaction_id
    assert transaction.amount == Currency(2500)
    assert transaction.description == "sale"
    assert [b.item_ids for b in transaction.bundles] == [{10: 2}, {11: 1}]
    assert [b.description for b in transaction.bundles] == [None, "combo"]

    stored_time = connection.execute(
        "SELECT time FROM transactions WHERE id = ?", (transaction.id,)
    ).fetchone()[0]
    assert stored_time == original_time

    assert poll_for_transaction(connection).pending is None


def test_paid_payment_moves_balances(connection):
    reference = begin_izettle_transaction(connection, _new_transaction(2500))
    complete_izettle_transaction(
        connection, reference, PaymentResponse(PaymentResponseKind.TRANSACTION_PAID)
    )
    accounts = get_accounts(connection)
    assert accounts[1].balance == Currency(2500)
    assert accounts[2].balance == Currency(2500)


def test_failed_payment_records_reason(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    status = complete_izettle_transaction(
        connection,
        reference,
        PaymentResponse(PaymentResponseKind.TRANSACTION_FAILED, "card declined"),
    )
    assert status.description == "Transcation cancelled with failure"
    payment = poll_for_izettle(connection, reference)
    assert payment.status is IZettlePaymentStatus.FAILED
    assert payment.reason == "card declined"
    assert get_transactions(connection) == []


def test_cancelled_payment(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    status = complete_izettle_transaction(
        connection, reference, PaymentResponse(PaymentResponseKind.TRANSACTION_CANCELLED)
    )
    assert status.description == "Transaction cancelled"
    assert poll_for_izettle(connection, reference).status is IZettlePaymentStatus.CANCELLED
    assert poll_for_transaction(connection).pending is None


def test_completing_unknown_reference_is_bad_request(connection):
    with pytest.raises(StatusJson) as info:
        complete_izettle_transaction(
            connection, 42, PaymentResponse(PaymentResponseKind.TRANSACTION_PAID)
        )
    assert info.value.status == 400
    assert info.value.description == "No pending transaction with reference 42"


def test_completing_twice_fails(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    response = PaymentResponse(PaymentResponseKind.TRANSACTION_CANCELLED)
    complete_izettle_transaction(connection, reference, response)
    with pytest.raises(StatusJson) as info:
        complete_izettle_transaction(connection, reference, response)
    assert info.value.status == 400


def test_failed_without_error_reports_unknown(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    with connection:
        connection.execute(
            "UPDATE izettle_post_transaction SET status = 'failed', error = NULL "
            "WHERE izettle_transaction_id = ?",
            (reference,),
        )
    assert poll_for_izettle(connection, reference).reason == "Unknown error"


def test_paid_without_transaction_id_is_server_error(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    with connection:
        connection.execute(
            "UPDATE izettle_post_transaction SET status = 'paid' "
            "WHERE izettle_transaction_id = ?",
            (reference,),
        )
    with pytest.raises(StatusJson) as info:
        poll_for_izettle(connection, reference)
    assert info.value.status == 500
    assert info.value.description == "Internal Server Error"


def test_unknown_status_is_server_error(connection):
    reference = begin_izettle_transaction(connection, _new_transaction())
    with connection:
        connection.execute(
            "UPDATE izettle_post_transaction SET status = 'weird' "
            "WHERE izettle_transaction_id = ?",
            (reference,),
        )
    with pytest.raises(StatusJson) as info:
        poll_for_izettle(connection, reference)
    assert info.value.status == 500
    assert "weird" in info.value.description


@pytest.mark.parametrize(
    "response",
    [
        PaymentResponse(PaymentResponseKind.TRANSACTION_PAID),
        PaymentResponse(PaymentResponseKind.TRANSACTION_CANCELLED),
        PaymentResponse(PaymentResponseKind.TRANSACTION_FAILED, "timeout"),
    ],
)
def test_payment_response_round_trip(response):
    assert PaymentResponse.from_dict(response.to_dict()) == response


def test_payment_response_parses_tag():
    response = PaymentResponse.from_dict({"type": "TransactionFailed", "reason": "x"})
    assert response.kind is PaymentResponseKind.TRANSACTION_FAILED
    assert response.reason == "x"


@pytest.mark.parametrize(
    "data",
    [{}, {"type": "Nonsense"}, {"type": "TransactionFailed"}, "TransactionPaid"],
)
def test_payment_response_rejects_malformed(data):
    with pytest.raises(ValueError):
        PaymentResponse.from_dict(data)


def test_bridge_poll_result_default_is_empty():
    assert BridgePollResult().to_dict() == {"type": "NoPendingTransaction"}
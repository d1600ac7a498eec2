from http import HTTPStatus

import msgpack
import pytest

from strecklistan.api import get_api_version
from strecklistan.database import connect
from strecklistan.models import IZettlePayment, IZettlePaymentStatus
from strecklistan.schema import create_schema, table_names
from strecklistan.server import (
    DATABASE_KEY,
    create_app,
    handle_migrations,
    main,
    parse_bool,
)
from strecklistan.status import StatusJson


@pytest.fixture
def static_dir(tmp_path):
    folder = tmp_path / "www"
    folder.mkdir()
    (folder / "index.html").write_text("<h1>index</h1>")
    (folder / "style.css").write_text("body {}")
    return folder


@pytest.fixture
def app(static_dir):
    application = create_app("sqlite://", str(static_dir), False, 0)
    create_schema(application.extensions[DATABASE_KEY])
    return application


@pytest.fixture
def client(app):
    return app.test_client()


def _transaction(masters, amount):
    return {
        "description": "sale",
        "bundles": [
            {"description": "bundle", "price": amount, "change": -1, "item_ids": {}}
        ],
        "debited_account": masters["cash_account_id"],
        "credited_account": masters["sales_account_id"],
        "amount": amount,
    }


def test_parse_bool_accepts_exact_words():
    assert parse_bool("RUN_MIGRATIONS", "true") is True
    assert parse_bool("RUN_MIGRATIONS", "false") is False


@pytest.mark.parametrize("value", ["True", "1", "yes", ""])
def test_parse_bool_rejects_other_text(value):
    with pytest.raises(ValueError, match="RUN_MIGRATIONS"):
        parse_bool("RUN_MIGRATIONS", value)


def test_handle_migrations_reports_tables(capsys):
    connection = connect("sqlite://")
    report = handle_migrations(connection, True)
    out = capsys.readouterr().out
    assert out.startswith("Migrations:")
    assert "  [ ] transactions" in out
    assert {name for name, applied in report} >= set(table_names())

    handle_migrations(connection, True)
    assert "  [X] transactions" in capsys.readouterr().out


def test_handle_migrations_disabled_does_nothing(capsys):
    connection = connect("sqlite://")
    assert handle_migrations(connection, False) is None
    assert capsys.readouterr().out == ""
    tables = connection.execute("SELECT name FROM sqlite_master").fetchall()
    assert tables == []


def test_version(client):
    response = client.get("/api/version")
    assert response.status_code == HTTPStatus.OK
    assert response.get_data(as_text=True) == get_api_version()


def test_master_accounts_in_msgpack(client):
    as_json = client.get("/api/book_accounts/masters").get_json()
    response = client.get(
        "/api/book_accounts/masters", headers={"Accept": "application/msgpack"}
    )
    assert response.content_type == "application/msgpack"
    assert msgpack.unpackb(response.data) == as_json


def test_unacceptable_format(client):
    response = client.get("/api/book_accounts/masters", headers={"Accept": "text/html"})
    assert response.status_code == HTTPStatus.NOT_ACCEPTABLE
    assert response.get_json() == StatusJson.from_status(
        HTTPStatus.NOT_ACCEPTABLE
    ).to_body()


def test_post_and_list_transactions(client):
    masters = client.get("/api/book_accounts/masters").get_json()
    posted = client.post("/api/transaction", json=_transaction(masters, 1500))
    transaction_id = posted.get_json()

    listed = client.get("/api/transactions").get_json()
    assert [t["id"] for t in listed] == [transaction_id]
    assert listed[0]["amount"] == 1500
    assert listed[0]["debited_account"] == masters["cash_account_id"]

    deleted = client.delete(f"/api/transaction/{transaction_id}")
    assert deleted.get_json() == transaction_id
    assert client.get("/api/transactions").get_json() == []


def test_invalid_transaction_body(client):
    response = client.post("/api/transaction", data="not json")
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_member_with_account(client):
    member = {"first_name": "Ada", "last_name": "Lovelace", "nickname": None}
    member_id, account_id = client.post(
        "/api/add_member_with_book_account", json=[member, "Ada konto"]
    ).get_json()
    members = client.get("/api/members").get_json()
    assert members[str(member_id)]["first_name"] == "Ada"
    accounts = client.get("/api/book_accounts").get_json()
    assert accounts[str(account_id)]["name"] == "Ada konto"


def test_add_account(client):
    account = {"name": "Kassa 2", "account_type": "Assets", "creditor": None}
    account_id = client.post("/api/book_account", json=account).get_json()
    accounts = client.get("/api/book_accounts").get_json()
    assert accounts[str(account_id)]["name"] == "Kassa 2"


def test_event_range_validation(client):
    response = client.get("/api/events?low=5&high=1")
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["description"] == (
        "EventRange: high must be greater than low"
    )
    assert client.get("/api/events?low=-2&high=2").get_json() == []


def test_missing_event(client):
    response = client.get("/api/event/1")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.get_json()["description"] == "Not Found in Database"


def test_unknown_api_route(client):
    response = client.get("/api/nothing")
    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.get_json()["description"] == "Route Not Found"


def test_static_file_and_index_fallback(client, static_dir):
    assert client.get("/style.css").data == (static_dir / "style.css").read_bytes()
    fallback = client.get("/store")
    assert fallback.status_code == HTTPStatus.OK
    assert fallback.data == (static_dir / "index.html").read_bytes()
    assert client.get("/a/b").status_code == HTTPStatus.NOT_FOUND


def test_static_file_cache(static_dir):
    app = create_app("sqlite://", str(static_dir), True, 60)
    client = app.test_client()
    first = client.get("/style.css")
    etag = first.headers["ETag"]
    assert first.headers["Cache-Control"] == "must-revalidate, max-age=60"
    second = client.get("/style.css", headers={"If-None-Match": etag})
    assert second.status_code == HTTPStatus.NOT_MODIFIED
    assert second.headers["ETag"] == etag


def test_izettle_flow(client):
    masters = client.get("/api/book_accounts/masters").get_json()
    reference = client.post(
        "/api/izettle/client/transaction", json=_transaction(masters, 700)
    ).get_json()

    pending = client.get(f"/api/izettle/client/poll/{reference}").get_json()
    assert IZettlePayment.from_dict(pending) == IZettlePayment(
        IZettlePaymentStatus.PENDING
    )
    assert client.get("/api/izettle/bridge/poll").get_json() == {
        "type": "PendingPayment",
        "id": reference,
        "amount": 700,
    }

    result = client.post(
        f"/api/izettle/bridge/payment_response/{reference}",
        json={"type": "TransactionPaid"},
    )
    assert result.status_code == HTTPStatus.OK
    assert result.get_json()["description"] == "Transcation completed"

    transactions = client.get("/api/transactions").get_json()
    paid = client.get(f"/api/izettle/client/poll/{reference}").get_json()
    assert IZettlePayment.from_dict(paid) == IZettlePayment(
        IZettlePaymentStatus.PAID, transaction_id=transactions[0]["id"]
    )
    assert client.get("/api/izettle/bridge/poll").get_json() == {
        "type": "NoPendingTransaction"
    }


def test_izettle_unknown_reference(client):
    response = client.post(
        "/api/izettle/bridge/payment_response/99",
        json={"type": "TransactionCancelled"},
    )
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert "No pending transaction with reference 99" in response.get_json()[
        "description"
    ]


def test_main_without_database_url(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    assert main([]) == 1
    assert "DATABASE_URL" in capsys.readouterr().err


def test_main_with_bad_flag(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("RUN_MIGRATIONS", "maybe")
    assert main([]) == 1
    assert "RUN_MIGRATIONS" in capsys.readouterr().err
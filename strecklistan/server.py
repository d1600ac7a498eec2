"""The HTTP server: configuration, schema setup and the REST routes."""

from __future__ import annotations

import argparse
import json
import os
import sqlite3
import sys
import threading
from collections.abc import Callable
from http import HTTPStatus
from pathlib import Path
from typing import Any

from flask import Flask, Response, request

from strecklistan import api, izettle
from strecklistan.database import connect
from strecklistan.models import NewBookAccount, NewMember, NewTransaction
from strecklistan.negotiation import SerAccept
from strecklistan.schema import create_schema
from strecklistan.static_files import FileResponder
from strecklistan.status import NotFoundInDatabase, StatusJson, catchers

DATABASE_KEY = "strecklistan.database"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


def parse_bool(name: str, value: str) -> bool:
    """Read ``"true"`` or ``"false"``; anything else raises ValueError."""
    if value == "true":
        return True
    if value == "false":
        return False
    raise ValueError(f'Could not parse "{value}" as a bool for {name}')


def _parse_max_age(value: str) -> int:
    if not value.isascii() or not value.isdigit():
        raise ValueError("Invalid STATIC_FILES_MAX_AGE. Expected a number.")
    return int(value)


def handle_migrations(
    connection: sqlite3.Connection, run_migrations: bool
) -> list[tuple[str, bool]] | None:
    """Create the schema if asked to, printing what already existed."""
    if not run_migrations:
        return None

    report = create_schema(connection)
    if report:
        print("Migrations:")
        for name, applied in report:
            print(f"  [{'X' if applied else ' '}] {name}")
    else:
        print("No database migrations available.", file=sys.stderr)
    return report


def _status_response(status_json: StatusJson) -> Response:
    return Response(
        json.dumps(status_json.to_body()),
        status=status_json.status,
        mimetype="application/json",
    )


def _body(parse: Callable[[Any], Any]) -> Any:
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise StatusJson.from_status(HTTPStatus.BAD_REQUEST)
    try:
        return parse(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise StatusJson(HTTPStatus.UNPROCESSABLE_ENTITY, str(exc)) from exc


def _int_arg(name: str) -> int:
    value = request.args.get(name, type=int)
    if value is None:
        raise StatusJson.from_status(HTTPStatus.BAD_REQUEST)
    return value


def _member_request(data: Any) -> tuple[NewMember, str]:
    if not isinstance(data, list) or len(data) != 2:
        raise ValueError("expected a member and an account name")
    member, account_name = data
    if not isinstance(account_name, str):
        raise TypeError("the account name must be a string")
    return NewMember.from_dict(member), account_name


def create_app(
    database_url: str,
    folder: str = "www",
    enable_cache: bool = False,
    max_age: int = 0,
) -> Flask:
    """A Flask application serving the API and the static files in ``folder``."""
    app = Flask(__name__)
    connection = connect(database_url)
    app.extensions[DATABASE_KEY] = connection
    lock = threading.RLock()
    responder = FileResponder(folder=folder, enable_cache=enable_cache, max_age=max_age)

    def serve(handler: Callable[..., Any], *args: Any) -> Response:
        accept = SerAccept.from_accept_header(request.headers.get("Accept"))
        with lock:
            value = handler(connection, *args)
        content_type, body = accept.ser(value).respond()
        return Response(body, content_type=content_type)

    def handle_error(error: BaseException) -> Response:
        return _status_response(StatusJson.from_exception(error))

    for error_type in (StatusJson, NotFoundInDatabase, sqlite3.Error):
        app.register_error_handler(error_type, handle_error)

    for code, catcher in catchers().items():
        app.register_error_handler(
            code, lambda _error, catcher=catcher: _status_response(catcher(request))
        )

    @app.after_request
    def serve_static(response: Response) -> Response:
        replacement = responder.on_response(
            request.path, response.status_code, dict(request.headers)
        )
        if replacement is None:
            return response
        return Response(
            replacement.body,
            status=int(replacement.status),
            headers=replacement.headers,
        )

    @app.get("/api/version")
    def get_api_version() -> Response:
        return Response(api.get_api_version(), mimetype="text/plain")

    @app.get("/api/event/<int(signed=True):event_id>")
    def get_event(event_id: int) -> Response:
        return serve(api.get_event, event_id)

    @app.get("/api/events")
    def get_event_range() -> Response:
        return serve(api.get_event_range, _int_arg("low"), _int_arg("high"))

    @app.get("/api/inventory/items")
    def get_inventory() -> Response:
        return serve(api.get_inventory)

    @app.get("/api/inventory/tags")
    def get_tags() -> Response:
        return serve(api.get_tags)

    @app.get("/api/inventory/bundles")
    def get_inventory_bundles() -> Response:
        return serve(api.get_inventory_bundles)

    @app.get("/api/transactions")
    def get_transactions() -> Response:
        return serve(api.get_transactions)

    @app.post("/api/transaction")
    def post_transaction() -> Response:
        return serve(api.post_transaction, _body(NewTransaction.from_dict))

    @app.delete("/api/transaction/<int(signed=True):transaction_id>")
    def delete_transaction(transaction_id: int) -> Response:
        return serve(api.delete_transaction, transaction_id)

    @app.get("/api/book_accounts")
    def get_accounts() -> Response:
        return serve(api.get_accounts)

    @app.get("/api/book_accounts/masters")
    def get_master_accounts() -> Response:
        return serve(api.get_master_accounts)

    @app.post("/api/book_account")
    def add_account() -> Response:
        return serve(api.add_account, _body(NewBookAccount.from_dict))

    @app.get("/api/members")
    def get_members() -> Response:
        return serve(api.get_members)

    @app.post("/api/add_member_with_book_account")
    def add_member_with_book_account() -> Response:
        new_member, account_name = _body(_member_request)
        return serve(api.add_member_with_book_account, new_member, account_name)

    @app.get("/api/izettle/bridge/poll")
    def poll_for_transaction() -> Response:
        return serve(izettle.poll_for_transaction)

    @app.post("/api/izettle/bridge/payment_response/<int(signed=True):reference>")
    def complete_izettle_transaction(reference: int) -> Response:
        payment_response = _body(izettle.PaymentResponse.from_dict)
        with lock:
            result = izettle.complete_izettle_transaction(
                connection, reference, payment_response
            )
        return _status_response(result)

    @app.post("/api/izettle/client/transaction")
    def begin_izettle_transaction() -> Response:
        return serve(izettle.begin_izettle_transaction, _body(NewTransaction.from_dict))

    @app.get("/api/izettle/client/poll/<int(signed=True):izettle_transaction_id>")
    def poll_for_izettle(izettle_transaction_id: int) -> Response:
        return serve(izettle.poll_for_izettle, izettle_transaction_id)

    return app


def _load_dotenv(path: str = ".env") -> None:
    """Fill unset environment variables from a ``.env`` file, if present."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        return
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        line = line.removeprefix("export ").strip()
        key, sep, value = line.partition("=")
        if not sep or not key.strip():
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        os.environ.setdefault(key.strip(), value)


def main(argv: list[str] | None = None) -> int:
    """Start the server as configured by the environment."""
    parser = argparse.ArgumentParser(
        prog="strecklistan", description="Run the point-of-sale server."
    )
    parser.add_argument("--host", default=None, help="address to listen on")
    parser.add_argument("--port", type=int, default=None, help="port to listen on")
    args = parser.parse_args(argv)

    _load_dotenv()
    env = os.environ
    try:
        database_url = env.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("Could not create database pool: DATABASE_URL is not set")
        run_migrations = parse_bool("RUN_MIGRATIONS", env.get("RUN_MIGRATIONS", "false"))
        enable_cache = parse_bool(
            "ENABLE_STATIC_FILE_CACHE", env.get("ENABLE_STATIC_FILE_CACHE", "false")
        )
        max_age = _parse_max_age(env.get("STATIC_FILES_MAX_AGE", "0"))
        host = args.host or env.get("ROCKET_ADDRESS", DEFAULT_HOST)
        port = args.port if args.port is not None else int(
            env.get("ROCKET_PORT", str(DEFAULT_PORT))
        )
    except (RuntimeError, ValueError) as exc:
        print(exc, file=sys.stderr)
        return 1

    app = create_app(database_url, "www", enable_cache, max_age)
    handle_migrations(app.extensions[DATABASE_KEY], run_migrations)
    app.run(host=host, port=port)
    return 0
# strecklistan

strecklistan is the server side of a small point-of-sale and bookkeeping
system for a member-run kiosk. It keeps, in an SQLite database:

- book accounts (assets, liabilities, revenue, expenses) and their balances,
- members and the tab account each member has,
- inventory items, their stock, tags and bundles,
- sales transactions, with soft deletion,
- card payments handed to an iZettle payment bridge,
- events and their sign-up counts.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
strecklistan
```

Options: `--host` and `--port` choose where the server listens
(default `127.0.0.1:8000`).

Settings are read from the environment. A `.env` file in the working
directory fills in variables that are not already set.

| Variable                   | Meaning                                                   | Default     |
|----------------------------|-----------------------------------------------------------|-------------|
| `DATABASE_URL`             | The SQLite database (required), see below                 |             |
| `RUN_MIGRATIONS`           | `true` to create missing tables and views on start-up     | `false`     |
| `ENABLE_STATIC_FILE_CACHE` | `true` to send `ETag` and `Cache-Control` headers         | `false`     |
| `STATIC_FILES_MAX_AGE`     | `max-age` in seconds for cached static files              | `0`         |
| `ROCKET_ADDRESS`           | Address to listen on when `--host` is not given           | `127.0.0.1` |
| `ROCKET_PORT`              | Port to listen on when `--port` is not given              | `8000`      |

`DATABASE_URL` is either a plain file path or a `sqlite://` URL:
`sqlite:///kiosk.db` names `kiosk.db` in the working directory,
`sqlite:////var/lib/kiosk.db` an absolute path, and `sqlite://` alone an
in-memory database. Other URL schemes are rejected. The boolean settings
accept exactly `true` or `false`; on a bad setting the command prints the
problem and exits with status 1.

## The HTTP API

All routes live under `/api/`. Money is sent as whole hundredths (an
`amount` of `1250` is 12.50).

| Method | Path                                              | Does                                           |
|--------|---------------------------------------------------|------------------------------------------------|
| GET    | `/api/version`                                    | API version, as plain text                     |
| GET    | `/api/event/<id>`                                 | One published event with its sign-up count     |
| GET    | `/api/events?low=<n>&high=<n>`                    | Published events around now, latest first      |
| GET    | `/api/inventory/items`                            | Named items with stock, by id                  |
| GET    | `/api/inventory/tags`                             | All item tags                                  |
| GET    | `/api/inventory/bundles`                          | Bundles with their item ids, by id             |
| GET    | `/api/transactions`                               | Non-deleted transactions, newest first         |
| POST   | `/api/transaction`                                | Store a transaction, returns its id            |
| DELETE | `/api/transaction/<id>`                           | Mark a transaction deleted                     |
| GET    | `/api/book_accounts`                              | Accounts with balances, by id                  |
| GET    | `/api/book_accounts/masters`                      | Ids of the master accounts, created if missing |
| POST   | `/api/book_account`                               | Create an account, returns its id              |
| GET    | `/api/members`                                    | Members by id                                  |
| POST   | `/api/add_member_with_book_account`               | Body `[member, account_name]`; returns both ids|
| POST   | `/api/izettle/client/transaction`                 | Queue a card payment, returns its reference    |
| GET    | `/api/izettle/client/poll/<reference>`            | State of a queued card payment                 |
| GET    | `/api/izettle/bridge/poll`                        | Oldest payment waiting for the bridge          |
| POST   | `/api/izettle/bridge/payment_response/<reference>`| The bridge reports paid, failed or cancelled   |

In `/api/events`, negative positions count past events backwards from now
and positive ones count upcoming events; `high` must be greater than `low`.

Responses are JSON by default. A client may ask for RON
(`application/ron`) or MessagePack (`application/msgpack`) in its `Accept`
header; if nothing it accepts can be produced, the answer is 406. Errors
come back as JSON of the form `{"status": 404, "description": "..."}`.

Requests that no route answers with anything but 404, outside `/api/`, are
served from the `www` folder. A path of at most one segment that matches
no file gets `www/index.html`, so a single-page frontend can be served.

## Using the library

Money is handled as whole hundredths, never as floats:

```python
from strecklistan.currency import AbsCurrency, Currency, CurrencyParseError

price = Currency.parse("12.5")
print(price)               # 12.50
print(price.whole())       # 12
print(price.fractional())  # 50

try:
    AbsCurrency.parse("-3")
except CurrencyParseError as err:
    print(err)             # parsing failed
```

The handlers in `strecklistan.api` and `strecklistan.izettle` take an
`sqlite3` connection and return model objects from `strecklistan.models`,
so they can be used without the web server:

```python
from strecklistan import api
from strecklistan.database import connect
from strecklistan.schema import create_schema

connection = connect("sqlite://")
create_schema(connection)
print(api.get_master_accounts(connection))
```

`strecklistan.server.create_app(database_url, folder, enable_cache, max_age)`
builds the Flask application itself.

`strecklistan.ui_state` holds the state a point-of-sale screen keeps:
timed notifications (`NotificationManager`), text fields parsed as they are
typed in (`ParsedInput`) and option pickers (`SelectInput`).

## What it does not do

- There is no user interface. `strecklistan.ui_state` only keeps state; the
  pages themselves, and the contents of the `www` folder, are not part of
  this package.
- Only SQLite databases are supported.
- Events and sign-ups can be read through the API but not created.
- The iZettle bridge itself, which talks to the card reader, is a separate
  program; this package only queues payments for it and records results.
"""Data models shared between the server and its clients."""

from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from strecklistan.currency import Currency

BookAccountId = int
MemberId = int
InventoryItemId = int
InventoryBundleId = int
TransactionId = int


def _format_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat()
    return text.removesuffix("+00:00") + "Z"


def _optional_currency(value: Any) -> Currency | None:
    return None if value is None else Currency(int(value))


class BookAccountType(enum.Enum):
    EXPENSES = "Expenses"
    ASSETS = "Assets"
    LIABILITIES = "Liabilities"
    REVENUE = "Revenue"


@dataclass(eq=False)
class BookAccount:
    """A book-keeping account; accounts are equal when their ids are."""

    id: BookAccountId
    name: str
    account_type: BookAccountType
    creditor: MemberId | None = None
    balance: Currency = Currency(0)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BookAccount):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def credit_diff(self, amount: Currency) -> Currency:
        """How the balance would change if ``amount`` were credited."""
        return self.debit_diff(-amount)

    def debit_diff(self, amount: Currency) -> Currency:
        """How the balance would change if ``amount`` were debited."""
        if self.account_type in (BookAccountType.EXPENSES, BookAccountType.ASSETS):
            return amount
        return -amount

    def credit(self, amount: Currency) -> None:
        self.debit(-amount)

    def debit(self, amount: Currency) -> None:
        self.balance = self.balance + self.debit_diff(amount)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type.value,
            "creditor": self.creditor,
            "balance": int(self.balance),
        }


@dataclass
class NewBookAccount:
    name: str
    account_type: BookAccountType
    creditor: MemberId | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NewBookAccount:
        try:
            return cls(
                name=str(data["name"]),
                account_type=BookAccountType(data["account_type"]),
                creditor=data.get("creditor"),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid book account: {exc}") from exc


@dataclass
class MasterAccounts:
    bank_account_id: BookAccountId
    cash_account_id: BookAccountId
    sales_account_id: BookAccountId
    purchases_account_id: BookAccountId

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(eq=False)
class InventoryItem:
    id: InventoryItemId
    name: str
    price: int | None = None
    image_url: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InventoryItem):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(eq=False)
class InventoryItemStock:
    id: InventoryItemId
    name: str
    price: int | None = None
    image_url: str | None = None
    stock: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InventoryItemStock):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class InventoryItemTag:
    tag: str
    item_id: InventoryItemId

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(eq=False)
class InventoryBundle:
    id: InventoryBundleId
    name: str
    price: Currency
    image_url: str | None = None
    item_ids: list[InventoryItemId] = field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InventoryBundle):
            return NotImplemented
        return self.id == other.id

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": int(self.price),
            "image_url": self.image_url,
            "item_ids": list(self.item_ids),
        }


class IZettlePaymentStatus(enum.Enum):
    PAID = "Paid"
    PENDING = "Pending"
    CANCELLED = "Cancelled"
    FAILED = "Failed"
    NO_TRANSACTION = "NoTransaction"


@dataclass(frozen=True)
class IZettlePayment:
    """The state of a card payment as reported to the client."""

    status: IZettlePaymentStatus
    transaction_id: TransactionId | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if self.status is IZettlePaymentStatus.PAID and self.transaction_id is None:
            raise ValueError("a paid payment needs a transaction id")
        if self.status is IZettlePaymentStatus.FAILED and self.reason is None:
            raise ValueError("a failed payment needs a reason")

    def to_dict(self) -> dict[str, Any] | str:
        """The serialized form: a bare tag, or a tag mapping to its fields."""
        if self.status is IZettlePaymentStatus.PAID:
            return {self.status.value: {"transaction_id": self.transaction_id}}
        if self.status is IZettlePaymentStatus.FAILED:
            return {self.status.value: {"reason": self.reason}}
        return self.status.value

    @classmethod
    def from_dict(cls, data: dict[str, Any] | str) -> IZettlePayment:
        if isinstance(data, str):
            status = IZettlePaymentStatus(data)
            if status in (IZettlePaymentStatus.PAID, IZettlePaymentStatus.FAILED):
                raise ValueError(f"payment status {data} needs fields")
            return cls(status)
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError("a payment must have exactly one tag")
        ((tag, fields),) = data.items()
        status = IZettlePaymentStatus(tag)
        if not isinstance(fields, dict):
            raise ValueError(f"payment status {tag} has malformed fields")
        try:
            if status is IZettlePaymentStatus.PAID:
                return cls(status, transaction_id=int(fields["transaction_id"]))
            if status is IZettlePaymentStatus.FAILED:
                return cls(status, reason=str(fields["reason"]))
        except KeyError as exc:
            raise ValueError(f"payment status {tag} is missing {exc}") from exc
        return cls(status)


@dataclass
class Member:
    id: MemberId
    first_name: str
    last_name: str
    nickname: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NewMember:
    first_name: str
    last_name: str
    nickname: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NewMember:
        try:
            return cls(
                first_name=str(data["first_name"]),
                last_name=str(data["last_name"]),
                nickname=data.get("nickname"),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid member: {exc}") from exc


@dataclass
class TransactionBundle:
    """A group of items sold together; ``item_ids`` maps item id to count."""

    description: str | None = None
    price: Currency | None = None
    change: int = 0
    item_ids: dict[InventoryItemId, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if any(count < 0 for count in self.item_ids.values()):
            raise ValueError("item counts must not be negative")

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "price": None if self.price is None else int(self.price),
            "change": self.change,
            "item_ids": dict(self.item_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionBundle:
        try:
            return cls(
                description=data.get("description"),
                price=_optional_currency(data.get("price")),
                change=int(data["change"]),
                item_ids={
                    int(item): int(count) for item, count in data["item_ids"].items()
                },
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"invalid transaction bundle: {exc}") from exc


@dataclass
class NewTransaction:
    debited_account: BookAccountId
    credited_account: BookAccountId
    amount: Currency
    description: str | None = None
    bundles: list[TransactionBundle] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "bundles": [bundle.to_dict() for bundle in self.bundles],
            "debited_account": self.debited_account,
            "credited_account": self.credited_account,
            "amount": int(self.amount),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NewTransaction:
        try:
            return cls(
                description=data.get("description"),
                bundles=[TransactionBundle.from_dict(b) for b in data["bundles"]],
                debited_account=int(data["debited_account"]),
                credited_account=int(data["credited_account"]),
                amount=Currency(int(data["amount"])),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid transaction: {exc}") from exc


@dataclass(eq=False)
class Transaction:
    """A committed transaction; transactions are equal when their ids are."""

    id: TransactionId
    time: datetime
    debited_account: BookAccountId
    credited_account: BookAccountId
    amount: Currency
    description: str | None = None
    bundles: list[TransactionBundle] = field(default_factory=list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.id == other.id

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "time": _format_time(self.time),
            "bundles": [bundle.to_dict() for bundle in self.bundles],
            "debited_account": self.debited_account,
            "credited_account": self.credited_account,
            "amount": int(self.amount),
        }
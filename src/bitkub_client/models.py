"""
Typed records decoded from Bitkub responses.

Named-object records tolerate absent or null fields (they decode to the zero
value), but a present field of the wrong JSON kind is a decode error. Tuple
rows are strict: every declared position must exist and have the right kind;
extra positions are ignored.

Integral fields (ids, timestamps) go through ``as_int``: floats are truncated
toward zero. JSON floats carry 53 bits of mantissa, so an integral value sent
as a float above 2**53 may already have lost precision before it reaches us.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence, TypeVar

from .errors import BitkubDecodeError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_EXACT_FLOAT_INT = 2**53


# ---------- coercion ----------
def _kind(value: Any) -> str:
    return type(value).__name__


def as_float(value: Any, name: str = "value") -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BitkubDecodeError(f"{name}: expected number, got {_kind(value)}")
    return float(value)


def as_int(value: Any, name: str = "value") -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BitkubDecodeError(f"{name}: expected integer, got {_kind(value)}")
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise BitkubDecodeError(f"{name}: expected integer, got {value}")
        if abs(value) > MAX_EXACT_FLOAT_INT:
            logger.warning("%s=%r exceeds 2**53; integer value may be inexact", name, value)
    # int() truncates toward zero
    return int(value)


def as_str(value: Any, name: str = "value") -> str:
    if not isinstance(value, str):
        raise BitkubDecodeError(f"{name}: expected string, got {_kind(value)}")
    return value


def as_bool(value: Any, name: str = "value") -> bool:
    if not isinstance(value, bool):
        raise BitkubDecodeError(f"{name}: expected boolean, got {_kind(value)}")
    return value


def as_mapping(value: Any, name: str = "value") -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise BitkubDecodeError(f"{name}: expected object, got {_kind(value)}")
    return value


def as_list(value: Any, name: str = "value") -> Sequence[Any]:
    if not isinstance(value, list):
        raise BitkubDecodeError(f"{name}: expected array, got {_kind(value)}")
    return value


_ZERO: dict[Callable[..., Any], Any] = {as_float: 0.0, as_int: 0, as_str: "", as_bool: False}


def _field(data: Mapping[str, Any], key: str, conv: Callable[[Any, str], T]) -> T:
    value = data.get(key)
    if value is None:
        return _ZERO[conv]
    return conv(value, key)


def _position(row: Sequence[Any], index: int, conv: Callable[[Any, str], T]) -> T:
    if index >= len(row):
        raise BitkubDecodeError(f"row has {len(row)} positions, position {index} is required")
    return conv(row[index], f"position {index}")


# ---------- envelope ----------
@dataclass(frozen=True)
class Pagination:
    page: int
    last: int
    next: int | None = None
    prev: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Pagination":
        data = as_mapping(data, "pagination")
        return cls(
            page=_field(data, "page", as_int),
            last=_field(data, "last", as_int),
            next=as_int(data["next"], "next") if data.get("next") is not None else None,
            prev=as_int(data["prev"], "prev") if data.get("prev") is not None else None,
        )


# ---------- public market data ----------
@dataclass(frozen=True)
class ServerStatus:
    name: str
    status: str
    message: str

    @classmethod
    def from_dict(cls, data: Any) -> "ServerStatus":
        data = as_mapping(data)
        return cls(
            name=_field(data, "name", as_str),
            status=_field(data, "status", as_str),
            message=_field(data, "message", as_str),
        )


@dataclass(frozen=True)
class MarketSymbol:
    id: int
    symbol: str
    info: str

    @classmethod
    def from_dict(cls, data: Any) -> "MarketSymbol":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_int),
            symbol=_field(data, "symbol", as_str),
            info=_field(data, "info", as_str),
        )


@dataclass(frozen=True)
class MarketTicker:
    id: int
    last: float
    lowest_ask: float
    highest_bid: float
    percent_change: float
    base_volume: float
    quote_volume: float
    is_frozen: int
    high_24hr: float
    low_24hr: float

    @classmethod
    def from_dict(cls, data: Any) -> "MarketTicker":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_int),
            last=_field(data, "last", as_float),
            lowest_ask=_field(data, "lowestAsk", as_float),
            highest_bid=_field(data, "highestBid", as_float),
            percent_change=_field(data, "percentChange", as_float),
            base_volume=_field(data, "baseVolume", as_float),
            quote_volume=_field(data, "quoteVolume", as_float),
            is_frozen=_field(data, "isFrozen", as_int),
            high_24hr=_field(data, "high24hr", as_float),
            low_24hr=_field(data, "low24hr", as_float),
        )


@dataclass(frozen=True)
class MarketTrade:
    """Row: [timestamp, rate, amount, side]"""

    timestamp: int
    rate: float
    amount: float
    side: str

    @classmethod
    def from_row(cls, row: Any) -> "MarketTrade":
        row = as_list(row, "trade")
        return cls(
            timestamp=_position(row, 0, as_int),
            rate=_position(row, 1, as_float),
            amount=_position(row, 2, as_float),
            side=_position(row, 3, as_str),
        )


@dataclass(frozen=True)
class MarketOrderEntry:
    """Row for bids, asks and books: [order_id, timestamp, volume, rate, amount]"""

    order_id: int
    timestamp: int
    volume: float
    rate: float
    amount: float

    @classmethod
    def from_row(cls, row: Any) -> "MarketOrderEntry":
        row = as_list(row, "order entry")
        return cls(
            order_id=_position(row, 0, as_int),
            timestamp=_position(row, 1, as_int),
            volume=_position(row, 2, as_float),
            rate=_position(row, 3, as_float),
            amount=_position(row, 4, as_float),
        )


@dataclass(frozen=True)
class DepthLevel:
    """Row: [price, volume]"""

    price: float
    volume: float

    @classmethod
    def from_row(cls, row: Any) -> "DepthLevel":
        row = as_list(row, "depth level")
        return cls(price=_position(row, 0, as_float), volume=_position(row, 1, as_float))


# ---------- account ----------
@dataclass(frozen=True)
class Balance:
    available: float
    reserved: float

    @classmethod
    def from_dict(cls, data: Any) -> "Balance":
        data = as_mapping(data)
        return cls(available=_field(data, "available", as_float), reserved=_field(data, "reserved", as_float))


@dataclass(frozen=True)
class Order:
    id: int
    hash: str
    type: str
    amount: float  # spending amount
    rate: float
    fee: float
    credit: float  # credit used
    receive: float  # amount to receive
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "Order":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_int),
            hash=_field(data, "hash", as_str),
            type=_field(data, "typ", as_str),
            amount=_field(data, "amt", as_float),
            rate=_field(data, "rat", as_float),
            fee=_field(data, "fee", as_float),
            credit=_field(data, "cre", as_float),
            receive=_field(data, "rec", as_float),
            timestamp=_field(data, "ts", as_int),
        )


@dataclass(frozen=True)
class OpenOrder:
    id: int
    hash: str
    side: str
    type: str
    rate: float
    fee: float
    credit: float
    amount: float
    receive: float
    parent_id: int
    super_id: int
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "OpenOrder":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_int),
            hash=_field(data, "hash", as_str),
            side=_field(data, "side", as_str),
            type=_field(data, "type", as_str),
            rate=_field(data, "rate", as_float),
            fee=_field(data, "fee", as_float),
            credit=_field(data, "credit", as_float),
            amount=_field(data, "amount", as_float),
            receive=_field(data, "receive", as_float),
            parent_id=_field(data, "parent_id", as_int),
            super_id=_field(data, "super_id", as_int),
            timestamp=_field(data, "ts", as_int),
        )


@dataclass(frozen=True)
class OrderHistory:
    txn_id: str
    order_id: int
    hash: str
    parent_order_id: int
    super_order_id: int
    taken_by_me: bool
    is_maker: bool
    side: str
    type: str
    rate: float
    fee: float
    credit: float
    amount: float
    receive: float

    @classmethod
    def from_dict(cls, data: Any) -> "OrderHistory":
        data = as_mapping(data)
        return cls(
            txn_id=_field(data, "txn_id", as_str),
            order_id=_field(data, "order_id", as_int),
            hash=_field(data, "hash", as_str),
            parent_order_id=_field(data, "parent_order_id", as_int),
            super_order_id=_field(data, "super_order_id", as_int),
            taken_by_me=_field(data, "taken_by_me", as_bool),
            is_maker=_field(data, "is_maker", as_bool),
            side=_field(data, "side", as_str),
            type=_field(data, "type", as_str),
            rate=_field(data, "rate", as_float),
            fee=_field(data, "fee", as_float),
            credit=_field(data, "credit", as_float),
            amount=_field(data, "amount", as_float),
            receive=_field(data, "receive", as_float),
        )


@dataclass(frozen=True)
class OrderInfoHistory:
    id: int
    amount: float
    credit: float
    fee: float
    rate: float
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "OrderInfoHistory":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_int),
            amount=_field(data, "amount", as_float),
            credit=_field(data, "credit", as_float),
            fee=_field(data, "fee", as_float),
            rate=_field(data, "rate", as_float),
            timestamp=_field(data, "timestamp", as_int),
        )


@dataclass(frozen=True)
class OrderInfo:
    id: int
    first: int  # first order id
    parent: int
    last: int
    amount: float
    rate: float
    fee: float
    credit: float
    filled: float
    total: float
    status: str  # filled, unfilled
    partial_filled: bool
    remaining: float
    history: tuple[OrderInfoHistory, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Any) -> "OrderInfo":
        data = as_mapping(data)
        history = data.get("history")
        return cls(
            id=_field(data, "id", as_int),
            first=_field(data, "first", as_int),
            parent=_field(data, "parent", as_int),
            last=_field(data, "last", as_int),
            amount=_field(data, "amount", as_float),
            rate=_field(data, "rate", as_float),
            fee=_field(data, "fee", as_float),
            credit=_field(data, "credit", as_float),
            filled=_field(data, "filled", as_float),
            total=_field(data, "total", as_float),
            status=_field(data, "status", as_str),
            partial_filled=_field(data, "partial_filled", as_bool),
            remaining=_field(data, "remaining", as_float),
            history=tuple(OrderInfoHistory.from_dict(h) for h in as_list(history, "history")) if history is not None else (),
        )


# ---------- crypto ----------
@dataclass(frozen=True)
class CryptoAddress:
    currency: str
    address: str
    tag: int
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "CryptoAddress":
        data = as_mapping(data)
        return cls(
            currency=_field(data, "currency", as_str),
            address=_field(data, "address", as_str),
            tag=_field(data, "tag", as_int),
            timestamp=_field(data, "time", as_int),
        )


@dataclass(frozen=True)
class CryptoWithdrawal:
    txn_id: str
    address: str
    memo: str
    currency: str
    amount: float
    fee: float
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "CryptoWithdrawal":
        data = as_mapping(data)
        return cls(
            txn_id=_field(data, "txn", as_str),
            address=_field(data, "adr", as_str),
            memo=_field(data, "mem", as_str),
            currency=_field(data, "cur", as_str),
            amount=_field(data, "amt", as_float),
            fee=_field(data, "fee", as_float),
            timestamp=_field(data, "ts", as_int),
        )


@dataclass(frozen=True)
class CryptoDeposit:
    hash: str
    currency: str
    amount: float
    from_address: str
    to_address: str
    confirmations: int
    status: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "CryptoDeposit":
        data = as_mapping(data)
        return cls(
            hash=_field(data, "hash", as_str),
            currency=_field(data, "currency", as_str),
            amount=_field(data, "amount", as_float),
            from_address=_field(data, "from_address", as_str),
            to_address=_field(data, "to_address", as_str),
            confirmations=_field(data, "confirmations", as_int),
            status=_field(data, "status", as_str),
            timestamp=_field(data, "time", as_int),
        )


@dataclass(frozen=True)
class GeneratedAddress:
    currency: str
    address: str
    memo: str

    @classmethod
    def from_dict(cls, data: Any) -> "GeneratedAddress":
        data = as_mapping(data)
        return cls(
            currency=_field(data, "currency", as_str),
            address=_field(data, "address", as_str),
            memo=_field(data, "mem", as_str),
        )


# ---------- fiat ----------
@dataclass(frozen=True)
class BankAccount:
    id: str
    bank: str
    name: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "BankAccount":
        data = as_mapping(data)
        return cls(
            id=_field(data, "id", as_str),
            bank=_field(data, "bank", as_str),
            name=_field(data, "name", as_str),
            timestamp=_field(data, "time", as_int),
        )


@dataclass(frozen=True)
class FiatWithdrawal:
    txn_id: str
    account_id: str
    currency: str
    amount: float
    fee: float
    receive: float
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "FiatWithdrawal":
        data = as_mapping(data)
        return cls(
            txn_id=_field(data, "txn", as_str),
            account_id=_field(data, "acc", as_str),
            currency=_field(data, "cur", as_str),
            amount=_field(data, "amt", as_float),
            fee=_field(data, "fee", as_float),
            receive=_field(data, "rec", as_float),
            timestamp=_field(data, "ts", as_int),
        )


@dataclass(frozen=True)
class FiatDeposit:
    txn_id: str
    currency: str
    amount: float
    status: str
    timestamp: int

    @classmethod
    def from_dict(cls, data: Any) -> "FiatDeposit":
        data = as_mapping(data)
        return cls(
            txn_id=_field(data, "txn_id", as_str),
            currency=_field(data, "currency", as_str),
            amount=_field(data, "amount", as_float),
            status=_field(data, "status", as_str),
            timestamp=_field(data, "time", as_int),
        )


# ---------- user ----------
@dataclass(frozen=True)
class Limit:
    deposit: float
    withdraw: float

    @classmethod
    def from_dict(cls, data: Any) -> "Limit":
        data = as_mapping(data)
        return cls(deposit=_field(data, "deposit", as_float), withdraw=_field(data, "withdraw", as_float))


@dataclass(frozen=True)
class Limits:
    crypto: Limit  # BTC equivalent
    fiat: Limit  # THB

    @classmethod
    def from_dict(cls, data: Any) -> "Limits":
        data = as_mapping(data)
        return cls(crypto=Limit.from_dict(data.get("crypto") or {}), fiat=Limit.from_dict(data.get("fiat") or {}))


@dataclass(frozen=True)
class CryptoUsage:
    deposit: float
    withdraw: float
    deposit_percentage: float
    withdraw_percentage: float
    deposit_thb_equivalent: float
    withdraw_thb_equivalent: float

    @classmethod
    def from_dict(cls, data: Any) -> "CryptoUsage":
        data = as_mapping(data)
        return cls(
            deposit=_field(data, "deposit", as_float),
            withdraw=_field(data, "withdraw", as_float),
            deposit_percentage=_field(data, "deposit_percentage", as_float),
            withdraw_percentage=_field(data, "withdraw_percentage", as_float),
            deposit_thb_equivalent=_field(data, "deposit_thb_equivalent", as_float),
            withdraw_thb_equivalent=_field(data, "withdraw_thb_equivalent", as_float),
        )


@dataclass(frozen=True)
class FiatUsage:
    deposit: float
    withdraw: float
    deposit_percentage: float
    withdraw_percentage: float

    @classmethod
    def from_dict(cls, data: Any) -> "FiatUsage":
        data = as_mapping(data)
        return cls(
            deposit=_field(data, "deposit", as_float),
            withdraw=_field(data, "withdraw", as_float),
            deposit_percentage=_field(data, "deposit_percentage", as_float),
            withdraw_percentage=_field(data, "withdraw_percentage", as_float),
        )


@dataclass(frozen=True)
class Usage:
    crypto: CryptoUsage
    fiat: FiatUsage

    @classmethod
    def from_dict(cls, data: Any) -> "Usage":
        data = as_mapping(data)
        return cls(
            crypto=CryptoUsage.from_dict(data.get("crypto") or {}),
            fiat=FiatUsage.from_dict(data.get("fiat") or {}),
        )


@dataclass(frozen=True)
class UserLimits:
    limits: Limits
    usage: Usage
    rate: float  # THB rate used for the equivalents

    @classmethod
    def from_dict(cls, data: Any) -> "UserLimits":
        data = as_mapping(data)
        return cls(
            limits=Limits.from_dict(data.get("limits") or {}),
            usage=Usage.from_dict(data.get("usage") or {}),
            rate=_field(data, "rate", as_float),
        )

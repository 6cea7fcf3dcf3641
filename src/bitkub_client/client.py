from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Iterable

import requests

from .config import BitkubConfig, Credentials, OrderOptions
from .envelope import (
    KeyedTupleLists,
    NoResult,
    Object,
    ObjectList,
    ObjectMap,
    Scalar,
    Shape,
    TupleList,
    decode,
    decode_bare,
)
from .errors import BitkubDecodeError, BitkubPreconditionError
from .formatting import format_amount
from .models import (
    Balance,
    BankAccount,
    CryptoAddress,
    CryptoDeposit,
    CryptoWithdrawal,
    DepthLevel,
    FiatDeposit,
    FiatWithdrawal,
    GeneratedAddress,
    MarketOrderEntry,
    MarketSymbol,
    MarketTicker,
    MarketTrade,
    OpenOrder,
    Order,
    OrderHistory,
    OrderInfo,
    Pagination,
    ServerStatus,
    UserLimits,
    as_float,
    as_str,
)
from .signing import now_ms, sign_payload
from .transport import Transport

logger = logging.getLogger(__name__)

ORDER_TYPE_LIMIT = "limit"
ORDER_TYPE_MARKET = "market"
ORDER_TYPES = (ORDER_TYPE_LIMIT, ORDER_TYPE_MARKET)

ORDER_SIDE_BUY = "buy"
ORDER_SIDE_SELL = "sell"
ORDER_SIDES = (ORDER_SIDE_BUY, ORDER_SIDE_SELL)

API_KEY_HEADER = "X-BTK-APIKEY"

# /api/servertime values at or above this are milliseconds, below are seconds
_MS_THRESHOLD = 10**11


# ---------- local precondition checks ----------
def _require(value: Any, name: str) -> None:
    if not value:
        raise BitkubPreconditionError(f"{name} is empty", field=name)


def _require_choice(value: str, name: str, choices: Iterable[str]) -> None:
    _require(value, name)
    if value not in choices:
        raise BitkubPreconditionError(f"{name} is invalid: {value!r}", field=name)


def _require_positive(value: float, name: str) -> None:
    # checked against the string actually sent, so 1e-7 ("0") is rejected too
    if not value or not math.isfinite(value) or value <= 0 or format_amount(value) == "0":
        raise BitkubPreconditionError(f"{name} is invalid: {value!r}", field=name)


def _paging(page: int = 0, limit: int = 0, **extra: int) -> dict[str, Any]:
    # zero/negative means "server default" and is not sent
    params: dict[str, Any] = {}
    if page > 0:
        params["p"] = page
    if limit > 0:
        params["lmt"] = limit
    for key, value in extra.items():
        if value > 0:
            params[key] = value
    return params


def _market_params(symbol: str, limit: int) -> dict[str, Any]:
    params = _paging(limit=limit)
    if symbol:
        params["sym"] = symbol
    return params


class BitkubClient:
    """
    Bitkub REST client.

    Public market data goes out as plain GETs. Private calls are POSTs whose
    JSON body is signed:

      ts  = unix ms, injected into the body
      sig = hex(HMAC-SHA256(api_secret, canonical JSON of body))

    and carry the ``X-BTK-APIKEY`` header. The instance holds only immutable
    configuration and is safe to share between threads.
    """

    def __init__(
        self,
        api_key: str = "",
        api_secret: str = "",
        *,
        config: BitkubConfig = BitkubConfig(),
        session: requests.Session | None = None,
    ):
        self.credentials = Credentials(api_key=api_key, api_secret=api_secret)
        self.config = config
        self.transport = Transport(config, session=session)

    @classmethod
    def from_env(cls, *, config: BitkubConfig = BitkubConfig(), session: requests.Session | None = None) -> "BitkubClient":
        creds = Credentials.from_env()
        return cls(creds.api_key, creds.api_secret, config=config, session=session)

    @property
    def session(self) -> requests.Session:
        return self.transport.session

    # ---------- request core ----------
    def _timestamp_ms(self) -> int:
        return now_ms()

    def _require_credentials(self) -> None:
        if not self.credentials.api_key:
            raise BitkubPreconditionError("api key is empty", field="api_key")
        if not self.credentials.api_secret:
            raise BitkubPreconditionError("api secret is empty", field="api_secret")

    def _public_get(self, path: str, shape: Shape, params: dict[str, Any] | None = None) -> Any:
        body = self.transport.get(path, params=params)
        return decode(body, shape, path=path)

    def _private_post(self, path: str, shape: Shape, params: dict[str, Any] | None = None) -> Any:
        self._require_credentials()
        # sign right before sending; the server enforces a freshness window on ts
        ts = self._timestamp_ms()
        body = sign_payload(params or {}, self.credentials.api_secret, ts=ts)
        logger.debug("%s signed with ts=%d", path, ts)
        headers = {API_KEY_HEADER: self.credentials.api_key, "Content-Type": "application/json"}
        raw = self.transport.post(path, body, headers)
        return decode(raw, shape, path=path)

    # ---------- public endpoints ----------
    def get_server_status(self) -> list[ServerStatus]:
        """Endpoint status; wait for "ok" before trading when it is not."""
        path = "/api/status"
        return decode_bare(self.transport.get(path), ObjectList(ServerStatus.from_dict), path=path)

    def get_server_time(self) -> datetime:
        path = "/api/servertime"
        value = decode_bare(self.transport.get(path), Scalar(as_float), path=path)
        seconds = value / 1000 if value >= _MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise BitkubDecodeError(f"{path}: server time out of range: {value!r}", body=str(value), cause=e) from e

    def get_market_symbols(self) -> list[MarketSymbol]:
        return self._public_get("/api/market/symbols", ObjectList(MarketSymbol.from_dict)).result

    def get_market_tickers(self, symbol: str | None = None) -> dict[str, MarketTicker]:
        path = "/api/market/ticker"
        params = {"sym": symbol} if symbol else None
        return decode_bare(self.transport.get(path, params=params), ObjectMap(MarketTicker.from_dict), path=path)

    def get_market_trades(self, symbol: str, limit: int = 0) -> list[MarketTrade]:
        params = _market_params(symbol, limit)
        return self._public_get("/api/market/trades", TupleList(MarketTrade.from_row), params).result

    def get_market_bids(self, symbol: str, limit: int = 0) -> list[MarketOrderEntry]:
        """Open buy orders."""
        params = _market_params(symbol, limit)
        return self._public_get("/api/market/bids", TupleList(MarketOrderEntry.from_row), params).result

    def get_market_asks(self, symbol: str, limit: int = 0) -> list[MarketOrderEntry]:
        """Open sell orders."""
        params = _market_params(symbol, limit)
        return self._public_get("/api/market/asks", TupleList(MarketOrderEntry.from_row), params).result

    def get_market_books(self, symbol: str, limit: int = 0) -> dict[str, list[MarketOrderEntry]]:
        params = _market_params(symbol, limit)
        return self._public_get("/api/market/books", KeyedTupleLists(MarketOrderEntry.from_row), params).result

    def get_market_depth(self, symbol: str, limit: int = 0) -> dict[str, list[DepthLevel]]:
        path = "/api/market/depth"
        params = _market_params(symbol, limit)
        return decode_bare(self.transport.get(path, params=params), KeyedTupleLists(DepthLevel.from_row), path=path)

    def get_tradingview_history(self, symbol: str, resolution: str, start: int = 0, end: int = 0) -> dict[str, Any]:
        """Raw TradingView chart payload, returned as-is."""
        path = "/tradingview/history"
        params: dict[str, Any] = {}
        if symbol:
            params["sym"] = symbol
        if resolution:
            params["resolution"] = resolution
        params.update(_paging(**{"from": start, "to": end}))
        return decode_bare(self.transport.get(path, params=params), Object(dict), path=path)

    # ---------- balances ----------
    def get_wallet(self) -> dict[str, float]:
        """Available balances only; see ``get_balances`` for reserved amounts."""
        return self._private_post("/api/market/wallet", ObjectMap(as_float)).result

    def get_balances(self) -> dict[str, Balance]:
        return self._private_post("/api/market/balances", ObjectMap(Balance.from_dict)).result

    # ---------- orders ----------
    def _place_order(
        self,
        path: str,
        symbol: str,
        order_type: str,
        amount: float,
        rate: float,
        options: OrderOptions | None,
    ) -> Order:
        self._require_credentials()
        _require(symbol, "symbol")
        _require_choice(order_type, "order type", ORDER_TYPES)
        _require_positive(amount, "amount")
        if order_type == ORDER_TYPE_MARKET:
            rate = 0

        params: dict[str, Any] = {
            "sym": symbol,
            "typ": order_type,
            "amt": format_amount(amount),
            "rat": format_amount(rate),
        }
        if options is not None and options.client_id:
            params["client_id"] = options.client_id
        return self._private_post(path, Object(Order.from_dict), params).result

    def place_bid(self, symbol: str, order_type: str, amount: float, rate: float = 0, options: OrderOptions | None = None) -> Order:
        """Buy order. ``amount`` is the fiat amount to spend."""
        return self._place_order("/api/market/place-bid", symbol, order_type, amount, rate, options)

    def place_bid_test(self, symbol: str, order_type: str, amount: float, rate: float = 0, options: OrderOptions | None = None) -> Order:
        """Same as ``place_bid`` but no balance is deducted."""
        return self._place_order("/api/market/place-bid/test", symbol, order_type, amount, rate, options)

    def place_ask(self, symbol: str, order_type: str, amount: float, rate: float = 0, options: OrderOptions | None = None) -> Order:
        """Sell order. ``amount`` is the crypto amount to sell."""
        return self._place_order("/api/market/place-ask", symbol, order_type, amount, rate, options)

    def place_ask_test(self, symbol: str, order_type: str, amount: float, rate: float = 0, options: OrderOptions | None = None) -> Order:
        return self._place_order("/api/market/place-ask/test", symbol, order_type, amount, rate, options)

    def place_ask_by_fiat(self, symbol: str, order_type: str, amount: float, rate: float = 0) -> Order:
        """
        Sell order sized by the fiat amount to receive.

        The crypto amount is computed by the exchange; market orders use the
        current highest bid.
        """
        return self._place_order("/api/market/place-ask-by-fiat", symbol, order_type, amount, rate, None)

    def _order_ref(self, symbol: str, side: str, order_id: int, order_hash: str) -> dict[str, Any]:
        # an order is addressed either by hash alone, or by symbol + side + id
        if order_hash:
            return {"hash": order_hash}
        _require(symbol, "symbol")
        _require_choice(side, "side", ORDER_SIDES)
        _require(order_id, "id")
        return {"sym": symbol, "id": str(order_id), "sd": side}

    def cancel_order(self, symbol: str = "", side: str = "", order_id: int = 0, order_hash: str = "") -> None:
        self._require_credentials()
        params = self._order_ref(symbol, side, order_id, order_hash)
        self._private_post("/api/market/cancel-order", NoResult(), params)

    def get_open_orders(self, symbol: str) -> list[OpenOrder]:
        self._require_credentials()
        _require(symbol, "symbol")
        return self._private_post("/api/market/my-open-orders", ObjectList(OpenOrder.from_dict), {"sym": symbol}).result

    def get_order_history(
        self,
        symbol: str,
        page: int = 0,
        limit: int = 0,
        start: int = 0,
        end: int = 0,
    ) -> tuple[list[OrderHistory], Pagination | None]:
        """Matched orders; ``start``/``end`` are unix timestamps."""
        self._require_credentials()
        _require(symbol, "symbol")
        params = {"sym": symbol, **_paging(page, limit, start=start, end=end)}
        decoded = self._private_post("/api/market/my-order-history", ObjectList(OrderHistory.from_dict), params)
        return decoded.result, decoded.pagination

    def get_order_info(self, symbol: str = "", side: str = "", order_id: int = 0, order_hash: str = "") -> OrderInfo:
        self._require_credentials()
        params = self._order_ref(symbol, side, order_id, order_hash)
        return self._private_post("/api/market/order-info", Object(OrderInfo.from_dict), params).result

    # ---------- crypto ----------
    def get_crypto_addresses(self, page: int = 0, limit: int = 0) -> tuple[list[CryptoAddress], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/crypto/addresses", ObjectList(CryptoAddress.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    def _crypto_withdraw(self, path: str, currency: str, address: str, amount: float, memo: str) -> CryptoWithdrawal:
        self._require_credentials()
        _require(currency, "currency")
        _require(address, "address")
        _require_positive(amount, "amount")
        params: dict[str, Any] = {"cur": currency, "adr": address, "amt": format_amount(amount)}
        if memo:
            params["mem"] = memo
        return self._private_post(path, Object(CryptoWithdrawal.from_dict), params).result

    def crypto_withdraw(self, currency: str, address: str, amount: float, memo: str = "") -> CryptoWithdrawal:
        """Withdraw to a whitelisted address."""
        return self._crypto_withdraw("/api/crypto/withdraw", currency, address, amount, memo)

    def crypto_internal_withdraw(self, currency: str, address: str, amount: float, memo: str = "") -> CryptoWithdrawal:
        """Withdraw to an internal address; must be enabled for the account."""
        return self._crypto_withdraw("/api/crypto/internal-withdraw", currency, address, amount, memo)

    def get_crypto_deposit_history(self, page: int = 0, limit: int = 0) -> tuple[list[CryptoDeposit], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/crypto/deposit-history", ObjectList(CryptoDeposit.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    def get_crypto_withdraw_history(self, page: int = 0, limit: int = 0) -> tuple[list[CryptoWithdrawal], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/crypto/withdraw-history", ObjectList(CryptoWithdrawal.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    def crypto_generate_address(self, symbol: str) -> list[GeneratedAddress]:
        """New deposit address; the previous one keeps receiving funds."""
        self._require_credentials()
        _require(symbol, "symbol")
        return self._private_post("/api/crypto/generate-address", ObjectList(GeneratedAddress.from_dict), {"sym": symbol}).result

    # ---------- fiat ----------
    def get_bank_accounts(self, page: int = 0, limit: int = 0) -> tuple[list[BankAccount], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/fiat/accounts", ObjectList(BankAccount.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    def fiat_withdraw(self, bank_id: str, amount: float) -> FiatWithdrawal:
        self._require_credentials()
        _require(bank_id, "bank id")
        _require_positive(amount, "amount")
        params = {"id": bank_id, "amt": format_amount(amount)}
        return self._private_post("/api/fiat/withdraw", Object(FiatWithdrawal.from_dict), params).result

    def get_fiat_deposit_history(self, page: int = 0, limit: int = 0) -> tuple[list[FiatDeposit], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/fiat/deposit-history", ObjectList(FiatDeposit.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    def get_fiat_withdraw_history(self, page: int = 0, limit: int = 0) -> tuple[list[FiatWithdrawal], Pagination | None]:
        self._require_credentials()
        decoded = self._private_post("/api/fiat/withdraw-history", ObjectList(FiatWithdrawal.from_dict), _paging(page, limit))
        return decoded.result, decoded.pagination

    # ---------- user ----------
    def get_websocket_token(self) -> str:
        """Opaque token for websocket authentication."""
        return self._private_post("/api/market/wstoken", Scalar(as_str)).result

    def get_user_limits(self) -> UserLimits:
        return self._private_post("/api/user/limits", Object(UserLimits.from_dict)).result

    def get_user_trading_credits(self) -> float:
        return self._private_post("/api/user/trading-credits", Scalar(as_float)).result

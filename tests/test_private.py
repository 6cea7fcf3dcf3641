import hashlib
import hmac
import json

import pytest

from bitkub_client.client import BitkubClient
from bitkub_client.config import BitkubConfig, Credentials, OrderOptions
from bitkub_client.errors import BitkubAPIError, BitkubPreconditionError
from bitkub_client.models import Balance, Pagination

TS = 1700000000000


class DummyResponse:
    def __init__(self, status_code=200, text='{"error":0}', headers=None):
        self.status_code = status_code
        self.text = text
        self.content = text.encode()
        self.headers = headers or {}


def make_client(monkeypatch, response_text='{"error":0,"result":{}}', api_key="APIKEY", api_secret="SECRET"):
    c = BitkubClient(api_key=api_key, api_secret=api_secret)
    monkeypatch.setattr(c, "_timestamp_ms", lambda: TS)

    captured = {"calls": 0}

    def fake_post(url, data=None, headers=None, timeout=None):
        captured["calls"] += 1
        captured["url"] = url
        captured["data"] = data
        captured["headers"] = headers
        captured["timeout"] = timeout
        return DummyResponse(200, text=response_text)

    monkeypatch.setattr(c.session, "post", fake_post)
    return c, captured


def test_private_request_sets_required_headers(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0,"result":{"THB":188379.27,"BTC":8.90397323}}')

    wallet = c.get_wallet()
    assert wallet == {"THB": 188379.27, "BTC": 8.90397323}

    h = captured["headers"]
    assert h["X-BTK-APIKEY"] == "APIKEY"
    assert h["Content-Type"] == "application/json"
    assert h["Accept"] == "application/json"
    assert captured["url"] == "https://api.bitkub.com/api/market/wallet"


def test_private_body_is_signed(monkeypatch):
    c, captured = make_client(monkeypatch)
    c.get_user_limits()

    sent = json.loads(captured["data"])
    assert sent["ts"] == TS
    unsigned = json.dumps({"ts": TS}, sort_keys=True, separators=(",", ":")).encode()
    assert sent["sig"] == hmac.new(b"SECRET", unsigned, hashlib.sha256).hexdigest()


def test_place_bid_payload(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":{"id":1,"hash":"fwQ6dnQWQPs4cbatF5Am2xCDP1J","typ":"limit",'
        '"amt":1000,"rat":15000,"fee":2.5,"cre":2.5,"rec":0.06666666,"ts":1533834547}}',
    )

    order = c.place_bid("THB_BTC", "limit", 1000.0, 15000.50, OrderOptions(client_id="my-1"))
    assert order.id == 1
    assert order.hash == "fwQ6dnQWQPs4cbatF5Am2xCDP1J"
    assert order.receive == 0.06666666
    assert order.timestamp == 1533834547

    sent = json.loads(captured["data"])
    assert sent["sym"] == "THB_BTC"
    assert sent["typ"] == "limit"
    assert sent["amt"] == "1000"
    assert sent["rat"] == "15000.5"
    assert sent["client_id"] == "my-1"
    assert captured["url"].endswith("/api/market/place-bid")

    # signature covers the formatted strings actually sent
    unsigned = {k: v for k, v in sent.items() if k != "sig"}
    expected = hmac.new(b"SECRET", json.dumps(unsigned, sort_keys=True, separators=(",", ":")).encode(), hashlib.sha256)
    assert sent["sig"] == expected.hexdigest()


def test_market_order_sends_zero_rate(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0,"result":{"id":2}}')
    c.place_ask_test("THB_BTC", "market", 0.001, 999999.0)

    sent = json.loads(captured["data"])
    assert sent["rat"] == "0"
    assert sent["amt"] == "0.001"
    assert "client_id" not in sent
    assert captured["url"].endswith("/api/market/place-ask/test")


def test_place_ask_by_fiat(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0,"result":{"id":3}}')
    assert c.place_ask_by_fiat("THB_BTC", "limit", 500.0, 2000000.0).id == 3
    assert captured["url"].endswith("/api/market/place-ask-by-fiat")


def test_cancel_order_by_hash(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0}')
    assert c.cancel_order(order_hash="fwQ6dnQWQPs4cbatFGc9LPnpqyu") is None

    sent = json.loads(captured["data"])
    assert sent["hash"] == "fwQ6dnQWQPs4cbatFGc9LPnpqyu"
    assert "sym" not in sent


def test_cancel_order_by_id(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0}')
    c.cancel_order("THB_BTC", "buy", 123)

    sent = json.loads(captured["data"])
    assert sent["sym"] == "THB_BTC"
    assert sent["id"] == "123"
    assert sent["sd"] == "buy"


def test_cancel_order_domain_error(monkeypatch):
    c, _ = make_client(monkeypatch, '{"error":21}')
    with pytest.raises(BitkubAPIError) as exc:
        c.cancel_order("THB_BTC", "sell", 1)
    assert exc.value.message == "Invalid order for cancellation"


def test_balances(monkeypatch):
    c, _ = make_client(
        monkeypatch,
        '{"error":0,"result":{"THB":{"available":188379.27,"reserved":0},"BTC":{"available":8.90397323,"reserved":0.1}}}',
    )
    balances = c.get_balances()
    assert balances["THB"] == Balance(available=188379.27, reserved=0.0)
    assert balances["BTC"].reserved == 0.1


def test_order_history_with_pagination(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":[{"txn_id":"ETHBUY0000000197","order_id":240,"hash":"fwQ6dnQWQPs4cbaujNyejinS43a",'
        '"parent_order_id":0,"super_order_id":0,"taken_by_me":false,"is_maker":true,"side":"buy","type":"limit",'
        '"rate":13335.57,"fee":0.34,"credit":0.34,"amount":0.00999987,"receive":0.00999987}],'
        '"pagination":{"page":2,"last":3,"next":3,"prev":1}}',
    )

    history, pagination = c.get_order_history("THB_ETH", page=2, limit=1, start=1500000000)
    assert history[0].txn_id == "ETHBUY0000000197"
    assert history[0].is_maker is True
    assert history[0].taken_by_me is False
    assert pagination == Pagination(page=2, last=3, next=3, prev=1)

    sent = json.loads(captured["data"])
    assert sent["p"] == 2
    assert sent["lmt"] == 1
    assert sent["start"] == 1500000000
    assert "end" not in sent


def test_order_info_by_id(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":{"id":289,"first":289,"parent":0,"last":316,"amount":4000,"rate":291000,'
        '"fee":10,"credit":10,"filled":3999.97,"total":4000,"status":"unfilled","partial_filled":true,'
        '"remaining":0.03,"history":[]}}',
    )
    info = c.get_order_info("THB_BTC", "buy", 289)
    assert info.partial_filled is True
    assert info.history == ()
    assert json.loads(captured["data"])["sd"] == "buy"


def test_crypto_withdraw(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":{"txn":"BTCWD0000012345","adr":"4asyjKw1XScK7HJFzuX4rAz8Fwz2tw4e4P",'
        '"mem":"","cur":"BTC","amt":0.1,"fee":0.0002,"ts":1569999999}}',
    )
    w = c.crypto_withdraw("BTC", "4asyjKw1XScK7HJFzuX4rAz8Fwz2tw4e4P", 0.1, memo="tag")
    assert w.txn_id == "BTCWD0000012345"
    assert w.fee == 0.0002

    sent = json.loads(captured["data"])
    assert sent["amt"] == "0.1"
    assert sent["mem"] == "tag"


def test_fiat_withdraw(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":{"txn":"THBWD0000012345","acc":"7262109099","cur":"THB",'
        '"amt":21,"fee":20,"rec":1,"ts":1569999999}}',
    )
    w = c.fiat_withdraw("7262109099", 21.0)
    assert w.account_id == "7262109099"
    assert w.receive == 1.0
    sent = json.loads(captured["data"])
    assert sent["id"] == "7262109099"
    assert sent["amt"] == "21"


def test_paged_history_endpoints(monkeypatch):
    c, captured = make_client(
        monkeypatch,
        '{"error":0,"result":[{"txn_id":"THBDP0000012345","currency":"THB","amount":5000.55,'
        '"status":"complete","time":1570893867}],"pagination":{"page":1,"last":1}}',
    )
    deposits, pagination = c.get_fiat_deposit_history()
    assert deposits[0].amount == 5000.55
    assert deposits[0].timestamp == 1570893867
    assert pagination == Pagination(page=1, last=1)
    # no paging params unless asked for
    assert set(json.loads(captured["data"])) == {"ts", "sig"}


def test_websocket_token_is_scalar(monkeypatch):
    c, _ = make_client(monkeypatch, '{"error":0,"result":"sometoken"}')
    assert c.get_websocket_token() == "sometoken"


def test_trading_credits_is_scalar(monkeypatch):
    c, _ = make_client(monkeypatch, '{"error":0,"result":1000.5}')
    assert c.get_user_trading_credits() == 1000.5


def test_user_limits(monkeypatch):
    c, _ = make_client(
        monkeypatch,
        '{"error":0,"result":{"limits":{"crypto":{"deposit":0.88971929,"withdraw":0.88971929},'
        '"fiat":{"deposit":200000,"withdraw":200000}},"usage":{"crypto":{"deposit":0,"withdraw":0,'
        '"deposit_percentage":0,"withdraw_percentage":0,"deposit_thb_equivalent":0,"withdraw_thb_equivalent":0},'
        '"fiat":{"deposit":0,"withdraw":0,"deposit_percentage":0,"withdraw_percentage":0}},"rate":224790}}',
    )
    limits = c.get_user_limits()
    assert limits.limits.fiat.deposit == 200000.0
    assert limits.limits.crypto.withdraw == 0.88971929
    assert limits.rate == 224790.0


def test_each_call_signs_with_a_fresh_map(monkeypatch):
    c, captured = make_client(monkeypatch, '{"error":0,"result":[]}')
    c.get_open_orders("THB_BTC")
    first = captured["data"]
    c.get_open_orders("THB_BTC")
    assert captured["data"] == first
    assert set(json.loads(first)) == {"sym", "ts", "sig"}


# ---------- local precondition gate ----------
PRIVATE_CALLS = [
    lambda c: c.get_wallet(),
    lambda c: c.get_balances(),
    lambda c: c.place_bid("THB_BTC", "limit", 100.0, 1.0),
    lambda c: c.place_ask("THB_BTC", "market", 1.0),
    lambda c: c.cancel_order(order_hash="abc"),
    lambda c: c.get_open_orders("THB_BTC"),
    lambda c: c.get_order_history("THB_BTC"),
    lambda c: c.get_order_info(order_hash="abc"),
    lambda c: c.get_crypto_addresses(),
    lambda c: c.crypto_withdraw("BTC", "addr", 1.0),
    lambda c: c.crypto_generate_address("THB_BTC"),
    lambda c: c.get_bank_accounts(),
    lambda c: c.fiat_withdraw("123", 100.0),
    lambda c: c.get_websocket_token(),
    lambda c: c.get_user_limits(),
    lambda c: c.get_user_trading_credits(),
]


@pytest.mark.parametrize("call", PRIVATE_CALLS)
@pytest.mark.parametrize("api_key, api_secret", [("", "SECRET"), ("APIKEY", "")])
def test_missing_credentials_fail_before_transport(monkeypatch, call, api_key, api_secret):
    c, captured = make_client(monkeypatch, api_key=api_key, api_secret=api_secret)
    with pytest.raises(BitkubPreconditionError):
        call(c)
    assert captured["calls"] == 0


@pytest.mark.parametrize(
    "call, field",
    [
        (lambda c: c.place_bid("", "limit", 100.0, 1.0), "symbol"),
        (lambda c: c.place_bid("THB_BTC", "", 100.0, 1.0), "order type"),
        (lambda c: c.place_bid("THB_BTC", "stop", 100.0, 1.0), "order type"),
        (lambda c: c.place_ask("THB_BTC", "limit", 0, 1.0), "amount"),
        (lambda c: c.place_ask("THB_BTC", "limit", -1.0, 1.0), "amount"),
        (lambda c: c.cancel_order("", "buy", 1), "symbol"),
        (lambda c: c.cancel_order("THB_BTC", "", 1), "side"),
        (lambda c: c.cancel_order("THB_BTC", "hold", 1), "side"),
        (lambda c: c.cancel_order("THB_BTC", "buy", 0), "id"),
        (lambda c: c.get_order_info("THB_BTC", "sell"), "id"),
        (lambda c: c.get_open_orders(""), "symbol"),
        (lambda c: c.get_order_history(""), "symbol"),
        (lambda c: c.crypto_withdraw("", "addr", 1.0), "currency"),
        (lambda c: c.crypto_internal_withdraw("BTC", "", 1.0), "address"),
        (lambda c: c.crypto_withdraw("BTC", "addr", 0), "amount"),
        (lambda c: c.crypto_generate_address(""), "symbol"),
        (lambda c: c.fiat_withdraw("", 100.0), "bank id"),
        (lambda c: c.fiat_withdraw("123", float("nan")), "amount"),
        (lambda c: c.place_bid("THB_BTC", "limit", 1e-7, 1.0), "amount"),
        (lambda c: c.place_bid("THB_BTC", "limit", float("inf"), 1.0), "amount"),
        (lambda c: c.crypto_withdraw("BTC", "addr", 4e-7), "amount"),
        (lambda c: c.fiat_withdraw("123", float("-inf")), "amount"),
    ],
)
def test_invalid_fields_fail_before_transport(monkeypatch, call, field):
    c, captured = make_client(monkeypatch)
    with pytest.raises(BitkubPreconditionError) as exc:
        call(c)
    assert exc.value.field == field
    assert captured["calls"] == 0


def test_from_env(monkeypatch):
    monkeypatch.setenv("BITKUB_API_KEY", "ENVKEY")
    monkeypatch.setenv("BITKUB_API_SECRET", "ENVSECRET")
    c = BitkubClient.from_env(config=BitkubConfig(timeout=3.0))
    assert c.credentials == Credentials(api_key="ENVKEY", api_secret="ENVSECRET")
    assert c.config.timeout == 3.0
    assert "ENVSECRET" not in repr(c.credentials)

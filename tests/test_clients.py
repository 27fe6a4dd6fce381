# tests/test_clients.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import string
from datetime import datetime, timedelta, timezone

import pytest

from copyfactory.clients import ConfigurationClient, DomainClient, HistoryClient, SignalClient, TradingClient
from copyfactory.copy_factory import CopyFactory
from copyfactory.enums import CloseMode, ExternalSignalType, StopoutReason
from copyfactory.errors import MethodAccessError, ValidationError
from copyfactory.models import CloseInstructions, ExternalSignalRemove, ExternalSignalUpdate

from conftest import API_TOKEN, PROVISIONING, FakeHttp

CF_HOST = "https://copyfactory-api-v1.agiliumtrade.ai"
ACCOUNTS = "https://mt-provisioning-api-v1.agiliumtrade.agiliumtrade.ai/users/current/accounts"
CONFIG = f"{CF_HOST}/users/current/configuration"
T_FROM = datetime(2024, 1, 1, tzinfo=timezone.utc)
T_TILL = datetime(2024, 2, 1, tzinfo=timezone.utc)


def transaction(i):
    return {"id": f"t{i}", "type": "DEAL_TYPE_BUY", "time": "2024-01-02T00:00:00.000Z",
            "subscriberId": "A1", "strategy": {"id": "S1"}, "metrics": {"tradeCopyingLatency": 120}}


# ---- configuration -----------------------------------------------------------------

@pytest.mark.asyncio
async def test_generate_strategy_id(fake_http, domain_client):
    fake_http.on("GET", f"{CONFIG}/unused-strategy-id", {"id": "ABCD"})
    client = ConfigurationClient(domain_client)
    assert (await client.generate_strategy_id()).id == "ABCD"


@pytest.mark.asyncio
async def test_account_token_cannot_use_configuration_api(fake_http):
    client = ConfigurationClient(DomainClient(fake_http, "account-access-token"))
    with pytest.raises(MethodAccessError):
        await client.generate_strategy_id()
    with pytest.raises(MethodAccessError):
        await client.get_strategies()
    assert fake_http.calls == []


def test_generate_account_id():
    account_id = ConfigurationClient.generate_account_id()
    assert len(account_id) == 64
    assert set(account_id) <= set(string.ascii_letters + string.digits)


@pytest.mark.asyncio
async def test_strategy_crud(fake_http, domain_client):
    fake_http.on("GET", f"{CONFIG}/strategies", [{"_id": "ABCD", "name": "Test strategy"}])
    fake_http.on("GET", f"{CONFIG}/strategies/ABCD", {"_id": "ABCD"})
    fake_http.on("PUT", f"{CONFIG}/strategies/ABCD", None)
    client = ConfigurationClient(domain_client)

    strategies = await client.get_strategies(include_removed=True, limit=100, offset=10)
    assert strategies[0]["name"] == "Test strategy"
    assert fake_http.calls_to(f"{CONFIG}/strategies")[0]["params"] == {
        "includeRemoved": True, "limit": 100, "offset": 10}

    assert (await client.get_strategy("ABCD"))["_id"] == "ABCD"

    payload = {"name": "Test strategy", "accountId": "e8867baa5a5ec3a7b7d7b7e6dbb3bb15"}
    await client.update_strategy("ABCD", payload)
    assert fake_http.calls_to(f"{CONFIG}/strategies/ABCD")[-1]["json_body"] == payload


@pytest.mark.asyncio
async def test_remove_strategy_with_close_instructions(fake_http, domain_client):
    fake_http.on("DELETE", f"{CONFIG}/strategies/ABCD", None)
    client = ConfigurationClient(domain_client)
    remove_after = datetime.now(timezone.utc) + timedelta(days=45)

    await client.remove_strategy("ABCD", CloseInstructions(mode=CloseMode.CLOSE_IMMEDIATELY,
                                                           remove_after=remove_after))

    body = fake_http.calls_to(f"{CONFIG}/strategies/ABCD")[0]["json_body"]
    assert body == {"mode": "close-immediately", "removeAfter": remove_after}


@pytest.mark.asyncio
@pytest.mark.parametrize("days", [10, 120])
async def test_remove_after_out_of_range_is_rejected(fake_http, domain_client, days):
    client = ConfigurationClient(domain_client)
    instructions = CloseInstructions(remove_after=datetime.now(timezone.utc) + timedelta(days=days))
    with pytest.raises(ValidationError):
        await client.remove_subscriber("A1", instructions)
    assert fake_http.calls == []


@pytest.mark.asyncio
async def test_unknown_close_mode_is_rejected(domain_client):
    client = ConfigurationClient(domain_client)
    with pytest.raises(ValidationError):
        await client.remove_portfolio_strategy("P1", CloseInstructions(mode="close-later"))


@pytest.mark.asyncio
async def test_portfolio_and_subscriber_paths(fake_http, domain_client):
    fake_http.on("GET", f"{CONFIG}/portfolio-strategies", [])
    fake_http.on("PUT", f"{CONFIG}/portfolio-strategies/P1", None)
    fake_http.on("GET", f"{CONFIG}/subscribers/A1", {"_id": "A1"})
    fake_http.on("PUT", f"{CONFIG}/subscribers/A1", None)
    fake_http.on("DELETE", f"{CONFIG}/subscribers/A1/subscriptions/S1", None)
    client = ConfigurationClient(domain_client)

    assert await client.get_portfolio_strategies() == []
    await client.update_portfolio_strategy("P1", {"members": [{"strategyId": "S1", "multiplier": 1}]})
    assert (await client.get_subscriber("A1"))["_id"] == "A1"
    await client.update_subscriber("A1", {"name": "Demo", "subscriptions": [{"strategyId": "S1"}]})
    # removeAfter is ignored for subscriptions, so it is not range checked
    await client.remove_subscription("A1", "S1", CloseInstructions(
        mode=CloseMode.PRESERVE, remove_after=datetime.now(timezone.utc) + timedelta(days=1)))

    call = fake_http.calls_to(f"{CONFIG}/subscribers/A1/subscriptions/S1")[0]
    assert call["method"] == "DELETE"
    assert call["json_body"]["mode"] == "preserve"


# ---- history -----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_provided_transactions(fake_http, domain_client):
    url = f"{CF_HOST}/users/current/provided-transactions"
    fake_http.on("GET", url, [transaction(1)])
    client = HistoryClient(domain_client)

    txs = await client.get_provided_transactions(T_FROM, T_TILL, strategy_ids=["S1", "S2"],
                                                 subscriber_ids=["A1"], offset=100, limit=200)

    assert txs[0].id == "t1"
    assert txs[0].strategy.id == "S1"
    assert txs[0].metrics.trade_copying_latency == 120
    assert fake_http.calls_to(url)[0]["params"] == {
        "from": T_FROM, "till": T_TILL, "strategyId": ["S1", "S2"], "subscriberId": ["A1"],
        "offset": 100, "limit": 200}


@pytest.mark.asyncio
async def test_iter_subscription_transactions_pages_by_offset(fake_http, domain_client):
    url = f"{CF_HOST}/users/current/subscription-transactions"
    fake_http.on("GET", url, [transaction(1), transaction(2)], [transaction(3)])
    client = HistoryClient(domain_client)

    ids = [tx.id async for tx in client.iter_subscription_transactions(T_FROM, T_TILL, page_size=2)]

    assert ids == ["t1", "t2", "t3"]
    assert [c["params"]["offset"] for c in fake_http.calls_to(url)] == [0, 2]


# ---- trading -----------------------------------------------------------------------

@pytest.mark.asyncio
async def test_resynchronize_uses_extended_timeout(fake_http, domain_client):
    url = f"{CF_HOST}/users/current/subscribers/A1/resynchronize"
    fake_http.on("POST", url, None)
    client = TradingClient(domain_client)

    await client.resynchronize("A1", strategy_ids=["S1"], position_ids=["P1", "P2"])

    call = fake_http.calls_to(url)[0]
    assert call["extended_timeout"] is True
    assert call["params"] == {"strategyId": ["S1"], "positionId": ["P1", "P2"]}


@pytest.mark.asyncio
async def test_stopouts_and_reset(fake_http, domain_client):
    fake_http.on("GET", f"{CF_HOST}/users/current/subscribers/A1/stopouts", [
        {"strategy": {"id": "S1", "name": "Strategy"}, "partial": True, "reason": "monthly-balance",
         "reasonDescription": "total balance drawdown", "closePositions": False,
         "stoppedAt": "2024-01-01T00:00:00.000Z", "stoppedTill": "2024-02-01T00:00:00.000Z"},
    ])
    reset_url = f"{CF_HOST}/users/current/subscribers/A1/subscription-strategies/S1/stopouts/daily-equity/reset"
    fake_http.on("POST", reset_url, None)
    client = TradingClient(domain_client)

    stopouts = await client.get_stopouts("A1")
    assert stopouts[0].partial is True
    assert stopouts[0].stopped_till == T_TILL

    await client.reset_stopouts("A1", "S1", StopoutReason.DAILY_EQUITY)
    assert len(fake_http.calls_to(reset_url)) == 1
    with pytest.raises(ValueError):
        await client.reset_stopouts("A1", "S1", "weekly-balance")


@pytest.mark.asyncio
async def test_user_logs(fake_http, domain_client):
    sub_url = f"{CF_HOST}/users/current/subscribers/A1/user-log"
    strategy_url = f"{CF_HOST}/users/current/strategies/S1/user-log"
    fake_http.on("GET", sub_url, [{"time": "2024-01-01T00:00:00.000Z", "level": "WARN", "message": "m"}])
    fake_http.on("GET", strategy_url, [])
    client = TradingClient(domain_client)

    logs = await client.get_user_log("A1", T_FROM, T_TILL, strategy_id="S1", level="WARN", limit=10)
    assert logs[0].level == "WARN"
    assert fake_http.calls_to(sub_url)[0]["params"] == {
        "startTime": T_FROM, "endTime": T_TILL, "strategyId": "S1", "positionId": None,
        "level": "WARN", "offset": 0, "limit": 10}

    assert await client.get_strategy_user_log("S1", T_FROM) == []
    assert fake_http.calls_to(strategy_url)[0]["params"]["startTime"] == T_FROM


@pytest.mark.asyncio
async def test_signal_client_routes_to_account_regions(fake_http, domain_client):
    fake_http.on("GET", f"{ACCOUNTS}/A1", {"_id": "A1", "region": "vint-hill",
                                           "accountReplicas": [{"region": "new-york"}]})
    signals_path = "/users/current/subscribers/A1/signals"
    external_path = "/users/current/strategies/S1/external-signals"
    fake_http.on("GET", signals_path, [{"strategy": {"id": "S1"}, "positionId": "P1",
                                        "time": "2024-01-01T00:00:00.000Z", "symbol": "EURUSD",
                                        "type": "market", "side": "buy", "signalVolume": 0.1,
                                        "subscriberVolume": 0.2, "subscriberProfit": 1}])
    fake_http.on("GET", external_path, [{"id": "sig1", "symbol": "EURUSD", "type": "POSITION_TYPE_BUY",
                                         "time": "2024-01-01T00:00:00.000Z", "volume": 1}])
    fake_http.on("PUT", f"{external_path}/sig1", None)
    fake_http.on("POST", f"{external_path}/sig1/remove", None)

    signal_client = await TradingClient(domain_client).get_signal_client("A1")
    assert isinstance(signal_client, SignalClient)
    assert signal_client.host.host == "https://copyfactory-api-v1.vint-hill.agiliumtrade.ai"

    signals = await signal_client.get_trading_signals()
    assert signals[0].symbol == "EURUSD"
    assert signals[0].subscriber_volume == 0.2
    external = await signal_client.get_strategy_external_signals("S1")
    assert external[0].id == "sig1"

    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    await signal_client.update_external_signal("S1", "sig1", ExternalSignalUpdate(
        symbol="EURUSD", type=ExternalSignalType.POSITION_TYPE_BUY, time=now, volume=0.01))
    await signal_client.remove_external_signal("S1", "sig1", ExternalSignalRemove(time=now))

    update = fake_http.calls_to(f"{external_path}/sig1")[0]
    assert update["json_body"] == {"symbol": "EURUSD", "type": "POSITION_TYPE_BUY", "time": now, "volume": 0.01}
    assert update["hosts"] == ["https://copyfactory-api-v1.vint-hill.agiliumtrade.ai",
                               "https://copyfactory-api-v1.new-york.agiliumtrade.ai"]
    assert fake_http.calls_to(f"{external_path}/sig1/remove")[0]["json_body"] == {"time": now}


def test_generate_signal_id():
    signal_id = SignalClient.generate_signal_id()
    assert len(signal_id) == 8
    assert signal_id.isalnum()


# ---- facade ------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_facade_wires_clients_and_closes_transport():
    http = FakeHttp()
    http.on("GET", PROVISIONING, {"domain": "agiliumtrade.ai"})
    http.on("GET", f"{CONFIG}/strategies", [])

    async with CopyFactory(API_TOKEN, http_client=http) as cf:
        assert await cf.configuration_api.get_strategies() == []
        assert isinstance(cf.history_api, HistoryClient)
        assert isinstance(cf.trading_api, TradingClient)

    assert http.closed is True

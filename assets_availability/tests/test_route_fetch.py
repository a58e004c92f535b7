import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from assets_availability.pipeline import runner
from assets_availability.pipeline.route_fetch import RouteFetchPipeline
from assets_availability.sources.providers.lifi import LiFiClient
from assets_availability.sources.providers.oku import OkuClient
from assets_availability.storage.cache_store import CacheStore
from assets_availability.storage.models.route_cache import RouteCache
from assets_availability.storage.token_registry import TokenRegistry
from conftest import FAST, FAST_OKU, TEST_TOKENS, FakeOku, all_markets_quotes, mock_http


def _lifi_handler(calls, unsupported_to=None, failing_from=None):
    """Connections exist for every pair except into `unsupported_to`; `failing_from` always 500s."""
    by_address = {address.lower(): symbol for symbol, (address, _) in TEST_TOKENS.items()}

    def handler(request):
        src = by_address[request.url.params["fromToken"].lower()]
        dst = by_address[request.url.params["toToken"].lower()]
        calls.append((src, dst))
        if src == failing_from:
            return httpx.Response(500)
        if dst == unsupported_to:
            return httpx.Response(200, json={"connections": []})
        return httpx.Response(200, json={"connections": [{}]})

    return handler


def _pipeline(session, client):
    return RouteFetchPipeline(CacheStore(session), TokenRegistry(session), client)


def _keys(session):
    return [(r.pair_from, r.pair_to, r.provider) for r in CacheStore(session).read_routes()[0]]


@pytest.mark.asyncio
async def test_every_pair_checked_and_supported_ones_cached(session, tokens):
    calls = []
    client = LiFiClient(mock_http(_lifi_handler(calls, unsupported_to="CCC")), **FAST)

    stats = await _pipeline(session, client).run()

    assert len(calls) == 6
    assert stats.pairs_total == 6
    assert stats.success_count == 6
    assert stats.records_written == 4
    assert stats.unsupported_count == 2
    assert ("AAA", "CCC", "LiFi") not in _keys(session)
    assert len(_keys(session)) == len(set(_keys(session))) == 4


@pytest.mark.asyncio
async def test_rerun_is_idempotent(session, tokens):
    client = LiFiClient(mock_http(_lifi_handler([])), **FAST)
    await _pipeline(session, client).run()
    first = _keys(session)

    client = LiFiClient(mock_http(_lifi_handler([])), **FAST)
    await _pipeline(session, client).run(clear_existing=False)

    assert _keys(session) == first
    assert session.execute(select(func.count()).select_from(RouteCache)).scalar() == 6


@pytest.mark.asyncio
async def test_clear_existing_drops_vanished_routes(session, tokens):
    await _pipeline(session, LiFiClient(mock_http(_lifi_handler([])), **FAST)).run()
    await _pipeline(session, LiFiClient(mock_http(_lifi_handler([], unsupported_to="CCC")), **FAST)).run()

    assert len(_keys(session)) == 4


@pytest.mark.asyncio
async def test_failing_pair_does_not_abort_run(session, tokens):
    calls = []
    client = LiFiClient(mock_http(_lifi_handler(calls, failing_from="BBB")), **FAST)

    stats = await _pipeline(session, client).run()

    assert stats.error_count == 2
    assert stats.records_written == 4
    assert all(src != "BBB" for src, _, _ in _keys(session))


@pytest.mark.asyncio
async def test_request_ceiling_keeps_partial_results(session, tokens):
    calls = []
    client = LiFiClient(mock_http(_lifi_handler(calls)), max_requests=2, **FAST)

    stats = await _pipeline(session, client).run()

    assert stats.stopped_by_rate_limit
    assert len(calls) == 2
    assert stats.records_written == 2
    assert len(_keys(session)) == 2


@pytest.mark.asyncio
async def test_oku_pairs_without_price_are_skipped(session, tokens):
    fake = FakeOku(quotes=all_markets_quotes(simulation_failed=("usor",)))
    client = OkuClient(
        mock_http(fake),
        base_url="https://oku.test",
        prices={"aaa": 2.0, "bbb": 4.0},
        route_wait_ms=0,
        **FAST_OKU,
    )

    stats = await _pipeline(session, client).run()

    # CCC has no price: CCC→AAA and CCC→BBB cannot be sized
    assert stats.skipped_count == 2
    assert stats.records_written == 4
    routes = CacheStore(session).read_routes("Oku")[0]
    assert routes[0].dexes == ["threeroute", "usor✗"]
    assert fake.count("Create") == 1


@pytest.mark.asyncio
async def test_non_object_body_counts_as_one_error(session, tokens):
    calls = []
    handler = _lifi_handler(calls)

    def garbled_first(request):
        response = handler(request)
        return httpx.Response(200, json=["unexpected"]) if len(calls) == 1 else response

    stats = await _pipeline(session, LiFiClient(mock_http(garbled_first), **FAST)).run()

    assert len(calls) == 6
    assert stats.error_count == 1
    assert stats.records_written == 5
    assert ("AAA", "BBB", "LiFi") not in _keys(session)


@pytest.mark.asyncio
async def test_oku_plain_text_server_error_counts_as_one_error(session, tokens):
    fake = FakeOku(update_script=[httpx.Response(500, json="internal error") for _ in range(3)])
    client = OkuClient(
        mock_http(fake),
        base_url="https://oku.test",
        prices={"aaa": 2.0, "bbb": 4.0, "ccc": 1.0},
        route_wait_ms=0,
        **FAST_OKU,
    )

    stats = await _pipeline(session, client).run()

    assert stats.error_count == 1
    assert stats.records_written == 5
    assert fake.count("Create") == 1


@pytest.mark.asyncio
async def test_registry_failure_propagates(session, tokens, monkeypatch):
    pipeline = _pipeline(session, LiFiClient(mock_http(_lifi_handler([])), **FAST))

    def broken():
        raise SQLAlchemyError("db down")

    monkeypatch.setattr(pipeline.registry, "list_tokens", broken)

    with pytest.raises(SQLAlchemyError):
        await pipeline.run()
    assert _keys(session) == []


@pytest.mark.asyncio
async def test_store_failure_propagates(session, tokens, monkeypatch):
    pipeline = _pipeline(session, LiFiClient(mock_http(_lifi_handler([])), **FAST))

    def broken(*args, **kwargs):
        raise SQLAlchemyError("db down")

    monkeypatch.setattr(pipeline.store, "upsert_route", broken)

    with pytest.raises(SQLAlchemyError):
        await pipeline.run()


@pytest.mark.asyncio
async def test_runner_returns_counts_and_read_shape(session, tokens):
    http = mock_http(_lifi_handler([]))

    stats = await runner.run_route_fetch("lifi", session=session, http=http, pair_delay=0, **FAST)
    data = runner.get_routes("LiFi", session=session)

    assert stats.records_written == 6
    assert data["count"] == 6
    first = data["routes"][0]
    assert first["pair"] == {"from": "AAA", "to": "BBB"}
    assert first["routes"] == [{"aggregator": "LiFi", "dexes": ["LiFi"]}]
    assert data["lastUpdated"] is not None

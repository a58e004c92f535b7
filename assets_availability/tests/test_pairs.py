import random

from assets_availability.pipeline.pairs import derive_slippage_pairs, enumerate_all_pairs
from assets_availability.utils.types import RouteRecord, Token


def _tokens(*symbols):
    return [Token(s, "0x" + f"{i:02x}" * 20, 18) for i, s in enumerate(symbols, start=1)]


def _route(src, dst, provider="LiFi"):
    return RouteRecord(pair_from=src, pair_to=dst, provider=provider, venues=[{"name": provider, "status": "fully_supported"}])


def test_every_ordered_pair_without_self_pairs():
    tokens = _tokens("A", "B", "C", "D", "E")
    pairs = enumerate_all_pairs(tokens)

    assert len(pairs) == 20
    labels = {p.label for p in pairs}
    assert len(labels) == 20
    assert all(p.src.symbol != p.dst.symbol for p in pairs)
    assert "A→B" in labels and "B→A" in labels


def test_enumeration_is_deterministic_regardless_of_input_order():
    tokens = _tokens("WETH", "USDC", "WBTC", "USDT")
    shuffled = tokens[:]
    random.Random(7).shuffle(shuffled)

    assert [p.label for p in enumerate_all_pairs(tokens)] == [p.label for p in enumerate_all_pairs(shuffled)]
    assert enumerate_all_pairs(tokens)[0].label == "USDC→USDT"


def test_duplicate_symbols_are_collapsed():
    tokens = _tokens("A", "B") + _tokens("A")
    assert len(enumerate_all_pairs(tokens)) == 2


def test_fewer_than_two_tokens_gives_no_pairs():
    assert enumerate_all_pairs(_tokens("A")) == []
    assert enumerate_all_pairs([]) == []


def test_slippage_pairs_keep_one_direction_per_unordered_pair():
    tokens = _tokens("A", "B", "C")
    routes = [_route("B", "A"), _route("A", "B"), _route("C", "A")]

    pairs = derive_slippage_pairs(routes, tokens)

    assert [p.label for p in pairs] == ["A→B", "C→A"]


def test_slippage_pairs_skip_tokens_not_in_registry():
    tokens = _tokens("A", "B")
    pairs = derive_slippage_pairs([_route("A", "ZZZ"), _route("A", "B")], tokens)
    assert [p.label for p in pairs] == ["A→B"]


def test_slippage_pairs_fall_back_when_cache_is_empty():
    tokens = _tokens("USDC", "WETH", "USDT")
    pairs = derive_slippage_pairs([], tokens, fallback=(("USDC", "WETH"), ("WETH", "WBTC")))

    # WBTC is not registered, so only the first fallback survives
    assert [p.label for p in pairs] == ["USDC→WETH"]

from __future__ import annotations

import logging
from itertools import combinations
from typing import Iterable, List, Sequence, Tuple

from assets_availability.utils.constants import FALLBACK_SLIPPAGE_PAIRS
from assets_availability.utils.types import Pair, RouteRecord, Token

log = logging.getLogger(__name__)


def enumerate_all_pairs(tokens: Iterable[Token]) -> List[Pair]:
    """
    Every ordered pair without self-pairs: N tokens → N×(N-1) pairs.

    Tokens are sorted by symbol first; each unordered combination is emitted
    in both directions, since a venue may route A→B but not B→A.
    """
    ordered = sorted({t.symbol: t for t in tokens}.values(), key=lambda t: t.symbol)
    pairs: List[Pair] = []
    for a, b in combinations(ordered, 2):
        pairs.append(Pair(a, b))
        pairs.append(Pair(b, a))
    return pairs


def derive_slippage_pairs(
    routes: Iterable[RouteRecord],
    tokens: Iterable[Token],
    fallback: Sequence[Tuple[str, str]] = FALLBACK_SLIPPAGE_PAIRS,
) -> List[Pair]:
    """
    Pairs that already have a cached route, one direction per unordered pair.

    Routes are walked in (from, to) order and the first direction seen wins.
    With no usable routes the fixed fallback pairs are used instead.
    """
    by_symbol = {t.symbol: t for t in tokens}
    seen = set()
    pairs: List[Pair] = []

    for route in sorted(routes, key=lambda r: (r.pair_from, r.pair_to)):
        key = frozenset((route.pair_from, route.pair_to))
        if route.pair_from == route.pair_to or key in seen:
            continue
        src, dst = by_symbol.get(route.pair_from), by_symbol.get(route.pair_to)
        if src is None or dst is None:
            continue
        seen.add(key)
        pairs.append(Pair(src, dst))

    if not pairs:
        log.info("No cached routes, using fallback pairs...")
        pairs = [
            Pair(by_symbol[a], by_symbol[b])
            for a, b in fallback
            if a in by_symbol and b in by_symbol
        ]
    return pairs

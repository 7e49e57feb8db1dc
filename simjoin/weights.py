"""
simjoin/weights.py

Document frequencies, IDF-style token weights and the global token rank.

Which corpus backs the counts depends on the join mode:
- smaller_a and containment: collection B only (B is the full population)
- containment, not smaller_a: collection A only
- no containment: A and B together

Weights are log10(corpus_size / df) and only computed when weighting is on.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Sequence

from loguru import logger

from .parallel import ParallelContext


# Rank of a token that never appeared in the counting corpus (df == 0).
UNSEEN_RANK = -1


@dataclass(frozen=True)
class TokenStatistics:
    """Immutable result of the counting pass, shared by weighting and ranking."""

    counts: Mapping[str, int]
    corpus_size: int
    weights: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def weighted(self) -> bool:
        return bool(self.weights)


def compute_token_count(ctx: ParallelContext, token_sets: Iterable[Sequence[str]]) -> Dict[str, int]:
    """Number of token sets each token appears in (duplicates inside one set count once)."""
    pairs = ctx.flat_map(lambda tokens: [(t, 1) for t in set(tokens)], token_sets, desc="token counts")
    return ctx.reduce_by_key_locally(lambda a, b: a + b, pairs)


def idf_weights(counts: Mapping[str, int], corpus_size: int) -> Dict[str, float]:
    return {t: math.log10(corpus_size / c) for t, c in counts.items()}


def compute_token_statistics(
    ctx: ParallelContext,
    tokens_a: Sequence[Sequence[str]],
    tokens_b: Sequence[Sequence[str]],
    smaller_a: bool,
    containment: bool,
    weighted: bool,
) -> TokenStatistics:
    """Pick the counting corpus for the join mode and derive counts and weights from it."""
    if smaller_a and containment:
        corpus: List[Sequence[str]] = list(tokens_b)
        source = "B"
    elif containment:
        corpus = list(tokens_a)
        source = "A"
    else:
        corpus = list(tokens_a) + list(tokens_b)
        source = "A+B"

    corpus_size = ctx.count(corpus)
    counts = compute_token_count(ctx, corpus)
    weights = idf_weights(counts, corpus_size) if weighted else {}

    logger.info(
        f"✓ Token statistics: corpus={source}, size={corpus_size:,}, "
        f"distinct_tokens={len(counts):,}, weighted={weighted}"
    )
    return TokenStatistics(
        counts=MappingProxyType(counts),
        corpus_size=corpus_size,
        weights=MappingProxyType(weights),
    )


def compute_token_ranks(counts: Mapping[str, int]) -> Dict[str, int]:
    """
    Global token order: rarest token gets rank 0.

    Ties on document frequency are broken by token text so the order is the
    same on every run.
    """
    ordered = sorted(counts.items(), key=lambda kv: (kv[1], kv[0]))
    return {token: rank for rank, (token, _) in enumerate(ordered)}


def sort_token_set(tokens: Sequence[str], token_ranks: Mapping[str, int]) -> List[str]:
    """Sort tokens rarest first; tokens missing from the rank map come before all others."""
    return sorted(tokens, key=lambda t: (token_ranks.get(t, UNSEEN_RANK), t))

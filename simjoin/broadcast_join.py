"""
simjoin/broadcast_join.py

Similarity join with prefix filtering over a broadcast inverted index.

Pipeline:
1. pick the small (indexed) and large (scanned) side
2. count document frequencies over the corpus implied by the join mode
3. rank tokens rarest first, weight them if requested
4. index the small side: token -> record ids
5. broadcast index, small-side rows, weights and ranks (read-only)
6. scan the large side (or the small side itself for a self-join)
7. per scanned record: sort by rank, drop the suffix the featurizer allows,
   probe the index with the remaining prefix, verify each candidate

Note: the whole small side is collected and broadcast. Large inputs need
`broadcast.max_entries` sized to the available memory.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Mapping, Sequence, Tuple

from loguru import logger

from .featurizer import AnnotatedSimilarityFeaturizer
from .index import IdRow, assign_record_ids, build_inverted_index
from .parallel import ParallelContext
from .similarity_join import MatchedPair, Record, SimilarityJoin, deferred, tokenize_side
from .weights import compute_token_ranks, compute_token_statistics, sort_token_set


@dataclass(frozen=True)
class JoinRoles:
    """Which collection is indexed and whether the call is a self-join."""

    small_is_a: bool
    small_size: int
    large_size: int
    self_join: bool


def resolve_roles(
    size_a: int,
    size_b: int,
    smaller_a: bool,
    containment: bool,
    same_input: bool,
) -> JoinRoles:
    """
    A is indexed unless `containment` holds and A is not the smaller side.

    Without containment the large size is |A| + |B| (the counting corpus).
    A self-join needs containment, equal sizes and the same records on both
    sides, each tokenized with the same columns.
    """
    if containment and not smaller_a:
        small_is_a, small_size, large_size = False, size_b, size_a
    elif containment:
        small_is_a, small_size, large_size = True, size_a, size_b
    else:
        small_is_a, small_size, large_size = True, size_a, size_a + size_b

    self_join = containment and small_size == large_size and same_input
    return JoinRoles(small_is_a=small_is_a, small_size=small_size, large_size=large_size, self_join=self_join)


class BroadcastJoin(SimilarityJoin):
    """
    Prefix-filtering similarity join.

    Returns exactly the pairs of the naive join (for a self-join: each
    unordered pair of distinct records once). Falls back to the naive join
    when the featurizer does not support prefix filtering.
    """

    def join(
        self,
        collection_a: Iterable[Record],
        collection_b: Iterable[Record],
        smaller_a: bool = True,
        containment: bool = True,
    ) -> Iterator[MatchedPair]:
        featurizer = self.featurizer
        if not featurizer.uses_token_prefix_filtering:
            logger.info(f"{type(featurizer).__name__} has no prefix filtering; using naive join")
            return super().join(collection_a, collection_b, smaller_a, containment)

        logger.info("Executing BroadcastJoin")
        featurizer.validate()

        same_object = collection_a is collection_b
        a = list(collection_a)
        b = a if same_object else list(collection_b)
        if not a or not b:
            logger.info(f"Empty input (|A|={len(a):,}, |B|={len(b):,}); nothing to join")
            return iter(())

        ctx = self.ctx
        # With per-side columns the same records tokenize differently, so the
        # scan cannot reuse the indexed table.
        same_columns = featurizer.get_cols(True) == featurizer.get_cols(False)
        roles = resolve_roles(
            ctx.count(a),
            ctx.count(b),
            smaller_a,
            containment,
            same_input=same_columns and (same_object or a == b),
        )
        logger.info(
            f"Roles: small={'A' if roles.small_is_a else 'B'} ({roles.small_size:,}), "
            f"large={roles.large_size:,}, self_join={roles.self_join}"
        )

        # Each side keeps its own column selection whichever role it plays.
        tokens_a = tokenize_side(ctx, featurizer, a, primary=True)
        tokens_b = tokenize_side(ctx, featurizer, b, primary=False)

        stats = compute_token_statistics(ctx, tokens_a, tokens_b, smaller_a, containment, self.weighted)
        token_ranks = compute_token_ranks(stats.counts)

        if roles.small_is_a:
            small_rows, large_rows = list(zip(tokens_a, a)), list(zip(tokens_b, b))
        else:
            small_rows, large_rows = list(zip(tokens_b, b)), list(zip(tokens_a, a))

        small_table = assign_record_ids(ctx, small_rows)
        index = build_inverted_index(ctx, small_table, token_ranks, featurizer.min_size)

        # Everything below is read-only for the scan tasks.
        b_index = ctx.broadcast("index", index)
        b_data = ctx.broadcast("small_table", dict(small_table))
        b_weights = ctx.broadcast("weights", stats.weights)
        b_ranks = ctx.broadcast("ranks", token_ranks)
        logger.info(f"✓ Broadcast index ({len(b_index):,} tokens) and small table ({len(b_data):,} rows)")

        if roles.self_join:
            scan_table: Sequence[IdRow] = small_table
        else:
            scan_table = [(0, row) for row in large_rows]

        probe = _Prober(
            featurizer,
            index=b_index.value,
            data=b_data.value,
            weights=b_weights.value,
            ranks=b_ranks.value,
            self_join=roles.self_join,
        )

        def run() -> List[MatchedPair]:
            parts = ctx.map_partitions(lambda _, part: probe.scan(part), scan_table, desc="probe")
            out = [pair for pairs, _ in parts for pair in pairs]
            verified = sum(n for _, n in parts)
            logger.info(
                f"✓ BroadcastJoin: scanned {len(scan_table):,} records, "
                f"verified {verified:,} candidates, {len(out):,} similar pairs"
            )
            return out

        return deferred(run)


class _Prober:
    """Candidate generation and verification for one scanned record."""

    def __init__(
        self,
        featurizer: AnnotatedSimilarityFeaturizer,
        *,
        index: Mapping[str, Tuple[int, ...]],
        data: Mapping[int, Tuple[List[str], Record]],
        weights: Mapping[str, float],
        ranks: Mapping[str, int],
        self_join: bool,
    ):
        self.featurizer = featurizer
        self.threshold = float(featurizer.threshold)
        self.index = index
        self.data = data
        self.weights = weights
        self.ranks = ranks
        self.self_join = self_join

    def candidates(self, tokens: Sequence[str]) -> List[int]:
        ordered = sort_token_set(tokens, self.ranks)
        removed = self.featurizer.get_removed_size(ordered, self.threshold, self.weights)
        prefix = ordered[: len(ordered) - removed]

        found = {}
        for token in prefix:
            for rid in self.index.get(token, ()):
                found[rid] = None
        return list(found)

    def __call__(self, row: IdRow) -> Tuple[List[MatchedPair], int]:
        """Similar pairs for one scanned row, and how many candidates were verified."""
        id1, (tokens1, row1) = row
        if len(tokens1) < self.featurizer.min_size:
            return [], 0

        out: List[MatchedPair] = []
        verified = 0
        for id2 in self.candidates(tokens1):
            # Self-join: each unordered pair once, never a record with itself.
            if self.self_join and id2 >= id1:
                continue
            tokens2, row2 = self.data[id2]
            verified += 1
            similar, _ = self.featurizer.optimized_similarity(tokens1, tokens2, self.threshold, self.weights)
            if similar:
                out.append((row1, row2))
        return out, verified

    def scan(self, part: Sequence[IdRow]) -> Tuple[List[MatchedPair], int]:
        out: List[MatchedPair] = []
        verified = 0
        for row in part:
            pairs, n = self(row)
            out.extend(pairs)
            verified += n
        return out, verified

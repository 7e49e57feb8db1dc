"""
simjoin/similarity_join.py

Naive similarity join: every pair of the cross product goes through the
featurizer's threshold test.

Quadratic in the input sizes. Kept as the fallback for featurizers without
prefix filtering and as the reference result for BroadcastJoin.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from .featurizer import AnnotatedSimilarityFeaturizer
from .parallel import ParallelContext
from .weights import compute_token_statistics


T = TypeVar("T")
Record = Mapping[str, Any]
MatchedPair = Tuple[Record, Record]


def deferred(run: Callable[[], List[T]]) -> Iterator[T]:
    """Iterator that runs `run` on first use and yields its complete result."""
    yield from run()


def tokenize_side(
    ctx: ParallelContext,
    featurizer: AnnotatedSimilarityFeaturizer,
    records: Sequence[Record],
    primary: bool,
) -> List[List[str]]:
    cols = featurizer.get_cols(primary)
    return ctx.map(lambda r: featurizer.tokenize(r, cols), records, desc="tokenize")


class SimilarityJoin:
    """
    Join two record collections on token-set similarity.

    Args:
        ctx: Execution context (partitions + worker pool)
        featurizer: Decides whether a pair of records is similar
        weighted: Weight tokens by log10(N / df) over the join's corpus
    """

    def __init__(
        self,
        ctx: ParallelContext,
        featurizer: AnnotatedSimilarityFeaturizer,
        weighted: bool = False,
    ):
        self.ctx = ctx
        self.featurizer = featurizer
        self.weighted = weighted

    def update_context(self, cols: Sequence[str], other_cols: Optional[Sequence[str]] = None) -> None:
        self.featurizer.set_context(cols, other_cols)

    def join(
        self,
        collection_a: Iterable[Record],
        collection_b: Iterable[Record],
        smaller_a: bool = True,
        containment: bool = True,
    ) -> Iterator[MatchedPair]:
        """
        Pairs (a, b) from A x B that the featurizer labels similar.

        Args:
            collection_a: First collection of records
            collection_b: Second collection of records
            smaller_a: True if A is smaller than or equal to B
            containment: True if one collection is contained in the other (e.g. a sample)

        Returns:
            Lazy iterator of matched pairs, in no particular order
        """
        logger.info(f"Executing {type(self).__name__} (naive)")
        self.featurizer.validate()

        a = list(collection_a)
        b = a if collection_a is collection_b else list(collection_b)
        if not a or not b:
            logger.info(f"Empty input (|A|={len(a):,}, |B|={len(b):,}); nothing to join")
            return iter(())

        weights: Mapping[str, float] = {}
        if self.weighted:
            stats = compute_token_statistics(
                self.ctx,
                tokenize_side(self.ctx, self.featurizer, a, primary=True),
                tokenize_side(self.ctx, self.featurizer, b, primary=False),
                smaller_a,
                containment,
                weighted=True,
            )
            weights = stats.weights

        featurizer = self.featurizer

        def matches(row_a: Record) -> List[MatchedPair]:
            return [(row_a, row_b) for row_b in b if featurizer.featurize((row_a, row_b), weights) == 1.0]

        def run() -> List[MatchedPair]:
            logger.info(f"Comparing {len(a) * len(b):,} pairs")
            out = self.ctx.flat_map(matches, a, desc="cross product")
            logger.info(f"✓ {type(self).__name__}: {len(out):,} similar pairs")
            return out

        return deferred(run)

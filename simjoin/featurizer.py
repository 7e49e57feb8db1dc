"""
simjoin/featurizer.py

Token-set similarity featurizers used by the join engine.

A featurizer owns everything measure-specific:
- which columns are tokenized on each side of the join
- the (optionally weighted) similarity score and its threshold test
- the prefix-filtering bound: how many trailing tokens of a rank-sorted
  token list can be dropped before probing without losing any match

All measures work on distinct tokens. A token's weight is looked up in the
weights map and defaults to 1.0 (the whole map is empty when weighting is off).
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .errors import ConfigurationError
from .tokenizer import Tokenizer, WordTokenizer, build_tokenizer


Record = Mapping[str, Any]

# Slack subtracted from the prefix bound so float rounding never drops a token
# that could still complete a match.
_BOUND_EPS = 1e-9


def token_weight(token: str, weights: Mapping[str, float]) -> float:
    return weights.get(token, 1.0) if weights else 1.0


def set_weight(tokens: Iterable[str], weights: Mapping[str, float]) -> float:
    # sorted: the float sum must not depend on set iteration order
    return sum(token_weight(t, weights) for t in sorted(set(tokens)))


class AnnotatedSimilarityFeaturizer:
    """
    Base class for threshold similarity tests over token sets.

    Subclasses implement `score(...)` and `required_overlap(...)`, the minimum
    weight of shared tokens any pair must have to reach the threshold, given
    only the weight of the probing record. That bound is what makes
    `get_removed_size` sound.
    """

    name = "similarity"

    def __init__(
        self,
        cols: Sequence[str],
        tokenizer: Optional[Tokenizer] = None,
        threshold: Optional[float] = None,
        min_size: int = 1,
        *,
        other_cols: Optional[Sequence[str]] = None,
        prefix_filtering: bool = True,
    ):
        self.cols: List[str] = list(cols)
        self.other_cols: Optional[List[str]] = list(other_cols) if other_cols is not None else None
        self.tokenizer = tokenizer or WordTokenizer()
        self.threshold = threshold
        self.min_size = min_size
        self.prefix_filtering = prefix_filtering

    @property
    def uses_token_prefix_filtering(self) -> bool:
        return self.prefix_filtering

    # ------------------------
    # Columns / tokens
    # ------------------------
    def get_cols(self, primary: bool = True) -> List[str]:
        """Columns tokenized for the first (primary) or second side of a join."""
        if primary or self.other_cols is None:
            return self.cols
        return self.other_cols

    def set_context(self, cols: Sequence[str], other_cols: Optional[Sequence[str]] = None) -> None:
        self.cols = list(cols)
        self.other_cols = list(other_cols) if other_cols is not None else None

    def tokenize(self, record: Record, columns: Sequence[str]) -> List[str]:
        return self.tokenizer.tokenize(record, columns)

    # ------------------------
    # Validation
    # ------------------------
    def validate(self) -> None:
        """Raise ConfigurationError if this featurizer cannot drive a join."""
        if self.threshold is None:
            raise ConfigurationError(f"{self.name}: threshold is not set")
        try:
            t = float(self.threshold)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{self.name}: threshold must be a number, got {self.threshold!r}")
        if math.isnan(t) or math.isinf(t):
            raise ConfigurationError(f"{self.name}: threshold must be finite, got {t}")

        if not self.prefix_filtering:
            return

        # A non-positive threshold matches pairs that share no token at all,
        # which no inverted index can find.
        if t <= 0:
            raise ConfigurationError(f"{self.name}: prefix filtering needs threshold > 0, got {t}")
        if not isinstance(self.min_size, int) or isinstance(self.min_size, bool) or self.min_size < 1:
            raise ConfigurationError(f"{self.name}: prefix filtering needs integer min_size >= 1, got {self.min_size!r}")

    # ------------------------
    # Measure
    # ------------------------
    def score(self, overlap: float, weight_a: float, weight_b: float) -> float:
        raise NotImplementedError

    def required_overlap(self, weight_a: float, threshold: float) -> float:
        raise NotImplementedError

    def similarity(self, tokens_a: Sequence[str], tokens_b: Sequence[str], weights: Mapping[str, float]) -> float:
        overlap = set_weight(set(tokens_a) & set(tokens_b), weights)
        return self.score(overlap, set_weight(tokens_a, weights), set_weight(tokens_b, weights))

    def optimized_similarity(
        self,
        tokens_a: Sequence[str],
        tokens_b: Sequence[str],
        threshold: float,
        weights: Mapping[str, float],
    ) -> Tuple[bool, float]:
        """Return (is_similar, score). Token lists shorter than min_size never match."""
        if len(tokens_a) < self.min_size or len(tokens_b) < self.min_size:
            return False, 0.0
        sim = self.similarity(tokens_a, tokens_b, weights)
        return sim >= threshold, sim

    def featurize(self, pair: Tuple[Record, Record], weights: Mapping[str, float]) -> float:
        """1.0 if the pair is similar, else 0.0. The first record uses the primary columns."""
        row_a, row_b = pair
        tokens_a = self.tokenize(row_a, self.get_cols(True))
        tokens_b = self.tokenize(row_b, self.get_cols(False))
        similar, _ = self.optimized_similarity(tokens_a, tokens_b, float(self.threshold), weights)
        return 1.0 if similar else 0.0

    def get_removed_size(self, sorted_tokens: Sequence[str], threshold: float, weights: Mapping[str, float]) -> int:
        """
        Number of trailing tokens of a rank-sorted list that can be skipped when probing.

        The dropped suffix is the longest one whose distinct-token weight stays
        strictly below `required_overlap`: a candidate sharing only suffix
        tokens cannot reach the threshold, so at least one shared token must
        be in the retained prefix.
        """
        required = self.required_overlap(set_weight(sorted_tokens, weights), threshold)
        if required <= 0:
            return 0

        removed = 0
        dropped = 0.0
        seen = set()
        for token in reversed(sorted_tokens):
            w = 0.0 if token in seen else token_weight(token, weights)
            if dropped + w >= required - _BOUND_EPS:
                break
            dropped += w
            seen.add(token)
            removed += 1
        return removed

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(cols={self.cols}, other_cols={self.other_cols}, "
            f"threshold={self.threshold}, min_size={self.min_size}, "
            f"prefix_filtering={self.prefix_filtering})"
        )


class JaccardSimilarity(AnnotatedSimilarityFeaturizer):
    """w(A ∩ B) / w(A ∪ B)"""

    name = "jaccard"

    def score(self, overlap: float, weight_a: float, weight_b: float) -> float:
        union = weight_a + weight_b - overlap
        if union <= 0:
            return 0.0
        return overlap / union

    def required_overlap(self, weight_a: float, threshold: float) -> float:
        # w(A ∩ B) >= t * w(A ∪ B) >= t * w(A)
        return threshold * weight_a


class DiceSimilarity(AnnotatedSimilarityFeaturizer):
    """2 w(A ∩ B) / (w(A) + w(B))"""

    name = "dice"

    def score(self, overlap: float, weight_a: float, weight_b: float) -> float:
        total = weight_a + weight_b
        if total <= 0:
            return 0.0
        return 2.0 * overlap / total

    def required_overlap(self, weight_a: float, threshold: float) -> float:
        # w(B) >= w(A ∩ B), so 2o >= t (w(A) + o)
        if threshold >= 2.0:
            return math.inf
        return threshold * weight_a / (2.0 - threshold)


class CosineSimilarity(AnnotatedSimilarityFeaturizer):
    """w(A ∩ B) / sqrt(w(A) w(B))"""

    name = "cosine"

    def score(self, overlap: float, weight_a: float, weight_b: float) -> float:
        denom = math.sqrt(weight_a * weight_b)
        if denom <= 0:
            return 0.0
        return overlap / denom

    def required_overlap(self, weight_a: float, threshold: float) -> float:
        # w(B) >= o, so o >= t sqrt(w(A) o)  =>  o >= t^2 w(A)
        return threshold * threshold * weight_a


class OverlapSimilarity(AnnotatedSimilarityFeaturizer):
    """Absolute shared weight w(A ∩ B)."""

    name = "overlap"

    def score(self, overlap: float, weight_a: float, weight_b: float) -> float:
        return overlap

    def required_overlap(self, weight_a: float, threshold: float) -> float:
        return threshold


MEASURES = {
    cls.name: cls
    for cls in (JaccardSimilarity, DiceSimilarity, CosineSimilarity, OverlapSimilarity)
}


DEFAULT_FEATURIZER_CFG: Dict[str, Any] = {
    "measure": "jaccard",
    "threshold": 0.8,
    "min_size": 1,
    "prefix_filtering": True,
    "columns": None,
    "other_columns": None,
}


def build_featurizer(
    featurizer_cfg: Optional[Dict[str, Any]] = None,
    tokenizer_cfg: Optional[Dict[str, Any]] = None,
) -> AnnotatedSimilarityFeaturizer:
    """Build a featurizer from the `featurizer:` and `tokenizer:` config sections."""
    cfg = dict(DEFAULT_FEATURIZER_CFG)
    cfg.update(featurizer_cfg or {})

    measure = str(cfg["measure"]).lower()
    if measure not in MEASURES:
        raise ConfigurationError(f"Unknown similarity measure: {measure!r} (expected one of {sorted(MEASURES)})")
    if not cfg["columns"]:
        raise ConfigurationError("featurizer.columns must list at least one column")

    featurizer = MEASURES[measure](
        cfg["columns"],
        tokenizer=build_tokenizer(tokenizer_cfg),
        threshold=cfg["threshold"],
        min_size=cfg["min_size"],
        other_cols=cfg["other_columns"],
        prefix_filtering=bool(cfg["prefix_filtering"]),
    )
    featurizer.validate()
    logger.info(f"Featurizer: {featurizer!r}")
    return featurizer

"""Tests for document frequencies, weights and token ranks."""

import math

import pytest

from simjoin.weights import (
    UNSEEN_RANK,
    compute_token_count,
    compute_token_ranks,
    compute_token_statistics,
    sort_token_set,
)


TOKENS_A = [["a", "b"], ["a", "c"]]
TOKENS_B = [["a", "b", "b"], ["b", "d"], ["e"]]


class TestTokenCount:
    def test_distinct_per_record(self, ctx):
        counts = compute_token_count(ctx, [["x", "x", "y"], ["x"], []])
        assert counts == {"x": 2, "y": 1}

    def test_serial_and_parallel_agree(self, ctx, serial_ctx):
        data = [[f"t{i % 7}", f"t{i % 3}"] for i in range(40)]
        assert compute_token_count(ctx, data) == compute_token_count(serial_ctx, data)


class TestCorpusSelection:
    def test_smaller_a_containment_uses_b_only(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, smaller_a=True, containment=True, weighted=True)
        assert stats.corpus_size == 3
        assert dict(stats.counts) == {"a": 1, "b": 2, "d": 1, "e": 1}
        assert stats.weights["b"] == pytest.approx(math.log10(3 / 2))
        assert "c" not in stats.weights

    def test_smaller_a_containment_ignores_a_contents(self, ctx):
        first = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, True, True, True)
        second = compute_token_statistics(ctx, [["zzz"]] * 10, TOKENS_B, True, True, True)
        assert dict(first.counts) == dict(second.counts)
        assert dict(first.weights) == dict(second.weights)
        assert first.corpus_size == second.corpus_size

    def test_containment_larger_a_uses_a_only(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, smaller_a=False, containment=True, weighted=True)
        assert stats.corpus_size == 2
        assert dict(stats.counts) == {"a": 2, "b": 1, "c": 1}
        assert stats.weights["a"] == pytest.approx(0.0)

    def test_no_containment_uses_union(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, smaller_a=True, containment=False, weighted=True)
        assert stats.corpus_size == 5
        assert stats.counts["a"] == 3
        assert stats.counts["b"] == 3
        assert stats.weights["e"] == pytest.approx(math.log10(5))

    def test_unweighted_has_empty_weights(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, True, False, weighted=False)
        assert not stats.weighted
        assert len(stats.weights) == 0
        assert stats.counts["a"] == 3

    def test_statistics_are_immutable(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, TOKENS_B, True, True, True)
        with pytest.raises(TypeError):
            stats.counts["a"] = 99
        with pytest.raises(AttributeError):
            stats.corpus_size = 0

    def test_empty_corpus(self, ctx):
        stats = compute_token_statistics(ctx, TOKENS_A, [], True, True, True)
        assert stats.corpus_size == 0
        assert len(stats.counts) == 0


class TestRanks:
    def test_rarest_first(self):
        ranks = compute_token_ranks({"common": 10, "rare": 1, "mid": 5})
        assert ranks == {"rare": 0, "mid": 1, "common": 2}

    def test_ties_are_deterministic(self):
        counts = {"b": 2, "a": 2, "c": 1}
        assert compute_token_ranks(counts) == compute_token_ranks(dict(reversed(list(counts.items()))))
        assert compute_token_ranks(counts) == {"c": 0, "a": 1, "b": 2}

    def test_sort_token_set(self):
        ranks = {"x": 2, "y": 0, "z": 1}
        assert sort_token_set(["x", "y", "z", "y"], ranks) == ["y", "y", "z", "x"]

    def test_unseen_tokens_sort_first(self):
        ranks = {"x": 0, "y": 1}
        assert UNSEEN_RANK < 0
        assert sort_token_set(["y", "new", "x"], ranks) == ["new", "x", "y"]

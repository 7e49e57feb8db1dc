"""Tests for the partitioned worker-pool context."""

import pytest

from simjoin.errors import ResourceExhaustion
from simjoin.parallel import ParallelContext


class TestPartitioning:
    def test_partitions_cover_all_items_in_order(self):
        ctx = ParallelContext(workers=2, partitions=3)
        parts = ctx.partition(range(10))
        assert len(parts) == 3
        assert [x for p in parts for x in p] == list(range(10))
        assert all(p for p in parts)

    def test_fewer_items_than_partitions(self):
        ctx = ParallelContext(workers=2, partitions=8)
        assert ctx.partition([1, 2]) == [[1], [2]]

    def test_empty_input(self):
        ctx = ParallelContext()
        assert ctx.partition([]) == []
        assert ctx.map(lambda x: x, []) == []
        assert ctx.count([]) == 0


class TestTransformations:
    @pytest.mark.parametrize("workers", [1, 4])
    def test_map_keeps_order(self, workers):
        ctx = ParallelContext(workers=workers, partitions=5)
        assert ctx.map(lambda x: x * 2, range(20)) == [x * 2 for x in range(20)]

    def test_flat_map(self, ctx):
        assert ctx.flat_map(lambda x: [x] * x, [1, 2, 3]) == [1, 2, 2, 3, 3, 3]

    def test_zip_with_unique_id_is_unique_across_partitions(self):
        ctx = ParallelContext(workers=4, partitions=7)
        items = [f"r{i}" for i in range(50)]
        with_ids = ctx.zip_with_unique_id(items)
        ids = [i for _, i in with_ids]
        assert len(set(ids)) == len(items)
        assert min(ids) >= 0
        assert [x for x, _ in with_ids] == items


class TestAggregations:
    def test_count(self, ctx):
        assert ctx.count(range(123)) == 123

    def test_reduce_by_key_locally_merges_partitions(self, ctx):
        pairs = [("a", 1), ("b", 1), ("a", 1), ("c", 1), ("a", 1), ("b", 1)]
        assert ctx.reduce_by_key_locally(lambda x, y: x + y, pairs) == {"a": 3, "b": 2, "c": 1}

    def test_group_by_key(self, ctx):
        grouped = ctx.group_by_key([("x", 1), ("y", 2), ("x", 3)])
        assert sorted(grouped["x"]) == [1, 3]
        assert grouped["y"] == [2]


class TestErrors:
    def test_worker_exception_propagates(self, ctx):
        def boom(x):
            if x == 7:
                raise RuntimeError("bad record")
            return x

        with pytest.raises(RuntimeError, match="bad record"):
            ctx.map(boom, range(10))


class TestBroadcast:
    def test_dict_is_read_only(self, ctx):
        b = ctx.broadcast("weights", {"a": 1.0})
        assert b.value["a"] == 1.0
        with pytest.raises(TypeError):
            b.value["a"] = 2.0

    def test_snapshot_is_independent_of_source(self, ctx):
        source = {"a": 1}
        b = ctx.broadcast("data", source)
        source["b"] = 2
        assert "b" not in b.value

    def test_list_becomes_tuple(self, ctx):
        assert ctx.broadcast("ids", [1, 2]).value == (1, 2)

    def test_entry_limit_raises_resource_exhaustion(self):
        ctx = ParallelContext(max_broadcast_entries=2)
        with pytest.raises(ResourceExhaustion):
            ctx.broadcast("index", {"a": 1, "b": 2, "c": 3})
        assert len(ctx.broadcast("index", {"a": 1})) == 1

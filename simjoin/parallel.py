"""
simjoin/parallel.py

Partitioned execution on a local worker pool.

Policy:
- Records are split into contiguous partitions; each partition is one task.
- Tasks run on a ThreadPoolExecutor (workers <= 1 runs inline).
- Aggregations (count, reduce_by_key_locally, group_by_key) block until every
  partition finished, then merge on the caller's thread.
- Any worker exception propagates to the caller; there is no retry.
"""

from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, Hashable, Iterable, List, Optional, Tuple, TypeVar

from loguru import logger
from tqdm import tqdm

from .errors import ResourceExhaustion


T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


DEFAULT_PARALLEL_CFG: Dict[str, Any] = {
    "workers": 4,
    "partitions": 8,
    "show_progress": False,
}


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType(dict(value))
    if isinstance(value, list):
        return tuple(value)
    if isinstance(value, set):
        return frozenset(value)
    return value


@dataclass(frozen=True)
class Broadcast(Generic[T]):
    """Read-only value shared by every task of a job."""

    name: str
    value: T

    def __len__(self) -> int:
        return len(self.value)  # type: ignore[arg-type]


class ParallelContext:
    """Small stand-in for a cluster context: partitions, worker pool, broadcasts."""

    def __init__(
        self,
        workers: Optional[int] = None,
        partitions: Optional[int] = None,
        *,
        show_progress: Optional[bool] = None,
        max_broadcast_entries: Optional[int] = None,
        parallel_cfg: Optional[Dict[str, Any]] = None,
    ):
        cfg = dict(DEFAULT_PARALLEL_CFG)
        cfg.update(parallel_cfg or {})
        if workers is not None:
            cfg["workers"] = workers
        if partitions is not None:
            cfg["partitions"] = partitions
        if show_progress is not None:
            cfg["show_progress"] = show_progress

        self.workers = max(1, int(cfg["workers"]))
        self.partitions = max(1, int(cfg["partitions"]))
        self.show_progress = bool(cfg["show_progress"])
        self.max_broadcast_entries = max_broadcast_entries

        logger.debug(
            f"ParallelContext: workers={self.workers}, partitions={self.partitions}, "
            f"max_broadcast_entries={self.max_broadcast_entries}"
        )

    # ------------------------
    # Partitioning
    # ------------------------
    def partition(self, items: Iterable[T]) -> List[List[T]]:
        """Split items into at most `self.partitions` contiguous, non-empty chunks."""
        data = list(items)
        if not data:
            return []
        n = min(self.partitions, len(data))
        size, extra = divmod(len(data), n)
        out: List[List[T]] = []
        start = 0
        for i in range(n):
            end = start + size + (1 if i < extra else 0)
            out.append(data[start:end])
            start = end
        return out

    def map_partitions(
        self,
        fn: Callable[[int, List[T]], R],
        items: Iterable[T],
        *,
        desc: str = "partitions",
    ) -> List[R]:
        """Run fn(partition_index, partition) for every partition; results keep partition order."""
        return self._run_parts(fn, self.partition(items), desc=desc)

    # ------------------------
    # Transformations
    # ------------------------
    def map(self, fn: Callable[[T], R], items: Iterable[T], *, desc: str = "map") -> List[R]:
        chunks = self.map_partitions(lambda _, part: [fn(x) for x in part], items, desc=desc)
        return [x for chunk in chunks for x in chunk]

    def flat_map(self, fn: Callable[[T], Iterable[R]], items: Iterable[T], *, desc: str = "flat_map") -> List[R]:
        def run(_: int, part: List[T]) -> List[R]:
            out: List[R] = []
            for x in part:
                out.extend(fn(x))
            return out

        chunks = self.map_partitions(run, items, desc=desc)
        return [x for chunk in chunks for x in chunk]

    def zip_with_unique_id(self, items: Iterable[T]) -> List[Tuple[T, int]]:
        """
        Pair every item with a globally unique id.

        Each partition numbers its own items starting at the partition's offset
        (the total size of all preceding partitions), so ids never collide.
        """
        parts = self.partition(items)
        offsets: List[int] = []
        total = 0
        for p in parts:
            offsets.append(total)
            total += len(p)

        def run(i: int, part: List[T]) -> List[Tuple[T, int]]:
            base = offsets[i]
            return [(x, base + j) for j, x in enumerate(part)]

        out: List[Tuple[T, int]] = []
        for chunk in self._run_parts(run, parts, desc="zip_with_unique_id"):
            out.extend(chunk)
        return out

    # ------------------------
    # Aggregations (blocking)
    # ------------------------
    def count(self, items: Iterable[Any]) -> int:
        return sum(self.map_partitions(lambda _, part: len(part), items, desc="count"))

    def reduce_by_key_locally(
        self,
        fn: Callable[[V, V], V],
        pairs: Iterable[Tuple[K, V]],
    ) -> Dict[K, V]:
        """Combine values per key inside each partition, then merge partials on the caller."""

        def combine(_: int, part: List[Tuple[K, V]]) -> Dict[K, V]:
            acc: Dict[K, V] = {}
            for k, v in part:
                acc[k] = fn(acc[k], v) if k in acc else v
            return acc

        merged: Dict[K, V] = {}
        for partial in self.map_partitions(combine, pairs, desc="reduce_by_key"):
            for k, v in partial.items():
                merged[k] = fn(merged[k], v) if k in merged else v
        return merged

    def group_by_key(self, pairs: Iterable[Tuple[K, V]]) -> Dict[K, List[V]]:
        def group(_: int, part: List[Tuple[K, V]]) -> Dict[K, List[V]]:
            acc: Dict[K, List[V]] = defaultdict(list)
            for k, v in part:
                acc[k].append(v)
            return acc

        merged: Dict[K, List[V]] = defaultdict(list)
        for partial in self.map_partitions(group, pairs, desc="group_by_key"):
            for k, vs in partial.items():
                merged[k].extend(vs)
        return dict(merged)

    # ------------------------
    # Broadcast
    # ------------------------
    def broadcast(self, name: str, value: Any) -> Broadcast:
        """
        Publish a read-only snapshot to all tasks.

        Dicts become mapping proxies and sequences become tuples, so tasks
        cannot mutate shared state. Raises ResourceExhaustion when the value
        is larger than `max_broadcast_entries` or cannot be materialized.
        """
        size = len(value) if hasattr(value, "__len__") else None
        if self.max_broadcast_entries is not None and size is not None and size > self.max_broadcast_entries:
            raise ResourceExhaustion(
                f"Broadcast '{name}' has {size:,} entries "
                f"(limit {self.max_broadcast_entries:,})"
            )
        try:
            frozen = _freeze(value)
        except MemoryError as e:
            raise ResourceExhaustion(f"Out of memory while materializing broadcast '{name}'") from e

        logger.debug(f"Broadcast '{name}' published ({size if size is not None else '?'} entries)")
        return Broadcast(name=name, value=frozen)

    # ------------------------
    # Internals
    # ------------------------
    def _run_parts(self, fn: Callable[[int, List[T]], R], parts: List[List[T]], *, desc: str) -> List[R]:
        if not parts:
            return []

        bar = tqdm(total=len(parts), desc=desc, disable=not self.show_progress)
        try:
            if self.workers <= 1 or len(parts) == 1:
                out = []
                for i, p in enumerate(parts):
                    out.append(fn(i, p))
                    bar.update(1)
                return out

            results: List[Any] = [None] * len(parts)
            with ThreadPoolExecutor(max_workers=self.workers) as ex:
                futures = {ex.submit(fn, i, p): i for i, p in enumerate(parts)}
                for fut in as_completed(futures):
                    # re-raises the worker's exception and aborts the whole job
                    results[futures[fut]] = fut.result()
                    bar.update(1)
            return results
        finally:
            bar.close()

"""
simjoin/index.py

Inverted index over the smaller side of a join.

Every indexed record gets a unique id, its tokens are sorted rarest first by
the global rank, and each (token, id) is emitted for the whole sorted list.
Only the probing side trims its token list to a prefix.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Sequence, Tuple

from loguru import logger

from .parallel import ParallelContext
from .weights import sort_token_set


Record = Mapping[str, Any]
IdRow = Tuple[int, Tuple[List[str], Record]]


def assign_record_ids(
    ctx: ParallelContext,
    rows: Sequence[Tuple[List[str], Record]],
) -> List[IdRow]:
    """Turn [(tokens, record)] into [(id, (tokens, record))] with ids unique across all partitions."""
    return [(rid, row) for row, rid in ctx.zip_with_unique_id(rows)]


def build_inverted_index(
    ctx: ParallelContext,
    id_table: Sequence[IdRow],
    token_ranks: Mapping[str, int],
    min_size: int,
) -> Dict[str, Tuple[int, ...]]:
    """Map token -> distinct ids of records whose rank-sorted token list contains it."""

    def postings(row: IdRow) -> List[Tuple[str, int]]:
        rid, (tokens, _) = row
        if len(tokens) < min_size:
            return []
        return [(t, rid) for t in sort_token_set(tokens, token_ranks)]

    grouped = ctx.group_by_key(ctx.flat_map(postings, id_table, desc="postings"))
    index = {token: tuple(dict.fromkeys(ids)) for token, ids in grouped.items()}

    logger.info(f"✓ Inverted index: {len(index):,} tokens over {len(id_table):,} records")
    return index

"""Utility functions for JSONL record I/O."""

import json
from pathlib import Path
from typing import Iterable, Dict, Any, List, Tuple, Mapping
from loguru import logger


# ============================================================
# JSONL I/O
# ============================================================

def read_jsonl(path: str | Path) -> Iterable[Dict[str, Any]]:
    """Yield one record per non-blank line; a missing file yields nothing, bad lines are logged and skipped."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"No records file at {path}")
        return

    with path.open("r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"{path.name}:{line_num}: skipping malformed record ({e})")


def write_jsonl(path: str | Path, records: Iterable[Dict[str, Any]], mode: str = "a") -> int:
    """
    Stream records to a JSONL file, creating parent directories.

    `records` is consumed lazily, so a join result is never held twice.
    Use mode="w" to replace an existing file. Returns the number of lines written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    n = 0
    with path.open(mode, encoding="utf-8") as f:
        for n, rec in enumerate(records, 1):
            f.write(json.dumps(rec, ensure_ascii=False) + "\n")
    return n


def load_records(path: str | Path) -> List[Dict[str, Any]]:
    """Load a JSONL file of records into memory."""
    records = list(read_jsonl(path))
    logger.info(f"✓ Loaded {len(records):,} records from {path}")
    return records


def pairs_as_dicts(pairs: Iterable[Tuple[Mapping[str, Any], Mapping[str, Any]]]) -> Iterable[Dict[str, Any]]:
    """Matched pairs as {"left": ..., "right": ...} rows for JSONL output."""
    for left, right in pairs:
        yield {"left": dict(left), "right": dict(right)}

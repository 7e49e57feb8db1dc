#!/usr/bin/env python3
"""Main CLI entrypoint for simjoin (config-driven).

Everything configurable is read from the YAML config (configs/base.yaml by
default, or $SIMJOIN_CONFIG, or the first command-line argument).
Without paths.input_b the input is joined with itself.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv
from loguru import logger

from .broadcast_join import BroadcastJoin
from .config import load_config, validate_paths
from .errors import SimJoinError
from .featurizer import build_featurizer
from .parallel import ParallelContext
from .similarity_join import SimilarityJoin
from .utils import load_records, pairs_as_dicts, write_jsonl


def setup_logging(logging_cfg: Dict[str, Any]) -> None:
    """Send join progress to stderr at `level`; with a `log_file`, also keep a rotating file log."""
    logger.remove()
    logger.add(sys.stderr, level=logging_cfg.get("level", "INFO"))

    log_name = logging_cfg.get("log_file")
    if not log_name:
        return

    log_dir = Path(logging_cfg["log_dir"])
    log_dir.mkdir(parents=True, exist_ok=True)
    # enqueue: scan workers log from several threads
    logger.add(
        str(log_dir / log_name),
        rotation=logging_cfg["rotation"],
        retention=logging_cfg["retention"],
        level=logging_cfg.get("file_level", "DEBUG"),
        enqueue=True,
    )


def main() -> None:
    load_dotenv()

    config_path = sys.argv[1] if len(sys.argv) > 1 else os.environ.get("SIMJOIN_CONFIG")
    cfg = load_config(config_path)
    cfg_raw = cfg.raw

    setup_logging(cfg_raw["logging"])

    logger.info("=" * 60)
    logger.info("simjoin")
    logger.info("=" * 60)

    if not validate_paths(cfg):
        logger.error("Path validation failed!")
        sys.exit(1)

    records_a = load_records(cfg.paths["input_a"])
    input_b = cfg.paths.get("input_b")
    records_b = load_records(input_b) if input_b else records_a

    ctx = ParallelContext(
        parallel_cfg=cfg_raw["parallel"],
        max_broadcast_entries=cfg_raw["broadcast"]["max_entries"],
    )
    join_cfg = cfg_raw["join"]
    join_cls = BroadcastJoin if join_cfg["strategy"] == "broadcast" else SimilarityJoin

    try:
        featurizer = build_featurizer(cfg_raw["featurizer"], cfg_raw["tokenizer"])
        joiner = join_cls(ctx, featurizer, weighted=bool(join_cfg["weighted"]))
        pairs = joiner.join(
            records_a,
            records_b,
            smaller_a=bool(join_cfg["smaller_a"]),
            containment=bool(join_cfg["containment"]),
        )
        n = write_jsonl(cfg.paths["output"], pairs_as_dicts(pairs), mode="w")
    except SimJoinError as e:
        logger.error(f"Join failed: {e}")
        sys.exit(1)

    logger.info(f"✓ Wrote {n:,} pairs to {cfg.paths['output']}")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""Dump document frequencies, IDF weights and ranks for a JSONL record file."""

import argparse
import json
from pathlib import Path

from simjoin.parallel import ParallelContext
from simjoin.tokenizer import build_tokenizer
from simjoin.utils import load_records
from simjoin.weights import compute_token_count, compute_token_ranks, idf_weights


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("records", type=Path)
    parser.add_argument("--columns", nargs="+", required=True)
    parser.add_argument("--tokenizer", default="word", choices=["word", "whitespace"])
    parser.add_argument("--out", type=Path, default=Path("artifacts/token_stats.json"))
    parser.add_argument("--workers", type=int, default=4)
    args = parser.parse_args()

    if not args.records.exists():
        raise SystemExit(f"Missing records file: {args.records}")

    tokenizer = build_tokenizer({"kind": args.tokenizer})
    ctx = ParallelContext(workers=args.workers)

    records = load_records(args.records)
    token_sets = ctx.map(lambda r: tokenizer.tokenize(r, args.columns), records)
    n = ctx.count(token_sets)

    if n == 0:
        raise SystemExit("No records found to compute token statistics.")

    df = compute_token_count(ctx, token_sets)
    stats = {
        "corpus_size": n,
        "df": df,
        "idf": idf_weights(df, n),
        "rank": compute_token_ranks(df),
    }

    args.out.parent.mkdir(parents=True, exist_ok=True)
    with args.out.open("w", encoding="utf-8") as f:
        json.dump(stats, f)

    print(f"✓ Wrote {len(df):,} tokens to {args.out}")
    print(f"✓ N(records)={n:,}")


if __name__ == "__main__":
    main()

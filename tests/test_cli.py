"""End-to-end test of the command-line driver."""

import sys

import pytest
import yaml
from loguru import logger

from simjoin import cli
from simjoin.utils import read_jsonl, write_jsonl


@pytest.fixture
def workspace(tmp_path):
    write_jsonl(tmp_path / "a.jsonl", [
        {"id": 1, "name": "Acme Corp"},
        {"id": 2, "name": "Globex Corporation"},
    ], mode="w")
    write_jsonl(tmp_path / "b.jsonl", [
        {"id": 10, "name": "ACME corp"},
        {"id": 11, "name": "Initech"},
        {"id": 12, "name": "globex corporation"},
    ], mode="w")

    config = {
        "featurizer": {"measure": "jaccard", "threshold": 0.9, "columns": ["name"]},
        "parallel": {"workers": 2, "partitions": 2},
        "paths": {
            "input_a": str(tmp_path / "a.jsonl"),
            "input_b": str(tmp_path / "b.jsonl"),
            "output": str(tmp_path / "out" / "pairs.jsonl"),
        },
        "logging": {"log_dir": str(tmp_path / "logs"), "level": "WARNING"},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(config))
    yield tmp_path, config_path
    logger.remove()
    logger.add(sys.stderr)


@pytest.mark.parametrize("strategy", ["broadcast", "naive"])
def test_main_writes_pairs(workspace, monkeypatch, strategy):
    tmp_path, config_path = workspace
    cfg = yaml.safe_load(config_path.read_text())
    cfg["join"] = {"strategy": strategy}
    config_path.write_text(yaml.safe_dump(cfg))

    monkeypatch.setattr(sys, "argv", ["simjoin", str(config_path)])
    cli.main()

    rows = list(read_jsonl(tmp_path / "out" / "pairs.jsonl"))
    ids = sorted(tuple(sorted((r["left"]["id"], r["right"]["id"]))) for r in rows)
    assert ids == [(1, 10), (2, 12)]


def test_missing_input_exits(workspace, monkeypatch):
    tmp_path, config_path = workspace
    (tmp_path / "b.jsonl").unlink()
    monkeypatch.setattr(sys, "argv", ["simjoin", str(config_path)])
    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 1


def test_file_log_is_optional(tmp_path):
    log_dir = tmp_path / "logs"
    try:
        cli.setup_logging({"log_dir": str(log_dir), "log_file": None, "level": "WARNING"})
        assert not log_dir.exists()

        cli.setup_logging({
            "log_dir": str(log_dir), "log_file": "run.log", "level": "WARNING",
            "rotation": "1 MB", "retention": "1 day",
        })
        logger.debug("scan started")
        logger.remove()
        assert "scan started" in (log_dir / "run.log").read_text()
    finally:
        logger.remove()
        logger.add(sys.stderr)


def test_read_jsonl_skips_malformed_lines(tmp_path):
    path = tmp_path / "records.jsonl"
    path.write_text('{"id": 1}\n\nnot json\n{"id": 2}\n')
    assert [r["id"] for r in read_jsonl(path)] == [1, 2]

from typing import Any, Dict, Iterable, List, Mapping, Tuple

import pytest

from simjoin.featurizer import JaccardSimilarity
from simjoin.parallel import ParallelContext
from simjoin.tokenizer import WhitespaceTokenizer


def make_records(prefix: str, texts: Iterable[str]) -> List[Dict[str, Any]]:
    return [{"id": f"{prefix}{i}", "text": text} for i, text in enumerate(texts)]


def pair_keys(pairs: Iterable[Tuple[Mapping[str, Any], Mapping[str, Any]]]) -> List[Tuple[str, str]]:
    """Order-insensitive view of matched pairs: sorted (id, id) tuples, sorted."""
    return sorted(tuple(sorted((left["id"], right["id"]))) for left, right in pairs)


@pytest.fixture
def ctx():
    return ParallelContext(workers=3, partitions=4)


@pytest.fixture
def serial_ctx():
    return ParallelContext(workers=1, partitions=1)


@pytest.fixture
def jaccard():
    def _make(threshold: float = 0.5, **kwargs) -> JaccardSimilarity:
        return JaccardSimilarity(["text"], tokenizer=WhitespaceTokenizer(), threshold=threshold, **kwargs)

    return _make

"""Set-similarity joins with prefix filtering."""

from .broadcast_join import BroadcastJoin
from .errors import ConfigurationError, ResourceExhaustion, SimJoinError
from .featurizer import (
    AnnotatedSimilarityFeaturizer,
    CosineSimilarity,
    DiceSimilarity,
    JaccardSimilarity,
    OverlapSimilarity,
    build_featurizer,
)
from .parallel import ParallelContext
from .similarity_join import SimilarityJoin
from .tokenizer import WhitespaceTokenizer, WordTokenizer

__all__ = [
    "AnnotatedSimilarityFeaturizer",
    "BroadcastJoin",
    "ConfigurationError",
    "CosineSimilarity",
    "DiceSimilarity",
    "JaccardSimilarity",
    "OverlapSimilarity",
    "ParallelContext",
    "ResourceExhaustion",
    "SimJoinError",
    "SimilarityJoin",
    "WhitespaceTokenizer",
    "WordTokenizer",
    "build_featurizer",
]

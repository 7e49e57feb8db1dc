"""Tokenizers that turn selected record columns into token lists."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import ConfigurationError


WORD_RE = re.compile(r"[A-Za-z0-9]+")


def _column_text(record: Mapping[str, Any], columns: Sequence[str]) -> str:
    parts = []
    for col in columns:
        value = record.get(col)
        if value is None:
            continue
        parts.append(str(value))
    return " ".join(parts)


class Tokenizer:
    """Base tokenizer: `tokenize(record, columns)` returns tokens in text order."""

    def __init__(self, lowercase: bool = False):
        self.lowercase = lowercase

    def split(self, text: str) -> List[str]:
        raise NotImplementedError

    def tokenize(self, record: Mapping[str, Any], columns: Sequence[str]) -> List[str]:
        text = _column_text(record, columns)
        if self.lowercase:
            text = text.lower()
        return self.split(text)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(lowercase={self.lowercase})"


class WhitespaceTokenizer(Tokenizer):
    """Split on any whitespace."""

    def split(self, text: str) -> List[str]:
        return text.split()


class WordTokenizer(Tokenizer):
    """Alphanumeric runs; punctuation and underscores are separators."""

    def __init__(self, lowercase: bool = True):
        super().__init__(lowercase=lowercase)

    def split(self, text: str) -> List[str]:
        return WORD_RE.findall(text or "")


TOKENIZERS = {
    "whitespace": WhitespaceTokenizer,
    "word": WordTokenizer,
}


def build_tokenizer(tokenizer_cfg: Optional[Dict[str, Any]] = None) -> Tokenizer:
    cfg = tokenizer_cfg or {}
    kind = str(cfg.get("kind", "word"))
    if kind not in TOKENIZERS:
        raise ConfigurationError(f"Unknown tokenizer kind: {kind!r} (expected one of {sorted(TOKENIZERS)})")
    return TOKENIZERS[kind](lowercase=bool(cfg.get("lowercase", True)))

"""Keyword normalization shared by indexing and querying."""

from __future__ import annotations

import re
from typing import FrozenSet, List

MIN_KEYWORD_LENGTH = 3

STOPWORDS: FrozenSet[str] = frozenset(
    """
    the and for are but not you all can had her was one our out day get has him
    his how its may new now old see two who boy did she use way will this that
    with have from they know want been good much some time very when come here
    just like long make many over such take than them well were
    """.split()
)

_NON_WORD_RE = re.compile(r"[^\w\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase, turn non-word characters into spaces, split, keep tokens of 3+ chars."""
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_KEYWORD_LENGTH]


def extract_keywords(text: str) -> List[str]:
    """Document keywords in order of appearance; repeats are kept."""
    return [token for token in tokenize(text) if token not in STOPWORDS]


def extract_query_keywords(query: str) -> List[str]:
    # Same normalization as documents so stopwords never hit the index.
    return extract_keywords(query)

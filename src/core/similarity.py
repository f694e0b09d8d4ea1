# src/core/similarity.py - v1
"""Text similarity helpers for product-name matching.

Used by the repository text search and by discovery candidate scoring.
All scores are in [0, 1].
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher

_STOPWORDS = frozenset({
    "the", "and", "for", "with", "from", "this", "that", "are", "was", "were",
    "been", "have", "has", "had", "will", "would", "could", "should", "may",
    "can", "not", "but", "all", "you", "your", "our", "their", "its",
})


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = text.lower()
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def tokenize(text: str) -> set[str]:
    """Return the set of significant tokens in *text*."""
    return {
        t for t in normalize_text(text).split()
        if t not in _STOPWORDS and (len(t) > 1 or t.isdigit())
    }


def jaccard_similarity(a: str, b: str) -> float:
    """Token-set Jaccard similarity."""
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def sequence_similarity(a: str, b: str) -> float:
    """Character-level ratio on normalized text."""
    norm_a = normalize_text(a)
    norm_b = normalize_text(b)
    if not norm_a or not norm_b:
        return 0.0
    return SequenceMatcher(None, norm_a, norm_b).ratio()


def name_similarity(a: str, b: str) -> float:
    """Blend of token overlap and character similarity.

    Token overlap dominates so that reordered words still match well.
    """
    return 0.6 * jaccard_similarity(a, b) + 0.4 * sequence_similarity(a, b)

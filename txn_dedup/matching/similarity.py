"""String similarity scores for merchant names.

``jaro_winkler`` is the raw edit-style score. ``combined_similarity``
layers containment and word-overlap boosts on top of it so that
"FRIED CHICKEN" and "Fried Chicken Company" score as the same merchant.
"""

from __future__ import annotations

import re

from rapidfuzz.distance import Jaro

from txn_dedup.matching.merchant import extract_merchant_tokens

PREFIX_WEIGHT = 0.1
MAX_PREFIX = 4
WORD_MATCH_THRESHOLD = 0.85
CONTAINMENT_SCORE = 0.92

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def jaro_winkler(a: str, b: str) -> float:
    """Jaro-Winkler similarity in [0, 1]. Case-sensitive.

    The common-prefix bonus (up to MAX_PREFIX characters) applies at every
    Jaro score, not only above rapidfuzz's 0.7 boost threshold.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    jaro = Jaro.similarity(a, b)
    prefix = 0
    for ch_a, ch_b in zip(a[:MAX_PREFIX], b[:MAX_PREFIX]):
        if ch_a != ch_b:
            break
        prefix += 1
    return jaro + prefix * PREFIX_WEIGHT * (1.0 - jaro)


def _containment_score(a: str, b: str) -> float:
    norm_a = _NON_ALNUM_RE.sub("", a)
    norm_b = _NON_ALNUM_RE.sub("", b)
    if len(norm_a) < 4 or len(norm_b) < 4:
        return 0.0
    shorter, longer = sorted((norm_a, norm_b), key=len)
    if shorter not in longer:
        return 0.0
    if len(shorter) >= 5:
        return CONTAINMENT_SCORE
    return 0.7 + (len(shorter) / len(longer)) * 0.3


def _word_overlap_score(a: str, b: str) -> float:
    words_a = [w for w in a.split() if len(w) >= 3]
    words_b = [w for w in b.split() if len(w) >= 3]
    if not words_a or not words_b:
        return 0.0
    matching = sum(
        1 for wa in words_a
        if any(jaro_winkler(wa, wb) >= WORD_MATCH_THRESHOLD for wb in words_b)
    )
    return matching / max(len(words_a), len(words_b))


def combined_similarity(a: str, b: str) -> float:
    """Case-insensitive similarity, never below ``jaro_winkler(a, b)``.

    Returns the best of:
      - Jaro-Winkler on the lower-cased strings
      - containment: one alphanumeric-only name inside the other
      - word overlap: share of 3+ char words with a close counterpart
    """
    floor = jaro_winkler(a, b)
    s1 = a.lower().strip()
    s2 = b.lower().strip()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return floor
    return max(
        floor,
        jaro_winkler(s1, s2),
        _containment_score(s1, s2),
        _word_overlap_score(s1, s2),
    )


def has_significant_token_overlap(desc_a: str, desc_b: str) -> bool:
    """True when two descriptions share enough merchant tokens.

    Overlap counts exact shared tokens plus substring pairs where both
    tokens have 4+ characters. It is significant when at least one token
    overlaps and the count reaches half the smaller token set or two.
    """
    tokens_a = extract_merchant_tokens(desc_a)
    tokens_b = extract_merchant_tokens(desc_b)
    if not tokens_a or not tokens_b:
        return False

    set_b = set(tokens_b)
    overlap = sum(1 for t in set(tokens_a) if t in set_b)
    for ta in tokens_a:
        for tb in tokens_b:
            if len(ta) >= 4 and len(tb) >= 4 and (ta in tb or tb in ta):
                overlap += 1

    smaller = min(len(tokens_a), len(tokens_b))
    return overlap >= 1 and (overlap >= smaller * 0.5 or overlap >= 2)

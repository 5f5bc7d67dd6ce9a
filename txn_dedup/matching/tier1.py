"""Tier 1: deterministic matching of new transactions against existing ones.

Only candidates sharing the absolute amount within the date window are
compared (see ``index``). A candidate is a definite match when:

1. Normalized descriptions score >= threshold on combined similarity
2. The new side's provider merchant name scores >= threshold against the
   existing description (and the reverse)
3. Descriptions share significant tokens and the raw Jaro-Winkler of the
   normalized names is >= the overlap threshold (also tried with each
   side's provider merchant name)

Every candidate is scored; the best-scoring definite match wins, ties
going to candidate order. A transaction with candidates but no definite
match is escalated: its top candidates become ``UncertainPair``s.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from txn_dedup.matching.index import build_date_amount_index, find_candidates
from txn_dedup.matching.merchant import extract_merchant_name
from txn_dedup.matching.similarity import (
    combined_similarity,
    has_significant_token_overlap,
    jaro_winkler,
)
from txn_dedup.models import (
    DedupOptions,
    DuplicateMatch,
    MatchTier,
    Tier1MatchResult,
    Tier1Result,
    Tier1Stats,
    TransactionForDedup,
    UncertainPair,
)

logger = logging.getLogger(__name__)

TIER1_THRESHOLD = 0.88
TOKEN_OVERLAP_THRESHOLD = 0.75

ProgressCallback = Callable[[int, int], None]


def tier1_match(
    new_tx: TransactionForDedup,
    existing_tx: TransactionForDedup,
    *,
    threshold: float = TIER1_THRESHOLD,
    overlap_threshold: float = TOKEN_OVERLAP_THRESHOLD,
) -> Tier1MatchResult:
    """Decide whether two amount/date-compatible transactions are the same.

    Args:
        new_tx: Incoming transaction.
        existing_tx: Stored transaction from the candidate index.
        threshold: Minimum combined similarity for a direct match.
        overlap_threshold: Minimum raw Jaro-Winkler when tokens overlap.

    Returns:
        Tier1MatchResult with the best score seen, even when not a match.
    """
    new_merchant = extract_merchant_name(new_tx.description)
    existing_merchant = extract_merchant_name(existing_tx.description)

    score = combined_similarity(new_merchant, existing_merchant)
    if score >= threshold:
        return Tier1MatchResult(is_match=True, score=score)

    new_provider = extract_merchant_name(new_tx.provider_merchant_name)
    existing_provider = extract_merchant_name(existing_tx.provider_merchant_name)

    if new_provider:
        provider_score = combined_similarity(new_provider, existing_merchant)
        score = max(score, provider_score)
        if provider_score >= threshold:
            return Tier1MatchResult(is_match=True, score=provider_score)

    if existing_provider:
        provider_score = combined_similarity(existing_provider, new_merchant)
        score = max(score, provider_score)
        if provider_score >= threshold:
            return Tier1MatchResult(is_match=True, score=provider_score)

    # ── Token-overlap fallbacks ───────────────────────────

    if has_significant_token_overlap(new_tx.description, existing_tx.description):
        raw = jaro_winkler(new_merchant, existing_merchant)
        if raw >= overlap_threshold:
            return Tier1MatchResult(is_match=True, score=max(score, raw))

    if new_provider and has_significant_token_overlap(
        new_tx.provider_merchant_name, existing_tx.description
    ):
        raw = jaro_winkler(new_provider, existing_merchant)
        if raw >= overlap_threshold:
            return Tier1MatchResult(is_match=True, score=max(score, raw))

    if existing_provider and has_significant_token_overlap(
        new_tx.description, existing_tx.provider_merchant_name
    ):
        raw = jaro_winkler(new_merchant, existing_provider)
        if raw >= overlap_threshold:
            return Tier1MatchResult(is_match=True, score=max(score, raw))

    return Tier1MatchResult(is_match=False, score=score)


def run_tier1_dedup(
    new_transactions: Sequence[TransactionForDedup],
    existing_transactions: Sequence[TransactionForDedup],
    *,
    options: DedupOptions | None = None,
    on_progress: ProgressCallback | None = None,
) -> Tier1Result:
    """Run the deterministic tier over a whole batch.

    Transactions without candidates are unique and never escalated. With
    ``options.exclusive_matches`` each existing transaction absorbs at
    most one new transaction; claimed ones drop out of later candidate
    lists.
    """
    options = options or DedupOptions()
    start = time.perf_counter()

    index = build_date_amount_index(existing_transactions)
    result = Tier1Result()
    claimed: set[int] = set()
    total = len(new_transactions)

    for processed, txn in enumerate(new_transactions, start=1):
        candidates = find_candidates(txn, index, options.date_tolerance_days)
        if options.exclusive_matches:
            candidates = [c for c in candidates if id(c) not in claimed]

        if not candidates:
            result.unique.append(txn)
        else:
            _classify(txn, candidates, options, result, claimed)

        if on_progress is not None:
            on_progress(processed, total)

    result.stats = Tier1Stats(
        total=total,
        tier1_matches=len(result.definite_matches),
        uncertain_count=len(result.uncertain_pairs),
        unique_count=len(result.unique),
        processing_time_ms=(time.perf_counter() - start) * 1000,
    )
    logger.info(
        "Tier 1: %d new, %d definite matches, %d uncertain pairs (%d txns), %d unique",
        total, result.stats.tier1_matches, result.stats.uncertain_count,
        len(result.escalated), result.stats.unique_count,
    )
    return result


def _classify(
    txn: TransactionForDedup,
    candidates: list[TransactionForDedup],
    options: DedupOptions,
    result: Tier1Result,
    claimed: set[int],
) -> None:
    scored: list[tuple[TransactionForDedup, float]] = []
    best: tuple[TransactionForDedup, float] | None = None

    for candidate in candidates:
        match = tier1_match(
            txn, candidate,
            threshold=options.tier1_threshold,
            overlap_threshold=options.token_overlap_threshold,
        )
        scored.append((candidate, match.score))
        if match.is_match and (best is None or match.score > best[1]):
            best = (candidate, match.score)

    if best is not None:
        candidate, score = best
        logger.debug(
            "Tier 1 match (%.3f): %r == %r", score, txn.description, candidate.description
        )
        result.definite_matches.append(DuplicateMatch(
            transaction=txn,
            matched_with=candidate,
            confidence=score,
            match_tier=MatchTier.DETERMINISTIC,
        ))
        if options.exclusive_matches:
            claimed.add(id(candidate))
        return

    # Stable sort keeps candidate order among equal scores
    ranked = sorted(scored, key=lambda item: item[1], reverse=True)
    result.escalated.append(txn)
    for candidate, score in ranked[: options.max_candidates_per_tx]:
        result.uncertain_pairs.append(UncertainPair(
            new_transaction=txn, candidate=candidate, tier1_score=score,
        ))

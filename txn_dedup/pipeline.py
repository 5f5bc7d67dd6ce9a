"""Dedup pipeline: Tier 1 deterministic matching, then Tier 2 verification.

Steps:
1. Build the date/amount index over existing transactions
2. Tier 1 settles what it can (definite match or no candidates = unique)
3. Uncertain pairs go to the verifier in bounded, concurrent batches
4. Verified pairs become duplicates; everything else stays unique

Tier 2 is fail-safe: a verifier error, a timeout or a cancel turns the
affected pairs into unique transactions. It never blocks or undoes
Tier 1 results, and it never produces a duplicate by mistake.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass

from txn_dedup.matching.tier1 import ProgressCallback, run_tier1_dedup
from txn_dedup.models import (
    DedupOptions,
    DedupResult,
    DedupStats,
    DuplicateMatch,
    MatchTier,
    TransactionForDedup,
    UncertainPair,
)
from txn_dedup.verify.base import (
    Confidence,
    VerificationError,
    VerificationPair,
    VerificationResult,
    Verifier,
    chunk_pairs,
)
from txn_dedup.verify.dispatch import BatchStatus, dispatch_batches

logger = logging.getLogger(__name__)


@dataclass
class Tier2Resolution:
    """Matches accepted from the verifier plus bookkeeping for stats."""
    matches: list[DuplicateMatch]
    verified_pairs: int = 0
    failed_batches: int = 0
    abandoned_batches: int = 0


def _to_verification_pair(pair: UncertainPair) -> VerificationPair:
    return VerificationPair(
        new_description=pair.new_transaction.description,
        existing_description=pair.candidate.description,
        amount=pair.new_transaction.amount,
        date=pair.new_transaction.date,
        existing_merchant_name=pair.candidate.provider_merchant_name,
    )


def resolve_uncertain_pairs(
    pairs: Sequence[UncertainPair],
    verifier: Verifier,
    *,
    options: DedupOptions | None = None,
    cancel: threading.Event | None = None,
    claimed: set[int] | None = None,
) -> Tier2Resolution:
    """Send uncertain pairs to the verifier and fold accepted ones into matches.

    A pair is accepted when the verifier says same-merchant with a
    confidence listed in ``options.confidence_scores`` (high and medium by
    default; low never counts). Each new transaction gets at most one
    match: highest confidence, then highest Tier-1 score, then pair order.

    Args:
        pairs: Output of Tier 1.
        verifier: Anything implementing ``verify_batch``.
        options: Batch size, concurrency, timeout and confidence table.
        cancel: Event that abandons outstanding batches when set.
        claimed: ids of existing transactions already matched; only
            consulted when ``options.exclusive_matches`` is on.
    """
    options = options or DedupOptions()
    if not pairs:
        return Tier2Resolution(matches=[])

    batches = chunk_pairs(pairs, options.batch_size)

    def _verify(batch: list[UncertainPair]) -> list[VerificationResult]:
        results = verifier.verify_batch([_to_verification_pair(p) for p in batch])
        if len(results) != len(batch):
            raise VerificationError(
                f"Verifier returned {len(results)} results for {len(batch)} pairs"
            )
        return results

    outcomes = dispatch_batches(
        batches, _verify,
        concurrency=options.concurrency,
        timeout=options.timeout_seconds,
        cancel=cancel,
    )

    resolution = Tier2Resolution(matches=[])
    # new txn id -> accepted (rank, pair, confidence score) entries
    accepted: dict[int, list[tuple[tuple[float, float, int], UncertainPair, float]]] = {}
    position = 0
    for batch, outcome in zip(batches, outcomes):
        if outcome.status is BatchStatus.FAILED:
            resolution.failed_batches += 1
        elif outcome.status is BatchStatus.ABANDONED:
            resolution.abandoned_batches += 1
        if outcome.status is not BatchStatus.OK:
            position += len(batch)
            continue

        resolution.verified_pairs += len(batch)
        for pair, result in zip(batch, outcome.value):
            position += 1
            if not result.is_same_merchant or result.confidence is Confidence.LOW:
                continue
            score = options.confidence_scores.get(result.confidence.value)
            if score is None:
                continue
            rank = (score, pair.tier1_score, -position)
            accepted.setdefault(id(pair.new_transaction), []).append((rank, pair, score))

    if resolution.failed_batches or resolution.abandoned_batches:
        logger.warning(
            "Tier 2: %d failed and %d abandoned batches; their pairs stay unique",
            resolution.failed_batches, resolution.abandoned_batches,
        )

    taken: set[int] = set(claimed or ())
    # dicts keep insertion order, so new transactions are walked in pair order
    for entries in accepted.values():
        entries.sort(key=lambda entry: entry[0], reverse=True)
        for _, pair, score in entries:
            if options.exclusive_matches and id(pair.candidate) in taken:
                continue
            taken.add(id(pair.candidate))
            resolution.matches.append(DuplicateMatch(
                transaction=pair.new_transaction,
                matched_with=pair.candidate,
                confidence=score,
                match_tier=MatchTier.LLM,
            ))
            break
    return resolution


def deduplicate(
    new_transactions: Sequence[TransactionForDedup],
    existing_transactions: Sequence[TransactionForDedup],
    *,
    verifier: Verifier | None = None,
    options: DedupOptions | None = None,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
) -> DedupResult:
    """Partition ``new_transactions`` into unique ones and duplicates.

    Args:
        new_transactions: Incoming batch.
        existing_transactions: Already-stored transactions to match against.
        verifier: Tier 2 verifier; None runs Tier 1 only.
        options: Matching and verification knobs.
        on_progress: Called as (processed, total) during Tier 1.
        cancel: Event that abandons outstanding Tier 2 batches when set.

    Returns:
        DedupResult with ``unique`` and ``duplicates`` in input order.
    """
    options = options or DedupOptions()
    start = time.perf_counter()

    tier1 = run_tier1_dedup(
        new_transactions, existing_transactions,
        options=options, on_progress=on_progress,
    )

    resolution = Tier2Resolution(matches=[])
    if tier1.uncertain_pairs:
        if verifier is not None and options.use_verifier:
            claimed = {id(m.matched_with) for m in tier1.definite_matches}
            resolution = resolve_uncertain_pairs(
                tier1.uncertain_pairs, verifier,
                options=options, cancel=cancel, claimed=claimed,
            )
        else:
            logger.info(
                "No verifier; %d uncertain transactions treated as unique",
                len(tier1.escalated),
            )

    matched: dict[int, DuplicateMatch] = {
        id(m.transaction): m for m in tier1.definite_matches
    }
    for m in resolution.matches:
        matched.setdefault(id(m.transaction), m)

    result = DedupResult()
    for txn in new_transactions:
        match = matched.get(id(txn))
        if match is None:
            result.unique.append(txn)
        else:
            result.duplicates.append(match)

    tier1_count = sum(1 for d in result.duplicates if d.match_tier is MatchTier.DETERMINISTIC)
    tier2_count = sum(1 for d in result.duplicates if d.match_tier is MatchTier.LLM)
    result.stats = DedupStats(
        total=len(new_transactions),
        tier1_matches=tier1_count,
        tier2_matches=tier2_count,
        unique_count=len(result.unique),
        processing_time_ms=(time.perf_counter() - start) * 1000,
        duplicate_count=len(result.duplicates),
        uncertain_pairs=len(tier1.uncertain_pairs),
        verified_pairs=resolution.verified_pairs,
        failed_batches=resolution.failed_batches,
        abandoned_batches=resolution.abandoned_batches,
    )
    logger.info(
        "Dedup: %d new, %d duplicates (%d tier 1, %d tier 2), %d unique in %.0fms",
        result.stats.total, result.stats.duplicate_count, tier1_count, tier2_count,
        result.stats.unique_count, result.stats.processing_time_ms,
    )
    return result


def find_duplicates_deterministic(
    new_transactions: Sequence[TransactionForDedup],
    existing_transactions: Sequence[TransactionForDedup],
    *,
    options: DedupOptions | None = None,
    on_progress: ProgressCallback | None = None,
) -> DedupResult:
    """Tier 1 only; uncertain transactions are reported unique."""
    return deduplicate(
        new_transactions, existing_transactions,
        verifier=None, options=options, on_progress=on_progress,
    )


def deduplicate_one(
    new_transaction: TransactionForDedup,
    candidates: Sequence[TransactionForDedup],
    *,
    verifier: Verifier | None = None,
    options: DedupOptions | None = None,
) -> DuplicateMatch | None:
    """Check a single transaction; returns its match, or None if unique."""
    result = deduplicate(
        [new_transaction], candidates, verifier=verifier, options=options,
    )
    return result.duplicates[0] if result.duplicates else None

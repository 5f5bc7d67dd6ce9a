"""Date/amount candidate index over the existing transactions.

Key format is ``"{YYYY-MM-DD}|{abs(amount):.2f}"``. Feed transactions are
indexed under their authorized and posted dates as well, so a card
statement dated on the purchase day still finds a feed row that posted
two days later.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, timedelta

from txn_dedup.models import TransactionForDedup

logger = logging.getLogger(__name__)

DEFAULT_DATE_TOLERANCE_DAYS = 2


def _parse_date(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def amount_key(amount) -> str | None:
    """Absolute amount rounded to cents, or None if not numeric."""
    try:
        return f"{abs(float(amount)):.2f}"
    except (TypeError, ValueError):
        return None


def index_key(day: date, amount: str) -> str:
    return f"{day.isoformat()}|{amount}"


class CandidateIndex:
    """Maps date|amount keys to the existing transactions filed under them."""

    def __init__(self) -> None:
        self._buckets: dict[str, list[TransactionForDedup]] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def get(self, key: str) -> list[TransactionForDedup]:
        return self._buckets.get(key, [])

    def add(self, txn: TransactionForDedup) -> int:
        """File ``txn`` under its primary, authorized and posted dates.

        Returns the number of keys the transaction was filed under. Zero
        means it is undiscoverable (bad amount or no parseable date).
        """
        amount = amount_key(txn.amount)
        if amount is None:
            logger.debug("Not indexing %r: non-numeric amount %r", txn.description, txn.amount)
            return 0

        keys: list[str] = []
        for raw_date in (txn.date, txn.provider_authorized_date, txn.provider_posted_date):
            if raw_date is None:
                continue
            day = _parse_date(raw_date)
            if day is None:
                logger.debug("Skipping unparseable date %r for %r", raw_date, txn.description)
                continue
            key = index_key(day, amount)
            if key not in keys:
                keys.append(key)

        for key in keys:
            bucket = self._buckets.setdefault(key, [])
            if not any(existing is txn for existing in bucket):
                bucket.append(txn)
        return len(keys)

    def candidates_for(
        self,
        txn: TransactionForDedup,
        date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
    ) -> list[TransactionForDedup]:
        """Existing transactions with the same absolute amount within the window.

        Offsets run from ``-tolerance`` to ``+tolerance``; results keep that
        order and bucket insertion order, each transaction appearing once.
        """
        if date_tolerance_days < 0:
            raise ValueError(f"date_tolerance_days must be >= 0, got {date_tolerance_days}")

        amount = amount_key(txn.amount)
        day = _parse_date(txn.date)
        if amount is None or day is None:
            logger.debug("No candidates for %r: unusable date or amount", txn.description)
            return []

        seen: set[int] = set()
        candidates: list[TransactionForDedup] = []
        for offset in range(-date_tolerance_days, date_tolerance_days + 1):
            key = index_key(day + timedelta(days=offset), amount)
            for existing in self._buckets.get(key, []):
                if id(existing) in seen:
                    continue
                seen.add(id(existing))
                candidates.append(existing)
        return candidates


def build_date_amount_index(existing: Iterable[TransactionForDedup]) -> CandidateIndex:
    """Build a candidate index over the existing transactions."""
    index = CandidateIndex()
    skipped = 0
    for txn in existing:
        if index.add(txn) == 0:
            skipped += 1
    if skipped:
        logger.debug("%d existing transactions could not be indexed", skipped)
    return index


def find_candidates(
    txn: TransactionForDedup,
    index: CandidateIndex,
    date_tolerance_days: int = DEFAULT_DATE_TOLERANCE_DAYS,
) -> list[TransactionForDedup]:
    return index.candidates_for(txn, date_tolerance_days)

"""Tier 2 contract: the semantic verifier interface.

A verifier answers, for each pair of descriptions, whether both name the
same merchant ("AWS" vs "Amazon Web Services"). The pipeline only talks
to this protocol, so tests plug in fakes and production plugs in
``ClaudeVerifier``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, TypeVar, runtime_checkable

from txn_dedup.models import VERIFY_BATCH_LIMIT

T = TypeVar("T")


class VerificationError(RuntimeError):
    """The verifier could not produce a usable answer for a batch."""


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value) -> Confidence:
        """Lenient parse; anything unrecognized is LOW."""
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.LOW


@dataclass(frozen=True)
class VerificationPair:
    new_description: str
    existing_description: str
    amount: float | None = None
    date: str | None = None
    existing_merchant_name: str | None = None


@dataclass(frozen=True)
class VerificationResult:
    is_same_merchant: bool
    confidence: Confidence
    reasoning: str | None = None


NOT_SAME = VerificationResult(is_same_merchant=False, confidence=Confidence.LOW)


@runtime_checkable
class Verifier(Protocol):
    def verify_batch(self, pairs: Sequence[VerificationPair]) -> list[VerificationResult]:
        """Return one result per pair, in the same order."""
        ...


def chunk_pairs(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive chunks of at most ``size``."""
    if not 1 <= size <= VERIFY_BATCH_LIMIT:
        raise ValueError(f"batch size must be between 1 and {VERIFY_BATCH_LIMIT}, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]

"""Dataclass models shared by the dedup tiers.

Transactions are frozen: the pipeline classifies them but never rewrites
them. Every other record lives for a single dedup run.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum

# Hard cap on pairs per verifier request.
VERIFY_BATCH_LIMIT = 100


class MatchTier(str, Enum):
    """Which tier produced a duplicate match."""
    DETERMINISTIC = "deterministic"
    LLM = "llm"


@dataclass(frozen=True)
class TransactionForDedup:
    """A transaction as seen by the dedup pipeline."""
    description: str
    amount: float          # signed: negative=outflow, positive=inflow
    date: str              # YYYY-MM-DD
    id: str | None = None
    provider_authorized_date: str | None = None  # feed: purchase date
    provider_posted_date: str | None = None      # feed: settlement date
    provider_merchant_name: str | None = None    # feed: cleaned merchant label


@dataclass
class Tier1MatchResult:
    is_match: bool
    score: float


@dataclass
class DuplicateMatch:
    """A new transaction that already exists as ``matched_with``."""
    transaction: TransactionForDedup
    matched_with: TransactionForDedup
    confidence: float
    match_tier: MatchTier


@dataclass
class UncertainPair:
    """A (new, existing) pair Tier 1 could not settle."""
    new_transaction: TransactionForDedup
    candidate: TransactionForDedup
    tier1_score: float


@dataclass
class Tier1Stats:
    total: int = 0
    tier1_matches: int = 0
    uncertain_count: int = 0
    unique_count: int = 0
    processing_time_ms: float = 0.0


@dataclass
class Tier1Result:
    """Output of the deterministic tier.

    ``escalated`` holds the new transactions that had candidates but no
    definite match; their candidates are in ``uncertain_pairs``.
    """
    definite_matches: list[DuplicateMatch] = field(default_factory=list)
    uncertain_pairs: list[UncertainPair] = field(default_factory=list)
    unique: list[TransactionForDedup] = field(default_factory=list)
    escalated: list[TransactionForDedup] = field(default_factory=list)
    stats: Tier1Stats = field(default_factory=Tier1Stats)


@dataclass
class DedupStats:
    total: int = 0
    tier1_matches: int = 0
    tier2_matches: int = 0
    unique_count: int = 0
    processing_time_ms: float = 0.0
    duplicate_count: int = 0
    uncertain_pairs: int = 0
    verified_pairs: int = 0
    failed_batches: int = 0
    abandoned_batches: int = 0


@dataclass
class DedupResult:
    """Final partition of a new batch into unique and duplicate transactions."""
    unique: list[TransactionForDedup] = field(default_factory=list)
    duplicates: list[DuplicateMatch] = field(default_factory=list)
    stats: DedupStats = field(default_factory=DedupStats)

    def to_dict(self) -> dict:
        return {
            "unique": [asdict(t) for t in self.unique],
            "duplicates": [
                {
                    "transaction": asdict(d.transaction),
                    "matched_with": asdict(d.matched_with),
                    "confidence": d.confidence,
                    "match_tier": d.match_tier.value,
                }
                for d in self.duplicates
            ],
            "stats": asdict(self.stats),
        }


def _default_confidence_scores() -> dict[str, float]:
    return {"high": 0.95, "medium": 0.85}


@dataclass
class DedupOptions:
    """Tunable knobs for a dedup run. Defaults match config/dedup.yaml."""
    tier1_threshold: float = 0.88
    token_overlap_threshold: float = 0.75
    date_tolerance_days: int = 2
    max_candidates_per_tx: int = 5
    exclusive_matches: bool = False
    use_verifier: bool = True
    batch_size: int = 50
    concurrency: int = 4
    timeout_seconds: float | None = None
    confidence_scores: dict[str, float] = field(default_factory=_default_confidence_scores)

    def __post_init__(self) -> None:
        for name in ("tier1_threshold", "token_overlap_threshold"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")
        if self.date_tolerance_days < 0:
            raise ValueError(
                f"date_tolerance_days must be >= 0, got {self.date_tolerance_days}"
            )
        if self.max_candidates_per_tx < 1:
            raise ValueError(
                f"max_candidates_per_tx must be >= 1, got {self.max_candidates_per_tx}"
            )
        if not 1 <= self.batch_size <= VERIFY_BATCH_LIMIT:
            raise ValueError(
                f"batch_size must be between 1 and {VERIFY_BATCH_LIMIT}, got {self.batch_size}"
            )
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(
                f"timeout_seconds must be positive, got {self.timeout_seconds}"
            )

"""Claude-backed verifier for uncertain transaction pairs.

Sends one batch of description pairs per request and asks Claude whether
each pair names the same merchant. Uses a claude_fn callback
(system: str, prompt: str) -> str so tests never touch the network.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Sequence

from txn_dedup.models import VERIFY_BATCH_LIMIT
from txn_dedup.verify.base import (
    NOT_SAME,
    Confidence,
    VerificationError,
    VerificationPair,
    VerificationResult,
)

logger = logging.getLogger(__name__)

ClaudeFn = Callable[[str, str], str]

SYSTEM_PROMPT = (
    "You are a transaction deduplication expert. You will be given numbered "
    "pairs of bank transaction descriptions that already share the same amount "
    "and nearly the same date. For each pair, decide whether both descriptions "
    "refer to the same merchant.\n\n"
    "Descriptions come from different sources: card statements add payment "
    "prefixes (APLPAY, SQ *, TST*), store numbers, cities and state codes, "
    "while bank feeds use cleaned names. Abbreviations are common.\n\n"
    "Same merchant:\n"
    '  "AWS" / "Amazon Web Services"\n'
    '  "TST* STEAKHOUSE RIVERDALE XX" / "Steakhouse"\n'
    '  "NFLX DIGITAL" / "Netflix"\n'
    "Different merchants:\n"
    '  "BURRITO BARN" / "Taco Town"\n'
    '  "BIG BOX STORE" / "Discount Mart"\n\n'
    "Return ONLY a JSON object of this shape:\n"
    '{"matches": [{"pair_index": 1, "is_same_merchant": true, '
    '"confidence": "high", "reasoning": "one short sentence"}]}\n'
    '"pair_index" is the 1-based pair number. "confidence" is one of '
    '"high", "medium", "low". Include every pair. Return ONLY the JSON object, '
    "no other text."
)


def is_verifier_available() -> bool:
    """True when an Anthropic API key is configured."""
    return bool(os.environ.get("ANTHROPIC_API_KEY"))


class ClaudeVerifier:
    """Verifier that asks Claude about a batch of pairs in one request.

    Args:
        claude_fn: Callable (system: str, prompt: str) -> str.
    """

    def __init__(self, claude_fn: ClaudeFn):
        self.claude_fn = claude_fn

    def verify_batch(self, pairs: Sequence[VerificationPair]) -> list[VerificationResult]:
        """Verify up to VERIFY_BATCH_LIMIT pairs.

        Raises:
            ValueError: More pairs than one request may carry.
            VerificationError: Claude's answer could not be parsed.
            Exception: Whatever claude_fn raises (network, auth, ...).
        """
        if not pairs:
            return []
        if len(pairs) > VERIFY_BATCH_LIMIT:
            raise ValueError(
                f"Too many pairs for one request: {len(pairs)} > {VERIFY_BATCH_LIMIT}"
            )

        response = self.claude_fn(SYSTEM_PROMPT, _build_prompt(pairs))
        results = _parse_response(response, len(pairs))
        logger.debug(
            "Claude verified %d pairs, %d same-merchant",
            len(pairs), sum(1 for r in results if r.is_same_merchant),
        )
        return results


def _build_prompt(pairs: Sequence[VerificationPair]) -> str:
    blocks: list[str] = []
    for i, pair in enumerate(pairs, start=1):
        lines = [
            f'{i}. New: "{pair.new_description}"',
            f'   Existing: "{pair.existing_description}"',
        ]
        if pair.existing_merchant_name:
            lines.append(f'   Existing merchant: "{pair.existing_merchant_name}"')
        if pair.amount is not None:
            lines.append(f"   Amount: ${abs(pair.amount):.2f}")
        if pair.date:
            lines.append(f"   Date: {pair.date}")
        blocks.append("\n".join(lines))
    return (
        "Do these transaction pairs refer to the same merchant?\n\n"
        + "\n\n".join(blocks)
    )


def _parse_response(response: str, expected: int) -> list[VerificationResult]:
    """Parse Claude's JSON answer into one result per pair.

    Pairs Claude skipped come back as not-same with low confidence.
    """
    text = response.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        text = "\n".join(lines)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise VerificationError(
            f"Failed to parse Claude verification response: {text[:200]}"
        ) from e

    if isinstance(data, dict):
        entries = data.get("matches")
    else:
        entries = data
    if not isinstance(entries, list):
        raise VerificationError(f"Claude response has no matches list: {type(data)}")

    results: list[VerificationResult] = [NOT_SAME] * expected
    answered: set[int] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            index = int(entry.get("pair_index"))
        except (TypeError, ValueError):
            logger.warning("Ignoring verification entry without pair_index: %s", entry)
            continue
        if not 1 <= index <= expected or index in answered:
            logger.warning("Ignoring verification entry with bad pair_index %d", index)
            continue
        answered.add(index)
        reasoning = entry.get("reasoning")
        results[index - 1] = VerificationResult(
            is_same_merchant=entry.get("is_same_merchant") is True,
            confidence=Confidence.parse(entry.get("confidence")),
            reasoning=reasoning if isinstance(reasoning, str) else None,
        )

    if len(answered) < expected:
        logger.warning(
            "Claude answered %d of %d pairs; the rest count as different merchants",
            len(answered), expected,
        )
    return results

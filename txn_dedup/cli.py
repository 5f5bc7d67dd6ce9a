"""CLI entry point for txn-dedup.

Commands:
    txn-dedup run NEW EXISTING [--deterministic] [--json]
                                      Dedup NEW against EXISTING (CSV or JSON)
    txn-dedup normalize DESCRIPTION...
                                      Print the extracted merchant names
    txn-dedup compare A B             Print similarity scores for two descriptions
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging based on TXN_DEDUP_LOG_LEVEL env var."""
    level = os.environ.get("TXN_DEDUP_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _get_config():
    """Load dedup config, or None when the config directory is absent."""
    from txn_dedup.config import Config

    config_dir = os.environ.get("TXN_DEDUP_CONFIG_DIR", "config")
    try:
        return Config(config_dir=config_dir)
    except FileNotFoundError:
        logger.info("No config directory at %s, using defaults", config_dir)
        return None


def _make_claude_fn(model: str, max_tokens: int):
    """Create a Claude API callback for pair verification.

    Returns a callable (system: str, prompt: str) -> str, or None if the
    client cannot be created. The key is read from ANTHROPIC_API_KEY.
    """
    try:
        import anthropic

        client = anthropic.Anthropic()

        def claude_fn(system: str, prompt: str) -> str:
            response = client.messages.create(
                model=model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
            return response.content[0].text

        return claude_fn
    except Exception as e:
        logging.getLogger(__name__).warning("Claude API not available: %s", e)
        return None


def _get_verifier(config):
    """Create a ClaudeVerifier if ANTHROPIC_API_KEY is set, else None."""
    from txn_dedup.config import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
    from txn_dedup.verify.claude import ClaudeVerifier, is_verifier_available

    if not is_verifier_available():
        return None

    model = config.model if config is not None else DEFAULT_MODEL
    max_tokens = config.max_tokens if config is not None else DEFAULT_MAX_TOKENS
    claude_fn = _make_claude_fn(model, max_tokens)
    if claude_fn is None:
        return None
    return ClaudeVerifier(claude_fn)


def cmd_run(args: argparse.Namespace) -> int:
    from txn_dedup.models import DedupOptions, MatchTier
    from txn_dedup.parsers.loader import TransactionLoader
    from txn_dedup.pipeline import deduplicate

    for path in (args.new, args.existing):
        if not path.exists():
            print(f"Error: File not found: {path}")
            return 1

    config = _get_config()
    try:
        options = config.dedup_options() if config is not None else DedupOptions()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    loader = TransactionLoader()
    try:
        new_txns = loader.load(args.new)
        new_skipped = loader.skipped_count
        existing_txns = loader.load(args.existing)
        existing_skipped = loader.skipped_count
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    verifier = None
    if not args.deterministic and options.use_verifier:
        verifier = _get_verifier(config)
        if verifier is None:
            print("Verifier not configured (set ANTHROPIC_API_KEY); running Tier 1 only.")

    result = deduplicate(new_txns, existing_txns, verifier=verifier, options=options)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    stats = result.stats
    print("Dedup Summary")
    print("=" * 40)
    print(f"  New transactions:    {stats.total:,}")
    print(f"  Existing:            {len(existing_txns):,}")
    if new_skipped or existing_skipped:
        print(f"  Skipped rows:        {new_skipped:,} new, {existing_skipped:,} existing")
    print(f"  Duplicates:          {stats.duplicate_count:,}")
    print(f"    Tier 1:            {stats.tier1_matches:,}")
    print(f"    Tier 2:            {stats.tier2_matches:,}")
    print(f"  Unique:              {stats.unique_count:,}")
    print(f"  Uncertain pairs:     {stats.uncertain_pairs:,}")
    if stats.failed_batches or stats.abandoned_batches:
        print(
            f"  Verifier batches:    {stats.failed_batches} failed, "
            f"{stats.abandoned_batches} abandoned"
        )
    print(f"  Time:                {stats.processing_time_ms:.0f}ms")

    if result.duplicates:
        print("\nDuplicates:")
        print("-" * 80)
        for dup in result.duplicates:
            tier = "T1" if dup.match_tier is MatchTier.DETERMINISTIC else "T2"
            print(
                f"  [{tier} {dup.confidence:.2f}] {dup.transaction.date}  "
                f"{dup.transaction.amount:>10.2f}  {dup.transaction.description[:30]:<30}"
                f" = {dup.matched_with.description[:30]}"
            )
    return 0


def cmd_normalize(args: argparse.Namespace) -> int:
    from txn_dedup.matching.merchant import extract_merchant_name

    for description in args.descriptions:
        print(f"{description!r} -> {extract_merchant_name(description)!r}")
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    from txn_dedup.matching.merchant import extract_merchant_name
    from txn_dedup.matching.similarity import (
        combined_similarity,
        has_significant_token_overlap,
        jaro_winkler,
    )

    a = extract_merchant_name(args.a)
    b = extract_merchant_name(args.b)
    print(f"  Merchant A:          {a}")
    print(f"  Merchant B:          {b}")
    print(f"  Jaro-Winkler:        {jaro_winkler(a, b):.3f}")
    print(f"  Combined:            {combined_similarity(a, b):.3f}")
    print(f"  Token overlap:       {'yes' if has_significant_token_overlap(args.a, args.b) else 'no'}")
    return 0


_COMMANDS = {
    "run": cmd_run,
    "normalize": cmd_normalize,
    "compare": cmd_compare,
}


def main(argv: list[str] | None = None):
    _setup_logging()

    parser = argparse.ArgumentParser(
        prog="txn-dedup",
        description="Cross-source transaction deduplication",
    )
    subparsers = parser.add_subparsers(dest="command")

    # run
    run_p = subparsers.add_parser("run", help="Dedup a new batch against existing transactions")
    run_p.add_argument("new", type=Path, help="New transactions (CSV or JSON)")
    run_p.add_argument("existing", type=Path, help="Existing transactions (CSV or JSON)")
    run_p.add_argument("--deterministic", action="store_true", help="Skip the Claude verifier")
    run_p.add_argument("--json", action="store_true", help="Print the full result as JSON")

    # normalize
    norm_p = subparsers.add_parser("normalize", help="Print extracted merchant names")
    norm_p.add_argument("descriptions", nargs="+", help="Raw transaction descriptions")

    # compare
    cmp_p = subparsers.add_parser("compare", help="Score two descriptions")
    cmp_p.add_argument("a", help="First description")
    cmp_p.add_argument("b", help="Second description")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    handler = _COMMANDS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}")
        sys.exit(1)

    sys.exit(handler(args))


if __name__ == "__main__":
    main()

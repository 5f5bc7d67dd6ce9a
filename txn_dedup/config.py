"""YAML configuration loader for txn-dedup.

Reads dedup.yaml from the config/ directory:
  matching:  Tier 1 thresholds, date window, candidate cap, exclusivity
  verifier:  Claude model, batch size, concurrency, timeout, confidence table
"""

from pathlib import Path

import yaml

from txn_dedup.models import DedupOptions

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 1024


class Config:
    """Loads and provides access to the dedup YAML configuration."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        if not self.config_dir.is_dir():
            raise FileNotFoundError(f"Config directory not found: {self.config_dir}")

        self._dedup: dict | None = None

    def _load(self, filename: str) -> dict:
        path = self.config_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            raise ValueError(f"Empty config file: {path}")
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping at the top of {path}")
        return data

    @property
    def dedup(self) -> dict:
        if self._dedup is None:
            self._dedup = self._load("dedup.yaml")
        return self._dedup

    @property
    def matching(self) -> dict:
        return self.dedup.get("matching") or {}

    @property
    def verifier(self) -> dict:
        return self.dedup.get("verifier") or {}

    @property
    def model(self) -> str:
        """Claude model used by the verifier."""
        return self.verifier.get("model", DEFAULT_MODEL)

    @property
    def max_tokens(self) -> int:
        return int(self.verifier.get("max_tokens", DEFAULT_MAX_TOKENS))

    def dedup_options(self) -> DedupOptions:
        """Build validated DedupOptions; missing keys keep their defaults.

        Raises:
            ValueError: A value is out of range or has the wrong type.
        """
        kwargs: dict = {}
        matching = self.matching
        verifier = self.verifier

        for key, cast in (
            ("tier1_threshold", float),
            ("token_overlap_threshold", float),
            ("date_tolerance_days", int),
            ("max_candidates_per_tx", int),
            ("exclusive_matches", bool),
        ):
            if key in matching:
                kwargs[key] = _cast(key, matching[key], cast)

        if "enabled" in verifier:
            kwargs["use_verifier"] = _cast("enabled", verifier["enabled"], bool)
        for key, cast in (
            ("batch_size", int),
            ("concurrency", int),
        ):
            if key in verifier:
                kwargs[key] = _cast(key, verifier[key], cast)
        if verifier.get("timeout_seconds") is not None:
            kwargs["timeout_seconds"] = _cast("timeout_seconds", verifier["timeout_seconds"], float)

        scores = verifier.get("confidence_scores")
        if scores is not None:
            if not isinstance(scores, dict):
                raise ValueError("verifier.confidence_scores must be a mapping")
            kwargs["confidence_scores"] = {
                str(level).lower(): _cast(f"confidence_scores.{level}", value, float)
                for level, value in scores.items()
                # Low-confidence answers never count as matches
                if str(level).lower() != "low"
            }

        return DedupOptions(**kwargs)


def _cast(key: str, value, cast):
    if cast is bool:
        if isinstance(value, bool):
            return value
        raise ValueError(f"{key} must be true or false, got {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key}: {value!r}") from e

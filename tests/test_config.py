"""Tests for txn_dedup.config: YAML configuration loader."""

import pytest

from txn_dedup.config import DEFAULT_MODEL, Config
from txn_dedup.models import DedupOptions
from tests.conftest import FIXTURE_CONFIG_DIR, REPO_CONFIG_DIR


def _write_config(tmp_path, text: str) -> Config:
    (tmp_path / "dedup.yaml").write_text(text)
    return Config(tmp_path)


class TestConfigInit:
    def test_loads_from_config_dir(self):
        config = Config(FIXTURE_CONFIG_DIR)
        assert config.config_dir == FIXTURE_CONFIG_DIR

    def test_raises_on_missing_directory(self):
        with pytest.raises(FileNotFoundError, match="Config directory not found"):
            Config("/nonexistent/path")

    def test_raises_on_file_not_directory(self, tmp_path):
        f = tmp_path / "not_a_dir.yaml"
        f.write_text("test: true")
        with pytest.raises(FileNotFoundError, match="Config directory not found"):
            Config(f)

    def test_missing_dedup_file(self, tmp_path):
        config = Config(tmp_path)
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            _ = config.dedup


class TestConfigLoading:
    def test_lazy_loading(self):
        config = Config(FIXTURE_CONFIG_DIR)
        assert config._dedup is None
        _ = config.matching
        assert config._dedup is not None

    def test_caches_after_first_load(self):
        config = Config(FIXTURE_CONFIG_DIR)
        assert config.dedup is config.dedup

    def test_invalid_yaml(self, tmp_path):
        config = _write_config(tmp_path, "matching: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            _ = config.dedup

    def test_empty_file(self, tmp_path):
        config = _write_config(tmp_path, "")
        with pytest.raises(ValueError, match="Empty config file"):
            _ = config.dedup

    def test_top_level_must_be_mapping(self, tmp_path):
        config = _write_config(tmp_path, "- a\n- b\n")
        with pytest.raises(ValueError, match="Expected a mapping"):
            _ = config.dedup


class TestDedupOptions:
    def test_fixture_values(self):
        options = Config(FIXTURE_CONFIG_DIR).dedup_options()
        assert options.tier1_threshold == 0.9
        assert options.token_overlap_threshold == 0.8
        assert options.date_tolerance_days == 3
        assert options.max_candidates_per_tx == 4
        assert options.exclusive_matches is True
        assert options.use_verifier is True
        assert options.batch_size == 10
        assert options.concurrency == 2
        assert options.timeout_seconds == 5.0
        assert options.confidence_scores == {"high": 0.9, "medium": 0.8}

    def test_fixture_verifier_settings(self):
        config = Config(FIXTURE_CONFIG_DIR)
        assert config.model == "claude-test-model"
        assert config.max_tokens == 512

    def test_repo_config_matches_defaults(self):
        options = Config(REPO_CONFIG_DIR).dedup_options()
        defaults = DedupOptions()
        assert options.tier1_threshold == defaults.tier1_threshold == 0.88
        assert options.token_overlap_threshold == defaults.token_overlap_threshold == 0.75
        assert options.date_tolerance_days == defaults.date_tolerance_days
        assert options.max_candidates_per_tx == defaults.max_candidates_per_tx
        assert options.exclusive_matches is False
        assert options.confidence_scores == defaults.confidence_scores

    def test_missing_sections_use_defaults(self, tmp_path):
        config = _write_config(tmp_path, "other: 1\n")
        assert config.dedup_options() == DedupOptions()
        assert config.model == DEFAULT_MODEL

    def test_low_confidence_never_scored(self, tmp_path):
        config = _write_config(
            tmp_path,
            "verifier:\n  confidence_scores:\n    high: 0.95\n    low: 0.5\n",
        )
        assert config.dedup_options().confidence_scores == {"high": 0.95}

    def test_boolean_must_be_boolean(self, tmp_path):
        config = _write_config(tmp_path, "matching:\n  exclusive_matches: 'yes'\n")
        with pytest.raises(ValueError, match="exclusive_matches"):
            config.dedup_options()

    def test_bad_number(self, tmp_path):
        config = _write_config(tmp_path, "matching:\n  date_tolerance_days: soon\n")
        with pytest.raises(ValueError, match="date_tolerance_days"):
            config.dedup_options()

    def test_out_of_range_rejected(self, tmp_path):
        config = _write_config(tmp_path, "verifier:\n  batch_size: 500\n")
        with pytest.raises(ValueError, match="batch_size"):
            config.dedup_options()

    def test_null_timeout_means_no_timeout(self, tmp_path):
        config = _write_config(tmp_path, "verifier:\n  timeout_seconds: null\n")
        assert config.dedup_options().timeout_seconds is None

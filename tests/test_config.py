"""
Tests for migration config loading and validation.
"""
import json
from datetime import timedelta
from pathlib import Path

import pytest

from proposalpilot.config import MigrationConfig, config_from_dict, load_config
from proposalpilot.exceptions import ConfigurationError


REQUIRED = {
    "high_entropy_unique_ratio": 0.9,
    "high_entropy_shannon": 3.0,
    "dominant_coverage_threshold": 0.5,
    "pha_cluster_size_threshold": 10,
}

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "configs" / "migration.example.yaml"


def _normalized(field_name):
    return field_name.replace("_", "").lower()


# =============================================================================
# Mappings
# =============================================================================

class TestConfigFromDict:
    """Validation of already parsed mappings."""

    def test_defaults(self):
        config = config_from_dict(REQUIRED)
        assert isinstance(config, MigrationConfig)
        assert config.outlier_minority_fraction == 0.05
        assert config.regime_gap_tolerance == timedelta(days=365)
        assert config.wildcard_min_distinct == 2
        assert config.widen_date_ranges is True
        assert config.certificate_statuses == ("A",)

    def test_camel_case_keys(self):
        config = config_from_dict({
            "highEntropyUniqueRatio": 0.8,
            "highEntropyShannon": 2.5,
            "dominantCoverageThreshold": 0.4,
            "phaClusterSizeThreshold": 5,
            "regimeGapToleranceDays": 30,
        })
        assert config.high_entropy_unique_ratio == 0.8
        assert config.pha_cluster_size_threshold == 5
        assert config.regime_gap_tolerance == timedelta(days=30)

    @pytest.mark.parametrize("missing", sorted(REQUIRED))
    def test_missing_threshold(self, missing):
        data = {k: v for k, v in REQUIRED.items() if k != missing}
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_dict(data)
        error = exc_info.value
        assert error.code == "PP_CONFIGURATION_ERROR"
        assert [_normalized(f) for f in error.details["fields"]] == [_normalized(missing)]

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_dict({**REQUIRED, "entropy_cutoff": 1})
        assert exc_info.value.details["fields"] == ["entropy_cutoff"]

    @pytest.mark.parametrize("key,value", [
        ("high_entropy_unique_ratio", 1.5),
        ("dominant_coverage_threshold", -0.1),
        ("pha_cluster_size_threshold", 0),
        ("wildcard_min_distinct", 1),
        ("batch_size", 0),
    ])
    def test_out_of_range(self, key, value):
        with pytest.raises(ConfigurationError):
            config_from_dict({**REQUIRED, key: value})

    def test_statuses_upper_cased(self):
        config = config_from_dict({**REQUIRED, "certificate_statuses": [" a", "t "]})
        assert config.certificate_statuses == ("A", "T")

    def test_blank_status_rejected(self):
        with pytest.raises(ConfigurationError):
            config_from_dict({**REQUIRED, "certificate_statuses": [""]})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError) as exc_info:
            config_from_dict([1, 2])
        assert exc_info.value.details["type"] == "list"

    def test_to_dict(self):
        data = config_from_dict(REQUIRED).to_dict()
        assert data["regime_gap_tolerance_days"] == 365
        assert data["certificate_statuses"] == ["A"]


# =============================================================================
# Files
# =============================================================================

class TestLoadConfig:
    """Loading from YAML and JSON files."""

    def test_example_file(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.pha_cluster_size_threshold == 10
        assert config.certificate_statuses == ("A",)

    def test_json_file(self, tmp_path):
        path = tmp_path / "migration.json"
        path.write_text(json.dumps({**REQUIRED, "batch_size": 7}))
        assert load_config(path).batch_size == 7

    def test_unknown_suffix_parsed_as_yaml(self, tmp_path):
        path = tmp_path / "migration.conf"
        path.write_text("\n".join(f"{k}: {v}" for k, v in REQUIRED.items()))
        assert load_config(path).high_entropy_shannon == 3.0

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert exc_info.value.details["path"] == str(path)
        assert len(exc_info.value.details["fields"]) == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(tmp_path / "absent.yaml")
        assert "absent.yaml" in exc_info.value.details["path"]

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("high_entropy_shannon: [unclosed")
        with pytest.raises(ConfigurationError):
            load_config(path)

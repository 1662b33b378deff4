"""
ProposalPilot Config Loader

Loads migration configuration from YAML or JSON files (or an already
parsed mapping), validates it against MigrationConfigSchema and converts it
to the frozen MigrationConfig.

Every failure surfaces as ConfigurationError; there is no fallback to
defaults for the required thresholds.
"""
from __future__ import annotations

import json
import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Union

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .schema import MigrationConfigSchema
from .settings import MigrationConfig


logger = logging.getLogger(__name__)


def _convert(schema: MigrationConfigSchema) -> MigrationConfig:
    """Convert MigrationConfigSchema to MigrationConfig."""
    return MigrationConfig(
        high_entropy_unique_ratio=schema.high_entropy_unique_ratio,
        high_entropy_shannon=schema.high_entropy_shannon,
        dominant_coverage_threshold=schema.dominant_coverage_threshold,
        pha_cluster_size_threshold=schema.pha_cluster_size_threshold,
        log_entropy_by_group=schema.log_entropy_by_group,
        outlier_minority_fraction=schema.outlier_minority_fraction,
        regime_gap_tolerance=timedelta(days=schema.regime_gap_tolerance_days),
        wildcard_min_distinct=schema.wildcard_min_distinct,
        widen_date_ranges=schema.widen_date_ranges,
        batch_size=schema.batch_size,
        max_workers=schema.max_workers,
        certificate_statuses=tuple(schema.certificate_statuses),
    )


def _error_fields(error: ValidationError) -> list[str]:
    return sorted({".".join(str(p) for p in e["loc"]) for e in error.errors()})


def config_from_dict(data: Mapping[str, Any]) -> MigrationConfig:
    """
    Validate a configuration mapping.

    Raises:
        ConfigurationError: If a required threshold is missing, a value is
            out of range, or an unknown key is present
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            message="Migration config must be a mapping",
            details={"type": type(data).__name__},
        )
    try:
        schema = MigrationConfigSchema.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Migration config validation failed: {e.error_count()} errors",
            details={
                "fields": _error_fields(e),
                "errors": [
                    {"loc": [str(p) for p in err["loc"]], "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ],
            },
        )
    config = _convert(schema)
    logger.debug("Migration config loaded: %s", config.to_dict())
    return config


def _load_file(path: Path) -> Any:
    """Load data from YAML or JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(f)
        elif path.suffix.lower() == ".json":
            return json.load(f)
        else:
            # Try YAML first, then JSON
            content = f.read()
            try:
                return yaml.safe_load(content)
            except yaml.YAMLError:
                return json.loads(content)


def load_config(path: Union[str, Path]) -> MigrationConfig:
    """
    Load a migration config file.

    Args:
        path: Path to YAML or JSON file

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    path = Path(path)
    try:
        data = _load_file(path)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            message=f"Failed to load migration config: {e}",
            details={"path": str(path), "error": str(e)},
        )
    if data is None:
        data = {}
    try:
        return config_from_dict(data)
    except ConfigurationError as e:
        e.details["path"] = str(path)
        raise

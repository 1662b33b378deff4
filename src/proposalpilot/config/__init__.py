"""
ProposalPilot Configuration

    from proposalpilot.config import load_config, MigrationConfig
"""
from __future__ import annotations

from .loader import config_from_dict, load_config
from .schema import MigrationConfigSchema
from .settings import MigrationConfig

__all__ = [
    "MigrationConfig",
    "MigrationConfigSchema",
    "config_from_dict",
    "load_config",
]

"""Ledger daemon utilities: logging, config, invariants.

Individual modules are imported directly by consumers, e.g.:
    from ..utils.logging_config import StructuredLogger
    from ..utils.config_loader import config_loader

Only modules with zero db dependencies are re-exported here; the db package
imports from this package.
"""

from .logging_config import setup_logging, StructuredLogger, JSONFormatter
from .config_loader import config_loader, ConfigLoader, LedgerConfig, LimitsConfig, PolicyConfig, StorageConfig
from .invariants import run_all_checks, InvariantResult

__all__ = [
    "setup_logging", "StructuredLogger", "JSONFormatter",
    "config_loader", "ConfigLoader", "LedgerConfig", "LimitsConfig", "PolicyConfig", "StorageConfig",
    "run_all_checks", "InvariantResult",
]

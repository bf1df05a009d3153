import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# Largest value a SQLite INTEGER column can hold.
SQLITE_MAX_INT = 2**63 - 1

DEFAULT_CONFIG_DIR = Path.home() / ".carbonledger" / "config"


# --- V1 Schema Models ---

class LimitsConfig(BaseModel):
    max_value: int = Field(SQLITE_MAX_INT, ge=1, le=SQLITE_MAX_INT)
    max_source_length: int = Field(256, ge=1, le=65_536)
    max_uri_length: int = Field(2048, ge=1, le=1_048_576)


class PolicyConfig(BaseModel):
    uri_requires_active: bool = False


class StorageConfig(BaseModel):
    busy_timeout_seconds: float = Field(5.0, gt=0, le=600)


class LedgerConfig(BaseModel):
    version: int = Field(1, ge=1, le=1)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


# --- Config Loader (Atomic Reload) ---

class ConfigLoader:
    def __init__(self):
        self.config_dir = Path(os.getenv("CCL_CONFIG_DIR", str(DEFAULT_CONFIG_DIR)))
        self.config_file = self.config_dir / "ledger.yaml"
        self.config: Optional[LedgerConfig] = None

    def load_config(self) -> LedgerConfig:
        """
        Loads and validates configuration from ledger.yaml.
        ATOMIC: On failure, previous config is preserved.
        A missing file yields the built-in defaults.
        Raises ValueError if the file is invalid.
        """
        if not self.config_file.exists():
            logger.warning("Config file not found, using defaults", path=str(self.config_file))
            self.config = LedgerConfig()
            return self.config

        try:
            with open(self.config_file, "r") as f:
                raw_data = yaml.safe_load(f) or {}
            if not isinstance(raw_data, dict):
                raise ValueError("top-level YAML value must be a mapping")

            logger.info("Loading configuration", path=str(self.config_file))

            # Validate into a temporary; self.config is only replaced on success
            new_config = LedgerConfig(**raw_data)

            self.config = new_config

            logger.info(
                "Configuration loaded successfully",
                version=self.config.version,
                max_value=self.config.limits.max_value,
                uri_requires_active=self.config.policy.uri_requires_active,
            )
            return self.config

        except (yaml.YAMLError, ValidationError, ValueError, TypeError) as e:
            logger.error("Configuration validation failed", error=str(e))
            if self.config is not None:
                logger.warning("Keeping previous valid configuration")
                raise ValueError(f"Invalid configuration (previous config retained): {e}")
            else:
                logger.critical("No previous configuration to fall back to")
                raise ValueError(f"Invalid configuration (no fallback): {e}")

    def get(self) -> LedgerConfig:
        if not self.config:
            self.load_config()
        return self.config

    @property
    def limits(self) -> LimitsConfig:
        return self.get().limits

    @property
    def policy(self) -> PolicyConfig:
        return self.get().policy


config_loader = ConfigLoader()

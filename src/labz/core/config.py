"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional, List
from functools import lru_cache


DEFAULT_SEMANTIC_CONFLICTS = [
    "access:permissive|access:restrictive",
    "manages:ownership|manages:ownership",
]


class ComposerSettings(BaseSettings):
    """Merge and validation configuration."""

    templates_dir: Optional[str] = Field(None, alias="LABZ_TEMPLATES_DIR")
    max_contract_size: int = Field(24576, alias="LABZ_MAX_CONTRACT_SIZE")
    warn_contract_size: int = Field(20480, alias="LABZ_WARN_CONTRACT_SIZE")
    size_factor: float = Field(0.6, alias="LABZ_SIZE_FACTOR")
    default_order: int = Field(100, alias="LABZ_DEFAULT_ORDER")
    high_gas_threshold: int = Field(2, alias="LABZ_HIGH_GAS_THRESHOLD")
    # Each entry is "tagA|tagB"
    semantic_conflicts: List[str] = Field(
        default_factory=lambda: list(DEFAULT_SEMANTIC_CONFLICTS),
        alias="LABZ_SEMANTIC_CONFLICTS",
    )

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}

    def conflict_pairs(self) -> List[tuple]:
        """Parsed semantic conflict table as (tag, tag) tuples."""
        pairs = []
        for entry in self.semantic_conflicts:
            left, _, right = entry.partition("|")
            pairs.append((left.strip(), (right or left).strip()))
        return pairs


class OutputSettings(BaseSettings):
    """Project output configuration."""

    skeleton_dir: Optional[str] = Field(None, alias="LABZ_SKELETON_DIR")
    manifest_name: str = Field("labz.manifest.json", alias="LABZ_MANIFEST_NAME")
    overwrite: bool = Field(False, alias="LABZ_OVERWRITE")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("WARNING", alias="LABZ_LOG_LEVEL")
    format: str = Field("rich", alias="LABZ_LOG_FORMAT")

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Root configuration aggregating all settings."""

    composer: ComposerSettings = Field(default_factory=ComposerSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "extra": "ignore"
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()

"""
Configuration settings for oPOSSUM counts.

Supports the discrete parameter levels used by precomputed counts,
default continuous parameters for custom/anchored counts, and
deployment options loaded from the environment.
"""

from typing import Dict
from pydantic_settings import BaseSettings


class LevelConfig:
    """Discrete parameter levels at which TFBS counts are precomputed."""

    # level -> minimum phastCons-style conservation of the region
    CONSERVATION_LEVELS = {
        1: {"min_conservation": 0.60},
        2: {"min_conservation": 0.65},
        3: {"min_conservation": 0.70},
    }

    # level -> minimum relative PWM score
    THRESHOLD_LEVELS = {
        1: {"threshold": 0.75},
        2: {"threshold": 0.80},
        3: {"threshold": 0.85},
    }

    # level -> search window around the TSS
    SEARCH_REGION_LEVELS = {
        1: {"upstream_bp": 10000, "downstream_bp": 10000},
        2: {"upstream_bp": 5000, "downstream_bp": 5000},
        3: {"upstream_bp": 2000, "downstream_bp": 2000},
        4: {"upstream_bp": 2000, "downstream_bp": 0},
        5: {"upstream_bp": 1000, "downstream_bp": 0},
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "oPOSSUM Counts"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./opossum.db"

    # Default analysis parameters
    default_conservation_level: int = 1
    default_threshold: float = 0.80
    default_upstream_bp: int = 2000
    default_downstream_bp: int = 0
    default_distance: int = 100

    # Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    class Config:
        env_prefix = "OPOSSUM_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def get_conservation_level(self, level: int) -> Dict:
        """Get the definition of a conservation level."""
        if level not in LevelConfig.CONSERVATION_LEVELS:
            raise ValueError(
                f"Unknown conservation level: {level}. Known: {list(LevelConfig.CONSERVATION_LEVELS.keys())}"
            )
        return LevelConfig.CONSERVATION_LEVELS[level]

    def get_threshold_level(self, level: int) -> Dict:
        """Get the definition of a threshold level."""
        if level not in LevelConfig.THRESHOLD_LEVELS:
            raise ValueError(
                f"Unknown threshold level: {level}. Known: {list(LevelConfig.THRESHOLD_LEVELS.keys())}"
            )
        return LevelConfig.THRESHOLD_LEVELS[level]

    def get_search_region_level(self, level: int) -> Dict:
        """Get the definition of a search region level."""
        if level not in LevelConfig.SEARCH_REGION_LEVELS:
            raise ValueError(
                f"Unknown search region level: {level}. Known: {list(LevelConfig.SEARCH_REGION_LEVELS.keys())}"
            )
        return LevelConfig.SEARCH_REGION_LEVELS[level]


# Global settings instance
settings = Settings()

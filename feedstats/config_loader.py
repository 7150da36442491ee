"""
Configuration loader that interprets high-level profiles into full config.
"""
from typing import Dict, Any, Optional
import logging
import tomllib
from pathlib import Path

from feedstats.constants import (
    FEEDING_STYLE_DEFAULTS,
    OUTLIER_DEFAULTS,
    STATISTICS_DEFAULTS,
    TIP_THRESHOLDS,
)
from feedstats.exceptions import ConfigurationError
from feedstats.feature_manager import FeatureManager

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Loads and interprets configuration with profile support."""

    # Profile mappings for different settings
    WINDOW_MAP = {
        "short": {"days_back": 3},
        "week": {"days_back": 7},
        "long": {"days_back": 21},
    }

    OUTLIER_HANDLING_MAP = {
        "exclude": {"exclude_outliers": True},
        "include": {"exclude_outliers": False},
    }

    RECENCY_MAP = {
        "off": {"recency_half_life_hours": None},
        "fast": {"recency_half_life_hours": 24.0},
        "slow": {"recency_half_life_hours": 72.0},
    }

    # Built-in profiles, used when the file does not define them
    DEFAULT_PROFILES = {
        "balanced": {"window": "week", "outlier_handling": "exclude", "recency": "off"},
        "responsive": {"window": "short", "outlier_handling": "exclude", "recency": "fast"},
        "long_view": {"window": "long", "outlier_handling": "include", "recency": "off"},
    }

    @classmethod
    def load(cls, config_path: str = "config.toml", strict: bool = False) -> Dict[str, Any]:
        """
        Load and interpret configuration file.

        Args:
            config_path: Path to the TOML file
            strict: Raise on an unknown profile instead of falling back to balanced

        Raises:
            ConfigurationError: if the file is not valid TOML, or for an
                unknown profile in strict mode
        """
        try:
            with open(config_path, "rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e

        return cls.from_dict(raw_config, strict=strict)

    @classmethod
    def from_dict(cls, raw_config: Dict[str, Any], strict: bool = False) -> Dict[str, Any]:
        """Interpret an already-parsed configuration."""
        profile_name = raw_config.get("profile", "balanced")

        profiles = {**cls.DEFAULT_PROFILES, **raw_config.get("profiles", {})}
        if profile_name not in profiles:
            if strict:
                raise ConfigurationError(f"Unknown profile '{profile_name}'")
            logger.warning(f"Unknown profile '{profile_name}', using balanced")
            profile_name = "balanced"

        profile = profiles[profile_name]

        # Start with base config structure
        config = cls._build_base_config(raw_config)
        config["profile"] = profile_name

        # Apply profile settings
        cls._apply_profile(config, profile)

        # Apply any explicit overrides from advanced sections
        cls._apply_overrides(config, raw_config)

        # Add feature manager instance
        config["feature_manager"] = FeatureManager(raw_config)

        return config

    @classmethod
    def _build_base_config(cls, raw_config: Dict) -> Dict[str, Any]:
        """Build the base configuration structure."""
        return {
            "statistics": dict(STATISTICS_DEFAULTS),
            "outliers": dict(OUTLIER_DEFAULTS),
            "feeding_style": dict(FEEDING_STYLE_DEFAULTS),
            "tips": dict(TIP_THRESHOLDS),
            "data": raw_config.get("data", {}),
            "preferences": raw_config.get("preferences", {}),
            "logging": {"structured": True, "verbose": False, "level": "WARNING", **raw_config.get("logging", {})},
        }

    @classmethod
    def _apply_profile(cls, config: Dict, profile: Dict):
        """Apply profile settings to configuration."""
        window = profile.get("window", "week")
        config["statistics"].update(cls.WINDOW_MAP.get(window, cls.WINDOW_MAP["week"]))

        handling = profile.get("outlier_handling", "exclude")
        config["statistics"].update(
            cls.OUTLIER_HANDLING_MAP.get(handling, cls.OUTLIER_HANDLING_MAP["exclude"]))

        recency = profile.get("recency", "off")
        config["statistics"].update(cls.RECENCY_MAP.get(recency, cls.RECENCY_MAP["off"]))

        # A profile may also pin a window length directly
        if "days_back" in profile:
            config["statistics"]["days_back"] = profile["days_back"]

    @classmethod
    def _apply_overrides(cls, config: Dict, raw_config: Dict):
        """Apply any explicit overrides from advanced sections."""
        for section in ("statistics", "outliers", "feeding_style", "tips"):
            if section in raw_config:
                config[section].update(raw_config[section])

        # TOML has no null; a non-positive value switches these off
        stats = config["statistics"]
        for key in ("rolling_hours_back", "recency_half_life_hours"):
            if stats.get(key) is not None and stats[key] <= 0:
                stats[key] = None


def load_config(config_path: str = "config.toml", strict: bool = False) -> Dict[str, Any]:
    """Load configuration with profile interpretation."""
    return ConfigLoader.load(config_path, strict=strict)


def default_config() -> Dict[str, Any]:
    """Configuration used when no file is available."""
    return ConfigLoader.from_dict({})


def load_config_or_default(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path and Path(config_path).exists():
        return load_config(config_path)
    logger.warning(f"Config file {config_path} not found, using defaults")
    return default_config()

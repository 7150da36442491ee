"""
Feature toggles for the statistics engine.

Every toggle defaults to on, which reproduces the full behavior. Turning one
off makes the affected service take its plain path (include every sample,
plain mean, no remap, no clusters, memory-only preferences, no CSV export).
"""
from typing import Dict, Any, Optional, Set
import logging

logger = logging.getLogger(__name__)


class FeatureManager:
    """Resolves the [features] table of config.toml into on/off switches"""

    # toggle -> what turning it off does
    FEATURES = {
        'outlier_detection': "all outlier handling off",
        'outlier_iqr': "duration and interval averages include every sample",
        'outlier_winsorization': "summary interval is the plain mean",
        'recency_weighting': "duration averages ignore the half-life",
        'night_remap': "late-evening feeds keep the evening slot under the night scenario",
        'style_classification': "every session is labelled normal",
        'cluster_detection': "no session is labelled cluster",
        'preferences_persistence': "preferences stay in memory",
        'report_export': "--export-dir is ignored",
    }

    # A child toggle only takes effect while its parent is on
    PARENTS = {
        'outlier_iqr': 'outlier_detection',
        'outlier_winsorization': 'outlier_detection',
        'cluster_detection': 'style_classification',
    }

    # Sub-tables whose keys are prefixed when flattened
    NESTED_PREFIXES = {
        'outlier_methods': 'outlier',
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.features = {name: True for name in self.FEATURES}
        self.warnings = []

        if config and 'features' in config:
            for name, value in self._flatten(config['features']).items():
                if name in self.features:
                    self.features[name] = bool(value)
                else:
                    self.warnings.append(f"Unknown feature '{name}' ignored")

        self._log_configuration()

    def _flatten(self, table: Dict[str, Any]) -> Dict[str, Any]:
        """[features.outlier_methods] iqr = false  ->  {'outlier_iqr': False}"""
        flat = {}
        for key, value in table.items():
            if isinstance(value, dict):
                prefix = self.NESTED_PREFIXES.get(key, key)
                for subkey, subvalue in value.items():
                    flat[f"{prefix}_{subkey}"] = subvalue
            else:
                flat[key] = value
        return flat

    def _log_configuration(self):
        for name in sorted(self.get_disabled_features()):
            if self.features[name]:
                logger.info(f"Feature '{name}' has no effect while '{self.PARENTS[name]}' is disabled")
            else:
                logger.info(f"Feature '{name}' disabled: {self.FEATURES[name]}")
        for warning in self.warnings:
            logger.warning(warning)

    def is_enabled(self, feature: str) -> bool:
        if not self.features.get(feature, True):
            return False
        parent = self.PARENTS.get(feature)
        return parent is None or self.is_enabled(parent)

    def get_disabled_features(self) -> Set[str]:
        return {name for name in self.features if not self.is_enabled(name)}

    def validate_config(self) -> bool:
        """True when every key in [features] named a known toggle."""
        return not self.warnings


def feature_enabled(config: Optional[Dict[str, Any]], feature: str) -> bool:
    """Look up a toggle on the feature manager carried in a service config."""
    if not config:
        return True
    manager = config.get('feature_manager')
    if manager is None:
        return True
    return manager.is_enabled(feature)

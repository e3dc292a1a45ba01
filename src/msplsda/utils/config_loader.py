"""
Configuration Loading Utilities
===============================

YAML run configuration with inheritance, environment variables and
dot-notation overrides.

Features:
- Hierarchical configuration via _base_ inheritance
- Environment variable expansion (${VAR_NAME})
- Dotted overrides from the command line ("model.n_components": 3)
- Config freezing for immutability

Usage:
    config = load_config("configs/default.yaml")
    config = load_config("configs/default.yaml", overrides={"model.n_components": 3})
    n_comp = config.get("model.n_components", 2)

Example Config Inheritance:
    # configs/default.yaml
    preprocess:
      top_variance_count: 500

    # configs/small_cohort.yaml
    _base_: default.yaml
    preprocess:
      top_variance_count: 100  # Override
"""

from __future__ import annotations

import logging
import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..errors import InvalidConfiguration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "preprocess": {
        "missing_threshold": 0.5,
        "log_base": 2.0,
        "log_offset": 1.0,
        "top_variance_count": 500,
        "log_transform": True,
        "normalize": True,
    },
    "model": {
        "n_components": 2,
        "scale": False,
        "tol": 1e-6,
        "max_iter": 100,
    },
    "cross_validation": {
        "kind": "loo",
        "n_folds": None,
        "interleaved": False,
        "n_jobs": 1,
    },
    "permutation": {
        "n_permutations": 0,
        "seed": 42,
    },
    "output": {
        "top_n": 50,
    },
}


class ConfigDict(dict):
    """
    Dictionary with dot-notation access and nested key support.

    Example:
        >>> config = ConfigDict({"model": {"n_components": 2}})
        >>> config.model.n_components == config.get("model.n_components") == 2
        True
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._frozen = False

        for key, value in self.items():
            if isinstance(value, dict):
                self[key] = ConfigDict(value)

    def __getattr__(self, key: str) -> Any:
        try:
            return self[key]
        except KeyError:
            raise AttributeError(f"'ConfigDict' object has no attribute '{key}'")

    def __setattr__(self, key: str, value: Any):
        if key == "_frozen":
            super().__setattr__(key, value)
        elif self._frozen:
            raise AttributeError(f"Cannot modify frozen config: {key}")
        else:
            self[key] = value

    def __setitem__(self, key: str, value: Any):
        if getattr(self, "_frozen", False):
            raise AttributeError(f"Cannot modify frozen config: {key}")

        if isinstance(value, dict) and not isinstance(value, ConfigDict):
            value = ConfigDict(value)

        super().__setitem__(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value; ``key`` may be a dotted path ("model.n_components")."""
        if "." not in key:
            return super().get(key, default)

        value = self
        for k in key.split("."):
            if not isinstance(value, dict) or k not in value:
                return default
            value = value[k]
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a value; ``key`` may be a dotted path. Intermediate dicts are created."""
        if self._frozen:
            raise AttributeError(f"Cannot modify frozen config: {key}")

        keys = key.split(".")
        current = self
        for k in keys[:-1]:
            if k not in current:
                current[k] = ConfigDict()
            elif not isinstance(current[k], dict):
                raise InvalidConfiguration(f"Cannot create nested key '{key}': '{k}' is not a section")
            current = current[k]

        current[keys[-1]] = value

    def merge(self, other: Dict[str, Any], overwrite: bool = True) -> ConfigDict:
        """Deep merge another dictionary into this config. Returns self."""
        if self._frozen:
            raise AttributeError("Cannot merge into frozen config")

        def _deep_merge(base: dict, update: dict) -> None:
            for key, value in update.items():
                if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                    _deep_merge(base[key], value)
                elif key not in base or overwrite:
                    base[key] = ConfigDict(value) if isinstance(value, dict) else value

        _deep_merge(self, other)
        return self

    def freeze(self) -> ConfigDict:
        self._frozen = True
        for value in self.values():
            if isinstance(value, ConfigDict):
                value.freeze()
        return self

    def to_dict(self) -> dict:
        return {
            key: value.to_dict() if isinstance(value, ConfigDict) else value
            for key, value in self.items()
        }

    def copy(self) -> ConfigDict:
        return ConfigDict(deepcopy(self.to_dict()))


def expand_env_vars(config: Any) -> Any:
    """
    Recursively expand ${VAR_NAME} and $VAR_NAME in string values.

    Unknown variables are left untouched.
    """
    if isinstance(config, dict):
        return {key: expand_env_vars(value) for key, value in config.items()}

    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]

    if isinstance(config, str):
        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        pattern = r'\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)'
        return re.sub(pattern, replace_var, config)

    return config


def load_yaml(yaml_path: Path) -> Dict[str, Any]:
    """
    Load a YAML mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidConfiguration: If the file is not valid YAML or not a mapping
    """
    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    try:
        with open(yaml_path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Error parsing YAML file {yaml_path}: {e}")

    if config is None:
        logger.warning(f"Empty config file: {yaml_path}")
        return {}

    if not isinstance(config, dict):
        raise InvalidConfiguration(f"Config must be a mapping, got {type(config).__name__}")

    return config


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
    expand_vars: bool = True,
    freeze: bool = False,
) -> ConfigDict:
    """
    Load a run configuration on top of ``DEFAULT_CONFIG``.

    Args:
        config_path: YAML file (None = defaults only). A ``_base_`` key names
            a parent file, resolved relative to this one.
        overrides: Dotted-key overrides applied last
        expand_vars: Whether to expand environment variables
        freeze: Whether to freeze the result

    Returns:
        ConfigDict

    Example:
        >>> config = load_config("configs/default.yaml", overrides={"model.n_components": 3})
        >>> config.model.n_components
        3
    """
    config = ConfigDict(deepcopy(DEFAULT_CONFIG))

    if config_path is not None:
        config.merge(_load_with_bases(Path(config_path)))
        logger.info(f"✓ Loaded config from {config_path}")

    if expand_vars:
        config = ConfigDict(expand_env_vars(config.to_dict()))

    if overrides:
        logger.debug(f"Applying {len(overrides)} config overrides")
        for key, value in overrides.items():
            config.set(key, value)

    if freeze:
        config.freeze()

    return config


def _load_with_bases(config_path: Path, _seen: Optional[set] = None) -> Dict[str, Any]:
    seen = set() if _seen is None else _seen
    resolved = config_path.resolve()
    if resolved in seen:
        raise InvalidConfiguration(f"Circular _base_ inheritance at {config_path}")
    seen.add(resolved)

    config = load_yaml(config_path)
    base = config.pop("_base_", None)
    if base is None:
        return config

    base_path = Path(base)
    if not base_path.is_absolute():
        base_path = config_path.parent / base_path

    logger.debug(f"Loading base config from {base_path}")
    merged = ConfigDict(_load_with_bases(base_path, seen))
    merged.merge(config)
    return merged.to_dict()


def save_config(config: Union[ConfigDict, Dict], output_path: Union[str, Path]) -> None:
    """Save configuration to a YAML file."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if isinstance(config, ConfigDict):
        config = config.to_dict()

    with open(output_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)

    logger.info(f"✓ Saved config to {output_path}")

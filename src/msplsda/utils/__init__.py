"""
Utils Package
=============

Configuration loading, structured logging, and run manifest generation.
"""

from .config_loader import ConfigDict, load_config, save_config
from .logging_utils import setup_logging, log_time, log_dict
from .manifest import gather_env_info, hash_file, write_manifest, load_manifest

__all__ = [
    # Configuration
    "ConfigDict",
    "load_config",
    "save_config",
    # Logging
    "setup_logging",
    "log_time",
    "log_dict",
    # Manifests
    "gather_env_info",
    "hash_file",
    "write_manifest",
    "load_manifest",
]

"""
Run Manifests
=============

Every CLI run writes a ``manifest.json`` next to its result tables with the
configuration, the command line, library versions and checksums of the input
tables, so a VIP ranking or accuracy figure can be traced back to exactly
what produced it.

Usage:
    >>> from msplsda.utils.manifest import write_manifest, hash_file
    >>> write_manifest(
    ...     out_dir / "manifest.json",
    ...     config_dict=config.to_dict(),
    ...     cli_args=sys.argv,
    ...     input_hashes={"matrix": hash_file("feature_matrix.csv")},
    ... )
"""

import hashlib
import json
import logging
import platform
import subprocess
import sys
from datetime import datetime
from importlib import metadata
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

_TRACKED_PACKAGES = ("numpy", "pandas", "scikit-learn", "PyYAML", "tqdm", "colorama")


def gather_env_info() -> Dict[str, Any]:
    """
    Python version, platform, versions of the numerical stack and git commit.

    Example:
        >>> env = gather_env_info()
        >>> env["packages"]["numpy"]
        '1.26.4'
    """
    packages = {}
    for name in _TRACKED_PACKAGES:
        try:
            packages[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            packages[name] = "not installed"

    env_info = {
        "timestamp": datetime.now().isoformat(),
        "platform": platform.platform(),
        "python_version": sys.version.split()[0],
        "packages": packages,
    }

    try:
        env_info["git_commit"] = subprocess.check_output(
            ["git", "rev-parse", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True
        ).strip()
    except (subprocess.CalledProcessError, FileNotFoundError):
        env_info["git_commit"] = None

    return env_info


def hash_file(file_path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Hex digest of a file, for input provenance.

    Raises:
        FileNotFoundError: If the file doesn't exist
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hash_obj = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        while chunk := f.read(8192):
            hash_obj.update(chunk)

    return hash_obj.hexdigest()


def write_manifest(
    output_path: Union[str, Path],
    config_dict: Dict[str, Any],
    cli_args: Optional[List[str]] = None,
    env_info: Optional[Dict[str, Any]] = None,
    input_hashes: Optional[Dict[str, str]] = None,
    results: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Write a manifest file for reproducibility.

    Args:
        output_path: Where to write manifest.json
        config_dict: Run configuration
        cli_args: Command-line arguments (sys.argv)
        env_info: Environment info (gathered if None)
        input_hashes: Checksums of input files
        results: Headline numbers (accuracy, p-value, ...)
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if env_info is None:
        env_info = gather_env_info()

    manifest = {
        "manifest_version": "1.0",
        "created": datetime.now().isoformat(),
        "config": config_dict,
        "environment": env_info,
    }

    if cli_args is not None:
        manifest["cli_args"] = cli_args

    if input_hashes is not None:
        manifest["input_hashes"] = input_hashes

    if results is not None:
        manifest["results"] = results

    with open(output_path, "w") as f:
        json.dump(manifest, f, indent=2, default=str)

    logger.info(f"Wrote manifest to {output_path}")


def load_manifest(manifest_path: Union[str, Path]) -> Dict[str, Any]:
    manifest_path = Path(manifest_path)

    if not manifest_path.exists():
        raise FileNotFoundError(f"Manifest not found: {manifest_path}")

    with open(manifest_path) as f:
        return json.load(f)

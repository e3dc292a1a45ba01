#!/usr/bin/env python3
"""
Wrapper for the PLS-DA runner
Calls: python -m msplsda.cli.run_plsda
"""
import sys
from pathlib import Path
import runpy

# Add src directory to path
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))

if __name__ == "__main__":
    sys.argv[0] = "python -m msplsda.cli.run_plsda"
    runpy.run_module("msplsda.cli.run_plsda", run_name="__main__")

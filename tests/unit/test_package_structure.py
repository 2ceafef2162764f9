"""Smoke tests for package structure and basic contracts.

These tests run in pre-commit hooks to catch structural issues quickly.
"""

from __future__ import annotations

import importlib.metadata
from pathlib import Path

import pytest


@pytest.mark.smoke
def test_package_metadata_accessible() -> None:
    """Verify package metadata is registered correctly.

    This smoke test catches:
    - Poetry build/install configuration issues
    - Missing pyproject.toml metadata
    - Package name mismatches (bracket-pool vs bracket_pool)
    """
    version = importlib.metadata.version("bracket-pool")
    assert version is not None
    assert len(version) > 0


@pytest.mark.smoke
def test_src_directory_structure() -> None:
    """Verify expected src/ directory structure exists."""
    project_root = Path(__file__).parent.parent.parent

    src_dir = project_root / "src" / "bracket_pool"
    assert src_dir.exists(), f"Package directory not found: {src_dir}"
    assert src_dir.is_dir(), f"Package path is not a directory: {src_dir}"

    init_file = src_dir / "__init__.py"
    assert init_file.exists(), f"Package __init__.py not found: {init_file}"

    for sub in ("bracket", "scoring", "stats", "store", "pipeline", "utils"):
        assert (src_dir / sub / "__init__.py").exists(), f"Missing subpackage: {sub}"


@pytest.mark.smoke
def test_console_script_declared() -> None:
    """The ``bracket-pool`` console script points at the Typer app."""
    scripts = importlib.metadata.entry_points(group="console_scripts")
    targets = {ep.name: ep.value for ep in scripts}
    assert targets.get("bracket-pool") == "bracket_pool.cli.main:app"

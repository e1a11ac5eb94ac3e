"""Fixtures for integration tests."""

from pathlib import Path

import pytest

from node_test_suite.testing.scripts import ScriptWriter


@pytest.fixture
def python_script(tmp_path: Path) -> ScriptWriter:
    """Factory writing small Python programs used as external commands."""
    return ScriptWriter(directory=tmp_path / "scripts")

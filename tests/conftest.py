"""Shared fixtures."""

from collections.abc import Generator
from pathlib import Path

import pytest
from aioresponses import aioresponses as aioresponses_cls

from node_test_suite.config import SuiteConfig
from node_test_suite.testing.workspace import Workspace


@pytest.fixture
def config(tmp_path: Path) -> SuiteConfig:
    """Suite configuration rooted in a temporary directory, with no waiting."""
    return SuiteConfig(
        project_root=tmp_path,
        start_settle=0,
        stop_grace=0,
        health_interval=0,
        health_attempts=3,
        progress_settle=0,
        tool_timeout=30,
    )


@pytest.fixture
def workspace(config: SuiteConfig) -> Workspace:
    """Builder for files under the configured project root."""
    return Workspace(config=config)


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls]:
    """Intercept aiohttp requests."""
    with aioresponses_cls() as mocked:
        yield mocked

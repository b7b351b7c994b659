"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from intakeflow.models import FlowGraph
from tests.fixtures.flow_fixtures import make_branching_flow, make_linear_flow


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def linear_flow() -> FlowGraph:
    return make_linear_flow()


@pytest.fixture
def branching_flow() -> FlowGraph:
    return make_branching_flow()

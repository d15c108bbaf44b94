"""Fixtures for escrow service unit tests."""

import pytest
from escrow_fakes import Harness, build_harness


@pytest.fixture
def harness() -> Harness:
    return build_harness()

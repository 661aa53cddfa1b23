"""Unit-test fixtures: an in-memory World wired to the real services."""

import pytest

from tests.unit.fakes import FakeSession, World


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()

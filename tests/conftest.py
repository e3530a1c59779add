"""Shared fixtures for schema compiler and validator tests."""

from __future__ import annotations

import pytest

from cpg_schema import CompiledSchema
from cpg_schema.layers import build_default_schema
from tests.test_helpers.sample_schema import build_sample


@pytest.fixture
def sample_schema() -> CompiledSchema:
    """Provide the compiled sample schema.

    Returns
    -------
    CompiledSchema
        Compiled sample schema.
    """
    return build_sample()


@pytest.fixture(scope="session")
def default_schema() -> CompiledSchema:
    """Provide the compiled default schema.

    Returns
    -------
    CompiledSchema
        Compiled default code property graph schema.
    """
    return build_default_schema()

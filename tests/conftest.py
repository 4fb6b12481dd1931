"""Shared pytest fixtures for Staybook tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_cached_settings():
    """Drop cached settings so each test sees its own environment.

    Settings are a module-level singleton; tests that change
    STAYBOOK_* or AUTH_JWT_* variables would otherwise leak into later ones.
    """
    from staybook.infra.settings import reset_settings

    reset_settings()
    yield
    reset_settings()

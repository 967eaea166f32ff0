"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from helpers import make_points
from xmrspc.core.config import Settings, get_settings
from xmrspc.core.engine.points import DataPoint


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Settings are cached process-wide; reset them around every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default engine settings, ignoring any local environment."""
    return Settings(_env_file=None)


@pytest.fixture
def outlier_series() -> list[DataPoint]:
    """Nine routine values and one exceptional spike at index 9."""
    return make_points([10, 10, 10, 10, 10, 10, 10, 10, 10, 30])


@pytest.fixture
def trending_series() -> list[DataPoint]:
    """Twenty points rising by exactly 5 per month."""
    return make_points([100 + 5 * i for i in range(20)])

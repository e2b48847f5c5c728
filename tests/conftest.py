"""Pytest configuration shared by every BarryLand test module."""

from __future__ import annotations

import logging

import pytest

from barryland.settings import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop the cached settings so environment patches apply per test."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _quiet_third_party_loggers():
    logging.getLogger("httpx").setLevel(logging.WARNING)

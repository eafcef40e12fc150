# tests/conftest.py
"""
Pytest configuration for the astroforecast suite.

- Registers Hypothesis profiles for local dev and CI.
- Pins the process TZ to UTC; naive datetimes in the core are UTC.
- Provides shared natal charts (built once per session, they are immutable).
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest
from hypothesis import settings, HealthCheck

from astroforecast.core.chart import BirthData, build_natal_chart


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
_QUIET = dict(deadline=None, suppress_health_check=[HealthCheck.too_slow])

# every example rebuilds positions from the series, so keep local runs short
settings.register_profile("dev", max_examples=25, **_QUIET)
settings.register_profile("ci", max_examples=150, derandomize=True, **_QUIET)

_profile = os.getenv("HYPOTHESIS_PROFILE") or ("ci" if os.getenv("CI") else "dev")
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: multi-day or multi-year sweeps")


def pytest_report_header(config: pytest.Config) -> str:
    return f"astroforecast: hypothesis profile {_profile!r}"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="session", autouse=True)
def utc_process_tz():
    with pytest.MonkeyPatch.context() as mp:
        mp.setenv("TZ", "UTC")
        yield


@pytest.fixture(scope="session")
def birth() -> BirthData:
    return BirthData(
        when=datetime(1990, 6, 15, 14, 30, tzinfo=timezone.utc),
        latitude=51.5074,
        longitude=-0.1278,
        timezone="Europe/London",
        name="Test Person",
    )


@pytest.fixture(scope="session")
def chart(birth):
    return build_natal_chart(birth)


@pytest.fixture(scope="session")
def j2000_chart():
    return build_natal_chart(BirthData(when=datetime(2000, 1, 1, 12, 0), latitude=40.7128, longitude=-74.006))

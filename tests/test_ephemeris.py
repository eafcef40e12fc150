# tests/test_ephemeris.py
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, strategies as st

from astroforecast.core.constants import BODIES, abs_sep_deg, delta_deg, sign_degree, sign_of, wrap_deg
from astroforecast.core.ephemeris import (
    CFG,
    DegenerateGeometry,
    EphemerisError,
    KeplerConvergenceError,
    UnknownBody,
    all_positions,
    ascendant_deg,
    body_position,
    canon_body,
    datetime_from_jd,
    house_cusps,
    house_of,
    julian_day,
    midheaven_deg,
    solve_kepler,
)

J2000 = 2451545.0

# ─────────────────────────────────────────────────────────────────────────────
# Angle helpers
# ─────────────────────────────────────────────────────────────────────────────

finite = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False)


@given(finite)
def test_wrap_deg_range_and_idempotent(x: float) -> None:
    w = wrap_deg(x)
    assert 0.0 <= w < 360.0
    assert wrap_deg(w) == w


def test_wrap_deg_tiny_negative_is_zero() -> None:
    assert wrap_deg(-1e-15) == 0.0
    assert wrap_deg(360.0) == 0.0
    assert wrap_deg(-30.0) == 330.0


@given(finite, finite)
def test_delta_and_separation(a: float, b: float) -> None:
    d = delta_deg(a, b)
    assert -180.0 < d <= 180.0
    assert 0.0 <= abs_sep_deg(a, b) <= 180.0
    assert abs_sep_deg(a, b) == pytest.approx(abs_sep_deg(b, a), abs=1e-9)


def test_sign_bucketing() -> None:
    assert sign_of(0.0) == "Aries"
    assert sign_of(29.999) == "Aries"
    assert sign_of(30.0) == "Taurus"
    assert sign_of(359.9) == "Pisces"
    assert sign_of(-1.0) == "Pisces"
    assert sign_degree(45.5) == pytest.approx(15.5)

# ─────────────────────────────────────────────────────────────────────────────
# Time
# ─────────────────────────────────────────────────────────────────────────────

def test_julian_day_reference_instant() -> None:
    assert julian_day(datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc)) == 2451545.0


def test_julian_day_naive_is_utc() -> None:
    naive = datetime(2010, 3, 4, 5, 6, 7)
    assert julian_day(naive) == julian_day(naive.replace(tzinfo=timezone.utc))


def test_julian_day_aware_offset_converted() -> None:
    tz = timezone(timedelta(hours=5, minutes=30))
    local = datetime(2000, 1, 1, 17, 30, tzinfo=tz)
    assert julian_day(local) == pytest.approx(J2000, abs=1e-9)


def test_datetime_from_jd_roundtrip() -> None:
    t = datetime(1987, 11, 23, 8, 15, tzinfo=timezone.utc)
    back = datetime_from_jd(julian_day(t))
    assert abs((back - t).total_seconds()) < 1e-3

# ─────────────────────────────────────────────────────────────────────────────
# Kepler
# ─────────────────────────────────────────────────────────────────────────────

@given(
    st.floats(min_value=-3.1, max_value=3.1),
    st.floats(min_value=0.0, max_value=0.95),
)
def test_kepler_satisfies_equation(M: float, e: float) -> None:
    E = solve_kepler(M, e)
    assert E - e * math.sin(E) == pytest.approx(M, abs=1e-7)


def test_kepler_rejects_hyperbolic() -> None:
    with pytest.raises(KeplerConvergenceError) as exc:
        solve_kepler(1.0, 1.2)
    assert exc.value.code == "kepler_no_convergence"
    assert isinstance(exc.value, ValueError)


def test_kepler_iteration_cap_raises() -> None:
    with pytest.raises(KeplerConvergenceError):
        solve_kepler(0.3, 0.99, tol=1e-30, max_iter=1)

# ─────────────────────────────────────────────────────────────────────────────
# Bodies
# ─────────────────────────────────────────────────────────────────────────────

def test_sun_at_j2000_within_envelope() -> None:
    sun = body_position("Sun", J2000)
    assert abs_sep_deg(sun.longitude, 280.5) < 1.0
    assert sun.distance == pytest.approx(0.983, abs=0.01)


def test_moon_distance_in_earth_radii() -> None:
    moon = body_position("Moon", J2000)
    assert 55.0 < moon.distance < 65.0
    assert abs(moon.latitude) < 5.5


def test_all_bodies_present_and_normalised() -> None:
    pos = all_positions(J2000 + 1234.5, with_speed=True)
    assert list(pos) == list(BODIES)
    for p in pos.values():
        assert 0.0 <= p.longitude < 360.0
        assert p.speed is not None and math.isfinite(p.speed)


def test_sun_speed_near_one_degree_per_day() -> None:
    sun = body_position("Sun", J2000, with_speed=True)
    assert 0.95 < sun.speed < 1.03
    moon = body_position("Moon", J2000, with_speed=True)
    assert 11.0 < moon.speed < 15.5


def test_mean_node_retrograde() -> None:
    node = body_position("North Node", J2000, with_speed=True)
    assert node.speed < 0


def test_mercury_retrograde_station_is_detected() -> None:
    # Mercury is retrograde for roughly 3 weeks in every 116 days.
    speeds = [body_position("Mercury", J2000 + d, with_speed=True).speed for d in range(0, 120, 2)]
    assert any(s < 0 for s in speeds)
    assert any(s > 0 for s in speeds)


@pytest.mark.parametrize("alias,expected", [
    ("sun", "Sun"), ("  MOON ", "Moon"), ("north_node", "North Node"),
    ("NorthNode", "North Node"), ("node", "North Node"), ("chiron", "Chiron"),
])
def test_canon_body_aliases(alias: str, expected: str) -> None:
    assert canon_body(alias) == expected


@pytest.mark.parametrize("bad", ["Vulcan", "", 42, None])
def test_unknown_body_raises(bad) -> None:
    with pytest.raises(UnknownBody) as exc:
        body_position(bad, J2000)
    assert exc.value.code == "unknown_body"
    assert isinstance(exc.value, EphemerisError)

# ─────────────────────────────────────────────────────────────────────────────
# Angles & houses
# ─────────────────────────────────────────────────────────────────────────────

@given(
    st.floats(min_value=2415020.0, max_value=2488070.0),
    st.floats(min_value=-66.0, max_value=66.0),
    st.floats(min_value=-180.0, max_value=180.0),
)
def test_house_partition(jd: float, lat: float, lon: float) -> None:
    cusps = house_cusps(jd, lat, lon)
    assert len(cusps) == 12
    arcs = [wrap_deg(cusps[(i + 1) % 12] - cusps[i]) for i in range(12)]
    assert sum(arcs) == pytest.approx(360.0, abs=1e-6)
    hits = [house_of(x, cusps) for x in (0.0, 91.3, 180.0, 271.9, cusps[0], cusps[5])]
    assert all(1 <= h <= 12 for h in hits)
    assert house_of(cusps[0], cusps) == 1
    assert house_of(cusps[5], cusps) == 6


def test_midheaven_and_ascendant_in_range() -> None:
    asc = ascendant_deg(J2000, 51.5, -0.13)
    mc = midheaven_deg(J2000, -0.13)
    assert 0.0 <= asc < 360.0
    assert 0.0 <= mc < 360.0
    # ASC sits roughly a quadrant ahead of the MC at mid latitudes
    assert 30.0 < wrap_deg(asc - mc) < 150.0


@pytest.mark.parametrize("lat", [90.0, -90.0, CFG.polar_lat_limit + 0.05, float("nan")])
def test_polar_latitude_is_degenerate(lat: float) -> None:
    with pytest.raises(DegenerateGeometry) as exc:
        ascendant_deg(J2000, lat, 0.0)
    assert exc.value.code == "degenerate_geometry"


def test_house_of_rejects_non_finite() -> None:
    cusps = house_cusps(J2000, 40.0, 0.0)
    with pytest.raises(DegenerateGeometry):
        house_of(float("inf"), cusps)

# tests/test_processing.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from astroforecast.core.constants import DAYS_PER_YEAR, DIMENSIONS
from astroforecast.core.influence import AppliedFactor, Scores, create_factor_config
from astroforecast.core.life_trend import life_trend
from astroforecast.core.profections import annual_profection
from astroforecast.core.processing import (
    _cycle,
    _dedupe,
    _weekly_theme,
    age_at,
    build_factor_context,
    process_daily_forecast,
    process_life_trend,
    process_weekly_forecast,
    processed_user_snapshot,
)
from astroforecast.core.transits import dimension_scores

DAY = datetime(2024, 5, 1, tzinfo=timezone.utc)
OFF = create_factor_config(enabled=False)


def F(category: str, name: str, adj: float) -> AppliedFactor:
    return AppliedFactor(id=name.lower(), name=name, category=category, adjustment=adj,
                         dimension="overall", reason="")


@pytest.fixture(scope="module")
def processed(chart):
    return process_daily_forecast(chart, DAY)


def test_age_at(chart) -> None:
    assert age_at(chart, datetime(2020, 6, 15, 14, 30, tzinfo=timezone.utc)) == 30
    assert age_at(chart, datetime(2020, 6, 1, tzinfo=timezone.utc)) == 29
    assert age_at(chart, datetime(1980, 1, 1)) == 0


def test_context_from_daily(chart, processed) -> None:
    ctx = build_factor_context(chart, DAY, processed.factor_result.adjusted, daily=processed.forecast)
    assert ctx.state.age == 33
    assert ctx.state.profection_house == 10
    assert ctx.state.moon_sign == processed.forecast.moon_sign
    assert ctx.state.lunar_phase == processed.forecast.moon_phase.phase
    assert ctx.active_transits == tuple(processed.forecast.transit_aspects)


def test_daily_processed(processed) -> None:
    assert processed.date == processed.forecast.date
    assert processed.raw_score == float(processed.forecast.overall_score)
    assert -100.0 <= processed.overall_score <= 100.0
    assert set(processed.dimensions) == set(DIMENSIONS)
    assert all(0.0 <= v <= 100.0 for v in processed.dimensions.values())
    mags = [abs(f.adjustment) for f in processed.top_factors]
    assert len(mags) <= 5 and mags == sorted(mags, reverse=True)
    d = processed.to_dict()
    assert d["processed"] is True
    assert d["raw_dimensions"] == processed.forecast.dimensions


def test_daily_disabled_passthrough(chart, processed) -> None:
    off = process_daily_forecast(chart, DAY, OFF)
    assert off.overall_score == off.raw_score
    assert off.dimensions == dimension_scores(off.forecast.transit_aspects, 10)
    assert off.top_factors == []
    # same inputs, same numbers
    assert off.raw_score == processed.raw_score

# ─────────────────────────────────────────────────────────────────────────────
# Weekly helpers
# ─────────────────────────────────────────────────────────────────────────────

def test_dedupe_keeps_strongest() -> None:
    out = _dedupe([F("lunar_phase", "full phase", 5.0), F("lunar_phase", "full phase", 7.0), F("dignity", "Sun dignity", 2.0)])
    assert [(f.name, f.adjustment) for f in out] == [("full phase", 7.0), ("Sun dignity", 2.0)]


def test_weekly_theme() -> None:
    pos = [F("dignity", "a", 1.0), F("lunar_phase", "b", 1.0)]
    neg = [F("retrograde", "c", -1.0)]
    assert _weekly_theme(pos, neg) == "Lunar support · Planetary strength"
    assert _weekly_theme([], neg) == "Retrograde reflection"
    assert _weekly_theme([F("custom", "x", 1.0)], []) == "A steady transition period"


@pytest.mark.slow
def test_weekly_processed(chart) -> None:
    wk = process_weekly_forecast(chart, datetime(2024, 5, 1, 18), OFF)
    assert wk.start == datetime(2024, 5, 1)
    assert wk.end - wk.start == timedelta(days=6)
    assert len(wk.days) == 7
    assert wk.overall_score == pytest.approx(sum(d.overall_score for d in wk.days) / 7.0)
    assert wk.positive_factors == [] and wk.negative_factors == []
    assert wk.weekly_theme == "A steady transition period"
    assert set(wk.dimension_trends) == set(DIMENSIONS)
    assert all(len(v) == 7 for v in wk.dimension_trends.values())

# ─────────────────────────────────────────────────────────────────────────────
# Life trend & snapshot
# ─────────────────────────────────────────────────────────────────────────────

def test_cycle_next_major(chart) -> None:
    c = _cycle(chart, 30, 29.5)
    assert c["current"] == pytest.approx(0.5)
    assert c["next_major"] == chart.birth.when + timedelta(days=59.0 * DAYS_PER_YEAR)
    assert _cycle(chart, 0, 12.0)["next_major"] == chart.birth.when + timedelta(days=12.0 * DAYS_PER_YEAR)


def test_life_trend_rescores_major_points_only(chart) -> None:
    raw = life_trend(chart, 2019, 2021)
    out = process_life_trend(chart, 2019, 2021, now=DAY)
    assert len(out.trend.points) == len(raw.points)
    majors = {p.date.isoformat() for p in raw.points if p.is_major_transit}
    assert set(out.point_factors) == majors
    for before, after in zip(raw.points, out.trend.points):
        if not before.is_major_transit:
            assert after.overall_score == before.overall_score
        else:
            assert after.overall_score == out.point_factors[before.date.isoformat()].adjusted.overall
    assert set(out.cyclic_factors) == {"saturn_cycle", "jupiter_cycle"}
    assert "point_factors" in out.to_dict()


def test_quarterly_life_trend_keeps_every_rescored_point(chart) -> None:
    out = process_life_trend(chart, 2019, 2021, OFF, now=DAY, resolution="quarterly")
    majors = [p for p in out.trend.points if p.is_major_transit]
    # the Saturn return year (2019) contributes four quarterly points sharing age 29
    assert len({p.age for p in majors}) < len(majors)
    assert len(out.point_factors) == len(majors)
    for p in majors:
        assert p.overall_score == out.point_factors[p.date.isoformat()].adjusted.overall
    assert sorted(out.to_dict()["point_factors"]) == sorted(p.date.isoformat() for p in majors)


def test_supplied_profection_sets_context_age(chart) -> None:
    # 15 Jan 2020 falls before the June birthday, so the calendar age is still 29
    when = datetime(2020, 1, 15)
    assert age_at(chart, when) == 29
    ctx = build_factor_context(chart, when, Scores(0.0, {}), profection=annual_profection(chart, 30))
    assert ctx.state.age == 30
    assert ctx.state.profection_house == 7


@pytest.mark.slow
def test_user_snapshot(chart) -> None:
    snap = processed_user_snapshot(chart, OFF, now=DAY)
    assert snap.natal["sun_sign"] == chart.planets["Sun"].sign
    assert snap.current["age"] == 33
    assert snap.current["profection_house"] == 10
    assert snap.active_factors == []
    assert snap.today.date == datetime(2024, 5, 1, tzinfo=timezone.utc)
    d = snap.to_dict()
    assert d["factor_config"]["enabled"] is False
    assert d["engine_version"]

# tests/test_transits.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from astroforecast.core.aspects import AspectData
from astroforecast.core.constants import DIMENSIONS
from astroforecast.core.transits import (
    daily_transits,
    dimension_scores,
    major_transits,
    transit_period,
    transit_positions,
    transit_theme,
    transit_timeline,
)

DAY = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)


def _aspect(b1: str, b2: str, name: str, strength: float = 1.0) -> AspectData:
    return AspectData(b1, b2, name, 0.0, 0.0, 0.0, True, strength, strength * 10.0)


def test_daily_transits_moving_first(chart) -> None:
    day = daily_transits(DAY, chart)
    assert day.date == DAY
    assert 0.0 <= day.intensity <= 100.0
    for a in day.aspects:
        assert a.body2 in chart.planets
    d = day.to_dict()
    assert d["date"].startswith("2024-05-01")


def test_transit_positions_carry_speed() -> None:
    pos = transit_positions(DAY, ("Sun", "Saturn"))
    assert set(pos) == {"Sun", "Saturn"}
    assert all(p.speed is not None for p in pos.values())


def test_transit_period_dedupes_events(chart) -> None:
    period = transit_period(DAY, DAY + timedelta(days=14), chart)
    assert period.samples == 15
    keys = [(e.transit_body, e.natal_body, e.aspect) for e in period.events]
    assert len(keys) == len(set(keys))
    for e in period.events:
        assert e.orb < 1.0
        assert e.window_start < e.date < e.window_end
    assert len(period.top_themes) <= 3


def test_transit_period_validation(chart) -> None:
    with pytest.raises(ValueError):
        transit_period(DAY, DAY - timedelta(days=1), chart)
    with pytest.raises(ValueError):
        transit_period(DAY, DAY + timedelta(days=1), chart, resolution="hourly")


def test_timeline_steps(chart) -> None:
    pts = transit_timeline(chart, DAY, DAY + timedelta(days=28), step_days=7)
    assert [p.date for p in pts] == [DAY + timedelta(days=7 * i) for i in range(5)]
    with pytest.raises(ValueError):
        transit_timeline(chart, DAY, DAY, step_days=0)


def test_theme_lookup() -> None:
    assert transit_theme("Saturn", "Sun") == "testing of identity and life direction"
    assert transit_theme("Saturn", "Chiron") == "structure, responsibility and consolidation"
    assert transit_theme("Chiron", "Sun") == "general transit activity"


def test_major_transits_window(birth) -> None:
    hits = major_transits(birth, birth.when.year, birth.when.year + 100)
    kinds = {(t.body, t.kind) for t in hits}
    assert ("Saturn", "return") in kinds
    assert ("Uranus", "opposition") in kinds
    assert ("Chiron", "return") in kinds
    assert sum(1 for t in hits if t.body == "Saturn") == 3
    assert all(t.age < 100 for t in hits)
    assert [t.date for t in hits] == sorted(t.date for t in hits)
    # Jupiter's 9th return would be past 100
    assert sum(1 for t in hits if t.body == "Jupiter") == 8


def test_major_transits_filtered_by_year(birth) -> None:
    year = birth.when.year + 42
    hits = major_transits(birth, year, year)
    assert any(t.body == "Uranus" for t in hits)
    assert all(t.date.year == year for t in hits)


def test_dimension_scores_baseline() -> None:
    assert dimension_scores([]) == {d: 50.0 for d in DIMENSIONS}
    tenth = dimension_scores([], profection_house=10)
    assert tenth["career"] == 70.0


def test_dimension_scores_aspects_and_clamp() -> None:
    dims = dimension_scores([_aspect("Venus", "Moon", "trine")])
    assert dims["relationship"] == pytest.approx(70.0)
    assert dims["finance"] == pytest.approx(70.0)
    tense = dimension_scores([_aspect("Saturn", "Sun", "square")] * 20)
    assert tense["career"] == 0.0
    assert all(0.0 <= v <= 100.0 for v in tense.values())

# astroforecast/core/life_trend.py
# -*- coding: utf-8 -*-
"""
Multi-year life trend

Each sample (the 15th of a month) stacks daily transits, the progressed chart
and the annual profection into one point:

    overall        = clamp(2·harmonious − challenge + 0.5·transformation, ±100)
    transformation = Σ strength·30 over aspects touching Saturn/Uranus/Neptune/Pluto
                     + 20 in the progressed new-moon zone (θ < 45° or θ > 315°)
                     + 15 in the progressed full-moon zone (|θ − 180°| < 45°)
                     capped at 100

The summary compares first-half and second-half means of the overall score.
Cycles are fixed-period: Saturn ≈ 29.5 y, Jupiter ≈ 11.86 y, profections 12 y.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from astroforecast.core.constants import clamp
from astroforecast.core.profections import annual_profection
from astroforecast.core.progressions import progressed_chart
from astroforecast.core.transits import daily_transits, dimension_scores, major_transits

log = logging.getLogger(__name__)

__all__ = [
    "LifeTrendPoint", "LifeTrendData", "RESOLUTION_MONTHS",
    "life_trend", "year_snapshot", "trend_point",
]

RESOLUTION_MONTHS: Dict[str, int] = {"yearly": 12, "quarterly": 3, "monthly": 1}

_TRANSFORMATIVE = frozenset({"Saturn", "Uranus", "Neptune", "Pluto"})

_LIFE_CYCLE_THEMES = (
    "building self-awareness and the basics of survival",
    "socialisation, education and exploring identity",
    "establishing career, stable relationships and responsibility",
    "mid-life adjustment, re-evaluating values, mature wisdom",
    "sharing experience, changing social roles",
    "integrating life, spiritual deepening",
    "letting go and transcending",
    "late-life wisdom and wholeness",
)

_SATURN_TEXT = {
    1: "First Saturn return: the threshold of adulthood, setting life's structure",
    2: "Second Saturn return: mid-life integration, reassessing achievements",
    3: "Third Saturn return: late-life wisdom and spiritual legacy",
}


@dataclass
class LifeTrendPoint:
    date: datetime
    year: int
    age: int
    overall_score: float
    harmonious: float
    challenge: float
    transformation: float
    dimensions: Dict[str, float]
    dominant_body: str
    profection_house: int
    profection_theme: str
    lord_of_year: str
    is_major_transit: bool
    major_transit_name: Optional[str]
    lunar_phase_name: str
    lunar_phase_angle: float

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d


@dataclass
class LifeTrendData:
    birth_date: datetime
    points: List[LifeTrendPoint]
    summary: Dict[str, Any]
    cycles: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "birth_date": self.birth_date.isoformat(),
            "points": [p.to_dict() for p in self.points],
            "summary": dict(self.summary),
            "cycles": {k: list(v) for k, v in self.cycles.items()},
        }

# ─────────────────────────────────────────────────────────────────────────────
# Points
# ─────────────────────────────────────────────────────────────────────────────

def _transformation(aspects, lunar_angle: float) -> float:
    score = sum(a.strength * 30.0 for a in aspects if {a.body1, a.body2} & _TRANSFORMATIVE)
    if lunar_angle < 45.0 or lunar_angle > 315.0:
        score += 20.0
    elif abs(lunar_angle - 180.0) < 45.0:
        score += 15.0
    return min(100.0, score)


def _dominant(aspects, lord: str) -> str:
    scores: Dict[str, float] = {lord: 50.0}
    for a in aspects:
        scores[a.body1] = scores.get(a.body1, 0.0) + a.weight * 10.0
        scores[a.body2] = scores.get(a.body2, 0.0) + a.weight * 10.0
    best, top = lord, 0.0
    for body, s in scores.items():
        if s > top:
            best, top = body, s
    return best


def _major_years(chart, start_year: int, end_year: int) -> Dict[int, str]:
    out: Dict[int, str] = {}
    for t in major_transits(chart.birth, start_year, end_year):
        out.setdefault(t.date.year, t.description)
    return out


def trend_point(chart, when: datetime, age: float, major_years: Dict[int, str]) -> LifeTrendPoint:
    transits = daily_transits(when, chart)
    progressed = progressed_chart(chart, when)
    profection = annual_profection(chart, int(age))

    harmonious = transits.score.harmonious
    challenge = transits.score.tense
    transformation = _transformation(transits.aspects, progressed.lunar_phase.angle)

    return LifeTrendPoint(
        date=when,
        year=when.year,
        age=int(age),
        overall_score=clamp(harmonious * 2.0 - challenge + transformation * 0.5, -100.0, 100.0),
        harmonious=harmonious,
        challenge=challenge,
        transformation=transformation,
        dimensions=dimension_scores(transits.aspects, profection.house),
        dominant_body=_dominant(transits.aspects, profection.lord),
        profection_house=profection.house,
        profection_theme=profection.house_theme,
        lord_of_year=profection.lord,
        is_major_transit=when.year in major_years,
        major_transit_name=major_years.get(when.year),
        lunar_phase_name=progressed.lunar_phase.name,
        lunar_phase_angle=progressed.lunar_phase.angle,
    )

# ─────────────────────────────────────────────────────────────────────────────
# Summary and cycles
# ─────────────────────────────────────────────────────────────────────────────

def _unique(xs) -> List[int]:
    return list(dict.fromkeys(xs))


def _summary(points: List[LifeTrendPoint]) -> Dict[str, Any]:
    if not points:
        return {"overall_trend": "stable", "peak_years": [], "challenge_years": [], "transformation_years": []}

    scores = [p.overall_score for p in points]
    half = len(scores) // 2
    first, second = scores[:half], scores[half:]
    avg_first = sum(first) / len(first) if first else sum(second) / len(second)
    avg_second = sum(second) / len(second)

    if avg_second - avg_first > 10:
        trend = "ascending"
    elif avg_first - avg_second > 10:
        trend = "descending"
    else:
        mean = sum(scores) / len(scores)
        variance = sum((s - mean) ** 2 for s in scores) / len(scores)
        trend = "fluctuating" if variance > 400 else "stable"

    ranked = sorted(points, key=lambda p: -p.overall_score)
    return {
        "overall_trend": trend,
        "peak_years": _unique(p.year for p in ranked[:5]),
        "challenge_years": _unique(p.year for p in ranked[-5:]),
        "transformation_years": _unique(
            p.year for p in points if p.transformation > 50 or p.is_major_transit
        ),
    }


def _cycles(chart, start_year: int, end_year: int) -> Dict[str, List[Dict[str, Any]]]:
    birth_year = chart.birth.when.year
    saturn = []
    for c in (1, 2, 3):
        age = round(29.5 * c)
        if start_year <= birth_year + age <= end_year:
            saturn.append({"cycle": c, "age": age, "year": birth_year + age, "description": _SATURN_TEXT[c]})
    jupiter = []
    for c in range(1, 9):
        age = round(11.86 * c)
        if start_year <= birth_year + age <= end_year:
            jupiter.append({
                "cycle": c, "age": age, "year": birth_year + age,
                "description": f"Jupiter return #{c}: a new cycle of expansion and opportunity",
            })
    profection = []
    for i, theme in enumerate(_LIFE_CYCLE_THEMES):
        start_age, end_age = 12 * i, 12 * (i + 1) - 1
        if birth_year + end_age >= start_year and birth_year + start_age <= end_year:
            profection.append({"start_age": start_age, "end_age": end_age, "theme": theme})
    return {"saturn_cycles": saturn, "jupiter_cycles": jupiter, "profection_cycles": profection}

# ─────────────────────────────────────────────────────────────────────────────
# Public
# ─────────────────────────────────────────────────────────────────────────────

def life_trend(chart, start_year: int, end_year: int, resolution: str = "yearly") -> LifeTrendData:
    try:
        step = RESOLUTION_MONTHS[resolution]
    except KeyError:
        raise ValueError(f"unknown resolution {resolution!r}; expected one of {sorted(RESOLUTION_MONTHS)}") from None
    if end_year < start_year:
        raise ValueError("end_year must not precede start_year")

    birth_year = chart.birth.when.year
    major_years = _major_years(chart, start_year, end_year)
    points: List[LifeTrendPoint] = []
    for year in range(start_year, end_year + 1):
        for month in range(1, 13, step):
            age = year - birth_year + (month - 1) / 12.0
            if age < 0:
                continue
            points.append(trend_point(chart, datetime(year, month, 15), age, major_years))

    log.debug("life trend %d..%d (%s): %d points", start_year, end_year, resolution, len(points))
    return LifeTrendData(
        birth_date=chart.birth.when,
        points=points,
        summary=_summary(points),
        cycles=_cycles(chart, start_year, end_year),
    )


def year_snapshot(chart, year: int) -> LifeTrendPoint:
    age = year - chart.birth.when.year
    if age < 0:
        raise ValueError(f"year {year} precedes birth")
    return trend_point(chart, datetime(year, 7, 1), age, _major_years(chart, year, year))

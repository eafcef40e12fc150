# astroforecast/core/transits.py
# -*- coding: utf-8 -*-
"""
Transit views over a natal chart.

Public API
----------
transit_positions(when, bodies=BODIES) -> {body: BodyPosition}   (with speed)
daily_transits(when, chart) -> DailyTransit
transit_period(start, end, chart, resolution="daily") -> TransitPeriod
transit_timeline(chart, start, end, step_days=7) -> [TimelinePoint]
major_transits(birth, from_year, to_year) -> [MajorTransit]
dimension_scores(aspects, profection_house) -> {dimension: 0..100}

Notes
-----
- Transit aspects are always (transiting body, natal body); natal bodies are
  treated as stationary, so "applying" reflects the transiting body's motion.
- Major transits (Saturn/Jupiter returns, Uranus opposition, Chiron return) are
  computed from fixed periods, not from the ephemeris.
- dimension_scores is the deterministic five-dimension baseline shared by the
  life trend and the factor-processed forecasts.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from astroforecast.core.constants import (
    BODIES,
    DAYS_PER_YEAR,
    DIMENSIONS,
    HARMONIOUS_MAJORS,
    JUPITER_RETURN_Y,
    SATURN_RETURN_Y,
    clamp,
)
from astroforecast.core.ephemeris import BodyPosition, all_positions, julian_day
from astroforecast.core.aspects import AspectData, AspectScore, aspect_score, find_transit_aspects

log = logging.getLogger(__name__)

__all__ = [
    "DailyTransit", "TransitEvent", "TransitPeriod", "TimelinePoint", "MajorTransit",
    "RESOLUTION_STEP_DAYS", "TRANSIT_DURATION_DAYS",
    "transit_positions", "daily_transits", "transit_period", "transit_timeline",
    "major_transits", "transit_theme", "dimension_scores",
]

# ─────────────────────────────────────────────────────────────────────────────
# Tables
# ─────────────────────────────────────────────────────────────────────────────

RESOLUTION_STEP_DAYS: Dict[str, int] = {"daily": 1, "weekly": 7, "monthly": 30}

# Typical felt duration of a near-exact transit, days.
TRANSIT_DURATION_DAYS: Dict[str, float] = {
    "Sun": 2, "Moon": 0.5, "Mercury": 3, "Venus": 4, "Mars": 7,
    "Jupiter": 30, "Saturn": 60, "Uranus": 180, "Neptune": 365, "Pluto": 730,
    "North Node": 60, "Chiron": 90,
}
_DEFAULT_DURATION = 7.0

_THEMES: Dict[str, Dict[str, str]] = {
    "Saturn": {
        "Sun": "testing of identity and life direction",
        "Moon": "emotional maturity and boundaries",
        "Venus": "commitment in love and finances",
        "Mars": "disciplined, sustained effort",
        "default": "structure, responsibility and consolidation",
    },
    "Jupiter": {
        "Sun": "confidence and recognition",
        "Moon": "emotional generosity and comfort",
        "Venus": "abundance in love and resources",
        "Mars": "bold ventures and momentum",
        "default": "growth and opportunity",
    },
    "Pluto": {
        "Sun": "profound reinvention of self",
        "Moon": "emotional catharsis",
        "Venus": "intensity in relationships and values",
        "Mars": "raw power and willpower",
        "default": "deep transformation",
    },
    "Uranus": {
        "Sun": "breakthroughs in self-expression",
        "Moon": "restlessness and new emotional patterns",
        "Venus": "unexpected shifts in relationships",
        "Mars": "sudden action and independence",
        "default": "sudden change and liberation",
    },
    "Neptune": {
        "Sun": "inspiration and uncertainty about direction",
        "Moon": "heightened sensitivity and intuition",
        "Venus": "idealised love and creativity",
        "Mars": "diffused energy seeking a higher purpose",
        "default": "inspiration and dissolving boundaries",
    },
    "Mars": {"default": "energy, drive and assertion"},
    "Venus": {"default": "harmony, affection and pleasure"},
    "Mercury": {"default": "communication, plans and errands"},
    "Sun": {"default": "visibility and vitality"},
    "Moon": {"default": "moods and daily rhythms"},
}
_FALLBACK_THEME = "general transit activity"
_CALM_THEME = "a calm period for integration"


def transit_theme(transit_body: str, natal_body: str) -> str:
    table = _THEMES.get(transit_body)
    if table is None:
        return _FALLBACK_THEME
    return table.get(natal_body, table["default"])

# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class DailyTransit:
    date: datetime
    aspects: List[AspectData]
    score: AspectScore
    key_theme: str
    intensity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "aspects": [a.to_dict() for a in self.aspects],
            "score": self.score.to_dict(),
            "key_theme": self.key_theme,
            "intensity": self.intensity,
        }


@dataclass
class TransitEvent:
    date: datetime
    transit_body: str
    natal_body: str
    aspect: str
    orb: float
    window_start: datetime
    window_end: datetime
    theme: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k in ("date", "window_start", "window_end"):
            d[k] = d[k].isoformat()
        return d


@dataclass
class TransitPeriod:
    start: datetime
    end: datetime
    resolution: str
    samples: int
    events: List[TransitEvent] = field(default_factory=list)
    average_score: float = 0.0
    top_themes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "resolution": self.resolution,
            "samples": self.samples,
            "events": [e.to_dict() for e in self.events],
            "average_score": self.average_score,
            "top_themes": list(self.top_themes),
        }


@dataclass
class TimelinePoint:
    date: datetime
    score: float
    harmonious: float
    tense: float
    key_body: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d


@dataclass
class MajorTransit:
    date: datetime
    body: str
    kind: str            # return | opposition
    age: float
    significance: str    # high | medium
    description: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d

# ─────────────────────────────────────────────────────────────────────────────
# Views
# ─────────────────────────────────────────────────────────────────────────────

def transit_positions(when: datetime, bodies: Iterable[str] = BODIES) -> Dict[str, BodyPosition]:
    return all_positions(julian_day(when), bodies, with_speed=True)


def daily_transits(when: datetime, chart) -> DailyTransit:
    aspects = find_transit_aspects(transit_positions(when), chart.planets)
    score = aspect_score(aspects)
    theme = transit_theme(aspects[0].body1, aspects[0].body2) if aspects else _CALM_THEME
    return DailyTransit(
        date=when,
        aspects=aspects,
        score=score,
        key_theme=theme,
        intensity=min(100.0, abs(score.total) * 10.0 + 5.0 * len(aspects)),
    )


def _step_days(resolution: str) -> int:
    try:
        return RESOLUTION_STEP_DAYS[resolution]
    except KeyError:
        raise ValueError(
            f"unknown resolution {resolution!r}; expected one of {sorted(RESOLUTION_STEP_DAYS)}"
        ) from None


def _samples(start: datetime, end: datetime, step: timedelta) -> List[datetime]:
    out: List[datetime] = []
    t = start
    while t <= end:
        out.append(t)
        t += step
    return out


def transit_period(start: datetime, end: datetime, chart, resolution: str = "daily") -> TransitPeriod:
    if end < start:
        raise ValueError("end must not precede start")
    step = timedelta(days=_step_days(resolution))
    dates = _samples(start, end, step)

    best: Dict[tuple, TransitEvent] = {}
    themes: Counter = Counter()
    total = 0.0
    for d in dates:
        day = daily_transits(d, chart)
        total += day.score.total
        themes[day.key_theme] += 1
        for a in day.aspects:
            if a.orb >= 1.0:
                continue
            key = (a.body1, a.body2, a.aspect)
            prev = best.get(key)
            if prev is not None and prev.orb <= a.orb:
                continue
            half = timedelta(days=TRANSIT_DURATION_DAYS.get(a.body1, _DEFAULT_DURATION) / 2.0)
            best[key] = TransitEvent(
                date=d,
                transit_body=a.body1,
                natal_body=a.body2,
                aspect=a.aspect,
                orb=a.orb,
                window_start=d - half,
                window_end=d + half,
                theme=transit_theme(a.body1, a.body2),
            )

    events = sorted(best.values(), key=lambda e: (e.date, e.orb))
    log.debug("transit period %s..%s: %d samples, %d events", start, end, len(dates), len(events))
    return TransitPeriod(
        start=start,
        end=end,
        resolution=resolution,
        samples=len(dates),
        events=events,
        average_score=total / len(dates),
        top_themes=[t for t, _ in themes.most_common(3)],
    )


def transit_timeline(chart, start: datetime, end: datetime, step_days: int = 7) -> List[TimelinePoint]:
    if step_days <= 0:
        raise ValueError("step_days must be positive")
    out: List[TimelinePoint] = []
    for d in _samples(start, end, timedelta(days=step_days)):
        day = daily_transits(d, chart)
        out.append(TimelinePoint(
            date=d,
            score=day.score.total,
            harmonious=day.score.harmonious,
            tense=day.score.tense,
            key_body=day.aspects[0].body1 if day.aspects else None,
        ))
    return out


_MAJOR_CYCLES = (
    # body, kind, period (years), max cycles, significance
    ("Saturn", "return", SATURN_RETURN_Y, 3, "high"),
    ("Jupiter", "return", JUPITER_RETURN_Y, 8, "medium"),
)


def major_transits(birth, from_year: int, to_year: int) -> List[MajorTransit]:
    """Life-cycle transits under age 100 whose date falls in [from_year, to_year]."""
    hits: List[MajorTransit] = []

    def add(body: str, kind: str, age: float, significance: str, description: str) -> None:
        if age >= 100:
            return
        when = birth.when + timedelta(days=age * DAYS_PER_YEAR)
        if from_year <= when.year <= to_year:
            hits.append(MajorTransit(when, body, kind, age, significance, description))

    for body, kind, period, cycles, significance in _MAJOR_CYCLES:
        for c in range(1, cycles + 1):
            add(body, kind, c * period, significance,
                f"{body} {kind} #{c} at age {c * period:.1f}")
    add("Uranus", "opposition", 42.0, "high", "Uranus opposition: the mid-life awakening")
    add("Chiron", "return", 50.0, "high", "Chiron return: healing old wounds, becoming the mentor")

    return sorted(hits, key=lambda t: t.date)

# ─────────────────────────────────────────────────────────────────────────────
# Deterministic dimension baseline
# ─────────────────────────────────────────────────────────────────────────────

_HOUSE_DIMENSION_MODS: Dict[int, Dict[str, float]] = {
    1: {"health": 20, "career": 10},
    2: {"finance": 20},
    3: {"career": 10},
    4: {"relationship": 10, "spiritual": 10},
    5: {"relationship": 15},
    6: {"health": 20, "career": 10},
    7: {"relationship": 20},
    8: {"finance": 10, "spiritual": 15},
    9: {"spiritual": 20},
    10: {"career": 20},
    11: {"spiritual": 10, "relationship": 10},
    12: {"spiritual": 20, "health": -10},
}

# dimension -> (bodies that touch it, scale)
_DIMENSION_BODIES: Dict[str, tuple] = {
    "career": (frozenset({"Saturn", "Mars", "Sun"}), 1.0),
    "relationship": (frozenset({"Venus", "Moon"}), 1.0),
    "health": (frozenset({"Mars", "Saturn"}), 0.5),
    "finance": (frozenset({"Jupiter", "Venus"}), 1.0),
    "spiritual": (frozenset({"Neptune", "Pluto", "Chiron"}), 1.0),
}


def dimension_scores(aspects: Sequence[AspectData], profection_house: Optional[int] = None) -> Dict[str, float]:
    dims = {d: 50.0 for d in DIMENSIONS}
    for d, v in _HOUSE_DIMENSION_MODS.get(profection_house or 0, {}).items():
        dims[d] += v
    for a in aspects:
        intensity = a.strength * 20.0
        mod = intensity if a.aspect in HARMONIOUS_MAJORS else -0.5 * intensity
        pair = {a.body1, a.body2}
        for d, (bodies, scale) in _DIMENSION_BODIES.items():
            if pair & bodies:
                dims[d] += mod * scale
    return {d: clamp(v, 0.0, 100.0) for d, v in dims.items()}

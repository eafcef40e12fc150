# astroforecast/core/forecast.py
# -*- coding: utf-8 -*-
"""
Hourly / daily / weekly forecasts over a natal chart.

The Moon is the fast variable (about 2.5 days per sign) and drives the
intraday rhythm; inner planets drive week-scale change; transit exactness
sets the day's intensity.

Public API
----------
planetary_day(when) -> body
planetary_hour(when, sunrise_hour=CFG.sunrise_hour) -> body
moon_phase(when) -> MoonPhase
void_of_course(when, chart, scan_hours=CFG.voc_scan_hours) -> VoidOfCourse
hourly_forecast(chart, day, hour) -> HourlyForecast
daily_forecast(chart, day) -> DailyForecast
weekly_forecast(chart, start) -> WeeklyForecast
forecast_range(chart, start, end, resolution) -> [RangePoint]

Weekday and hour logic read the wall-clock fields of `when` as given; the
Julian day is taken in UTC (naive values are UTC).
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import math

from astroforecast.core.constants import (
    ASPECTS,
    HARMONIOUS_MAJORS,
    HOUSE_THEMES,
    MAJOR_ASPECTS,
    SIGN_KEYWORDS,
    SLOW_BODIES,
    abs_sep_deg,
    sign_index,
    sign_of,
)
from astroforecast.core.ephemeris import CFG, all_positions, body_position, house_of, julian_day
from astroforecast.core.aspects import AspectData, find_transit_aspects
from astroforecast.core.progressions import LUNAR_PHASES
from astroforecast.core.transits import transit_positions

log = logging.getLogger(__name__)

__all__ = [
    "CHALDEAN_ORDER", "DAY_RULERS",
    "MoonPhase", "VoidOfCourse", "HourlyForecast", "ActiveAspect", "DailyForecast",
    "DaySummary", "KeyDate", "WeeklyTransit", "WeeklyForecast", "RangePoint",
    "day_start", "planetary_day", "planetary_hour", "moon_phase", "void_of_course",
    "hourly_forecast", "daily_forecast", "weekly_forecast", "forecast_range",
]

DayLike = Union[date, datetime]

# ─────────────────────────────────────────────────────────────────────────────
# Tables
# ─────────────────────────────────────────────────────────────────────────────

CHALDEAN_ORDER: Tuple[str, ...] = ("Saturn", "Jupiter", "Mars", "Sun", "Venus", "Mercury", "Moon")
DAY_RULERS: Tuple[str, ...] = ("Sun", "Moon", "Mars", "Mercury", "Jupiter", "Venus", "Saturn")  # Sunday first
_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_HOUR_BONUS: Dict[str, float] = {
    "Sun": 10, "Jupiter": 10, "Venus": 8, "Mercury": 5, "Moon": 3, "Mars": -3, "Saturn": -5,
}
_MOON_HOUSE_BONUS: Dict[int, float] = {
    1: 5, 5: 8, 9: 6, 11: 7, 4: 3, 7: 4, 6: -3, 8: -5, 12: -4,
}

_HOUSE_WORD: Dict[int, str] = {
    1: "self", 2: "resources", 3: "communication", 4: "family",
    5: "creativity", 6: "health", 7: "relationships", 8: "depth",
    9: "exploration", 10: "career", 11: "community", 12: "introspection",
}

# sign -> (best for, avoid)
_SIGN_ADVICE: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "Aries": (("starting new projects", "exercise", "competition"), ("tasks needing patience",)),
    "Taurus": (("financial decisions", "good food", "art"), ("hasty changes",)),
    "Gemini": (("conversations", "learning", "socialising"), ("deep focused work",)),
    "Cancer": (("family matters", "heart-to-heart talks", "cooking"), ("cold business negotiations",)),
    "Leo": (("creative expression", "entertainment", "leading"), ("behind-the-scenes work",)),
    "Virgo": (("organising", "health check-ups", "detail work"), ("big-picture decisions",)),
    "Libra": (("negotiating partnerships", "social events", "aesthetics"), ("deciding alone",)),
    "Scorpio": (("research", "inner work", "investing"), ("small talk",)),
    "Sagittarius": (("study", "travel planning", "adventure"), ("tedious details",)),
    "Capricorn": (("work", "long-range planning", "taking responsibility"), ("idle leisure",)),
    "Aquarius": (("innovation", "technology", "group activities"), ("traditional rituals",)),
    "Pisces": (("meditation", "art", "helping others"), ("matters needing firm boundaries",)),
}

_DAY_THEMES: Dict[str, str] = {
    "Sun": "self-expression and creativity",
    "Moon": "emotion and intuition",
    "Mars": "action and competition",
    "Mercury": "communication and learning",
    "Jupiter": "expansion and opportunity",
    "Venus": "love and beauty",
    "Saturn": "responsibility and structure",
}

_DAILY_DIMENSIONS: Tuple[str, ...] = ("action", "communication", "emotion", "creativity", "focus")

_MOON_SIGN_MODIFIERS: Dict[str, Dict[str, float]] = {
    "Aries": {"action": 20, "focus": -10},
    "Taurus": {"focus": 15, "action": -10},
    "Gemini": {"communication": 20, "focus": -15},
    "Cancer": {"emotion": 20, "action": -10},
    "Leo": {"creativity": 20, "focus": 10},
    "Virgo": {"focus": 20, "creativity": -10},
    "Libra": {"communication": 15, "creativity": 10},
    "Scorpio": {"emotion": 15, "focus": 15},
    "Sagittarius": {"action": 15, "creativity": 10},
    "Capricorn": {"focus": 20, "emotion": -10},
    "Aquarius": {"creativity": 15, "communication": 10},
    "Pisces": {"emotion": 15, "creativity": 15, "focus": -15},
}

_ACTION_SIGNS = {"Aries", "Leo", "Sagittarius", "Capricorn"}
_COMM_SIGNS = {"Gemini", "Libra", "Aquarius"}
_REST_SIGNS = {"Cancer", "Pisces"}
_CREATIVE_SIGNS = {"Leo", "Pisces", "Aquarius", "Gemini"}

_MAJOR_ANGLES = tuple(ASPECTS[a].angle for a in MAJOR_ASPECTS)

# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────

def _iso(d: Optional[datetime]) -> Optional[str]:
    return d.isoformat() if d is not None else None


@dataclass
class MoonPhase:
    phase: str
    name: str
    illumination: float
    angle: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class VoidOfCourse:
    is_void: bool
    hours_to_ingress: float
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_void": self.is_void,
            "hours_to_ingress": self.hours_to_ingress,
            "start": _iso(self.start),
            "end": _iso(self.end),
        }


@dataclass
class HourlyForecast:
    hour: int
    time: datetime
    moon_longitude: float
    moon_sign: str
    moon_house: int
    planetary_hour: str
    score: float
    mood: str
    keywords: List[str]
    best_for: List[str]
    avoid_for: List[str]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["time"] = self.time.isoformat()
        return d


@dataclass
class ActiveAspect:
    transit_body: str
    natal_body: str
    aspect: str
    exactness: float       # 0..100
    applying: bool
    interpretation: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DailyForecast:
    date: datetime
    day_of_week: str
    planetary_day: str
    planetary_hour: str
    moon_phase: MoonPhase
    void_of_course: VoidOfCourse
    moon_sign: str
    overall_score: int
    dimensions: Dict[str, float]
    active_aspects: List[ActiveAspect]
    theme: str
    advice: str
    lucky_hours: List[int]
    challenging_hours: List[int]
    hourly: List[HourlyForecast]
    transit_aspects: List[AspectData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "day_of_week": self.day_of_week,
            "planetary_day": self.planetary_day,
            "planetary_hour": self.planetary_hour,
            "moon_phase": self.moon_phase.to_dict(),
            "void_of_course": self.void_of_course.to_dict(),
            "moon_sign": self.moon_sign,
            "overall_score": self.overall_score,
            "dimensions": dict(self.dimensions),
            "active_aspects": [a.to_dict() for a in self.active_aspects],
            "theme": self.theme,
            "advice": self.advice,
            "lucky_hours": list(self.lucky_hours),
            "challenging_hours": list(self.challenging_hours),
            "hourly": [h.to_dict() for h in self.hourly],
        }


@dataclass
class DaySummary:
    date: datetime
    day_of_week: str
    score: int
    moon_sign: str
    theme: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d


@dataclass
class KeyDate:
    date: datetime
    event: str
    significance: str      # high | medium | low

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date.isoformat(), "event": self.event, "significance": self.significance}


@dataclass
class WeeklyTransit:
    body: str
    aspect: str
    natal_body: str
    peak_date: datetime
    description: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["peak_date"] = self.peak_date.isoformat()
        return d


@dataclass
class WeeklyForecast:
    start: datetime
    end: datetime
    week_number: int
    overall_theme: str
    average_score: float
    key_dates: List[KeyDate]
    daily_summaries: List[DaySummary]
    weekly_transits: List[WeeklyTransit]
    best_days_for: Dict[str, List[datetime]]
    days: List[DailyForecast] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "week_number": self.week_number,
            "overall_theme": self.overall_theme,
            "average_score": self.average_score,
            "key_dates": [k.to_dict() for k in self.key_dates],
            "daily_summaries": [d.to_dict() for d in self.daily_summaries],
            "weekly_transits": [t.to_dict() for t in self.weekly_transits],
            "best_days_for": {k: [d.isoformat() for d in v] for k, v in self.best_days_for.items()},
        }


@dataclass
class RangePoint:
    date: datetime
    score: float
    theme: str
    moon_sign: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = self.date.isoformat()
        return d

# ─────────────────────────────────────────────────────────────────────────────
# Planetary day / hour, Moon
# ─────────────────────────────────────────────────────────────────────────────

def day_start(day: DayLike) -> datetime:
    if isinstance(day, datetime):
        return day.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime(day.year, day.month, day.day)


def planetary_day(when: DayLike) -> str:
    return DAY_RULERS[(when.weekday() + 1) % 7]


def planetary_hour(when: datetime, sunrise_hour: Optional[int] = None) -> str:
    """First hour after sunrise belongs to the day ruler; then Chaldean order."""
    sunrise = CFG.sunrise_hour if sunrise_hour is None else sunrise_hour
    start = CHALDEAN_ORDER.index(planetary_day(when))
    return CHALDEAN_ORDER[(start + (when.hour - sunrise + 24) % 24) % 7]


def moon_phase(when: datetime) -> MoonPhase:
    jd = julian_day(when)
    sun = body_position("Sun", jd).longitude
    moon = body_position("Moon", jd).longitude
    angle = (moon - sun) % 360.0
    pid, name, _, _ = LUNAR_PHASES[int(((angle + 22.5) % 360.0) // 45.0)]
    illumination = (1.0 - math.cos(math.radians(angle))) / 2.0 * 100.0
    return MoonPhase(phase=pid, name=name, illumination=illumination, angle=angle)


def void_of_course(when: datetime, chart, scan_hours: Optional[int] = None) -> VoidOfCourse:
    """
    Void if the Moon makes no major aspect (within 1°) to a natal body before it
    leaves its sign, scanning hourly and at most `scan_hours` ahead.
    """
    scan = CFG.voc_scan_hours if scan_hours is None else scan_hours
    moon = body_position("Moon", julian_day(when), with_speed=True)
    per_hour = (moon.speed or 13.176) / 24.0
    if per_hour <= 0:
        per_hour = 0.55
    to_boundary = (sign_index(moon.longitude) + 1) * 30.0 - moon.longitude
    hours_to_ingress = to_boundary / per_hour

    natal = [p.longitude for p in chart.planets.values()]
    for h in range(int(math.ceil(min(hours_to_ingress, scan)))):
        lon = body_position("Moon", julian_day(when + timedelta(hours=h))).longitude
        for n in natal:
            sep = abs_sep_deg(lon, n)
            if any(abs(sep - a) < 1.0 for a in _MAJOR_ANGLES):
                return VoidOfCourse(is_void=False, hours_to_ingress=hours_to_ingress)
    return VoidOfCourse(
        is_void=True,
        hours_to_ingress=hours_to_ingress,
        start=when,
        end=when + timedelta(hours=hours_to_ingress),
    )

# ─────────────────────────────────────────────────────────────────────────────
# Hourly
# ─────────────────────────────────────────────────────────────────────────────

def _mood(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 65:
        return "good"
    if score >= 45:
        return "neutral"
    if score >= 30:
        return "challenging"
    return "difficult"


def hourly_forecast(chart, day: DayLike, hour: int) -> HourlyForecast:
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0..23, got {hour}")
    t = day_start(day).replace(hour=hour)
    moon = body_position("Moon", julian_day(t), with_speed=True)
    sign = sign_of(moon.longitude)
    house = house_of(moon.longitude, chart.cusps)
    ruler = planetary_hour(t)

    score = 50.0 + _HOUR_BONUS.get(ruler, 0.0)
    for a in find_transit_aspects([moon], chart.planets, MAJOR_ASPECTS):
        score += a.strength * 15.0 if a.aspect in HARMONIOUS_MAJORS else -a.strength * 10.0
    score += _MOON_HOUSE_BONUS.get(house, 0.0)
    score = max(0.0, min(100.0, score))

    best, avoid = _SIGN_ADVICE[sign]
    best_for = list(best[:2])
    avoid_for = list(avoid)
    if score >= 70:
        best_for.append("important decisions")
    elif score < 40:
        avoid_for.extend(["major decisions", "heated conflicts"])

    return HourlyForecast(
        hour=hour,
        time=t,
        moon_longitude=moon.longitude,
        moon_sign=sign,
        moon_house=house,
        planetary_hour=ruler,
        score=score,
        mood=_mood(score),
        keywords=list(SIGN_KEYWORDS[sign]) + [_HOUSE_WORD[house]],
        best_for=best_for,
        avoid_for=avoid_for,
    )

# ─────────────────────────────────────────────────────────────────────────────
# Daily
# ─────────────────────────────────────────────────────────────────────────────

def _daily_dimensions(moon_sign: str) -> Dict[str, float]:
    mods = _MOON_SIGN_MODIFIERS.get(moon_sign, {})
    return {d: max(0.0, min(100.0, 50.0 + mods.get(d, 0.0))) for d in _DAILY_DIMENSIONS}


def _daily_theme(moon_sign: str, day_ruler: str, score: float) -> Tuple[str, str]:
    theme = f"{moon_sign} Moon · {_DAY_THEMES.get(day_ruler, HOUSE_THEMES[1])} day"
    if score >= 70:
        advice = "Energy is high: push important matters forward and make decisions."
    elif score >= 50:
        advice = "Energy is steady: follow your plan."
    else:
        advice = "Hold rather than advance: handle routine matters and postpone major decisions."
    return theme, advice


def daily_forecast(chart, day: DayLike) -> DailyForecast:
    start = day_start(day)
    ruler = planetary_day(start)
    moon_sign = sign_of(body_position("Moon", julian_day(start)).longitude)
    hourly = [hourly_forecast(chart, start, h) for h in range(24)]

    aspects = find_transit_aspects(transit_positions(start), chart.planets)
    active = [
        ActiveAspect(
            transit_body=a.body1,
            natal_body=a.body2,
            aspect=a.aspect,
            exactness=a.strength * 100.0,
            applying=a.applying,
            interpretation=f"Transiting {a.body1} {'applying to' if a.applying else 'separating from'} natal {a.body2}",
        )
        for a in aspects[:5]
    ]

    overall = round(sum(h.score for h in hourly) / 24.0)
    ranked = sorted(hourly, key=lambda h: -h.score)
    theme, advice = _daily_theme(moon_sign, ruler, overall)
    log.debug("daily forecast %s: score=%d moon=%s", start.date(), overall, moon_sign)
    return DailyForecast(
        date=start,
        day_of_week=_DAY_NAMES[start.weekday()],
        planetary_day=ruler,
        planetary_hour=planetary_hour(start),
        moon_phase=moon_phase(start),
        void_of_course=void_of_course(start, chart),
        moon_sign=moon_sign,
        overall_score=overall,
        dimensions=_daily_dimensions(moon_sign),
        active_aspects=active,
        theme=theme,
        advice=advice,
        lucky_hours=[h.hour for h in ranked[:4]],
        challenging_hours=[h.hour for h in ranked[-4:]],
        hourly=hourly,
        transit_aspects=aspects,
    )

# ─────────────────────────────────────────────────────────────────────────────
# Weekly
# ─────────────────────────────────────────────────────────────────────────────

def _slow_transits(chart, week_start: datetime) -> List[WeeklyTransit]:
    out: List[WeeklyTransit] = []
    positions = all_positions(julian_day(week_start), SLOW_BODIES)
    for body, pos in positions.items():
        for natal in chart.planets.values():
            sep = abs_sep_deg(pos.longitude, natal.longitude)
            for name in MAJOR_ASPECTS:
                if abs(sep - ASPECTS[name].angle) < 3.0:
                    out.append(WeeklyTransit(
                        body=body,
                        aspect=name,
                        natal_body=natal.body,
                        peak_date=week_start,
                        description=f"Transiting {body} {name} natal {natal.body}",
                    ))
    return out


def weekly_forecast(chart, start: DayLike) -> WeeklyForecast:
    week_start = day_start(start)
    days = [daily_forecast(chart, week_start + timedelta(days=i)) for i in range(7)]
    summaries = [
        DaySummary(d.date, d.day_of_week, d.overall_score, d.moon_sign, d.theme) for d in days
    ]

    key_dates: List[KeyDate] = []
    ranked = sorted(summaries, key=lambda s: -s.score)
    if ranked[0].score >= 70:
        key_dates.append(KeyDate(ranked[0].date, "Best energy day of the week", "high"))
    if ranked[-1].score < 40:
        key_dates.append(KeyDate(ranked[-1].date, "Rest and recalibrate", "medium"))
    for d in days:
        if d.moon_phase.phase in ("new", "full"):
            key_dates.append(KeyDate(d.date, d.moon_phase.name, "high"))

    best_days = {
        "action": [s.date for s in summaries if s.score >= 60 and s.moon_sign in _ACTION_SIGNS],
        "communication": [s.date for s in summaries if s.score >= 50 and s.moon_sign in _COMM_SIGNS],
        "rest": [s.date for s in summaries if s.moon_sign in _REST_SIGNS or s.score < 45],
        "creativity": [s.date for s in summaries if s.score >= 55 and s.moon_sign in _CREATIVE_SIGNS],
    }

    avg = sum(s.score for s in summaries) / 7.0
    if avg >= 65:
        theme = "A proactive week, good for advancing important projects"
    elif avg >= 50:
        theme = "A steady week of transition; keep moving forward"
    else:
        theme = "A week that asks for patience; good for sorting and reflection"

    return WeeklyForecast(
        start=week_start,
        end=week_start + timedelta(days=6),
        week_number=(week_start.timetuple().tm_yday - 1) // 7 + 1,
        overall_theme=theme,
        average_score=avg,
        key_dates=key_dates,
        daily_summaries=summaries,
        weekly_transits=_slow_transits(chart, week_start),
        best_days_for=best_days,
        days=days,
    )

# ─────────────────────────────────────────────────────────────────────────────
# Range
# ─────────────────────────────────────────────────────────────────────────────

_RANGE_STEP = {"hourly": timedelta(hours=1), "daily": timedelta(days=1), "weekly": timedelta(days=7)}


def forecast_range(chart, start: datetime, end: datetime, resolution: str = "daily") -> List[RangePoint]:
    try:
        step = _RANGE_STEP[resolution]
    except KeyError:
        raise ValueError(f"unknown resolution {resolution!r}; expected one of {sorted(_RANGE_STEP)}") from None
    out: List[RangePoint] = []
    cur = start
    while cur <= end:
        if resolution == "hourly":
            h = hourly_forecast(chart, cur, cur.hour)
            out.append(RangePoint(cur, h.score, "·".join(h.keywords), h.moon_sign))
        elif resolution == "daily":
            d = daily_forecast(chart, cur)
            out.append(RangePoint(cur, d.overall_score, d.theme, d.moon_sign))
        else:
            w = weekly_forecast(chart, cur)
            out.append(RangePoint(cur, w.average_score, w.overall_theme, w.daily_summaries[0].moon_sign))
        cur += step
    return out

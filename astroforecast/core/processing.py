# astroforecast/core/processing.py
# -*- coding: utf-8 -*-
"""
Factor-processed views.

Raw forecast -> influence factor pipeline -> processed output. Every view the
service layer hands out goes through here so the adjustments are explained
the same way everywhere.

The raw five-dimension baseline is geometric (transit aspects plus the
profection house, see transits.dimension_scores), so identical inputs always
produce identical processed output.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence
import logging
import math

from astroforecast.core.constants import DAYS_PER_YEAR, DIMENSIONS, sign_of
from astroforecast.core.ephemeris import dt_utc
from astroforecast.core.aspects import AspectData
from astroforecast.core.forecast import DailyForecast, daily_forecast, day_start
from astroforecast.core.influence import (
    DEFAULT_FACTOR_CONFIG,
    AppliedFactor,
    CurrentState,
    FactorContext,
    FactorResult,
    InfluenceFactorConfig,
    Scores,
    apply_influence_factors,
)
from astroforecast.core.life_trend import LifeTrendData, life_trend
from astroforecast.core.profections import AnnualProfection, annual_profection
from astroforecast.core.transits import dimension_scores
from astroforecast.version import VERSION

log = logging.getLogger(__name__)

__all__ = [
    "ProcessedDailyForecast", "ProcessedWeeklyForecast", "ProcessedLifeTrend", "ProcessedUserSnapshot",
    "age_at", "build_factor_context", "process_daily_forecast", "process_weekly_forecast",
    "process_life_trend", "processed_user_snapshot",
]

_WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

# category -> theme phrase, positive side first
_POSITIVE_THEMES = (
    ("profection_lord", "Deepening the year's theme"),
    ("lunar_phase", "Lunar support"),
    ("dignity", "Planetary strength"),
    ("personal", "Personal resonance"),
)
_NEGATIVE_THEMES = (
    ("outer_planet", "Outer-planet tests"),
    ("retrograde", "Retrograde reflection"),
)
_STEADY_THEME = "A steady transition period"

SATURN_CYCLE_Y = 29.5
JUPITER_CYCLE_Y = 12.0

# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class ProcessedDailyForecast:
    forecast: DailyForecast
    raw_score: float
    raw_dimensions: Dict[str, float]      # moon-sign heuristics from the raw forecast
    overall_score: float
    dimensions: Dict[str, float]          # adjusted life dimensions
    factor_result: FactorResult
    top_factors: List[AppliedFactor]

    @property
    def date(self) -> datetime:
        return self.forecast.date

    def to_dict(self) -> Dict[str, Any]:
        d = self.forecast.to_dict()
        d.update({
            "overall_score": self.overall_score,
            "raw_score": self.raw_score,
            "raw_dimensions": dict(self.raw_dimensions),
            "dimensions": dict(self.dimensions),
            "factor_result": self.factor_result.to_dict(),
            "top_factors": [f.to_dict() for f in self.top_factors],
            "processed": True,
        })
        return d


@dataclass
class ProcessedWeeklyForecast:
    start: datetime
    end: datetime
    days: List[ProcessedDailyForecast]
    weekly_theme: str
    weekly_insight: str
    overall_score: float
    positive_factors: List[AppliedFactor]
    negative_factors: List[AppliedFactor]
    dimension_trends: Dict[str, List[float]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "days": [d.to_dict() for d in self.days],
            "weekly_theme": self.weekly_theme,
            "weekly_insight": self.weekly_insight,
            "overall_score": self.overall_score,
            "weekly_factors": {
                "positive": [f.to_dict() for f in self.positive_factors],
                "negative": [f.to_dict() for f in self.negative_factors],
            },
            "dimension_trends": {k: list(v) for k, v in self.dimension_trends.items()},
        }


@dataclass
class ProcessedLifeTrend:
    trend: LifeTrendData
    point_factors: Dict[str, FactorResult]     # point date (ISO) -> result, major-transit points only
    cyclic_factors: Dict[str, Dict[str, Any]]

    def to_dict(self) -> Dict[str, Any]:
        d = self.trend.to_dict()
        d["point_factors"] = {k: r.to_dict() for k, r in self.point_factors.items()}
        d["cyclic_factors"] = {
            k: {"current": v["current"], "next_major": v["next_major"].isoformat()}
            for k, v in self.cyclic_factors.items()
        }
        return d


@dataclass
class ProcessedUserSnapshot:
    timestamp: datetime
    natal: Dict[str, Any]
    current: Dict[str, Any]
    today: ProcessedDailyForecast
    week: ProcessedWeeklyForecast
    active_factors: List[AppliedFactor]
    factor_config: InfluenceFactorConfig

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine_version": VERSION,
            "timestamp": self.timestamp.isoformat(),
            "natal": dict(self.natal),
            "current": dict(self.current),
            "today": self.today.to_dict(),
            "week": self.week.to_dict(),
            "active_factors": [f.to_dict() for f in self.active_factors],
            "factor_config": self.factor_config.to_dict(),
        }

# ─────────────────────────────────────────────────────────────────────────────
# Context
# ─────────────────────────────────────────────────────────────────────────────

def age_at(chart, when: datetime) -> int:
    """Completed years of life at `when` (Julian years); never negative."""
    days = (dt_utc(when) - dt_utc(chart.birth.when)).total_seconds() / 86400.0
    return max(0, int(math.floor(days / DAYS_PER_YEAR)))


def build_factor_context(
    chart,
    when: datetime,
    raw_scores: Scores,
    *,
    profection: Optional[AnnualProfection] = None,
    daily: Optional[DailyForecast] = None,
    transit_aspects: Optional[Sequence[AspectData]] = None,
) -> FactorContext:
    # a supplied profection fixes the age for every generator
    age = profection.age if profection is not None else age_at(chart, when)
    prof = profection or annual_profection(chart, age)
    day = daily or daily_forecast(chart, when)
    return FactorContext(
        chart=chart,
        when=when,
        raw_scores=raw_scores,
        state=CurrentState(
            age=age,
            profection_house=prof.house,
            lord_of_year=prof.lord,
            lunar_phase=day.moon_phase.phase,
            planetary_day=day.planetary_day,
            planetary_hour=day.planetary_hour,
            moon_sign=day.moon_sign,
        ),
        active_transits=tuple(transit_aspects if transit_aspects is not None else day.transit_aspects),
    )

# ─────────────────────────────────────────────────────────────────────────────
# Daily / weekly
# ─────────────────────────────────────────────────────────────────────────────

def _by_magnitude(factors: Sequence[AppliedFactor]) -> List[AppliedFactor]:
    return sorted(factors, key=lambda f: -abs(f.adjustment))


def process_daily_forecast(
    chart, day: datetime, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG
) -> ProcessedDailyForecast:
    raw = daily_forecast(chart, day)
    profection = annual_profection(chart, age_at(chart, raw.date))
    raw_scores = Scores(
        overall=float(raw.overall_score),
        dimensions=dimension_scores(raw.transit_aspects, profection.house),
    )
    ctx = build_factor_context(
        chart, raw.date, raw_scores,
        profection=profection, daily=raw, transit_aspects=raw.transit_aspects,
    )
    result = apply_influence_factors(ctx, config)
    return ProcessedDailyForecast(
        forecast=raw,
        raw_score=float(raw.overall_score),
        raw_dimensions=dict(raw.dimensions),
        overall_score=result.adjusted.overall,
        dimensions=dict(result.adjusted.dimensions),
        factor_result=result,
        top_factors=_by_magnitude(result.applied)[:5],
    )


def _dedupe(factors: Sequence[AppliedFactor]) -> List[AppliedFactor]:
    seen = set()
    out: List[AppliedFactor] = []
    for f in _by_magnitude(factors):
        key = (f.category, f.name)
        if key not in seen:
            seen.add(key)
            out.append(f)
    return out


def _weekly_theme(positive: Sequence[AppliedFactor], negative: Sequence[AppliedFactor]) -> str:
    pos_cats = {f.category for f in positive}
    neg_cats = {f.category for f in negative}
    themes = [t for c, t in _POSITIVE_THEMES if c in pos_cats]
    themes += [t for c, t in _NEGATIVE_THEMES if c in neg_cats]
    return " · ".join(themes[:2]) if themes else _STEADY_THEME


def _weekly_insight(
    days: Sequence[ProcessedDailyForecast],
    positive: Sequence[AppliedFactor],
    negative: Sequence[AppliedFactor],
) -> str:
    avg = sum(d.overall_score for d in days) / len(days)
    best = max(days, key=lambda d: d.overall_score)
    worst = min(days, key=lambda d: d.overall_score)
    best_day, worst_day = _WEEKDAYS[best.date.weekday()], _WEEKDAYS[worst.date.weekday()]
    if avg >= 70:
        text = f"Energy runs high this week. {best_day} is best for pushing important matters"
    elif avg >= 50:
        text = f"A steady week. {best_day} is the best day for action; rest on {worst_day}"
    else:
        text = f"Manage your energy this week. Rest on {worst_day} and act on {best_day}"
    if positive:
        text += f". Favourable: {positive[0].name}"
    if negative:
        text += f". Watch: {negative[0].name}"
    return text


def process_weekly_forecast(
    chart, start: datetime, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG
) -> ProcessedWeeklyForecast:
    first = day_start(start)
    days = [process_daily_forecast(chart, first + timedelta(days=i), config) for i in range(7)]

    positives = [f for d in days for f in d.factor_result.applied if f.adjustment > 0]
    negatives = [f for d in days for f in d.factor_result.applied if f.adjustment < 0]
    top_pos = _dedupe(positives)[:5]
    top_neg = _dedupe(negatives)[:5]

    return ProcessedWeeklyForecast(
        start=first,
        end=first + timedelta(days=6),
        days=days,
        weekly_theme=_weekly_theme(top_pos, top_neg),
        weekly_insight=_weekly_insight(days, top_pos, top_neg),
        overall_score=sum(d.overall_score for d in days) / len(days),
        positive_factors=top_pos,
        negative_factors=top_neg,
        dimension_trends={dim: [d.dimensions.get(dim, 0.0) for d in days] for dim in DIMENSIONS},
    )

# ─────────────────────────────────────────────────────────────────────────────
# Life trend
# ─────────────────────────────────────────────────────────────────────────────

def _cycle(chart, age: int, period: float) -> Dict[str, Any]:
    n = math.floor(age / period) + 1
    return {
        "current": age % period,
        "next_major": chart.birth.when + timedelta(days=n * period * DAYS_PER_YEAR),
    }


def process_life_trend(
    chart,
    start_year: int,
    end_year: int,
    config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG,
    *,
    now: datetime,
    resolution: str = "yearly",
) -> ProcessedLifeTrend:
    trend = life_trend(chart, start_year, end_year, resolution)
    point_factors: Dict[str, FactorResult] = {}
    points = []
    for p in trend.points:
        if not p.is_major_transit:
            points.append(p)
            continue
        ctx = build_factor_context(
            chart, p.date, Scores(p.overall_score, dict(p.dimensions)),
            profection=annual_profection(chart, p.age),
        )
        result = apply_influence_factors(ctx, config)
        point_factors[p.date.isoformat()] = result
        points.append(replace(p, overall_score=result.adjusted.overall))

    age = age_at(chart, now)
    log.debug("processed life trend: %d major-transit points re-scored", len(point_factors))
    return ProcessedLifeTrend(
        trend=replace(trend, points=points),
        point_factors=point_factors,
        cyclic_factors={
            "saturn_cycle": _cycle(chart, age, SATURN_CYCLE_Y),
            "jupiter_cycle": _cycle(chart, age, JUPITER_CYCLE_Y),
        },
    )

# ─────────────────────────────────────────────────────────────────────────────
# Snapshot
# ─────────────────────────────────────────────────────────────────────────────

def processed_user_snapshot(
    chart, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG, *, now: datetime
) -> ProcessedUserSnapshot:
    age = age_at(chart, now)
    profection = annual_profection(chart, age)
    today = process_daily_forecast(chart, now, config)
    week = process_weekly_forecast(chart, now, config)
    return ProcessedUserSnapshot(
        timestamp=now,
        natal={
            "sun_sign": chart.planets["Sun"].sign,
            "moon_sign": chart.planets["Moon"].sign,
            "rising_sign": sign_of(chart.ascendant),
            "dominant_bodies": list(chart.dominant_bodies),
            "chart_ruler": chart.chart_ruler,
        },
        current={
            "age": profection.age,
            "profection_house": profection.house,
            "profection_theme": profection.house_theme,
            "lord_of_year": profection.lord,
            "lord_of_year_sign": profection.lord_natal_sign,
        },
        today=today,
        week=week,
        active_factors=list(today.factor_result.applied),
        factor_config=config,
    )

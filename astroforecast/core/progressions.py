# astroforecast/core/progressions.py
# -*- coding: utf-8 -*-
"""
Secondary progressions (day-for-a-year)

Mapping
-------
    years_from_birth = (target - birth) / 365.25 d
    progressed_date  = birth + years_from_birth days

Every body is recomputed at the progressed instant; sign and house changes are
flagged against the natal placement (natal cusps). The progressed ascendant and
midheaven use solar arc: natal angle + the progressed Sun's movement.

The progressed lunar phase buckets wrap(Moon - Sun) into eight 45° phases,
starting at 0° (new). The same phase ids are used by the daily moon phase and
the lunar-phase influence factor.

Public API
----------
progressed_chart(chart, target) -> ProgressedChart
lunar_phase(sun_lon, moon_lon) -> LunarPhase
progression_events(chart, from_year, to_year) -> [dict]
progression_timeline(chart, start_year, end_year) -> [dict]
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging

from astroforecast.core.constants import BODIES, DAYS_PER_YEAR, sign_of, wrap_deg
from astroforecast.core.ephemeris import all_positions, dt_utc, house_of, julian_day
from astroforecast.core.aspects import AspectData, find_transit_aspects

log = logging.getLogger(__name__)

__all__ = [
    "LUNAR_PHASES", "LunarPhase", "ProgressedPlanet", "ProgressedChart",
    "lunar_phase", "progressed_chart", "progression_events", "progression_timeline",
    "anniversary",
]

# id, display name, description, keywords
LUNAR_PHASES: Tuple[Tuple[str, str, str, Tuple[str, ...]], ...] = (
    ("new", "New Moon",
     "A seed phase: instinctive new beginnings, projecting intentions forward.",
     ("beginnings", "intention", "instinct")),
    ("crescent", "Crescent Moon",
     "Breaking away from the past; effort against inertia.",
     ("breakthrough", "struggle", "momentum")),
    ("first_quarter", "First Quarter",
     "Crisis in action: decisions and building structures.",
     ("action", "decision", "building")),
    ("gibbous", "Gibbous Moon",
     "Refinement and analysis before fruition.",
     ("refinement", "perfection", "preparation")),
    ("full", "Full Moon",
     "Culmination and illumination; relationships mirror the self.",
     ("culmination", "awareness", "fulfilment")),
    ("disseminating", "Disseminating Moon",
     "Sharing what was learned; teaching and distributing.",
     ("sharing", "teaching", "communication")),
    ("last_quarter", "Last Quarter",
     "Crisis in consciousness: letting go of outworn forms.",
     ("release", "reorientation", "revision")),
    ("balsamic", "Balsamic Moon",
     "Endings, rest and surrender in preparation for the next cycle.",
     ("endings", "rest", "surrender")),
)


@dataclass(frozen=True)
class LunarPhase:
    phase: str
    angle: float
    name: str
    description: str
    keywords: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["keywords"] = list(self.keywords)
        return d


def lunar_phase(sun_lon: float, moon_lon: float) -> LunarPhase:
    angle = wrap_deg(moon_lon - sun_lon)
    pid, name, desc, kws = LUNAR_PHASES[min(7, int(angle // 45.0))]
    return LunarPhase(phase=pid, angle=angle, name=name, description=desc, keywords=kws)


@dataclass
class ProgressedPlanet:
    body: str
    natal_longitude: float
    longitude: float
    speed: Optional[float]
    sign: str
    house: int
    movement: float          # wrap(progressed - natal)
    sign_changed: bool
    house_changed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProgressedChart:
    target_date: datetime
    progressed_date: datetime
    years_from_birth: float
    days_progressed: float
    planets: Dict[str, ProgressedPlanet]
    progressed_ascendant: float
    progressed_midheaven: float
    lunar_phase: LunarPhase
    aspects: List[AspectData] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_date": self.target_date.isoformat(),
            "progressed_date": self.progressed_date.isoformat(),
            "years_from_birth": self.years_from_birth,
            "days_progressed": self.days_progressed,
            "planets": {k: p.to_dict() for k, p in self.planets.items()},
            "progressed_ascendant": self.progressed_ascendant,
            "progressed_midheaven": self.progressed_midheaven,
            "lunar_phase": self.lunar_phase.to_dict(),
            "aspects": [a.to_dict() for a in self.aspects],
        }


def progressed_chart(chart, target: datetime) -> ProgressedChart:
    birth = dt_utc(chart.birth.when)
    years = (dt_utc(target) - birth).total_seconds() / 86400.0 / DAYS_PER_YEAR
    prog_date = birth + timedelta(days=years)
    positions = all_positions(julian_day(prog_date), BODIES, with_speed=True)
    cusps = chart.cusps

    planets: Dict[str, ProgressedPlanet] = {}
    for name, pos in positions.items():
        natal = chart.planets[name]
        sign = sign_of(pos.longitude)
        house = house_of(pos.longitude, cusps)
        planets[name] = ProgressedPlanet(
            body=name,
            natal_longitude=natal.longitude,
            longitude=pos.longitude,
            speed=pos.speed,
            sign=sign,
            house=house,
            movement=wrap_deg(pos.longitude - natal.longitude),
            sign_changed=sign != natal.sign,
            house_changed=house != natal.house,
        )

    arc = planets["Sun"].movement
    return ProgressedChart(
        target_date=target,
        progressed_date=prog_date,
        years_from_birth=years,
        days_progressed=years,
        planets=planets,
        progressed_ascendant=wrap_deg(chart.ascendant + arc),
        progressed_midheaven=wrap_deg(chart.midheaven + arc),
        lunar_phase=lunar_phase(planets["Sun"].longitude, planets["Moon"].longitude),
        aspects=find_transit_aspects(planets, chart.planets),
    )


def anniversary(when: datetime, year: int) -> datetime:
    """Same month/day/time in `year`; 29 Feb falls back to 28 Feb."""
    try:
        return when.replace(year=year)
    except ValueError:
        return when.replace(year=year, day=28)


def _yearly(chart, start_year: int, end_year: int) -> List[Tuple[int, ProgressedChart]]:
    birth_year = chart.birth.when.year
    return [
        (y, progressed_chart(chart, anniversary(chart.birth.when, y)))
        for y in range(max(start_year, birth_year), end_year + 1)
    ]


def progression_events(chart, from_year: int, to_year: int) -> List[Dict[str, Any]]:
    """Progressed Sun/Moon ingresses and lunar-phase changes, year over previous year."""
    samples = _yearly(chart, from_year - 1, to_year)
    events: List[Dict[str, Any]] = []
    for (_, prev), (year, cur) in zip(samples, samples[1:]):
        if year < from_year:
            continue
        for body in ("Sun", "Moon"):
            before, after = prev.planets[body].sign, cur.planets[body].sign
            if before != after:
                events.append({
                    "year": year,
                    "type": f"{body.lower()}_ingress",
                    "body": body,
                    "from": before,
                    "to": after,
                    "description": f"Progressed {body} moves from {before} into {after}",
                })
        if prev.lunar_phase.phase != cur.lunar_phase.phase:
            events.append({
                "year": year,
                "type": "lunar_phase",
                "body": "Moon",
                "from": prev.lunar_phase.phase,
                "to": cur.lunar_phase.phase,
                "description": f"Progressed lunar phase turns {cur.lunar_phase.name}",
            })
    log.debug("progression events %d..%d: %d", from_year, to_year, len(events))
    return events


def progression_timeline(chart, start_year: int, end_year: int) -> List[Dict[str, Any]]:
    birth_year = chart.birth.when.year
    return [
        {
            "year": year,
            "age": year - birth_year,
            "sun_sign": pc.planets["Sun"].sign,
            "moon_sign": pc.planets["Moon"].sign,
            "lunar_phase": pc.lunar_phase.phase,
        }
        for year, pc in _yearly(chart, start_year, end_year)
    ]

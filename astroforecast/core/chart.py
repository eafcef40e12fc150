# astroforecast/core/chart.py
# -*- coding: utf-8 -*-
"""
Chart constructor

Builds natal and transit charts from a timestamp + location:
- one ephemeris call per body (with speed, so retrograde is real)
- sign / sign degree / equal house / essential dignity per placement
- major aspects + compound patterns
- element & modality balance (body-weighted)
- up to three dominant bodies and the chart ruler (modern ruler of the rising sign)

Charts are frozen and hash by identity; profection caching keys on that.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from astroforecast.core.constants import (
    ANGULAR_HOUSES,
    BALANCE_WEIGHTS,
    BODIES,
    BODY_KEYWORDS,
    ELEMENTS,
    HOUSE_THEMES,
    MAJOR_ASPECTS,
    MODALITIES,
    SIGN_ELEMENT,
    SIGN_KEYWORDS,
    SIGN_MODALITY,
    SIGN_RULER,
    dignity_of,
    sign_degree,
    sign_of,
)
from astroforecast.core.ephemeris import (
    BodyPosition,
    UnknownBody,
    all_positions,
    canon_body,
    house_cusps,
    house_of,
    julian_day,
    midheaven_deg,
)
from astroforecast.core.aspects import AspectData, AspectPattern, detect_patterns, find_aspects
from astroforecast.utils import metrics

log = logging.getLogger(__name__)

__all__ = [
    "BirthData", "PlanetPlacement", "HouseCusp", "NatalChart",
    "build_natal_chart", "build_transit_chart", "placement_for",
    "dominant_element", "dominant_modality", "chart_summary", "planet_interpretation",
]

# Yods need quincunxes; charts keep majors only in `aspects`.
_PATTERN_ASPECTS = MAJOR_ASPECTS + ("quincunx",)


# ───────────────────────────── records ─────────────────────────────
@dataclass(frozen=True)
class BirthData:
    when: datetime
    latitude: float
    longitude: float
    timezone: str = "UTC"          # advisory label only
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "when": self.when.isoformat(),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timezone": self.timezone,
            "name": self.name,
        }


@dataclass
class PlanetPlacement:
    body: str
    longitude: float
    latitude: float
    speed: Optional[float]
    sign: str
    sign_degree: float
    house: int
    retrograde: bool
    dignity: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HouseCusp:
    house: int
    longitude: float
    sign: str
    sign_degree: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, eq=False)
class NatalChart:
    birth: BirthData
    julian_day: float
    kind: str
    planets: Dict[str, PlanetPlacement]
    houses: List[HouseCusp]
    ascendant: float
    midheaven: float
    aspects: List[AspectData] = field(default_factory=list)
    patterns: List[AspectPattern] = field(default_factory=list)
    element_balance: Dict[str, float] = field(default_factory=dict)
    modality_balance: Dict[str, float] = field(default_factory=dict)
    dominant_bodies: List[str] = field(default_factory=list)
    chart_ruler: str = ""

    @property
    def cusps(self) -> List[float]:
        return [h.longitude for h in self.houses]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "birth": self.birth.to_dict(),
            "julian_day": self.julian_day,
            "kind": self.kind,
            "planets": {k: p.to_dict() for k, p in self.planets.items()},
            "houses": [h.to_dict() for h in self.houses],
            "ascendant": self.ascendant,
            "midheaven": self.midheaven,
            "aspects": [a.to_dict() for a in self.aspects],
            "patterns": [p.to_dict() for p in self.patterns],
            "element_balance": dict(self.element_balance),
            "modality_balance": dict(self.modality_balance),
            "dominant_bodies": list(self.dominant_bodies),
            "chart_ruler": self.chart_ruler,
        }


# ───────────────────────────── construction ─────────────────────────────
def _placement(pos: BodyPosition, cusps: List[float]) -> PlanetPlacement:
    sign = sign_of(pos.longitude)
    return PlanetPlacement(
        body=pos.body,
        longitude=pos.longitude,
        latitude=pos.latitude,
        speed=pos.speed,
        sign=sign,
        sign_degree=sign_degree(pos.longitude),
        house=house_of(pos.longitude, cusps),
        retrograde=pos.speed is not None and pos.speed < 0.0,
        dignity=dignity_of(pos.body, sign),
    )


def _balance(planets: Dict[str, PlanetPlacement], table: Dict[str, str], keys) -> Dict[str, float]:
    out = {k: 0.0 for k in keys}
    for p in planets.values():
        out[table[p.sign]] += BALANCE_WEIGHTS.get(p.body, 1.0)
    return out


def _dominant_bodies(planets: Dict[str, PlanetPlacement], aspects: List[AspectData]) -> List[str]:
    def score(p: PlanetPlacement) -> float:
        n_aspects = sum(1 for a in aspects if a.involves(p.body))
        return p.dignity * 2 + n_aspects + (2 if p.house in ANGULAR_HOUSES else 0)

    ranked = sorted(planets.values(), key=lambda p: -score(p))  # stable: ties keep body order
    return [p.body for p in ranked[:3]]


def _build(birth: BirthData, kind: str) -> NatalChart:
    jd = julian_day(birth.when)
    positions = all_positions(jd, BODIES, with_speed=True)
    cusps = house_cusps(jd, birth.latitude, birth.longitude)
    asc = cusps[0]
    mc = midheaven_deg(jd, birth.longitude)

    planets = {name: _placement(pos, cusps) for name, pos in positions.items()}
    houses = [
        HouseCusp(house=i + 1, longitude=c, sign=sign_of(c), sign_degree=sign_degree(c))
        for i, c in enumerate(cusps)
    ]
    aspects = find_aspects(positions, MAJOR_ASPECTS)
    patterns = detect_patterns(positions, find_aspects(positions, _PATTERN_ASPECTS))

    chart = NatalChart(
        birth=birth,
        julian_day=jd,
        kind=kind,
        planets=planets,
        houses=houses,
        ascendant=asc,
        midheaven=mc,
        aspects=aspects,
        patterns=patterns,
        element_balance=_balance(planets, SIGN_ELEMENT, ELEMENTS),
        modality_balance=_balance(planets, SIGN_MODALITY, MODALITIES),
        dominant_bodies=_dominant_bodies(planets, aspects),
        chart_ruler=SIGN_RULER[sign_of(asc)],
    )
    log.debug("built %s chart jd=%.5f asc=%.3f aspects=%d", kind, jd, asc, len(aspects))
    return chart


@metrics.timed("natal")
def build_natal_chart(birth: BirthData) -> NatalChart:
    return _build(birth, "natal")


@metrics.timed("transit")
def build_transit_chart(when: datetime, latitude: float, longitude: float) -> NatalChart:
    return _build(BirthData(when=when, latitude=latitude, longitude=longitude), "transit")


# ───────────────────────────── queries ─────────────────────────────
def placement_for(chart: NatalChart, body: str) -> PlanetPlacement:
    name = canon_body(body)
    try:
        return chart.planets[name]
    except KeyError:
        raise UnknownBody(f"{name} not present in chart", body=name) from None


def dominant_element(chart: NatalChart) -> str:
    return max(ELEMENTS, key=lambda e: chart.element_balance.get(e, 0.0))


def dominant_modality(chart: NatalChart) -> str:
    return max(MODALITIES, key=lambda m: chart.modality_balance.get(m, 0.0))


def chart_summary(chart: NatalChart) -> str:
    sun = chart.planets["Sun"]
    moon = chart.planets["Moon"]
    rising = sign_of(chart.ascendant)
    lines = [
        f"Sun in {sun.sign} (house {sun.house}), Moon in {moon.sign} (house {moon.house}), {rising} rising.",
        f"Dominant element: {dominant_element(chart)}; dominant modality: {dominant_modality(chart)}.",
        f"Chart ruler: {chart.chart_ruler}.",
    ]
    if chart.dominant_bodies:
        lines.append(f"Most prominent bodies: {', '.join(chart.dominant_bodies)}.")
    if chart.patterns:
        kinds = sorted({p.kind.replace('_', ' ') for p in chart.patterns})
        lines.append(f"Patterns: {', '.join(kinds)}.")
    return "\n".join(lines)


def planet_interpretation(placement: PlanetPlacement) -> Dict[str, Any]:
    body_kw = BODY_KEYWORDS.get(placement.body, ())
    sign_kw = SIGN_KEYWORDS[placement.sign]
    if placement.dignity >= 4:
        strength = "strongly placed"
    elif placement.dignity <= -4:
        strength = "challenged"
    else:
        strength = "neutrally placed"
    retro = " It is retrograde, turning its expression inward." if placement.retrograde else ""
    return {
        "title": f"{placement.body} in {placement.sign}",
        "keywords": list(body_kw[:2]) + list(sign_kw[:2]),
        "description": (
            f"{placement.body} ({', '.join(body_kw)}) expresses through {placement.sign} "
            f"({', '.join(sign_kw)}) in the house of {HOUSE_THEMES[placement.house]}; "
            f"it is {strength}.{retro}"
        ),
    }

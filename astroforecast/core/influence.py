# astroforecast/core/influence.py
# -*- coding: utf-8 -*-
"""
Influence factor pipeline

Turns raw scores + astrological context into adjusted, explained scores.

Pipeline
--------
Generators run in a fixed order; each is skipped when its category weight is 0:

    1 dignity          natal Sun..Mars essential dignity
    2 retrograde       transiting Mercury..Saturn retrograde now
    3 aspect_phase     top-3 active transits, applying vs separating
    4 aspect_orb       near-exact (<1°) transits among the top two
    5 outer_planet     Saturn cycle / Uranus opposition / Chiron return by age
    6 profection_lord  lord-of-year dignity and natal house
    7 lunar_phase      phase id -> overall nudge
    8 planetary_hour   hour ruler -> overall + boost dimension
    9 personal         Moon resonance, lord among dominant bodies
   10 custom           caller rules (condition + effects), priority ordered

Adjustments are summed per target ("overall" or a dimension), then overall is
clamped to [-100, 100] and dimensions to [0, 100]. No randomness: the same
(context, config) always yields the same factor list and scores.

Config
------
InfluenceFactorConfig is frozen and passed by value. Build it with
create_factor_config / dimension_focus_config / load_factor_config; all of
them validate and raise InfluenceConfigError on bad input.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
import logging
import math

from astroforecast.core.constants import ASPECTS, DIMENSIONS, SIGN_ELEMENT, SIGNS, clamp
from astroforecast.core.ephemeris import BodyPosition, body_position, canon_body, dt_utc, julian_day
from astroforecast.core.aspects import AspectData
from astroforecast.utils import metrics
from astroforecast.utils.config import load_config

log = logging.getLogger(__name__)

__all__ = [
    "InfluenceConfigError",
    "WEIGHT_CATEGORIES", "DEFAULT_WEIGHTS", "PRESETS", "DEFAULT_FACTOR_CONFIG",
    "Scores", "CurrentState", "FactorContext", "AppliedFactor", "FactorResult",
    "Always", "DateRange", "TransitPresent", "PlanetInSign", "AspectActive", "CustomPredicate",
    "Condition", "always", "date_range", "transit_present", "planet_in_sign", "aspect_active",
    "custom_predicate", "condition_from_dict",
    "CustomFactor", "InfluenceFactorConfig",
    "create_custom_factor", "custom_factor_from_dict",
    "create_factor_config", "dimension_focus_config", "load_factor_config",
    "apply_influence_factors", "adjusted_score", "factor_summary",
]


class InfluenceConfigError(ValueError):
    code = "invalid_factor_config"

    def __init__(self, message: str):
        metrics.error(self.code)
        super().__init__(f"{self.code}: {message}")


# ─────────────────────────────────────────────────────────────────────────────
# Weights & presets
# ─────────────────────────────────────────────────────────────────────────────

WEIGHT_CATEGORIES: Tuple[str, ...] = (
    "dignity", "retrograde", "aspect_phase", "aspect_orb", "outer_planet",
    "profection_lord", "lunar_phase", "planetary_hour", "personal", "custom",
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "dignity": 0.8,
    "retrograde": 0.6,
    "aspect_phase": 0.7,
    "aspect_orb": 0.9,
    "outer_planet": 0.85,
    "profection_lord": 0.75,
    "lunar_phase": 0.5,
    "planetary_hour": 0.3,
    "personal": 0.8,
    "custom": 1.0,
}

PRESETS: Dict[str, Dict[str, float]] = {
    "conservative": {
        "dignity": 0.5, "retrograde": 0.3, "aspect_phase": 0.4, "aspect_orb": 0.6,
        "outer_planet": 0.5, "profection_lord": 0.4, "lunar_phase": 0.3,
        "planetary_hour": 0.1, "personal": 0.5, "custom": 1.0,
    },
    "standard": dict(DEFAULT_WEIGHTS),
    "aggressive": {
        "dignity": 1.0, "retrograde": 0.9, "aspect_phase": 0.9, "aspect_orb": 1.0,
        "outer_planet": 1.0, "profection_lord": 0.9, "lunar_phase": 0.7,
        "planetary_hour": 0.5, "personal": 1.0, "custom": 1.0,
    },
}

# Per-dimension weight boosts on top of the standard preset.
_DIMENSION_FOCUS: Dict[str, Dict[str, float]] = {
    "career": {"profection_lord": 1.0, "dignity": 1.0, "outer_planet": 0.9},
    "relationship": {"lunar_phase": 0.9, "personal": 1.0, "aspect_phase": 0.9},
    "health": {"retrograde": 0.9, "planetary_hour": 0.5, "lunar_phase": 0.7},
    "finance": {"profection_lord": 0.9, "dignity": 0.9, "outer_planet": 0.8},
    "spiritual": {"outer_planet": 1.0, "lunar_phase": 0.8, "personal": 0.9},
}

_TARGETS = ("overall",) + DIMENSIONS

# ─────────────────────────────────────────────────────────────────────────────
# Context & results
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Scores:
    overall: float
    dimensions: Mapping[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"overall": self.overall, "dimensions": dict(self.dimensions)}


@dataclass(frozen=True)
class CurrentState:
    age: int
    profection_house: int
    lord_of_year: str
    lunar_phase: str          # phase id (new, crescent, ...)
    planetary_day: str
    planetary_hour: str
    moon_sign: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FactorContext:
    chart: Any                                  # NatalChart
    when: datetime
    raw_scores: Scores
    state: CurrentState
    active_transits: Tuple[AspectData, ...] = ()
    # Optional precomputed transiting positions (with speed) at `when`.
    transit_positions: Optional[Mapping[str, BodyPosition]] = None


@dataclass
class AppliedFactor:
    id: str
    name: str
    category: str
    adjustment: float
    dimension: str            # "overall" or a dimension name
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FactorResult:
    adjusted: Scores
    applied: List[AppliedFactor]
    total_adjustment: float
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adjusted": self.adjusted.to_dict(),
            "applied": [f.to_dict() for f in self.applied],
            "total_adjustment": self.total_adjustment,
            "summary": self.summary,
        }

# ─────────────────────────────────────────────────────────────────────────────
# Conditions (tagged variant)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Always:
    kind: ClassVar[str] = "always"

    def matches(self, ctx: FactorContext) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind}


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime
    kind: ClassVar[str] = "date_range"

    def matches(self, ctx: FactorContext) -> bool:
        return dt_utc(self.start) <= dt_utc(ctx.when) <= dt_utc(self.end)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass(frozen=True)
class TransitPresent:
    body: str
    kind: ClassVar[str] = "transit"

    def matches(self, ctx: FactorContext) -> bool:
        return any(a.involves(self.body) for a in ctx.active_transits)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "body": self.body}


@dataclass(frozen=True)
class PlanetInSign:
    body: str
    sign: str
    kind: ClassVar[str] = "planet_in_sign"

    def matches(self, ctx: FactorContext) -> bool:
        p = ctx.chart.planets.get(self.body)
        return p is not None and p.sign == self.sign

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "body": self.body, "sign": self.sign}


@dataclass(frozen=True)
class AspectActive:
    body1: str
    body2: str
    aspect: Optional[str] = None
    kind: ClassVar[str] = "aspect"

    def matches(self, ctx: FactorContext) -> bool:
        pair = {self.body1, self.body2}
        for a in ctx.active_transits:
            if {a.body1, a.body2} == pair and (self.aspect is None or a.aspect == self.aspect):
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "body1": self.body1, "body2": self.body2, "aspect": self.aspect}


@dataclass(frozen=True)
class CustomPredicate:
    predicate: Callable[[FactorContext], bool]
    label: str = "custom"
    kind: ClassVar[str] = "custom"

    def matches(self, ctx: FactorContext) -> bool:
        return bool(self.predicate(ctx))

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "label": self.label}


Condition = Union[Always, DateRange, TransitPresent, PlanetInSign, AspectActive, CustomPredicate]


def always() -> Always:
    return Always()


def date_range(start: datetime, end: datetime) -> DateRange:
    if dt_utc(end) < dt_utc(start):
        raise InfluenceConfigError("date_range end precedes start")
    return DateRange(start, end)


def _body(name: Any) -> str:
    try:
        return canon_body(name)
    except ValueError as e:
        raise InfluenceConfigError(str(e)) from e


def _sign(name: Any) -> str:
    s = str(name).strip().capitalize()
    if s not in SIGNS:
        raise InfluenceConfigError(f"unknown sign {name!r}")
    return s


def transit_present(body: str) -> TransitPresent:
    return TransitPresent(_body(body))


def planet_in_sign(body: str, sign: str) -> PlanetInSign:
    return PlanetInSign(_body(body), _sign(sign))


def aspect_active(body1: str, body2: str, aspect: Optional[str] = None) -> AspectActive:
    if aspect is not None and aspect not in ASPECTS:
        raise InfluenceConfigError(f"unknown aspect {aspect!r}")
    return AspectActive(_body(body1), _body(body2), aspect)


def custom_predicate(predicate: Callable[[FactorContext], bool], label: str = "custom") -> CustomPredicate:
    if not callable(predicate):
        raise InfluenceConfigError("custom condition needs a callable predicate")
    return CustomPredicate(predicate, label)


def _as_datetime(v: Any) -> datetime:
    if isinstance(v, datetime):
        return v
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day)
    if isinstance(v, str):
        try:
            return datetime.fromisoformat(v)
        except ValueError as e:
            raise InfluenceConfigError(f"bad ISO timestamp {v!r}") from e
    raise InfluenceConfigError(f"expected a timestamp, got {type(v).__name__}")


def condition_from_dict(d: Optional[Mapping[str, Any]]) -> Condition:
    """Build a data-defined condition; `custom` predicates cannot come from data."""
    if not d:
        return always()
    kind = d.get("type", "always")
    if kind == "always":
        return always()
    if kind == "date_range":
        return date_range(_as_datetime(d.get("start")), _as_datetime(d.get("end")))
    if kind == "transit":
        return transit_present(d.get("body") or d.get("planet"))
    if kind == "planet_in_sign":
        return planet_in_sign(d.get("body") or d.get("planet"), d.get("sign"))
    if kind == "aspect":
        return aspect_active(d.get("body1"), d.get("body2"), d.get("aspect"))
    if kind == "custom":
        raise InfluenceConfigError("custom predicates must be supplied in code, not data")
    raise InfluenceConfigError(f"unknown condition type {kind!r}")

# ─────────────────────────────────────────────────────────────────────────────
# Custom factors & config
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CustomFactor:
    id: str
    name: str
    description: str
    condition: Condition
    effects: Mapping[str, float]
    priority: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "condition": self.condition.to_dict(),
            "effects": dict(self.effects),
            "priority": self.priority,
        }


def _check_effects(effects: Mapping[str, Any]) -> Dict[str, float]:
    out: Dict[str, float] = {}
    for k, v in effects.items():
        if k not in _TARGETS:
            raise InfluenceConfigError(f"unknown effect target {k!r}; expected one of {_TARGETS}")
        try:
            x = float(v)
        except (TypeError, ValueError):
            raise InfluenceConfigError(f"effect {k!r} is not a number: {v!r}") from None
        if not math.isfinite(x) or not -1.0 <= x <= 1.0:
            raise InfluenceConfigError(f"effect {k!r}={x} outside [-1, 1]")
        out[k] = x
    return out


def create_custom_factor(
    id: str,
    name: str,
    description: str,
    effects: Mapping[str, float],
    condition: Optional[Condition] = None,
    priority: int = 0,
) -> CustomFactor:
    return CustomFactor(
        id=str(id),
        name=str(name),
        description=str(description),
        condition=condition if condition is not None else always(),
        effects=MappingProxyType(_check_effects(effects)),
        priority=int(priority),
    )


def custom_factor_from_dict(d: Mapping[str, Any]) -> CustomFactor:
    for k in ("id", "name"):
        if not d.get(k):
            raise InfluenceConfigError(f"custom factor missing {k!r}")
    return create_custom_factor(
        d["id"],
        d["name"],
        d.get("description", ""),
        d.get("effects") or {},
        condition_from_dict(d.get("condition")),
        d.get("priority", 0),
    )


@dataclass(frozen=True)
class InfluenceFactorConfig:
    enabled: bool = True
    weights: Mapping[str, float] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_WEIGHTS)))
    custom_factors: Tuple[CustomFactor, ...] = ()

    def weight(self, category: str) -> float:
        return float(self.weights.get(category, 0.0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "weights": dict(self.weights),
            "custom_factors": [c.to_dict() for c in self.custom_factors],
        }


def create_factor_config(
    preset: str = "standard",
    weights: Optional[Mapping[str, float]] = None,
    custom_factors: Iterable[Union[CustomFactor, Mapping[str, Any]]] = (),
    enabled: bool = True,
) -> InfluenceFactorConfig:
    key = str(preset).strip().lower()
    if key not in PRESETS:
        raise InfluenceConfigError(f"unknown preset {preset!r}; expected one of {sorted(PRESETS)}")
    merged = dict(PRESETS[key])
    for k, v in (weights or {}).items():
        if k not in WEIGHT_CATEGORIES:
            raise InfluenceConfigError(f"unknown weight category {k!r}")
        try:
            w = float(v)
        except (TypeError, ValueError):
            raise InfluenceConfigError(f"weight {k!r} is not a number: {v!r}") from None
        if not math.isfinite(w) or not 0.0 <= w <= 1.0:
            raise InfluenceConfigError(f"weight {k!r}={w} outside [0, 1]")
        merged[k] = w
    customs = tuple(
        c if isinstance(c, CustomFactor) else custom_factor_from_dict(c) for c in custom_factors
    )
    return InfluenceFactorConfig(
        enabled=bool(enabled), weights=MappingProxyType(merged), custom_factors=customs
    )


def dimension_focus_config(dimension: str, **kwargs: Any) -> InfluenceFactorConfig:
    if dimension not in _DIMENSION_FOCUS:
        raise InfluenceConfigError(f"unknown dimension {dimension!r}; expected one of {DIMENSIONS}")
    weights = dict(kwargs.pop("weights", None) or {})
    weights.update(_DIMENSION_FOCUS[dimension])
    return create_factor_config(weights=weights, **kwargs)


def load_factor_config(path: str) -> InfluenceFactorConfig:
    """
    YAML document -> InfluenceFactorConfig (preset, then weight overrides, then custom factors).

        preset: conservative
        enabled: true
        weights: {retrograde: 0.9}
        custom_factors:
          - id: saturn_watch
            name: Saturn watch
            effects: {career: -0.5}
            condition: {type: transit, body: Saturn}
    """
    cfg = load_config(path)
    entries: List[Mapping[str, Any]] = []
    for raw in cfg.get("custom_factors") or []:
        if not isinstance(raw, Mapping):
            metrics.warn("custom_factor_skipped")
            log.warning("skipping non-mapping custom factor entry in %s: %r", path, raw)
            continue
        entries.append(raw)
    config = create_factor_config(
        preset=cfg.get("preset", "standard"),
        weights=cfg.get("weights") or {},
        custom_factors=entries,
        enabled=cfg.get("enabled", True),
    )
    log.debug("loaded factor config from %s: enabled=%s customs=%d",
              path, config.enabled, len(config.custom_factors))
    return config


DEFAULT_FACTOR_CONFIG = create_factor_config()

# ─────────────────────────────────────────────────────────────────────────────
# Generators
# ─────────────────────────────────────────────────────────────────────────────

_DIGNITY_LABEL = {5: "domicile", 4: "exaltation", -5: "detriment", -4: "fall"}

_RETRO_PENALTY: Dict[str, Tuple[str, float]] = {
    "Mercury": ("career", -6.0),
    "Venus": ("relationship", -6.0),
    "Mars": ("health", -5.0),
    "Jupiter": ("finance", -4.0),
    "Saturn": ("career", -3.0),
}

_LUNAR_PHASE_EFFECT: Dict[str, Tuple[float, str]] = {
    "new": (5.0, "beginnings, seeding intentions"),
    "crescent": (-3.0, "struggle, breakthrough, building momentum"),
    "first_quarter": (8.0, "action, decision, commitment"),
    "gibbous": (5.0, "refinement, preparation, adjustment"),
    "full": (10.0, "culmination, harvest, illumination"),
    "disseminating": (3.0, "sharing, spreading, teaching"),
    "last_quarter": (-5.0, "release, reassessment, turning"),
    "balsamic": (-8.0, "endings, rest, preparation"),
}

_HOUR_EFFECT: Dict[str, Tuple[float, str]] = {
    "Sun": (8.0, "career"),
    "Moon": (3.0, "relationship"),
    "Mercury": (5.0, "career"),
    "Venus": (7.0, "relationship"),
    "Mars": (-3.0, "health"),
    "Jupiter": (10.0, "finance"),
    "Saturn": (-5.0, "career"),
    "Uranus": (2.0, "spiritual"),
    "Neptune": (0.0, "spiritual"),
    "Pluto": (-2.0, "spiritual"),
    "North Node": (3.0, "spiritual"),
    "Chiron": (0.0, "health"),
}

_LORD_HOUSE_DIMENSION = {2: "finance", 6: "health", 7: "relationship", 10: "career", 12: "spiritual"}


def _slug(s: str) -> str:
    return s.lower().replace(" ", "_")


def _dignity(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    for body in ("Sun", "Moon", "Mercury", "Venus", "Mars"):
        p = ctx.chart.planets[body]
        if p.dignity == 0:
            continue
        label = _DIGNITY_LABEL.get(p.dignity, "dignity")
        effect = "strengthened" if p.dignity > 0 else "weakened"
        out.append(AppliedFactor(
            id=f"dignity_{_slug(body)}",
            name=f"{body} dignity",
            category="dignity",
            adjustment=(p.dignity / 5.0) * 3.0 * w,
            dimension="overall",
            reason=f"{body} in {p.sign} ({label}): expression {effect}",
        ))
    return out


def _retrograde(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    jd: Optional[float] = None
    for body, (dim, value) in _RETRO_PENALTY.items():
        pos = (ctx.transit_positions or {}).get(body)
        if pos is None or pos.speed is None:
            if jd is None:
                jd = julian_day(ctx.when)
            pos = body_position(body, jd, with_speed=True)
        if pos.speed is not None and pos.speed < 0.0:
            out.append(AppliedFactor(
                id=f"retrograde_{_slug(body)}",
                name=f"{body} retrograde",
                category="retrograde",
                adjustment=value * w,
                dimension=dim,
                reason=f"{body} is retrograde ({pos.speed:+.3f}°/day): {dim} matters slow down for review",
            ))
    return out


def _aspect_phase(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    for a in ctx.active_transits[:3]:
        if a.applying:
            adj = a.weight * 1.1 * 0.8 * w
            reason = "applying: influence is building"
        else:
            adj = -(a.weight * 0.8 * 0.8 * w) * 0.5
            reason = "separating: influence is fading"
        out.append(AppliedFactor(
            id=f"aspect_phase_{_slug(a.body1)}_{_slug(a.body2)}",
            name=f"{a.body1} {a.aspect} {a.body2}",
            category="aspect_phase",
            adjustment=adj,
            dimension="overall",
            reason=reason,
        ))
    return out


def _aspect_orb(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    for a in ctx.active_transits[:2]:
        if a.orb >= 1.0:
            continue
        out.append(AppliedFactor(
            id=f"orb_exact_{_slug(a.body1)}_{_slug(a.body2)}",
            name="Exact aspect",
            category="aspect_orb",
            adjustment=a.weight * 0.5 * (a.strength ** 1.5) * w,
            dimension="overall",
            reason=f"{a.body1} {a.aspect} {a.body2} within {a.orb:.1f}°: very strong",
        ))
    return out


def _outer_planet(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    age = ctx.state.age
    saturn = age % 29.5
    if saturn < 1 or saturn > 28.5:
        out.append(AppliedFactor("saturn_return", "Saturn return", "outer_planet", -15.0 * w, "overall",
                                 "Saturn return: structural review and testing of life foundations"))
    elif abs(saturn - 7) < 1:
        out.append(AppliedFactor("saturn_square_1", "Saturn square", "outer_planet", -8.0 * w, "career",
                                 "Saturn square: career under pressure test"))
    elif abs(saturn - 14.75) < 1:
        out.append(AppliedFactor("saturn_opposition", "Saturn opposition", "outer_planet", -10.0 * w, "overall",
                                 "Saturn opposition: balancing duty and self"))
    if 41 <= age <= 43:
        out.append(AppliedFactor("uranus_opposition", "Uranus opposition", "outer_planet", -12.0 * w, "overall",
                                 "Mid-life awakening: urge to break routines"))
        out.append(AppliedFactor("uranus_opposition_spiritual", "Uranus awakening", "outer_planet", 15.0 * w,
                                 "spiritual", "A key period of spiritual awakening"))
    if 49 <= age <= 51:
        out.append(AppliedFactor("chiron_return", "Chiron return", "outer_planet", 10.0 * w, "spiritual",
                                 "Deep healing: integrating life's wounds"))
    return out


def _profection_lord(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    lord = ctx.state.lord_of_year
    p = ctx.chart.planets.get(lord)
    if p is None:
        return out
    if p.dignity != 0:
        strong = p.dignity > 0
        out.append(AppliedFactor(
            id="lord_dignity",
            name=f"Lord of the year {lord} dignity",
            category="profection_lord",
            adjustment=(p.dignity / 5.0) * 15.0 * w,
            dimension="overall",
            reason=(f"Lord of the year {lord} is strong in {p.sign}: the whole year is supported"
                    if strong else
                    f"Lord of the year {lord} is weak in {p.sign}: the year asks for more effort"),
        ))
    dim = _LORD_HOUSE_DIMENSION.get(p.house)
    if dim:
        out.append(AppliedFactor(
            id=f"lord_house_{dim}",
            name=f"Lord of the year in house {p.house}",
            category="profection_lord",
            adjustment=10.0 * w,
            dimension=dim,
            reason=f"{lord} sits in natal house {p.house}: {dim} comes into focus",
        ))
    return out


def _lunar_phase(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    effect = _LUNAR_PHASE_EFFECT.get(ctx.state.lunar_phase)
    if effect is None:
        return []
    value, keywords = effect
    name = ctx.state.lunar_phase.replace("_", " ")
    return [AppliedFactor("lunar_phase", f"{name} phase", "lunar_phase", value * w, "overall",
                          f"{name} phase: {keywords}")]


def _planetary_hour(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    ruler = ctx.state.planetary_hour
    effect = _HOUR_EFFECT.get(ruler)
    if effect is None:
        return []
    value, boost = effect
    return [
        AppliedFactor("planetary_hour", f"{ruler} hour", "planetary_hour", value * w, "overall",
                      f"Hour of {ruler}: " + ("energy lifts" if value > 0 else "proceed with care")),
        AppliedFactor(f"planetary_hour_boost_{boost}", f"{ruler} hour boost", "planetary_hour", 5.0 * w, boost,
                      f"Hour of {ruler} favours {boost} matters"),
    ]


def _personal(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    natal_moon = ctx.chart.planets["Moon"]
    today = ctx.state.moon_sign
    if today in SIGN_ELEMENT:
        element = SIGN_ELEMENT[natal_moon.sign]
        if element == SIGN_ELEMENT[today]:
            out.append(AppliedFactor("moon_element_resonance", "Moon element resonance", "personal",
                                     8.0 * w, "relationship",
                                     f"Today's Moon shares your natal Moon's {element} element"))
        if natal_moon.sign == today:
            out.append(AppliedFactor("moon_sign_exact", "Lunar return", "personal", 12.0 * w, "overall",
                                     f"The Moon returns to your natal Moon sign {today}: heightened sensitivity"))
    lord = ctx.state.lord_of_year
    if lord in ctx.chart.dominant_bodies:
        out.append(AppliedFactor("lord_is_dominant", "Dominant body rules the year", "personal", 10.0 * w,
                                 "overall", f"{lord} rules the year and is one of your chart's dominant bodies"))
    return out


def _custom(ctx: FactorContext, w: float, config: InfluenceFactorConfig) -> List[AppliedFactor]:
    out: List[AppliedFactor] = []
    for cf in sorted(config.custom_factors, key=lambda c: -c.priority):
        if not cf.condition.matches(ctx):
            continue
        for target, value in cf.effects.items():
            out.append(AppliedFactor(cf.id, cf.name, "custom", value * 20.0 * w, target,
                                     cf.description or cf.name))
    return out


_Generator = Callable[[FactorContext, float, InfluenceFactorConfig], List[AppliedFactor]]

_GENERATORS: Tuple[Tuple[str, _Generator], ...] = (
    ("dignity", _dignity),
    ("retrograde", _retrograde),
    ("aspect_phase", _aspect_phase),
    ("aspect_orb", _aspect_orb),
    ("outer_planet", _outer_planet),
    ("profection_lord", _profection_lord),
    ("lunar_phase", _lunar_phase),
    ("planetary_hour", _planetary_hour),
    ("personal", _personal),
    ("custom", _custom),
)

# ─────────────────────────────────────────────────────────────────────────────
# Pipeline
# ─────────────────────────────────────────────────────────────────────────────

def _summary(applied: Sequence[AppliedFactor]) -> str:
    pos = sorted((f for f in applied if f.adjustment > 0), key=lambda f: -f.adjustment)[:3]
    neg = sorted((f for f in applied if f.adjustment < 0), key=lambda f: f.adjustment)[:3]
    parts: List[str] = []
    if pos:
        parts.append("Favourable: " + ", ".join(f.name for f in pos))
    if neg:
        parts.append("Watch: " + ", ".join(f.name for f in neg))
    return "; ".join(parts) if parts else "No significant influence factors"


def apply_influence_factors(
    context: FactorContext, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG
) -> FactorResult:
    raw = context.raw_scores
    if not config.enabled:
        metrics.MET_PIPELINE.labels(enabled="false").inc()
        return FactorResult(
            adjusted=Scores(raw.overall, dict(raw.dimensions)),
            applied=[],
            total_adjustment=0.0,
            summary="Influence factors disabled",
        )
    metrics.MET_PIPELINE.labels(enabled="true").inc()

    applied: List[AppliedFactor] = []
    for category, gen in _GENERATORS:
        w = config.weight(category)
        if w <= 0:
            continue
        applied.extend(gen(context, w, config))

    overall = float(raw.overall)
    dims = {k: float(v) for k, v in raw.dimensions.items()}
    total = 0.0
    for f in applied:
        if f.dimension == "overall":
            overall += f.adjustment
            total += f.adjustment
        elif f.dimension in dims:
            dims[f.dimension] += f.adjustment

    adjusted = Scores(
        overall=clamp(overall, -100.0, 100.0),
        dimensions={k: clamp(v, 0.0, 100.0) for k, v in dims.items()},
    )
    log.debug("influence pipeline: %d factors, net overall %+.2f", len(applied), total)
    return FactorResult(adjusted=adjusted, applied=applied, total_adjustment=total, summary=_summary(applied))


def adjusted_score(context: FactorContext, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG) -> float:
    return apply_influence_factors(context, config).adjusted.overall


def factor_summary(context: FactorContext, config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG) -> str:
    return apply_influence_factors(context, config).summary

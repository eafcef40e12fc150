# astroforecast/core/aspects.py
"""
Aspect & pattern detection over position sets.

Inputs are any objects exposing `.body`, `.longitude` and `.speed`
(BodyPosition, PlanetPlacement, ProgressedPlanet all qualify), either as a
mapping keyed by body or as a plain sequence.

- detect_aspect:        one pair, one aspect type -> AspectData | None
- find_aspects:         all unordered pairs of one set
- find_transit_aspects: moving set × fixed set (fixed bodies are stationary)
- detect_patterns:      stellium / grand trine / T-square / grand cross / yod
- aspect_score:         harmonious/tense/neutral tallies
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union
import itertools
import logging

from astroforecast.core.constants import (
    ASPECTS,
    BODIES,
    BODY_WEIGHTS,
    MAJOR_ASPECTS,
    AspectDef,
    abs_sep_deg,
    sign_of,
    wrap_deg,
)

log = logging.getLogger(__name__)

__all__ = [
    "AspectData",
    "AspectPattern",
    "AspectScore",
    "detect_aspect",
    "find_aspects",
    "find_transit_aspects",
    "detect_patterns",
    "aspect_score",
    "aspect_interpretation",
]

PositionsLike = Union[Mapping[str, Any], Sequence[Any]]

# ─────────────────────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────────────────────

@dataclass
class AspectData:
    body1: str
    body2: str
    aspect: str
    exact_angle: float
    actual_angle: float      # smallest separation, [0, 180]
    orb: float               # |actual - exact|
    applying: bool
    strength: float          # 1 - orb/tolerance, [0, 1]
    weight: float

    @property
    def harmony(self) -> str:
        return ASPECTS[self.aspect].harmony

    def involves(self, body: str) -> bool:
        return body in (self.body1, self.body2)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AspectPattern:
    kind: str                # stellium | grand_trine | t_square | grand_cross | yod
    bodies: List[str]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AspectScore:
    total: float
    harmonious: float
    tense: float
    neutral: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class _Fixed:
    body: str
    longitude: float
    speed: Optional[float] = 0.0

# ─────────────────────────────────────────────────────────────────────────────
# Geometry
# ─────────────────────────────────────────────────────────────────────────────

def _as_list(positions: PositionsLike) -> List[Any]:
    if isinstance(positions, Mapping):
        return list(positions.values())
    return list(positions)


def _aspect_def(aspect: Union[str, AspectDef]) -> AspectDef:
    if isinstance(aspect, AspectDef):
        return aspect
    try:
        return ASPECTS[aspect]
    except KeyError:
        raise ValueError(f"unknown aspect type {aspect!r}") from None


def _is_applying(l1: float, s1: Optional[float], l2: float, s2: Optional[float]) -> bool:
    """Closing gap heuristic from relative speed; unknown speeds count as applying."""
    if s1 is None or s2 is None:
        return True
    diff = wrap_deg(l2 - l1)
    rel = s1 - s2
    return (diff < 180.0 and rel > 0.0) or (diff >= 180.0 and rel < 0.0)


def detect_aspect(p1: Any, p2: Any, aspect: Union[str, AspectDef]) -> Optional[AspectData]:
    adef = _aspect_def(aspect)
    sep = abs_sep_deg(p1.longitude, p2.longitude)
    orb = abs(sep - adef.angle)
    if orb > adef.orb:
        return None
    strength = 1.0 - orb / adef.orb
    w1 = BODY_WEIGHTS.get(p1.body, 1.0)
    w2 = BODY_WEIGHTS.get(p2.body, 1.0)
    return AspectData(
        body1=p1.body,
        body2=p2.body,
        aspect=adef.name,
        exact_angle=adef.angle,
        actual_angle=sep,
        orb=orb,
        applying=_is_applying(p1.longitude, p1.speed, p2.longitude, p2.speed),
        strength=strength,
        weight=strength * adef.weight * (w1 + w2) / 20.0,
    )


def _by_weight(hits: List[AspectData]) -> List[AspectData]:
    return sorted(hits, key=lambda a: -a.weight)


def find_aspects(
    positions: PositionsLike, aspect_types: Iterable[str] = MAJOR_ASPECTS
) -> List[AspectData]:
    defs = [_aspect_def(a) for a in aspect_types]
    pts = _as_list(positions)
    hits: List[AspectData] = []
    for p1, p2 in itertools.combinations(pts, 2):
        for adef in defs:
            hit = detect_aspect(p1, p2, adef)
            if hit is not None:
                hits.append(hit)
    return _by_weight(hits)


def find_transit_aspects(
    moving: PositionsLike, fixed: PositionsLike, aspect_types: Iterable[str] = MAJOR_ASPECTS
) -> List[AspectData]:
    """body1 is always the moving body, body2 the fixed one."""
    defs = [_aspect_def(a) for a in aspect_types]
    still = [_Fixed(p.body, p.longitude, 0.0) for p in _as_list(fixed)]
    hits: List[AspectData] = []
    for m in _as_list(moving):
        for f in still:
            for adef in defs:
                hit = detect_aspect(m, f, adef)
                if hit is not None:
                    hits.append(hit)
    return _by_weight(hits)

# ─────────────────────────────────────────────────────────────────────────────
# Patterns
# ─────────────────────────────────────────────────────────────────────────────

def _body_rank(body: str) -> int:
    return BODIES.index(body) if body in BODIES else len(BODIES)


def _graph(aspects: Iterable[AspectData]) -> Dict[FrozenSet[str], Set[str]]:
    g: Dict[FrozenSet[str], Set[str]] = {}
    for a in aspects:
        if a.body1 == a.body2:
            continue
        g.setdefault(frozenset((a.body1, a.body2)), set()).add(a.aspect)
    return g


def detect_patterns(positions: PositionsLike, aspects: Iterable[AspectData]) -> List[AspectPattern]:
    pts = _as_list(positions)
    g = _graph(aspects)
    bodies = sorted({b for pair in g for b in pair}, key=_body_rank)

    def has(a: str, b: str, name: str) -> bool:
        return name in g.get(frozenset((a, b)), ())

    out: List[AspectPattern] = []

    # stellium: 4+ bodies sharing one sign bucket
    buckets: Dict[str, List[str]] = {}
    for p in pts:
        buckets.setdefault(sign_of(p.longitude), []).append(p.body)
    for sign, members in buckets.items():
        if len(members) >= 4:
            out.append(AspectPattern(
                "stellium", list(members),
                f"Stellium in {sign}: {', '.join(members)} concentrate their energy here",
            ))

    for a, b, c in itertools.combinations(bodies, 3):
        if has(a, b, "trine") and has(b, c, "trine") and has(a, c, "trine"):
            out.append(AspectPattern(
                "grand_trine", [a, b, c],
                f"Grand trine between {a}, {b} and {c}: a closed circuit of easy flow",
            ))

    seen_t: Set[Tuple[FrozenSet[str], str]] = set()
    for a, b in itertools.combinations(bodies, 2):
        if not has(a, b, "opposition"):
            continue
        for apex in bodies:
            if apex in (a, b):
                continue
            key = (frozenset((a, b)), apex)
            if key in seen_t:
                continue
            if has(a, apex, "square") and has(b, apex, "square"):
                seen_t.add(key)
                out.append(AspectPattern(
                    "t_square", [a, b, apex],
                    f"T-square: {a} opposite {b}, both square {apex} at the apex",
                ))

    for quad in itertools.combinations(bodies, 4):
        for (p, q), (r, s) in (
            ((quad[0], quad[1]), (quad[2], quad[3])),
            ((quad[0], quad[2]), (quad[1], quad[3])),
            ((quad[0], quad[3]), (quad[1], quad[2])),
        ):
            if (has(p, q, "opposition") and has(r, s, "opposition")
                    and all(has(x, y, "square") for x in (p, q) for y in (r, s))):
                out.append(AspectPattern(
                    "grand_cross", list(quad),
                    f"Grand cross between {', '.join(quad)}: sustained tension across four angles",
                ))
                break

    for a, b in itertools.combinations(bodies, 2):
        if not has(a, b, "sextile"):
            continue
        for apex in bodies:
            if apex in (a, b):
                continue
            if has(a, apex, "quincunx") and has(b, apex, "quincunx"):
                out.append(AspectPattern(
                    "yod", [a, b, apex],
                    f"Yod: {a} sextile {b}, both quincunx {apex} (finger of fate)",
                ))

    if out:
        log.debug("detected %d aspect patterns", len(out))
    return out

# ─────────────────────────────────────────────────────────────────────────────
# Scoring & interpretation
# ─────────────────────────────────────────────────────────────────────────────

def aspect_score(aspects: Iterable[AspectData]) -> AspectScore:
    harmonious = tense = neutral = 0.0
    for a in aspects:
        h = ASPECTS[a.aspect].harmony
        if h == "harmonious":
            harmonious += a.weight
        elif h == "tense":
            tense += a.weight
        else:
            # creative aspects score as neutral
            neutral += a.weight
    return AspectScore(
        total=harmonious - 0.5 * tense + 0.3 * neutral,
        harmonious=harmonious,
        tense=tense,
        neutral=neutral,
    )


_ASPECT_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "conjunction": ("fusion", "intensity", "new cycle"),
    "opposition": ("awareness", "polarity", "projection"),
    "trine": ("flow", "talent", "ease"),
    "square": ("friction", "challenge", "drive"),
    "sextile": ("opportunity", "cooperation", "skill"),
    "quincunx": ("adjustment", "awkwardness", "recalibration"),
    "semisextile": ("subtle link", "growth", "integration"),
    "semisquare": ("irritation", "pressure", "prompting"),
    "sesquiquadrate": ("agitation", "overreach", "correction"),
    "quintile": ("creativity", "style", "invention"),
    "biquintile": ("artistry", "vision", "craft"),
}

_NATURE_TEXT: Dict[str, str] = {
    "harmonious": "works smoothly, supporting both parties",
    "tense": "creates pressure that asks for conscious effort",
    "neutral": "blends both energies into a single focus",
    "creative": "opens an inventive, expressive channel",
}


def aspect_interpretation(aspect: AspectData) -> Dict[str, Any]:
    adef = ASPECTS[aspect.aspect]
    phase = "applying" if aspect.applying else "separating"
    return {
        "title": f"{aspect.body1} {aspect.aspect} {aspect.body2}",
        "nature": adef.harmony,
        "keywords": list(_ASPECT_KEYWORDS.get(aspect.aspect, ())),
        "description": (
            f"{aspect.body1} {aspect.aspect} {aspect.body2} {_NATURE_TEXT[adef.harmony]}. "
            f"The aspect is {phase} with an orb of {aspect.orb:.1f}° "
            f"({round(aspect.strength * 100)}% strength)."
        ),
    }

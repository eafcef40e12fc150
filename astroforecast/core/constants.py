# astroforecast/core/constants.py
# -*- coding: utf-8 -*-
"""
Core constants & small helpers

Purpose
-------
Single source of truth for:
- zodiac signs (element, modality, modern domicile ruler)
- bodies (kind, influence weight, balance weight)
- houses (theme, keywords, angularity)
- aspect catalog (angle, orb, harmony, base weight)
- dignity table (domicile/exaltation/detriment/fall)
- life dimensions used by the scoring layers
- time constants (J2000, year lengths, cycle periods)
- tiny angle helpers (wrap/Δ/separation/sign bucketing)

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Functions are pure; constants are immutable by convention.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Tuple
import math

__all__ = [
    # signs
    "SIGNS", "SIGN_ELEMENT", "SIGN_MODALITY", "SIGN_RULER", "ELEMENTS", "MODALITIES",
    "SIGN_KEYWORDS",
    # bodies
    "BODIES", "CLASSICAL_SEVEN", "BODY_KIND", "BODY_WEIGHTS", "BALANCE_WEIGHTS",
    "OUTER_BODIES", "SLOW_BODIES", "BODY_KEYWORDS",
    # houses
    "HOUSE_THEMES", "HOUSE_KEYWORDS", "ANGULAR_HOUSES", "HOUSE_ANGULARITY",
    # aspects
    "AspectDef", "ASPECTS", "MAJOR_ASPECTS", "MINOR_ASPECTS", "HARMONIOUS_MAJORS",
    # dignity
    "DIGNITY_TABLE", "dignity_of",
    # dimensions
    "DIMENSIONS",
    # time constants
    "J2000_JD", "DAYS_PER_JULIAN_CENTURY", "DAYS_PER_YEAR", "TROPICAL_YEAR_D",
    "LUNAR_SYNODIC_D", "SATURN_RETURN_Y", "JUPITER_RETURN_Y",
    # helpers
    "wrap_deg", "delta_deg", "abs_sep_deg", "sign_index", "sign_of", "sign_degree",
    "clamp",
]

# ── signs ─────────────────────────────────────────────────────────────────────
SIGNS: Tuple[str, ...] = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)

ELEMENTS: Tuple[str, ...] = ("fire", "earth", "air", "water")
MODALITIES: Tuple[str, ...] = ("cardinal", "fixed", "mutable")

SIGN_ELEMENT: Dict[str, str] = {s: ELEMENTS[i % 4] for i, s in enumerate(SIGNS)}
SIGN_MODALITY: Dict[str, str] = {s: MODALITIES[i % 3] for i, s in enumerate(SIGNS)}

# Modern rulerships (outer planets rule Scorpio/Aquarius/Pisces).
SIGN_RULER: Dict[str, str] = {
    "Aries": "Mars",
    "Taurus": "Venus",
    "Gemini": "Mercury",
    "Cancer": "Moon",
    "Leo": "Sun",
    "Virgo": "Mercury",
    "Libra": "Venus",
    "Scorpio": "Pluto",
    "Sagittarius": "Jupiter",
    "Capricorn": "Saturn",
    "Aquarius": "Uranus",
    "Pisces": "Neptune",
}

SIGN_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "Aries": ("initiative", "courage", "impulse"),
    "Taurus": ("stability", "comfort", "patience"),
    "Gemini": ("curiosity", "exchange", "versatility"),
    "Cancer": ("nurture", "home", "sensitivity"),
    "Leo": ("expression", "confidence", "play"),
    "Virgo": ("analysis", "service", "refinement"),
    "Libra": ("harmony", "partnership", "balance"),
    "Scorpio": ("depth", "intensity", "transformation"),
    "Sagittarius": ("expansion", "adventure", "meaning"),
    "Capricorn": ("structure", "ambition", "discipline"),
    "Aquarius": ("innovation", "community", "independence"),
    "Pisces": ("intuition", "imagination", "compassion"),
}

# ── canonical bodies ─────────────────────────────────────────────────────────
# Ordering is significant: charts, tie-breaks and factor ids follow it.
BODIES: Tuple[str, ...] = (
    "Sun", "Moon", "Mercury", "Venus", "Mars",
    "Jupiter", "Saturn", "Uranus", "Neptune", "Pluto",
    "North Node", "Chiron",
)

CLASSICAL_SEVEN: Tuple[str, ...] = BODIES[:7]
OUTER_BODIES: Tuple[str, ...] = ("Uranus", "Neptune", "Pluto")
SLOW_BODIES: Tuple[str, ...] = ("Jupiter", "Saturn", "Uranus", "Neptune", "Pluto")

BODY_KIND: Dict[str, str] = {
    "Sun": "luminary", "Moon": "luminary",
    "Mercury": "personal", "Venus": "personal", "Mars": "personal",
    "Jupiter": "social", "Saturn": "social",
    "Uranus": "transpersonal", "Neptune": "transpersonal", "Pluto": "transpersonal",
    "North Node": "node", "Chiron": "asteroid",
}

BODY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "Sun": ("identity", "vitality", "purpose"),
    "Moon": ("emotion", "instinct", "needs"),
    "Mercury": ("mind", "communication", "learning"),
    "Venus": ("love", "values", "beauty"),
    "Mars": ("drive", "action", "desire"),
    "Jupiter": ("growth", "luck", "wisdom"),
    "Saturn": ("discipline", "limits", "responsibility"),
    "Uranus": ("change", "freedom", "awakening"),
    "Neptune": ("dreams", "spirituality", "dissolution"),
    "Pluto": ("power", "transformation", "rebirth"),
    "North Node": ("direction", "growth path", "destiny"),
    "Chiron": ("wounds", "healing", "mentorship"),
}

# Influence weights used by the aspect composite weight (w1 + w2) / 20.
BODY_WEIGHTS: Dict[str, float] = {
    "Sun": 10.0, "Moon": 10.0,
    "Mercury": 6.0, "Venus": 6.0, "Mars": 6.0,
    "Jupiter": 8.0, "Saturn": 8.0,
    "Uranus": 4.0, "Neptune": 4.0, "Pluto": 4.0,
    "North Node": 3.0, "Chiron": 2.0,
}

# Element/modality tallies; bodies not listed count 1.
BALANCE_WEIGHTS: Dict[str, float] = {
    "Sun": 4.0, "Moon": 4.0,
    "Mercury": 3.0, "Venus": 3.0, "Mars": 3.0,
    "Jupiter": 2.0, "Saturn": 2.0,
    "Uranus": 1.0, "Neptune": 1.0, "Pluto": 1.0,
}

# ── houses ───────────────────────────────────────────────────────────────────
HOUSE_THEMES: Dict[int, str] = {
    1: "self", 2: "resources", 3: "communication", 4: "roots",
    5: "creativity", 6: "service", 7: "relationships", 8: "transformation",
    9: "exploration", 10: "achievement", 11: "vision", 12: "transcendence",
}

HOUSE_KEYWORDS: Dict[int, Tuple[str, ...]] = {
    1: ("identity", "appearance", "initiative"),
    2: ("money", "values", "possessions"),
    3: ("siblings", "learning", "short trips"),
    4: ("home", "family", "foundations"),
    5: ("romance", "play", "children"),
    6: ("work", "health", "routine"),
    7: ("partnership", "contracts", "others"),
    8: ("shared resources", "intimacy", "rebirth"),
    9: ("beliefs", "travel", "higher learning"),
    10: ("career", "reputation", "authority"),
    11: ("friends", "community", "hopes"),
    12: ("solitude", "the unconscious", "release"),
}

ANGULAR_HOUSES: Tuple[int, ...] = (1, 4, 7, 10)

HOUSE_ANGULARITY: Dict[int, str] = {
    h: ("angular" if h % 3 == 1 else "succedent" if h % 3 == 2 else "cadent")
    for h in range(1, 13)
}

# ── aspect geometry ──────────────────────────────────────────────────────────
@dataclass(frozen=True)
class AspectDef:
    name: str
    angle: float
    orb: float
    harmony: str   # harmonious | tense | neutral | creative
    weight: float


ASPECTS: Dict[str, AspectDef] = {
    a.name: a
    for a in (
        AspectDef("conjunction", 0.0, 10.0, "neutral", 10.0),
        AspectDef("opposition", 180.0, 10.0, "tense", 10.0),
        AspectDef("trine", 120.0, 8.0, "harmonious", 8.0),
        AspectDef("square", 90.0, 8.0, "tense", 8.0),
        AspectDef("sextile", 60.0, 6.0, "harmonious", 6.0),
        AspectDef("quincunx", 150.0, 3.0, "tense", 4.0),
        AspectDef("semisextile", 30.0, 2.0, "neutral", 2.0),
        AspectDef("semisquare", 45.0, 2.0, "tense", 3.0),
        AspectDef("sesquiquadrate", 135.0, 2.0, "tense", 3.0),
        AspectDef("quintile", 72.0, 2.0, "creative", 3.0),
        AspectDef("biquintile", 144.0, 2.0, "creative", 3.0),
    )
}

MAJOR_ASPECTS: Tuple[str, ...] = ("conjunction", "opposition", "trine", "square", "sextile")
MINOR_ASPECTS: Tuple[str, ...] = tuple(n for n in ASPECTS if n not in MAJOR_ASPECTS)

# Conjunction counts as supportive in the forecast heuristics.
HARMONIOUS_MAJORS: Tuple[str, ...] = ("conjunction", "trine", "sextile")

# ── dignity ──────────────────────────────────────────────────────────────────
# domicile +5, exaltation +4, detriment -5, fall -4. Nodes/Chiron carry none.
DIGNITY_TABLE: Dict[str, Dict[str, int]] = {
    "Sun": {"Leo": 5, "Aries": 4, "Aquarius": -5, "Libra": -4},
    "Moon": {"Cancer": 5, "Taurus": 4, "Capricorn": -5, "Scorpio": -4},
    "Mercury": {"Gemini": 5, "Virgo": 5, "Sagittarius": -5, "Pisces": -5},
    "Venus": {"Taurus": 5, "Libra": 5, "Pisces": 4, "Aries": -5, "Scorpio": -5, "Virgo": -4},
    "Mars": {"Aries": 5, "Scorpio": 5, "Capricorn": 4, "Libra": -5, "Taurus": -5, "Cancer": -4},
    "Jupiter": {"Sagittarius": 5, "Pisces": 5, "Cancer": 4, "Gemini": -5, "Virgo": -5, "Capricorn": -4},
    "Saturn": {"Capricorn": 5, "Aquarius": 5, "Libra": 4, "Cancer": -5, "Leo": -5, "Aries": -4},
    "Uranus": {"Aquarius": 5, "Scorpio": 4, "Leo": -5, "Taurus": -4},
    "Neptune": {"Pisces": 5, "Cancer": 4, "Virgo": -5, "Capricorn": -4},
    "Pluto": {"Scorpio": 5, "Aries": 4, "Taurus": -5, "Libra": -4},
    "North Node": {},
    "Chiron": {},
}


def dignity_of(body: str, sign: str) -> int:
    return DIGNITY_TABLE.get(body, {}).get(sign, 0)


# ── scoring dimensions ───────────────────────────────────────────────────────
DIMENSIONS: Tuple[str, ...] = ("career", "relationship", "health", "finance", "spiritual")

# ── time constants ────────────────────────────────────────────────────────────
J2000_JD: float = 2451545.0
DAYS_PER_JULIAN_CENTURY: float = 36525.0
DAYS_PER_YEAR: float = 365.25          # Julian year; progression & age arithmetic
TROPICAL_YEAR_D: float = 365.242189    # mean tropical year
LUNAR_SYNODIC_D: float = 29.530588
SATURN_RETURN_Y: float = 29.457
JUPITER_RETURN_Y: float = 11.86


# ── tiny angle helpers (no external imports) ──────────────────────────────────
def wrap_deg(x: float) -> float:
    """
    Wrap any angle to [0, 360).
    """
    x = math.fmod(float(x), 360.0)
    if x < 0.0:
        x += 360.0
    # tiny negatives round up to exactly 360.0 after the shift
    return 0.0 if x >= 360.0 else x


def delta_deg(a: float, b: float) -> float:
    """
    Shortest signed difference b - a in degrees, range (-180, 180].
    """
    d = wrap_deg(b) - wrap_deg(a)
    if d > 180.0:
        d -= 360.0
    elif d <= -180.0:
        d += 360.0
    return d


def abs_sep_deg(a: float, b: float) -> float:
    """
    Absolute smallest separation between angles a and b (deg, 0..180].
    """
    return abs(delta_deg(a, b))


def sign_index(lon: float) -> int:
    return min(11, int(wrap_deg(lon) // 30.0))


def sign_of(lon: float) -> str:
    return SIGNS[sign_index(lon)]


def sign_degree(lon: float) -> float:
    """Degree within the sign, [0, 30)."""
    return wrap_deg(lon) - 30.0 * sign_index(lon)


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x

# astroforecast/core/profections.py
# -*- coding: utf-8 -*-
"""
Annual profections

The ascendant advances one whole house per year of life:
    house = age mod 12 + 1
The sign on that natal cusp names the "lord of the year" (modern domicile ruler);
the lord's own natal house/sign colour the narrative.

annual_profection is a pure function of (chart, age) and is memoised on that
pair; charts hash by identity so the cache never mixes two charts.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from astroforecast.core.constants import (
    ANGULAR_HOUSES,
    HOUSE_KEYWORDS,
    HOUSE_THEMES,
    SIGN_RULER,
)

__all__ = [
    "AnnualProfection",
    "annual_profection",
    "life_profection_map",
    "profection_wheel",
    "significant_profection_years",
    "compare_profections",
    "ordinal",
    "PROFECTION_CYCLE_THEMES",
]

MAX_AGE = 100

PROFECTION_CYCLE_THEMES: Tuple[str, ...] = (
    "foundation and discovery",
    "identity and independence",
    "building and establishing",
    "mastery and responsibility",
    "reassessment and depth",
    "harvest and mentorship",
    "wisdom and legacy",
    "reflection and release",
    "completion and transcendence",
)

_NARRATIVES: Dict[int, str] = {
    1: "A year of self-renewal. {sign} colours how you present yourself, and {lord}, "
       "from your natal {lord_house} house, steers personal initiatives.",
    2: "A year centred on resources and self-worth. {sign} shapes how you earn and spend; "
       "{lord} links money matters to your {lord_house} house.",
    3: "A year of learning, writing and local connections. {sign} sets the tone of your "
       "conversations; {lord} ties them to your {lord_house} house.",
    4: "A year rooted in home and family. {sign} flavours domestic life, while {lord} "
       "in your {lord_house} house shows where foundations are rebuilt.",
    5: "A year of creativity, romance and play. {sign} inspires self-expression, and "
       "{lord} draws joy from your {lord_house} house.",
    6: "A year of work, health and daily routines. {sign} refines your habits; "
       "{lord} in the {lord_house} house shows where effort pays off.",
    7: "A year of partnership. {sign} describes the people you meet, and {lord}, "
       "placed in your {lord_house} house, shows where agreements form.",
    8: "A year of depth, shared resources and transformation. {sign} marks what must "
       "change; {lord} in the {lord_house} house points to what you merge with others.",
    9: "A year of travel, study and expanding beliefs. {sign} opens new horizons, "
       "guided by {lord} from your {lord_house} house.",
    10: "A year of career and public standing. {sign} sets your professional style, and "
        "{lord} in the {lord_house} house shows the source of recognition.",
    11: "A year of friendships, networks and future plans. {sign} shapes your circle; "
        "{lord} in your {lord_house} house shows where hopes take form.",
    12: "A year of retreat, reflection and closure. {sign} marks what you release, and "
        "{lord} in your {lord_house} house shows where rest restores you.",
}


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


@dataclass(frozen=True)
class AnnualProfection:
    age: int
    year: int
    house: int
    house_theme: str
    house_keywords: Tuple[str, ...]
    sign: str
    lord: str
    lord_natal_house: int
    lord_natal_sign: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["house_keywords"] = list(self.house_keywords)
        return d


@lru_cache(maxsize=4096)
def _profection(chart, age: int) -> AnnualProfection:
    house = age % 12 + 1
    sign = chart.houses[house - 1].sign
    lord = SIGN_RULER[sign]
    lord_pl = chart.planets[lord]
    return AnnualProfection(
        age=age,
        year=chart.birth.when.year + age,
        house=house,
        house_theme=HOUSE_THEMES[house],
        house_keywords=HOUSE_KEYWORDS[house],
        sign=sign,
        lord=lord,
        lord_natal_house=lord_pl.house,
        lord_natal_sign=lord_pl.sign,
        description=_NARRATIVES[house].format(
            sign=sign, lord=lord, lord_house=ordinal(lord_pl.house)
        ),
    )


def annual_profection(chart, age: int) -> AnnualProfection:
    if age < 0:
        raise ValueError(f"age must be non-negative, got {age}")
    return _profection(chart, int(age))


def life_profection_map(chart, current_age: int, years_to_show: int = 12) -> Dict[str, Any]:
    current_age = int(current_age)
    all_years = [annual_profection(chart, a) for a in range(MAX_AGE + 1)]
    upcoming = [annual_profection(chart, a) for a in range(current_age + 1, current_age + 1 + years_to_show)]
    cycles = [
        {
            "cycle": n,
            "start_age": 12 * (n - 1),
            "end_age": 12 * n - 1,
            "theme": PROFECTION_CYCLE_THEMES[n - 1],
        }
        for n in (1, 2, 3)
    ]
    cycle_number = current_age // 12 + 1
    return {
        "current": annual_profection(chart, current_age).to_dict(),
        "upcoming": [p.to_dict() for p in upcoming],
        "all_years": [p.to_dict() for p in all_years],
        "cycle_analysis": {
            "cycle_number": cycle_number,
            "years_into_cycle": current_age % 12,
            "cycle_theme": PROFECTION_CYCLE_THEMES[min(cycle_number, len(PROFECTION_CYCLE_THEMES)) - 1],
            "cycles": cycles,
        },
    }


def profection_wheel(chart, current_age: int) -> List[Dict[str, Any]]:
    current_house = int(current_age) % 12 + 1
    out: List[Dict[str, Any]] = []
    for cusp in chart.houses:
        out.append({
            "house": cusp.house,
            "sign": cusp.sign,
            "lord": SIGN_RULER[cusp.sign],
            "is_current": cusp.house == current_house,
            "theme": HOUSE_THEMES[cusp.house],
            "ages": list(range(cusp.house - 1, MAX_AGE + 1, 12)),
        })
    return out


def significant_profection_years(chart, from_age: int, to_age: int) -> List[Dict[str, Any]]:
    """Years activating an angular house, or ruled by the Sun or Saturn."""
    out: List[Dict[str, Any]] = []
    for age in range(max(0, int(from_age)), int(to_age) + 1):
        p = annual_profection(chart, age)
        reasons: List[str] = []
        if p.house in ANGULAR_HOUSES:
            reasons.append(f"angular {ordinal(p.house)} house year")
        if p.lord == "Sun":
            reasons.append("Sun rules the year")
        if p.lord == "Saturn":
            reasons.append("Saturn rules the year")
        if reasons:
            out.append({
                "age": age,
                "year": p.year,
                "house": p.house,
                "lord": p.lord,
                "reasons": reasons,
                "significance": "high" if len(reasons) > 1 or p.house == 1 else "medium",
            })
    return out


def compare_profections(a: AnnualProfection, b: AnnualProfection) -> Dict[str, Any]:
    same_house = a.house == b.house
    same_lord = a.lord == b.lord
    same_sign = a.sign == b.sign
    similarity = 50 * same_house + 30 * same_lord + 20 * same_sign
    if similarity >= 80:
        text = f"Ages {a.age} and {b.age} share a strongly similar focus"
    elif similarity >= 50:
        text = f"Ages {a.age} and {b.age} echo each other in key ways"
    else:
        text = f"Ages {a.age} and {b.age} emphasise different areas of life"
    return {
        "same_house": same_house,
        "same_lord": same_lord,
        "same_sign": same_sign,
        "similarity": similarity,
        "comparison": text,
    }

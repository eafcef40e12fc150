# tests/test_profections.py
from __future__ import annotations

import pytest
from hypothesis import given, strategies as st

from astroforecast.core.constants import HOUSE_THEMES, SIGN_RULER
from astroforecast.core.profections import (
    annual_profection,
    compare_profections,
    life_profection_map,
    ordinal,
    profection_wheel,
    significant_profection_years,
)


@given(st.integers(min_value=0, max_value=88))
def test_twelve_year_cycle(chart, age: int) -> None:
    a = annual_profection(chart, age)
    b = annual_profection(chart, age + 12)
    assert a.house == b.house == age % 12 + 1
    assert a.lord == b.lord
    assert b.year - a.year == 12


def test_first_year_is_rising_sign(chart) -> None:
    p = annual_profection(chart, 0)
    assert p.house == 1
    assert p.sign == chart.houses[0].sign
    assert p.lord == SIGN_RULER[p.sign] == chart.chart_ruler
    assert p.house_theme == HOUSE_THEMES[1]
    assert p.lord_natal_house == chart.planets[p.lord].house
    assert p.lord in p.description


def test_cached_per_chart(chart, j2000_chart) -> None:
    assert annual_profection(chart, 30) is annual_profection(chart, 30)
    assert annual_profection(j2000_chart, 30).year == 2030


def test_negative_age_rejected(chart) -> None:
    with pytest.raises(ValueError):
        annual_profection(chart, -1)


@pytest.mark.parametrize("n,expected", [
    (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (13, "13th"), (22, "22nd"),
])
def test_ordinal(n: int, expected: str) -> None:
    assert ordinal(n) == expected


def test_life_map(chart) -> None:
    m = life_profection_map(chart, 34, years_to_show=5)
    assert m["current"]["age"] == 34
    assert [u["age"] for u in m["upcoming"]] == [35, 36, 37, 38, 39]
    assert len(m["all_years"]) == 101
    ca = m["cycle_analysis"]
    assert ca["cycle_number"] == 3
    assert ca["years_into_cycle"] == 10
    assert len(ca["cycles"]) == 3


def test_wheel(chart) -> None:
    wheel = profection_wheel(chart, 13)
    assert len(wheel) == 12
    assert [w["is_current"] for w in wheel].count(True) == 1
    assert wheel[1]["is_current"]
    assert wheel[1]["ages"][:3] == [1, 13, 25]


def test_significant_years(chart) -> None:
    years = significant_profection_years(chart, 0, 23)
    ages = {y["age"] for y in years}
    assert {0, 3, 6, 9, 12, 15, 18, 21} <= ages
    first = next(y for y in years if y["age"] == 0)
    assert first["significance"] == "high"


def test_compare(chart) -> None:
    same = compare_profections(annual_profection(chart, 5), annual_profection(chart, 17))
    assert same["similarity"] == 100
    other = compare_profections(annual_profection(chart, 0), annual_profection(chart, 6))
    assert other["same_house"] is False
    assert other["similarity"] < 100

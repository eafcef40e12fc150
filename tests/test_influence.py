# tests/test_influence.py
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

import pytest
from hypothesis import given, strategies as st

from astroforecast.core.aspects import AspectData
from astroforecast.core.constants import BODIES, DIMENSIONS
from astroforecast.core.ephemeris import BodyPosition
from astroforecast.core.influence import (
    DEFAULT_FACTOR_CONFIG,
    PRESETS,
    WEIGHT_CATEGORIES,
    CurrentState,
    FactorContext,
    InfluenceConfigError,
    Scores,
    adjusted_score,
    always,
    apply_influence_factors,
    aspect_active,
    condition_from_dict,
    create_custom_factor,
    create_factor_config,
    custom_predicate,
    date_range,
    dimension_focus_config,
    factor_summary,
    load_factor_config,
    planet_in_sign,
    transit_present,
)

WHEN = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
ZERO = {c: 0.0 for c in WEIGHT_CATEGORIES}


def _state(**kw) -> CurrentState:
    base = dict(age=30, profection_house=7, lord_of_year="Venus", lunar_phase="full",
                planetary_day="Sun", planetary_hour="Jupiter", moon_sign="Leo")
    base.update(kw)
    return CurrentState(**base)


def _ctx(chart, *, overall: float = 10.0, transits=(), positions=None, **state) -> FactorContext:
    return FactorContext(
        chart=chart,
        when=WHEN,
        raw_scores=Scores(overall, {d: 50.0 for d in DIMENSIONS}),
        state=_state(**state),
        active_transits=tuple(transits),
        transit_positions=positions,
    )


def _only(category: str, w: float = 1.0, **kw):
    return create_factor_config(weights={**ZERO, category: w}, **kw)


def _aspect(b1, b2, name="trine", orb=0.5, applying=True) -> AspectData:
    return AspectData(b1, b2, name, 120.0, 120.0 + orb, orb, applying, 1.0 - orb / 8.0, 6.0)

# ─────────────────────────────────────────────────────────────────────────────
# Pipeline contract
# ─────────────────────────────────────────────────────────────────────────────

def test_disabled_is_identity(chart) -> None:
    ctx = _ctx(chart, overall=-42.0)
    res = apply_influence_factors(ctx, create_factor_config(enabled=False))
    assert res.adjusted.overall == -42.0
    assert dict(res.adjusted.dimensions) == dict(ctx.raw_scores.dimensions)
    assert res.applied == []
    assert res.total_adjustment == 0.0
    assert res.summary == "Influence factors disabled"


def test_deterministic(chart) -> None:
    ctx = _ctx(chart, transits=[_aspect("Jupiter", "Sun"), _aspect("Saturn", "Moon", "square", 2.0, False)])
    a = apply_influence_factors(ctx, DEFAULT_FACTOR_CONFIG)
    b = apply_influence_factors(ctx, DEFAULT_FACTOR_CONFIG)
    assert a.to_dict() == b.to_dict()


def test_generator_order_fixed(chart) -> None:
    extra = create_custom_factor("x", "Extra", "", {"overall": 0.2})
    ctx = _ctx(chart, age=42, transits=[_aspect("Jupiter", "Sun")])
    res = apply_influence_factors(ctx, create_factor_config(preset="aggressive", custom_factors=[extra]))
    order = [WEIGHT_CATEGORIES.index(f.category) for f in res.applied]
    assert order == sorted(order)
    assert res.applied[-1].category == "custom"


@given(st.floats(min_value=-100, max_value=100), st.sampled_from([1.0, -1.0]), st.integers(1, 12))
def test_scores_clamped_under_maximal_customs(chart, raw: float, sign: float, n: int) -> None:
    effects = {"overall": sign, **{d: sign for d in DIMENSIONS}}
    customs = [create_custom_factor(f"c{i}", f"C{i}", "", effects) for i in range(n)]
    res = apply_influence_factors(_ctx(chart, overall=raw), create_factor_config(preset="aggressive", custom_factors=customs))
    assert -100.0 <= res.adjusted.overall <= 100.0
    for v in res.adjusted.dimensions.values():
        assert 0.0 <= v <= 100.0


def test_zero_weights_apply_nothing(chart) -> None:
    res = apply_influence_factors(_ctx(chart), create_factor_config(weights=ZERO))
    assert res.applied == []
    assert res.adjusted.overall == 10.0
    assert res.summary == "No significant influence factors"


def test_summary_names_contributors(chart) -> None:
    good = create_custom_factor("g", "Good omen", "", {"overall": 0.8})
    bad = create_custom_factor("b", "Bad omen", "", {"overall": -0.8})
    res = apply_influence_factors(_ctx(chart), _only("custom", custom_factors=[good, bad]))
    assert res.summary == "Favourable: Good omen; Watch: Bad omen"
    assert factor_summary(_ctx(chart), _only("custom", custom_factors=[good, bad])) == res.summary
    assert res.total_adjustment == pytest.approx(0.0)


def test_adjusted_score_helper(chart) -> None:
    up = create_custom_factor("u", "Up", "", {"overall": 1.0})
    assert adjusted_score(_ctx(chart), _only("custom", custom_factors=[up])) == pytest.approx(30.0)

# ─────────────────────────────────────────────────────────────────────────────
# Individual generators
# ─────────────────────────────────────────────────────────────────────────────

def test_dignity_factors_follow_chart(chart) -> None:
    res = apply_influence_factors(_ctx(chart), _only("dignity"))
    dignified = {b for b in ("Sun", "Moon", "Mercury", "Venus", "Mars") if chart.planets[b].dignity != 0}
    assert {f.id.split("_", 1)[1].capitalize() for f in res.applied} == dignified
    for f in res.applied:
        assert f.dimension == "overall"


def test_retrograde_uses_supplied_positions(chart) -> None:
    pos = {b: BodyPosition(b, 10.0, 0.0, 1.0, 0.5) for b in BODIES}
    pos["Mercury"] = BodyPosition("Mercury", 10.0, 0.0, 1.0, -0.4)
    res = apply_influence_factors(_ctx(chart, positions=pos), _only("retrograde", 0.5))
    assert [f.id for f in res.applied] == ["retrograde_mercury"]
    assert res.applied[0].adjustment == pytest.approx(-3.0)
    assert res.applied[0].dimension == "career"


def test_aspect_phase_and_orb(chart) -> None:
    transits = [_aspect("Jupiter", "Sun", orb=0.2), _aspect("Mars", "Moon", "square", 3.0, False)]
    phase = apply_influence_factors(_ctx(chart, transits=transits), _only("aspect_phase"))
    assert [f.adjustment > 0 for f in phase.applied] == [True, False]
    orb = apply_influence_factors(_ctx(chart, transits=transits), _only("aspect_orb"))
    assert [f.id for f in orb.applied] == ["orb_exact_jupiter_sun"]


@pytest.mark.parametrize("age,ids", [
    (29, {"saturn_return"}),
    (7, {"saturn_square_1"}),
    (15, {"saturn_opposition"}),
    (42, {"uranus_opposition", "uranus_opposition_spiritual"}),
    (50, {"chiron_return"}),
    (20, set()),
])
def test_outer_planet_by_age(chart, age: int, ids) -> None:
    res = apply_influence_factors(_ctx(chart, age=age), _only("outer_planet"))
    assert {f.id for f in res.applied} == ids


def test_profection_lord(chart) -> None:
    lord = "Saturn"
    p = chart.planets[lord]
    res = apply_influence_factors(_ctx(chart, lord_of_year=lord), _only("profection_lord"))
    ids = {f.id for f in res.applied}
    assert ("lord_dignity" in ids) == (p.dignity != 0)


@pytest.mark.parametrize("phase,value", [("full", 10.0), ("balsamic", -8.0), ("first_quarter", 8.0)])
def test_lunar_phase_keyed_by_id(chart, phase: str, value: float) -> None:
    res = apply_influence_factors(_ctx(chart, lunar_phase=phase), _only("lunar_phase"))
    assert len(res.applied) == 1
    assert res.applied[0].adjustment == pytest.approx(value)


def test_planetary_hour_boost(chart) -> None:
    res = apply_influence_factors(_ctx(chart, planetary_hour="Jupiter"), _only("planetary_hour"))
    by_dim = {f.dimension: f.adjustment for f in res.applied}
    assert by_dim == {"overall": 10.0, "finance": 5.0}
    assert res.adjusted.dimensions["finance"] == 55.0


def test_personal_lunar_return(chart) -> None:
    natal = chart.planets["Moon"].sign
    res = apply_influence_factors(_ctx(chart, moon_sign=natal), _only("personal"))
    ids = {f.id for f in res.applied}
    assert {"moon_element_resonance", "moon_sign_exact"} <= ids

# ─────────────────────────────────────────────────────────────────────────────
# Custom factors & conditions
# ─────────────────────────────────────────────────────────────────────────────

def test_custom_priority_order(chart) -> None:
    low = create_custom_factor("low", "Low", "", {"career": 0.1}, priority=1)
    high = create_custom_factor("high", "High", "", {"career": 0.1}, priority=9)
    res = apply_influence_factors(_ctx(chart), _only("custom", custom_factors=[low, high]))
    assert [f.id for f in res.applied] == ["high", "low"]


def test_conditions_evaluate(chart) -> None:
    ctx = _ctx(chart, transits=[_aspect("Saturn", "Sun", "square")])
    sun_sign = chart.planets["Sun"].sign
    assert always().matches(ctx)
    assert date_range(datetime(2024, 1, 1), datetime(2024, 12, 31)).matches(ctx)
    assert not date_range(datetime(2025, 1, 1), datetime(2025, 2, 1)).matches(ctx)
    assert transit_present("saturn").matches(ctx)
    assert not transit_present("Pluto").matches(ctx)
    assert planet_in_sign("Sun", sun_sign.lower()).matches(ctx)
    assert aspect_active("Sun", "Saturn", "square").matches(ctx)
    assert not aspect_active("Sun", "Saturn", "trine").matches(ctx)
    assert custom_predicate(lambda c: c.state.age == 30).matches(ctx)


def test_condition_from_dict() -> None:
    c = condition_from_dict({"type": "date_range", "start": "2024-01-01", "end": "2024-02-01"})
    assert c.to_dict()["type"] == "date_range"
    assert condition_from_dict(None).kind == "always"
    assert condition_from_dict({"type": "transit", "planet": "Mars"}).body == "Mars"
    with pytest.raises(InfluenceConfigError):
        condition_from_dict({"type": "custom"})
    with pytest.raises(InfluenceConfigError):
        condition_from_dict({"type": "eclipse"})
    with pytest.raises(InfluenceConfigError):
        condition_from_dict({"type": "transit", "body": "Vulcan"})


def test_date_range_validation() -> None:
    with pytest.raises(InfluenceConfigError):
        date_range(datetime(2024, 2, 1), datetime(2024, 1, 1))

# ─────────────────────────────────────────────────────────────────────────────
# Config
# ─────────────────────────────────────────────────────────────────────────────

def test_presets() -> None:
    assert set(PRESETS) == {"conservative", "standard", "aggressive"}
    cons = create_factor_config("conservative")
    assert cons.weight("planetary_hour") == 0.1
    assert create_factor_config("Aggressive").weight("dignity") == 1.0


@pytest.mark.parametrize("kwargs", [
    {"preset": "reckless"},
    {"weights": {"dignity": 1.5}},
    {"weights": {"dignity": -0.1}},
    {"weights": {"astrology": 0.5}},
    {"weights": {"dignity": "lots"}},
])
def test_config_validation(kwargs) -> None:
    with pytest.raises(InfluenceConfigError) as exc:
        create_factor_config(**kwargs)
    assert str(exc.value).startswith("invalid_factor_config")


def test_effects_validation() -> None:
    with pytest.raises(InfluenceConfigError):
        create_custom_factor("x", "X", "", {"overall": 2.0})
    with pytest.raises(InfluenceConfigError):
        create_custom_factor("x", "X", "", {"luck": 0.5})


def test_config_is_frozen() -> None:
    cfg = create_factor_config()
    with pytest.raises(TypeError):
        cfg.weights["dignity"] = 0.0
    assert replace(cfg, enabled=False).enabled is False


def test_dimension_focus() -> None:
    cfg = dimension_focus_config("career")
    assert cfg.weight("profection_lord") == 1.0
    with pytest.raises(InfluenceConfigError):
        dimension_focus_config("luck")


def test_load_factor_config(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASTROFORECAST_FACTORS_DISABLED", raising=False)
    monkeypatch.delenv("ASTROFORECAST_FACTOR_PRESET", raising=False)
    monkeypatch.delenv("ASTROFORECAST_CUSTOM_FACTORS", raising=False)
    path = tmp_path / "factors.yaml"
    path.write_text(
        "preset: conservative\n"
        "weights:\n"
        "  retrograde: 0.9\n"
        "custom_factors:\n"
        "  - id: saturn_watch\n"
        "    name: Saturn watch\n"
        "    effects: {career: -0.5}\n"
        "    condition: {type: transit, body: Saturn}\n"
        "  - just a string\n",
        encoding="utf-8",
    )
    cfg = load_factor_config(str(path))
    assert cfg.enabled is True
    assert cfg.weight("retrograde") == 0.9
    assert cfg.weight("planetary_hour") == 0.1
    assert [c.id for c in cfg.custom_factors] == ["saturn_watch"]

    monkeypatch.setenv("ASTROFORECAST_FACTORS_DISABLED", "1")
    assert load_factor_config(str(path)).enabled is False


def test_load_factor_config_malformed_entry(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASTROFORECAST_CUSTOM_FACTORS", raising=False)
    path = tmp_path / "bad.yaml"
    path.write_text("custom_factors:\n  - name: no id\n", encoding="utf-8")
    with pytest.raises(InfluenceConfigError):
        load_factor_config(str(path))

# tests/test_config_metrics.py
from __future__ import annotations

import json

import pytest

from astroforecast.core.ephemeris import UnknownBody, canon_body
from astroforecast.utils import metrics
from astroforecast.utils.config import AttrDict, load_config


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("ASTROFORECAST_FACTOR_PRESET", "ASTROFORECAST_FACTORS_DISABLED", "ASTROFORECAST_CUSTOM_FACTORS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def _write(tmp_path, text: str):
    p = tmp_path / "factors.yaml"
    p.write_text(text, encoding="utf-8")
    return str(p)


def test_attr_access(tmp_path, clean_env) -> None:
    cfg = load_config(_write(tmp_path, "preset: standard\nweights:\n  dignity: 0.4\n"))
    assert isinstance(cfg, AttrDict)
    assert cfg.preset == "standard"
    assert cfg.weights.dignity == 0.4
    with pytest.raises(AttributeError):
        cfg.missing


def test_empty_document(tmp_path, clean_env) -> None:
    assert load_config(_write(tmp_path, "")) == {}


def test_non_mapping_document(tmp_path, clean_env) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "- a\n- b\n"))


def test_env_overrides(tmp_path, clean_env) -> None:
    extra = tmp_path / "extra.json"
    extra.write_text(json.dumps([{"id": "x", "name": "X", "effects": {"overall": 0.1}}]), encoding="utf-8")
    clean_env.setenv("ASTROFORECAST_FACTOR_PRESET", " Aggressive ")
    clean_env.setenv("ASTROFORECAST_FACTORS_DISABLED", "yes")
    clean_env.setenv("ASTROFORECAST_CUSTOM_FACTORS", str(extra))
    cfg = load_config(_write(tmp_path, "preset: conservative\ncustom_factors:\n  - {id: a, name: A}\n"))
    assert cfg.preset == "aggressive"
    assert cfg.enabled is False
    assert [c.id for c in cfg.custom_factors] == ["a", "x"]


def test_extra_factors_must_be_list(tmp_path, clean_env) -> None:
    extra = tmp_path / "extra.json"
    extra.write_text('{"id": "x"}', encoding="utf-8")
    clean_env.setenv("ASTROFORECAST_CUSTOM_FACTORS", str(extra))
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "preset: standard\n"))


def test_falsey_disable_flag(tmp_path, clean_env) -> None:
    clean_env.setenv("ASTROFORECAST_FACTORS_DISABLED", "0")
    assert "enabled" not in load_config(_write(tmp_path, "preset: standard\n"))

# ─────────────────────────────────────────────────────────────────────────────
# Metrics
# ─────────────────────────────────────────────────────────────────────────────

def test_errors_are_counted() -> None:
    before = metrics.MET_ERRORS.labels(code="unknown_body")._value.get()
    with pytest.raises(UnknownBody):
        canon_body("Vulcan")
    assert metrics.MET_ERRORS.labels(code="unknown_body")._value.get() == before + 1


def test_timed_records_latency() -> None:
    @metrics.timed("unit_test")
    def work(x):
        return x * 2

    assert work(21) == 42
    text = metrics.export_prometheus()
    assert 'astroforecast_chart_seconds_count{kind="unit_test"}' in text


def test_export_names() -> None:
    metrics.warn("unit_test")
    text = metrics.export_prometheus()
    for name in ("astroforecast_warning_total", "astroforecast_errors_total", "astroforecast_pipeline_runs_total"):
        assert name in text

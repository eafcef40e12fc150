# astroforecast/utils/config.py
import os
import json
import logging
import yaml

log = logging.getLogger(__name__)


class AttrDict(dict):
    """Dict that also supports attribute access: cfg.preset and cfg['preset'] both work."""
    def __getattr__(self, item):
        try:
            return self[item]
        except KeyError as e:
            raise AttributeError(item) from e

    def __setattr__(self, key, value):
        self[key] = value


def _to_attr(obj):
    if isinstance(obj, dict):
        return AttrDict({k: _to_attr(v) for k, v in obj.items()})
    if isinstance(obj, list):
        return [_to_attr(x) for x in obj]
    return obj


def _bool_env(name: str, default: bool) -> bool:
    v = os.getenv(name, "")
    if v == "":
        return default
    return v.strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _load_json_list(path):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f) or []
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of custom factors")
    return data


def load_config(path: str):
    """
    Load a YAML influence-factor config from `path`.

    Recognised top-level keys: `preset`, `enabled`, `weights`, `custom_factors`.

    Env overrides:
      - ASTROFORECAST_FACTOR_PRESET    (overrides config['preset'])
      - ASTROFORECAST_FACTORS_DISABLED (truthy -> config['enabled'] = False)
      - ASTROFORECAST_CUSTOM_FACTORS   (JSON file; its list is appended to custom_factors)

    Returns an AttrDict for convenient access.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML node must be a mapping")

    preset = os.getenv("ASTROFORECAST_FACTOR_PRESET")
    if preset:
        data["preset"] = preset.strip().lower()

    if _bool_env("ASTROFORECAST_FACTORS_DISABLED", False):
        data["enabled"] = False

    extra_path = os.getenv("ASTROFORECAST_CUSTOM_FACTORS")
    if extra_path:
        extra = _load_json_list(extra_path)
        data["custom_factors"] = list(data.get("custom_factors") or []) + extra
        log.debug("appended %d custom factors from %s", len(extra), extra_path)

    return _to_attr(data)

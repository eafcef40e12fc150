# tests/test_packaging.py
from __future__ import annotations

import re
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]


def test_long_description_is_the_readme() -> None:
    text = (ROOT / "pyproject.toml").read_text(encoding="utf-8")
    m = re.search(r'^readme\s*=\s*"([^"]+)"', text, re.M)
    assert m is not None and m.group(1) == "README.md"
    assert (ROOT / "README.md").read_text(encoding="utf-8").startswith("# astroforecast")

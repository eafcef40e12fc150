# astroforecast/version.py
from __future__ import annotations
import os

# Stamped into processed snapshots so stored results can be traced to an engine build.
VERSION = os.getenv("ASTROFORECAST_VERSION", "0.1.0")

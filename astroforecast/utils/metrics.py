from __future__ import annotations
import time
from typing import Callable, Final
from functools import wraps

from prometheus_client import Counter, Histogram, REGISTRY, generate_latest

# Names are stable; dashboards key on them.
MET_WARNINGS: Final = Counter("astroforecast_warning_total", "Non-fatal warnings", ["kind"])
MET_ERRORS: Final = Counter("astroforecast_errors_total", "Core errors raised", ["code"])
MET_PIPELINE: Final = Counter(
    "astroforecast_pipeline_runs_total", "Influence factor pipeline evaluations", ["enabled"]
)
CHART_LATENCY: Final = Histogram("astroforecast_chart_seconds", "Chart construction latency", ["kind"])


def warn(kind: str) -> None:
    MET_WARNINGS.labels(kind=kind).inc()


def error(code: str) -> None:
    MET_ERRORS.labels(code=code).inc()


def timed(kind: str) -> Callable:
    """Decorator: observe wall time of the wrapped call into CHART_LATENCY{kind}."""
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            t0 = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                CHART_LATENCY.labels(kind=kind).observe(time.perf_counter() - t0)
        return wrapper
    return deco


def export_prometheus() -> str:
    return generate_latest(REGISTRY).decode("utf-8")

# -*- coding: utf-8 -*-
"""
Self-contained ephemeris position engine (tropical, geocentric, ecliptic-of-date).

Positions come from truncated analytic series rather than a kernel file:
- Sun: mean longitude + 3-term equation of centre (Meeus ch. 25, low precision).
- Moon: 10 leading longitude terms, 4 latitude terms, 3 distance terms (Meeus ch. 47).
- Mercury..Pluto: J2000 osculating elements with linear per-century rates
  (Standish, JPL "Keplerian elements for approximate positions"), Kepler solve,
  heliocentric → geocentric by subtracting Earth taken from the Sun series.
- North Node: mean node series.  Chiron: fixed element set.

Accuracy envelope (not a guarantee): Sun < 0.01°, Moon ≈ 0.1–0.3°,
planets ≈ 1° over ±200 years of J2000.

Public API:
    julian_day(when) -> float
    datetime_from_jd(jd) -> datetime (UTC)
    solve_kepler(M, e, *, tol, max_iter) -> float
    body_position(body, jd, *, with_speed=False) -> BodyPosition
    all_positions(jd, bodies=BODIES, *, with_speed=False) -> dict
    sidereal_time_deg(jd, longitude) / obliquity_deg(jd)
    ascendant_deg(jd, latitude, longitude) / midheaven_deg(jd, longitude)
    house_cusps(jd, latitude, longitude) -> [12 floats]   (equal houses)
    house_of(longitude, cusps) -> 1..12
Errors:
    UnknownBody, DegenerateGeometry, KeplerConvergenceError (all EphemerisError)
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging
import math
import os

import erfa  # PyERFA (IAU SOFA routines)

from astroforecast.core.constants import (
    BODIES,
    DAYS_PER_JULIAN_CENTURY,
    J2000_JD,
    delta_deg,
    wrap_deg,
)
from astroforecast.utils import metrics

log = logging.getLogger(__name__)

__all__ = [
    "EphemerisError", "UnknownBody", "DegenerateGeometry", "KeplerConvergenceError",
    "CFG", "BodyPosition",
    "dt_utc", "julian_day", "datetime_from_jd", "julian_centuries",
    "canon_body", "solve_kepler", "body_position", "all_positions",
    "obliquity_deg", "sidereal_time_deg", "ascendant_deg", "midheaven_deg",
    "house_cusps", "house_of",
]


# ───────────────────────────── Exceptions ─────────────────────────────
class EphemerisError(ValueError):
    """Base error of the computation core; `code` is stable and machine-readable."""
    code = "ephemeris_error"

    def __init__(self, message: str, **context: Any):
        self.context = context
        metrics.error(self.code)
        super().__init__(f"{self.code}: {message}")


class UnknownBody(EphemerisError):
    code = "unknown_body"


class DegenerateGeometry(EphemerisError):
    code = "degenerate_geometry"


class KeplerConvergenceError(EphemerisError):
    code = "kepler_no_convergence"


# ───────────────────────────── Config (single source) ─────────────────
@dataclass(frozen=True)
class _EngineCfg:
    kepler_tol_rad: float
    kepler_max_iter: int
    polar_lat_limit: float
    speed_step_days: float
    voc_scan_hours: int
    sunrise_hour: int


CFG = _EngineCfg(
    kepler_tol_rad=float(os.getenv("ASTROFORECAST_KEPLER_TOL_RAD", "1e-8")),
    kepler_max_iter=int(os.getenv("ASTROFORECAST_KEPLER_MAX_ITER", "30")),
    polar_lat_limit=float(os.getenv("ASTROFORECAST_POLAR_LAT_LIMIT", "89.9")),
    speed_step_days=float(os.getenv("ASTROFORECAST_SPEED_STEP_DAYS", "0.25")),  # ±6 h
    voc_scan_hours=int(os.getenv("ASTROFORECAST_VOC_SCAN_HOURS", "48")),
    sunrise_hour=int(os.getenv("ASTROFORECAST_SUNRISE_HOUR", "6")),
)

_EPS_ATAN = 1e-12


# ───────────────────────────── Records ────────────────────────────────
@dataclass(frozen=True)
class BodyPosition:
    body: str
    longitude: float          # [0, 360)
    latitude: float
    distance: float           # AU; Moon in Earth radii; node nominal 1.0
    speed: Optional[float] = None  # deg/day, negative when retrograde

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ───────────────────────────── Time ───────────────────────────────────
def dt_utc(d: datetime) -> datetime:
    return d.replace(tzinfo=timezone.utc) if d.tzinfo is None else d.astimezone(timezone.utc)


def julian_day(when: datetime) -> float:
    """
    Julian Day of a civil timestamp (proleptic Gregorian). Naive datetimes are UTC.
    2000-01-01T12:00:00Z -> 2451545.0 exactly.
    """
    u = dt_utc(when)
    djm0, djm = erfa.cal2jd(u.year, u.month, u.day)
    seconds = u.hour * 3600 + u.minute * 60 + u.second + u.microsecond / 1e6
    return float(djm0) + float(djm) + seconds / 86400.0


def datetime_from_jd(jd: float) -> datetime:
    iy, im, iday, fd = erfa.jd2cal(float(jd), 0.0)
    base = datetime(int(iy), int(im), int(iday), tzinfo=timezone.utc)
    return base + timedelta(days=float(fd))


def julian_centuries(jd: float) -> float:
    return (jd - J2000_JD) / DAYS_PER_JULIAN_CENTURY


# ───────────────────────────── Body names ─────────────────────────────
_ALIASES: Dict[str, str] = {b.lower().replace(" ", ""): b for b in BODIES}
_ALIASES.update({
    "node": "North Node",
    "meannode": "North Node",
    "nn": "North Node",
    "north_node": "North Node",
})


def canon_body(name: Any) -> str:
    if not isinstance(name, str):
        raise UnknownBody(f"body id must be a string, got {type(name).__name__}", body=name)
    key = name.strip().lower().replace(" ", "")
    if key in _ALIASES:
        return _ALIASES[key]
    key = key.replace("_", "")
    if key in _ALIASES:
        return _ALIASES[key]
    raise UnknownBody(f"unrecognised body {name!r}", body=name)


# ───────────────────────────── Kepler ─────────────────────────────────
def solve_kepler(
    mean_anomaly: float,
    e: float,
    *,
    tol: Optional[float] = None,
    max_iter: Optional[int] = None,
) -> float:
    """
    Solve E - e·sin E = M (radians) by Newton iteration.
    Stops when successive estimates differ by < tol; raises KeplerConvergenceError
    if that does not happen within max_iter passes.
    """
    tol = CFG.kepler_tol_rad if tol is None else tol
    max_iter = CFG.kepler_max_iter if max_iter is None else max_iter
    if not (0.0 <= e < 1.0):
        raise KeplerConvergenceError(f"eccentricity {e!r} outside elliptic range", e=e)

    M = math.remainder(mean_anomaly, 2.0 * math.pi)
    E = M if e < 0.8 else math.copysign(math.pi, M)
    for i in range(1, max_iter + 1):
        step = (E - e * math.sin(E) - M) / (1.0 - e * math.cos(E))
        E -= step
        if abs(step) < tol:
            log.debug("kepler converged in %d passes (e=%.4f)", i, e)
            return E
    metrics.warn("kepler_no_convergence")
    log.warning("Kepler solve did not converge: M=%.6f e=%.6f passes=%d", M, e, max_iter)
    raise KeplerConvergenceError(
        f"no convergence to {tol:g} rad within {max_iter} passes", M=M, e=e
    )


# ───────────────────────────── Sun / Earth ────────────────────────────
def _sun_series(T: float) -> Tuple[float, float]:
    """Apparent-ish geometric solar longitude (deg) and radius vector (AU)."""
    L0 = 280.4664567 + 36000.76983 * T + 0.0003032 * T * T
    M = math.radians(wrap_deg(357.5291092 + 35999.0502909 * T))
    C = ((1.9146 - 0.004817 * T - 0.000014 * T * T) * math.sin(M)
         + (0.019993 - 0.000101 * T) * math.sin(2 * M)
         + 0.00029 * math.sin(3 * M))
    e = 0.016708634 - 0.000042037 * T
    v = M + math.radians(C)
    r = 1.000001018 * (1 - e * e) / (1 + e * math.cos(v))
    return wrap_deg(L0 + C), r


def _earth_heliocentric(T: float) -> Tuple[float, float, float]:
    lon, r = _sun_series(T)
    lam = math.radians(lon + 180.0)
    return r * math.cos(lam), r * math.sin(lam), 0.0


def _sun(jd: float) -> Tuple[float, float, float]:
    lon, r = _sun_series(julian_centuries(jd))
    return lon, 0.0, r


# ───────────────────────────── Moon ───────────────────────────────────
def _moon(jd: float) -> Tuple[float, float, float]:
    T = julian_centuries(jd)
    Lp = 218.3164477 + 481267.88123421 * T
    D = math.radians(wrap_deg(297.8501921 + 445267.1114034 * T))
    M = math.radians(wrap_deg(357.5291092 + 35999.0502909 * T))
    Mp = math.radians(wrap_deg(134.9633964 + 477198.8675055 * T))
    F = math.radians(wrap_deg(93.2720950 + 483202.0175233 * T))
    E = 1.0 - 0.002516 * T

    lon = (Lp
           + 6.288774 * math.sin(Mp)
           + 1.274027 * math.sin(2 * D - Mp)
           + 0.658314 * math.sin(2 * D)
           + 0.213618 * math.sin(2 * Mp)
           - 0.185116 * E * math.sin(M)
           - 0.114332 * math.sin(2 * F)
           + 0.058793 * math.sin(2 * D - 2 * Mp)
           + 0.057066 * E * math.sin(2 * D - M - Mp)
           + 0.053322 * math.sin(2 * D + Mp)
           + 0.045758 * E * math.sin(2 * D - M))
    lat = (5.128122 * math.sin(F)
           + 0.280602 * math.sin(Mp + F)
           + 0.277693 * math.sin(Mp - F)
           + 0.173237 * math.sin(2 * D - F))
    dist_km = (385000.56
               - 20905.355 * math.cos(Mp)
               - 3699.111 * math.cos(2 * D - Mp)
               - 2955.968 * math.cos(2 * D))
    return wrap_deg(lon), lat, dist_km / 6378.14


def _mean_node(jd: float) -> Tuple[float, float, float]:
    T = julian_centuries(jd)
    return wrap_deg(125.0445479 - 1934.1362891 * T + 0.0020754 * T * T), 0.0, 1.0


# ───────────────────────────── Planets ────────────────────────────────
@dataclass(frozen=True)
class _Elements:
    # J2000 values and per-century rates: a (AU), e, i, L, ϖ (long. perihelion), Ω (deg)
    a: float
    e: float
    i: float
    L: float
    w: float
    O: float
    a_dot: float
    e_dot: float
    i_dot: float
    L_dot: float
    w_dot: float
    O_dot: float


_ELEMENTS: Dict[str, _Elements] = {
    "Mercury": _Elements(0.38709927, 0.20563593, 7.00497902, 252.25032350, 77.45779628, 48.33076593,
                         0.00000037, 0.00001906, -0.00594749, 149472.67411175, 0.16047689, -0.12534081),
    "Venus": _Elements(0.72333566, 0.00677672, 3.39467605, 181.97909950, 131.60246718, 76.67984255,
                       0.00000390, -0.00004107, -0.00078890, 58517.81538729, 0.00268329, -0.27769418),
    "Mars": _Elements(1.52371034, 0.09339410, 1.84969142, -4.55343205, -23.94362959, 49.55953891,
                      0.00001847, 0.00007882, -0.00813131, 19140.30268499, 0.44441088, -0.29257343),
    "Jupiter": _Elements(5.20288700, 0.04838624, 1.30439695, 34.39644051, 14.72847983, 100.47390909,
                         -0.00011607, -0.00013253, -0.00183714, 3034.74612775, 0.21252668, 0.20469106),
    "Saturn": _Elements(9.53667594, 0.05386179, 2.48599187, 49.95424423, 92.59887831, 113.66242448,
                        -0.00125060, -0.00050991, 0.00193609, 1222.49362201, -0.41897216, -0.28867794),
    "Uranus": _Elements(19.18916464, 0.04725744, 0.77263783, 313.23810451, 170.95427630, 74.01692503,
                        -0.00196176, -0.00004397, -0.00242939, 428.48202785, 0.40805281, 0.04240589),
    "Neptune": _Elements(30.06992276, 0.00859048, 1.77004347, -55.12002969, 44.96476227, 131.78422574,
                         0.00026291, 0.00005105, 0.00035372, 218.45945325, -0.32241464, -0.00508664),
    "Pluto": _Elements(39.48211675, 0.24882730, 17.14001206, 238.92903833, 224.06891629, 110.30393684,
                       -0.00031596, 0.00005170, 0.00004818, 145.20780515, -0.04062942, -0.01183482),
}

# Chiron: fixed elements, mean motion in deg/day from J2000.
_CHIRON = dict(a=13.648, e=0.3814, i=6.931, node=209.35, arg_peri=339.55, n=0.01953, M0=78.0)


def _orbit_to_heliocentric(
    a: float, e: float, M_rad: float, arg_peri_deg: float, node_deg: float, incl_deg: float
) -> Tuple[float, float, float]:
    E = solve_kepler(M_rad, e)
    xv = a * (math.cos(E) - e)
    yv = a * math.sqrt(1.0 - e * e) * math.sin(E)
    v = math.atan2(yv, xv)
    r = math.hypot(xv, yv)
    u = v + math.radians(arg_peri_deg)
    O = math.radians(node_deg)
    i = math.radians(incl_deg)
    xh = r * (math.cos(O) * math.cos(u) - math.sin(O) * math.sin(u) * math.cos(i))
    yh = r * (math.sin(O) * math.cos(u) + math.cos(O) * math.sin(u) * math.cos(i))
    zh = r * math.sin(u) * math.sin(i)
    return xh, yh, zh


def _geocentric(T: float, xh: float, yh: float, zh: float) -> Tuple[float, float, float]:
    xe, ye, ze = _earth_heliocentric(T)
    xg, yg, zg = xh - xe, yh - ye, zh - ze
    lon = wrap_deg(math.degrees(math.atan2(yg, xg)))
    lat = math.degrees(math.atan2(zg, math.hypot(xg, yg)))
    return lon, lat, math.sqrt(xg * xg + yg * yg + zg * zg)


def _planet(name: str) -> Callable[[float], Tuple[float, float, float]]:
    el = _ELEMENTS[name]

    def compute(jd: float) -> Tuple[float, float, float]:
        T = julian_centuries(jd)
        a = el.a + el.a_dot * T
        e = el.e + el.e_dot * T
        i = el.i + el.i_dot * T
        L = el.L + el.L_dot * T
        w = el.w + el.w_dot * T
        O = el.O + el.O_dot * T
        M = math.radians(wrap_deg(L - w))
        xh, yh, zh = _orbit_to_heliocentric(a, e, M, w - O, O, i)
        return _geocentric(T, xh, yh, zh)

    return compute


def _chiron(jd: float) -> Tuple[float, float, float]:
    c = _CHIRON
    M = math.radians(wrap_deg(c["M0"] + c["n"] * (jd - J2000_JD)))
    xh, yh, zh = _orbit_to_heliocentric(c["a"], c["e"], M, c["arg_peri"], c["node"], c["i"])
    return _geocentric(julian_centuries(jd), xh, yh, zh)


_RAW: Dict[str, Callable[[float], Tuple[float, float, float]]] = {
    "Sun": _sun,
    "Moon": _moon,
    **{name: _planet(name) for name in _ELEMENTS},
    "North Node": _mean_node,
    "Chiron": _chiron,
}


# ───────────────────────────── Public positions ───────────────────────
def body_position(body: str, jd: float, *, with_speed: bool = False) -> BodyPosition:
    name = canon_body(body)
    fn = _RAW[name]
    lon, lat, dist = fn(jd)
    speed: Optional[float] = None
    if with_speed:
        h = CFG.speed_step_days
        before = fn(jd - h)[0]
        after = fn(jd + h)[0]
        speed = delta_deg(before, after) / (2.0 * h)
    return BodyPosition(body=name, longitude=wrap_deg(lon), latitude=lat, distance=dist, speed=speed)


def all_positions(
    jd: float, bodies: Iterable[str] = BODIES, *, with_speed: bool = False
) -> Dict[str, BodyPosition]:
    out: Dict[str, BodyPosition] = {}
    for b in bodies:
        pos = body_position(b, jd, with_speed=with_speed)
        out[pos.body] = pos
    return out


# ───────────────────────────── Angles & houses ────────────────────────
def _sind(a: float) -> float: return math.sin(math.radians(a))
def _cosd(a: float) -> float: return math.cos(math.radians(a))
def _tand(a: float) -> float: return math.tan(math.radians(a))


def _atan2d(y: float, x: float, stage: str) -> float:
    if abs(x) < _EPS_ATAN and abs(y) < _EPS_ATAN:
        metrics.warn("degenerate_geometry")
        log.warning("atan2(0,0) in %s", stage)
        raise DegenerateGeometry(f"atan2(0,0) undefined in {stage}", stage=stage)
    return wrap_deg(math.degrees(math.atan2(y, x)))


def obliquity_deg(jd: float) -> float:
    """Mean obliquity of the ecliptic (IAU 2006)."""
    return math.degrees(float(erfa.obl06(2400000.5, jd - 2400000.5)))


def sidereal_time_deg(jd: float, longitude: float) -> float:
    """Local mean sidereal time (deg): GMST (IAU 1982, UT1≈UTC) + east longitude."""
    gmst = math.degrees(float(erfa.gmst82(2400000.5, jd - 2400000.5)))
    return wrap_deg(gmst + longitude)


def ascendant_deg(jd: float, latitude: float, longitude: float) -> float:
    if not math.isfinite(latitude) or abs(latitude) > CFG.polar_lat_limit or abs(_cosd(latitude)) < _EPS_ATAN:
        metrics.warn("degenerate_geometry")
        log.warning("ascendant undefined near pole: latitude=%r", latitude)
        raise DegenerateGeometry(
            f"latitude {latitude!r} beyond polar limit {CFG.polar_lat_limit}", stage="ascendant",
            latitude=latitude,
        )
    ramc = sidereal_time_deg(jd, longitude)
    eps = obliquity_deg(jd)
    y = _cosd(ramc)
    x = -(_sind(ramc) * _cosd(eps) + _tand(latitude) * _sind(eps))
    return _atan2d(y, x, "ascendant")


def midheaven_deg(jd: float, longitude: float) -> float:
    ramc = sidereal_time_deg(jd, longitude)
    eps = obliquity_deg(jd)
    return _atan2d(_sind(ramc), _cosd(ramc) * _cosd(eps), "midheaven")


def _equal(asc: float) -> List[float]:
    return [wrap_deg(asc + 30.0 * i) for i in range(12)]


def house_cusps(jd: float, latitude: float, longitude: float) -> List[float]:
    """Equal houses: cusp n = ASC + 30°·(n-1)."""
    return _equal(ascendant_deg(jd, latitude, longitude))


def house_of(longitude: float, cusps: List[float]) -> int:
    """House number (1..12) whose [cusp, next cusp) arc holds `longitude`."""
    if not math.isfinite(longitude):
        raise DegenerateGeometry(f"non-finite longitude {longitude!r}", stage="house_of")
    lon = wrap_deg(longitude)
    n = len(cusps)
    for i in range(n):
        start, end = cusps[i], cusps[(i + 1) % n]
        if end < start:
            if lon >= start or lon < end:
                return i + 1
        elif start <= lon < end:
            return i + 1
    raise DegenerateGeometry(f"longitude {lon} not bracketed by cusps", stage="house_of")

# astroforecast/core/users.py
# -*- coding: utf-8 -*-
"""
User profiles over an injected repository.

The store is a collaborator, not module state: callers build a repository
(InMemoryUserRepository or anything satisfying UserRepository) and hand it to
UserService. Timestamps come from an injectable clock.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple
import logging

from astroforecast.core.chart import BirthData, NatalChart, build_natal_chart
from astroforecast.core.influence import DEFAULT_FACTOR_CONFIG, InfluenceFactorConfig
from astroforecast.core.life_trend import LifeTrendData, life_trend
from astroforecast.core.processing import (
    ProcessedDailyForecast,
    ProcessedUserSnapshot,
    ProcessedWeeklyForecast,
    process_daily_forecast,
    process_weekly_forecast,
    processed_user_snapshot,
)

log = logging.getLogger(__name__)

__all__ = [
    "UserPreferences", "UserProfile", "UserRepository", "InMemoryUserRepository", "UserService",
]

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserPreferences:
    timezone: str = "UTC"
    language: str = "en"
    house_system: str = "equal"
    aspect_orbs: str = "standard"
    enable_notifications: bool = False
    focus_areas: Tuple[str, ...] = ("career", "relationship")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["focus_areas"] = list(self.focus_areas)
        return d


@dataclass
class UserProfile:
    id: str
    birth: BirthData
    chart: NatalChart
    preferences: UserPreferences
    created_at: datetime
    updated_at: datetime
    name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "birth": self.birth.to_dict(),
            "chart": self.chart.to_dict(),
            "preferences": self.preferences.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": dict(self.metadata),
        }


class UserRepository(Protocol):
    def get(self, user_id: str) -> Optional[UserProfile]: ...
    def put(self, profile: UserProfile) -> None: ...
    def delete(self, user_id: str) -> bool: ...
    def ids(self) -> List[str]: ...


class InMemoryUserRepository:
    """Dict-backed repository; one instance per owner, nothing shared."""

    def __init__(self) -> None:
        self._users: Dict[str, UserProfile] = {}

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self._users.get(user_id)

    def put(self, profile: UserProfile) -> None:
        self._users[profile.id] = profile

    def delete(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None

    def ids(self) -> List[str]:
        return list(self._users)

    def __len__(self) -> int:
        return len(self._users)


class UserService:
    def __init__(self, repo: UserRepository, clock: Clock = _utcnow) -> None:
        self.repo = repo
        self.clock = clock

    # ── CRUD ──────────────────────────────────────────────────────────────
    def create_user(self, user_id: str, birth: BirthData, **preferences: Any) -> UserProfile:
        if self.repo.get(user_id) is not None:
            raise ValueError(f"user {user_id!r} already exists")
        prefs = UserPreferences(timezone=birth.timezone)
        if preferences:
            prefs = replace(prefs, **preferences)
        now = self.clock()
        profile = UserProfile(
            id=user_id,
            birth=birth,
            chart=build_natal_chart(birth),
            preferences=prefs,
            created_at=now,
            updated_at=now,
            name=birth.name,
        )
        self.repo.put(profile)
        log.info("user created: %s", user_id)
        return profile

    def get_user(self, user_id: str) -> Optional[UserProfile]:
        return self.repo.get(user_id)

    def update_user(
        self,
        user_id: str,
        *,
        birth: Optional[BirthData] = None,
        name: Optional[str] = None,
        preferences: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[UserProfile]:
        """Apply changes; a new BirthData re-derives the natal chart. None if unknown."""
        current = self.repo.get(user_id)
        if current is None:
            return None
        changes: Dict[str, Any] = {"updated_at": self.clock()}
        if birth is not None and birth != current.birth:
            changes["birth"] = birth
            changes["chart"] = build_natal_chart(birth)
        if name is not None:
            changes["name"] = name
        if preferences:
            changes["preferences"] = replace(current.preferences, **preferences)
        if metadata:
            changes["metadata"] = {**current.metadata, **metadata}
        updated = replace(current, **changes)
        self.repo.put(updated)
        return updated

    def delete_user(self, user_id: str) -> bool:
        return self.repo.delete(user_id)

    def user_ids(self) -> List[str]:
        return self.repo.ids()

    # ── views ─────────────────────────────────────────────────────────────
    def state_snapshot(
        self,
        user_id: str,
        *,
        now: Optional[datetime] = None,
        config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG,
    ) -> Optional[ProcessedUserSnapshot]:
        user = self.repo.get(user_id)
        if user is None:
            return None
        return processed_user_snapshot(user.chart, config, now=now or self.clock())

    def daily_forecast(
        self,
        user_id: str,
        day: Optional[datetime] = None,
        config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG,
    ) -> Optional[ProcessedDailyForecast]:
        user = self.repo.get(user_id)
        if user is None:
            return None
        return process_daily_forecast(user.chart, day or self.clock(), config)

    def weekly_forecast(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        config: InfluenceFactorConfig = DEFAULT_FACTOR_CONFIG,
    ) -> Optional[ProcessedWeeklyForecast]:
        user = self.repo.get(user_id)
        if user is None:
            return None
        return process_weekly_forecast(user.chart, start or self.clock(), config)

    def life_trend(
        self, user_id: str, start_year: Optional[int] = None, end_year: Optional[int] = None
    ) -> Optional[LifeTrendData]:
        """Yearly trend; defaults to birth year through age 80."""
        user = self.repo.get(user_id)
        if user is None:
            return None
        birth_year = user.birth.when.year
        start = birth_year if start_year is None else start_year
        end = birth_year + 80 if end_year is None else end_year
        return life_trend(user.chart, start, end, "yearly")

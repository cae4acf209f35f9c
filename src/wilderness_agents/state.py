# Copyright 2025 msq
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import structlog

from wilderness_agents.models import (
    Coordinates,
    GuidanceVerdict,
    HazardAssessment,
    LocationQuery,
    TerrainProfile,
    ThemeMode,
    UserCapability,
    WeatherSnapshot,
)

logger = structlog.get_logger(__name__)

IDLE_PROGRESS = 0


class RefreshPhase(str, Enum):
    """刷新状态机阶段。"""

    IDLE = "IDLE"
    FETCHING_WEATHER = "FETCHING_WEATHER"
    FETCHING_DERIVED = "FETCHING_DERIVED"
    FETCHING_FIRE_ALERTS = "FETCHING_FIRE_ALERTS"


@dataclass
class RefreshCycle:
    """单次刷新的瞬态进度，周期结束后整体重置为空闲。"""

    query: Optional[LocationQuery] = None
    cycle_id: Optional[str] = None
    phase: RefreshPhase = RefreshPhase.IDLE
    progress: int = IDLE_PROGRESS
    busy: bool = False
    weather_busy: bool = False


@dataclass
class PresentationState:
    """进程级界面状态：主题、用户档案、坐标与最近一次的各项结果。

    结果槽位只由刷新编排器写入；用户档案、主题与坐标只经由下列方法修改。
    """

    location_input: str
    theme: ThemeMode = ThemeMode.NIGHT
    profile: UserCapability = field(default_factory=UserCapability)
    coordinates: Optional[Coordinates] = None
    cycle: RefreshCycle = field(default_factory=RefreshCycle)
    weather: Optional[WeatherSnapshot] = None
    assessment: Optional[HazardAssessment] = None
    guidance: Optional[GuidanceVerdict] = None
    terrain: Optional[TerrainProfile] = None
    fire_alerts: Optional[str] = None
    mounted: bool = False

    @property
    def fire_mode(self) -> bool:
        return self.theme is ThemeMode.FIRE

    def update_profile(self, **changes: Any) -> UserCapability:
        """部分更新用户档案，校验失败抛出 pydantic ValidationError，原档案不变。"""
        merged = {**self.profile.model_dump(), **changes}
        profile = UserCapability.model_validate(merged)
        self.profile = profile
        logger.info("user_profile_updated", fields=sorted(changes))
        return profile

    def set_theme(self, theme: ThemeMode | str) -> ThemeMode:
        mode = ThemeMode(theme.upper() if isinstance(theme, str) else theme)
        self.theme = mode
        logger.info("theme_changed", theme=mode.value, fire_mode=self.fire_mode)
        return mode

    def set_coordinates(self, coordinates: Optional[Coordinates]) -> None:
        self.coordinates = coordinates

    def set_location_input(self, text: str) -> None:
        self.location_input = text

    def snapshot(self) -> Dict[str, Any]:
        """JSON 友好的状态快照。"""

        def dump(record: Any) -> Any:
            return record.model_dump(mode="json") if record is not None else None

        return {
            "theme": self.theme.value,
            "fire_mode": self.fire_mode,
            "location_input": self.location_input,
            "profile": self.profile.model_dump(mode="json"),
            "coordinates": dump(self.coordinates),
            "busy": self.cycle.busy,
            "weather_busy": self.cycle.weather_busy,
            "progress": self.cycle.progress,
            "phase": self.cycle.phase.value,
            "cycle_id": self.cycle.cycle_id,
            "weather": dump(self.weather),
            "assessment": dump(self.assessment),
            "guidance": dump(self.guidance),
            "terrain": dump(self.terrain),
            "fire_alerts": self.fire_alerts,
        }

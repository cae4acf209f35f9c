"""野外安全情报强类型模型定义。

结果类记录均为不可变模型；字段别名对应提示词中要求模型输出的 camelCase 键名，
对外序列化统一使用 snake_case 字段名。
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, allow_inf_nan=False)


class ThemeMode(str, Enum):
    """界面主题；FIRE 主题即火情模式。"""

    NIGHT = "NIGHT"
    SUNRISE = "SUNRISE"
    RAIN = "RAIN"
    FIRE = "FIRE"
    EARTH = "EARTH"


class Coordinates(_Record):
    """地理坐标点位。"""

    lat: float = Field(..., ge=-90.0, le=90.0, description="纬度值")
    lng: float = Field(..., ge=-180.0, le=180.0, description="经度值")


class LocationQuery(_Record):
    """用户输入的地点查询，坐标由定位服务尽力提供。"""

    text: str = Field(..., description="地点自由文本")
    coordinates: Optional[Coordinates] = Field(None, description="当前坐标")

    @field_validator("text")
    @classmethod
    def _require_text(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("地点不能为空")
        return trimmed


class UserCapability(_Record):
    """用户能力档案，仅由用户直接编辑。"""

    experience: float = Field(50, ge=0, le=100, description="经验值（0-100）")
    fitness: float = Field(60, ge=0, le=100, description="体能值（0-100）")
    pack_weight: float = Field(12, ge=0, alias="packWeight", description="背包重量（kg）")
    group_size: int = Field(2, ge=1, alias="groupSize", description="队伍人数")
    start_time: str = Field(
        "07:30",
        alias="startTime",
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="计划出发时间（HH:MM）",
    )


class WeatherSnapshot(_Record):
    """实时天气快照，任何时刻所有字段均有值。"""

    temp: float = Field(..., description="气温（摄氏度）")
    condition: str = Field(..., description="天气状况")
    wind_speed: float = Field(..., alias="windSpeed", description="风速（km/h）")
    wind_dir: str = Field(..., alias="windDir", description="风向")
    humidity: float = Field(..., description="湿度（%）")
    precip_prob: float = Field(..., alias="precipProb", description="降水概率（%）")
    visibility: float = Field(..., description="能见度（km）")
    sunset: str = Field(..., description="日落时间")
    elevation: float = Field(..., description="海拔（m）")
    confidence: float = Field(..., description="模型自评置信度（0-100）")
    location_name: str = Field(..., alias="locationName", description="地点名称")
    last_updated: str = Field(..., alias="lastUpdated", description="采集时间")


class HazardTier(str, Enum):
    """危险等级，LOW < MODERATE < HIGH < EXTREME。"""

    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    EXTREME = "EXTREME"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {
    HazardTier.LOW: 0,
    HazardTier.MODERATE: 1,
    HazardTier.HIGH: 2,
    HazardTier.EXTREME: 3,
}


class HazardLevel(_Record):
    """由分值推导出的单项危险等级。"""

    level: HazardTier
    score: float
    label: str
    description: str


class FireDetails(_Record):
    """火情模式下的火险细节。"""

    danger_rating: str = Field("", alias="dangerRating")
    wind_effect: str = Field("", alias="windEffect")
    drying_trend: str = Field("", alias="dryingTrend")
    fuel_dryness: str = Field("", alias="fuelDryness")
    ai_interpretation: str = Field("", alias="aiInterpretation")


class HazardAssessment(_Record):
    """五类危险评估与综合安全分（越高越安全）。"""

    thunderstorm: HazardLevel
    heat: HazardLevel
    cold: HazardLevel
    fire: HazardLevel
    flood: HazardLevel
    safety_score: float = Field(..., alias="safetyScore")
    fire_details: Optional[FireDetails] = Field(None, alias="fireDetails")


class TerrainProfile(_Record):
    """地形概况。"""

    type: str
    exposure: str
    hazards: List[str] = Field(default_factory=list)
    ranger_note: str = Field(..., alias="rangerNote")


class GuidanceStatus(str, Enum):
    """出行结论，severity 仅用于界面色调映射。"""

    GO = "GO"
    CAUTION = "CAUTION"
    MODIFY = "MODIFY"
    NOGO = "NOGO"

    @property
    def severity(self) -> int:
        return _STATUS_SEVERITY[self]


_STATUS_SEVERITY = {
    GuidanceStatus.GO: 0,
    GuidanceStatus.CAUTION: 1,
    GuidanceStatus.MODIFY: 2,
    GuidanceStatus.NOGO: 3,
}


class GuidanceVerdict(_Record):
    """护林员式出行建议。"""

    status: GuidanceStatus
    reasoning: str
    packing_hints: List[str] = Field(default_factory=list, alias="packingHints")
    ai_summary: str = Field(..., alias="aiSummary")
    safety_index: float = Field(..., alias="safetyIndex")

    @field_validator("status", mode="before")
    @classmethod
    def _canonical_status(cls, value: object) -> object:
        # 兼容 "no-go" / "No Go" 等写法
        if isinstance(value, str):
            return value.strip().upper().replace("-", "").replace("_", "").replace(" ", "")
        return value

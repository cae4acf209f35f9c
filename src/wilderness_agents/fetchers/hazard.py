# Copyright 2025 msq
from __future__ import annotations

from typing import Any, Mapping, Optional

import structlog

from wilderness_agents.fetchers.base import FetcherSettings, coerce_number, invoke
from wilderness_agents.fetchers.prompts import build_hazard_prompt
from wilderness_agents.hazards import score_to_level
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator
from wilderness_agents.models import (
    FireDetails,
    HazardAssessment,
    HazardLevel,
    HazardTier,
    WeatherSnapshot,
)
from wilderness_agents.normalizer import normalize, overlay

logger = structlog.get_logger(__name__)

HAZARD_OPTIONS = GenerationOptions(request_json_output=True)
HAZARD_KEYS = ("thunderstorm", "heat", "cold", "fire", "flood")
DEFAULT_SAFETY_SCORE = 50.0


def fallback_assessment() -> HazardAssessment:
    level = HazardLevel(level=HazardTier.LOW, score=0, label="LOW", description="N/A")
    return HazardAssessment(
        thunderstorm=level,
        heat=level,
        cold=level,
        fire=level,
        flood=level,
        safety_score=DEFAULT_SAFETY_SCORE,
    )


def _raw_score(value: Any) -> Any:
    # 兼容 {"thunderstorm": {"score": 70}} 的嵌套写法
    if isinstance(value, Mapping):
        return value.get("score")
    return value


def _fire_details(raw: Any, fire_mode: bool) -> Optional[FireDetails]:
    if not fire_mode or not isinstance(raw, Mapping):
        return None
    return overlay(FireDetails(), raw)


async def fetch_hazard_assessment(
    collaborator: LLMCollaborator,
    weather: WeatherSnapshot,
    *,
    fire_mode: bool,
    settings: FetcherSettings,
) -> HazardAssessment:
    """基于天气快照评估五类危险；失败或输出不可用时返回全 LOW 的保守结果。"""
    fallback = fallback_assessment()
    try:
        text = await invoke(
            collaborator,
            fetcher="hazard",
            model=settings.fast_model,
            prompt=build_hazard_prompt(weather, fire_mode),
            options=HAZARD_OPTIONS,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("hazard_fetch_failed", location=weather.location_name, error=str(exc))
        return fallback

    data = normalize(text, fallback)
    if not isinstance(data, Mapping):
        return fallback

    levels = {key: score_to_level(_raw_score(data.get(key))) for key in HAZARD_KEYS}
    return HazardAssessment(
        **levels,
        safety_score=coerce_number(data.get("safetyScore", data.get("safety_score")), DEFAULT_SAFETY_SCORE),
        fire_details=_fire_details(data.get("fireDetails", data.get("fire_details")), fire_mode),
    )

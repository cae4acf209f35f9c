# Copyright 2025 msq
from __future__ import annotations

from datetime import datetime

import structlog

from wilderness_agents.fetchers.base import FetcherSettings, invoke
from wilderness_agents.fetchers.prompts import build_weather_prompt
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator
from wilderness_agents.models import WeatherSnapshot
from wilderness_agents.normalizer import normalize, overlay

logger = structlog.get_logger(__name__)

OFFLINE_CONDITION = "OFFLINE/DATA ERROR"

WEATHER_OPTIONS = GenerationOptions(enable_search_grounding=True, request_json_output=True)


def _capture_time() -> str:
    return datetime.now().strftime("%H:%M:%S")


def offline_weather(location: str) -> WeatherSnapshot:
    """离线占位快照：所有数值为 0，置信度 0，保留调用方地点名。"""
    return WeatherSnapshot(
        temp=0,
        condition=OFFLINE_CONDITION,
        wind_speed=0,
        wind_dir="--",
        humidity=0,
        precip_prob=0,
        visibility=0,
        sunset="--:--",
        elevation=0,
        confidence=0,
        location_name=location,
        last_updated=_capture_time(),
    )


async def fetch_weather(
    collaborator: LLMCollaborator,
    location: str,
    *,
    settings: FetcherSettings,
) -> WeatherSnapshot:
    """联网检索实时天气；任何失败返回离线占位快照。

    地点名始终取调用方传入值，不采用模型回显的名称。
    """
    fallback = offline_weather(location)
    try:
        text = await invoke(
            collaborator,
            fetcher="weather",
            model=settings.search_model,
            prompt=build_weather_prompt(location),
            options=WEATHER_OPTIONS,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("weather_fetch_failed", location=location, error=str(exc))
        return fallback

    parsed = normalize(text, fallback)
    return overlay(
        fallback,
        parsed,
        location_name=location,
        last_updated=_capture_time(),
    )

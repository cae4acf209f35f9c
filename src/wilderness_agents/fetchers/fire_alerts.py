# Copyright 2025 msq
from __future__ import annotations

import structlog

from wilderness_agents.fetchers.base import FetcherSettings, invoke
from wilderness_agents.fetchers.prompts import build_fire_alert_prompt
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator

logger = structlog.get_logger(__name__)

NO_ALERTS_MESSAGE = "No localized fire alerts found."
SYNC_FAILED_MESSAGE = "Telemetry sync failed."

FIRE_ALERT_OPTIONS = GenerationOptions(enable_search_grounding=True)


async def search_fire_alerts(
    collaborator: LLMCollaborator,
    location: str,
    *,
    settings: FetcherSettings,
) -> str:
    """联网检索近 72 小时火情与步道封闭通报，返回自由文本摘要。"""
    try:
        text = await invoke(
            collaborator,
            fetcher="fire_alerts",
            model=settings.search_model,
            prompt=build_fire_alert_prompt(location),
            options=FIRE_ALERT_OPTIONS,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("fire_alert_search_failed", location=location, error=str(exc))
        return SYNC_FAILED_MESSAGE

    if not text or not text.strip():
        return NO_ALERTS_MESSAGE
    return text.strip()

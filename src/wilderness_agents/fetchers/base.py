# Copyright 2025 msq
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from wilderness_agents.config import AppConfig
from wilderness_agents.llm.client import GenerationOptions, LLMCollaborator

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FetcherSettings:
    """各领域请求使用的模型档位。

    Attributes:
        fast_model: 天气以外的常规请求（危险评估、地形）。
        reasoning_model: 出行结论使用的高阶推理模型。
        search_model: 需要联网检索（天气、火情通报）时使用的模型。
        guidance_reasoning_budget: 出行结论的推理预算，None 表示不设置。
    """

    fast_model: str = "gpt-4o-mini"
    reasoning_model: str = "gpt-4o"
    search_model: str = "gpt-4o-mini-search-preview"
    guidance_reasoning_budget: Optional[int] = 10000

    @classmethod
    def from_config(cls, cfg: AppConfig) -> "FetcherSettings":
        return cls(
            fast_model=cfg.fast_model,
            reasoning_model=cfg.reasoning_model,
            search_model=cfg.search_model,
            guidance_reasoning_budget=cfg.guidance_reasoning_budget,
        )


async def invoke(
    collaborator: LLMCollaborator,
    *,
    fetcher: str,
    model: str,
    prompt: str,
    options: GenerationOptions,
) -> Optional[str]:
    """调用协作者并记录耗时；异常原样抛出，由各 fetcher 转为降级结果。"""
    start = time.perf_counter()
    text = await collaborator.generate(model, prompt, options)
    logger.info(
        "fetcher_llm_completed",
        fetcher=fetcher,
        model=model,
        grounded=options.enable_search_grounding,
        elapsed_ms=int((time.perf_counter() - start) * 1000),
        response_chars=len(text or ""),
    )
    return text


def coerce_number(value: Any, default: float) -> float:
    """模型给出的数值字段：数字或数字字符串原样采用，其余回退 default。"""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
    else:
        return default
    return number if math.isfinite(number) else default

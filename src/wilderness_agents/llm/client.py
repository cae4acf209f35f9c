# Copyright 2025 msq
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import structlog
from openai import AsyncOpenAI

from wilderness_agents.config import AppConfig
from wilderness_agents.llm.endpoint_manager import LLMEndpointConfig, LLMEndpointManager

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GenerationOptions:
    """单次生成请求的能力开关。

    Attributes:
        enable_search_grounding: 允许模型引用实时搜索结果。
        request_json_output: 请求严格 JSON 输出（JSON mode）。
        reasoning_budget: 推理 token 预算，None 表示不设置。
    """

    enable_search_grounding: bool = False
    request_json_output: bool = False
    reasoning_budget: Optional[int] = None


@runtime_checkable
class LLMCollaborator(Protocol):
    """外部大模型服务边界：输入提示词，返回可能包含 JSON 的自由文本。"""

    async def generate(
        self,
        model: str,
        prompt: str,
        options: GenerationOptions,
    ) -> Optional[str]:
        ...


def build_completion_kwargs(model: str, prompt: str, options: GenerationOptions) -> Dict[str, Any]:
    """把 GenerationOptions 映射为 OpenAI 兼容 chat.completions 参数。"""
    kwargs: Dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
    }
    if options.request_json_output:
        kwargs["response_format"] = {"type": "json_object"}
    if options.enable_search_grounding:
        kwargs["web_search_options"] = {}
    if options.reasoning_budget:
        # OpenAI 兼容网关通过 extra_body 透传推理预算
        kwargs["extra_body"] = {"reasoning": {"max_tokens": int(options.reasoning_budget)}}
    return kwargs


class OpenAICollaborator:
    """基于 OpenAI 兼容接口的协作者实现，调用经端点管理器主备切换。"""

    def __init__(self, manager: LLMEndpointManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> LLMEndpointManager:
        return self._manager

    async def generate(
        self,
        model: str,
        prompt: str,
        options: GenerationOptions,
    ) -> Optional[str]:
        kwargs = build_completion_kwargs(model, prompt, options)

        async def caller(client: AsyncOpenAI, endpoint: LLMEndpointConfig):
            return await client.chat.completions.create(**kwargs)

        response = await self._manager.call("chat_completion", caller)
        choices = getattr(response, "choices", None) or []
        if not choices:
            logger.warning("llm_empty_choices", model=model)
            return None
        return choices[0].message.content

    async def aclose(self) -> None:
        await self._manager.aclose()


def get_collaborator(config: Optional[AppConfig] = None) -> OpenAICollaborator:
    cfg = config or AppConfig.load_from_env()
    return OpenAICollaborator(LLMEndpointManager.from_config(cfg))

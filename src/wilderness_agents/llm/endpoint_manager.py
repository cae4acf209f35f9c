# Copyright 2025 msq
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar

import httpx
import structlog
from openai import AsyncOpenAI

if TYPE_CHECKING:
    from wilderness_agents.config import AppConfig

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class LLMEndpointsExhaustedError(RuntimeError):
    """所有端点均调用失败时抛出。"""

    def __init__(self, operation: str, states: Dict[str, Dict[str, object]]) -> None:
        super().__init__(f"LLM endpoints exhausted during {operation}")
        self.operation = operation
        self.states = states


@dataclass(frozen=True)
class LLMEndpointConfig:
    """LLM端点配置。

    Attributes:
        name: 端点名称（用于日志）。
        base_url: OpenAI 兼容服务的 Base URL。
        api_key: 调用该端点时使用的 API Key。
        priority: 优先级，数值越大越优先。
    """

    name: str
    base_url: str
    api_key: str
    priority: int = 100


@dataclass
class LLMEndpointState:
    """端点熔断状态。"""

    available: bool = True
    consecutive_failures: int = 0
    half_open: bool = False
    recovery_at: float = 0.0


class LLMEndpointManager:
    """LLM端点管理器：主备切换、熔断与恢复。

    说明：
    - 按优先级选择第一个可用端点；
    - 连续失败达到阈值（或遇到 429 限流）时熔断该端点，转用下一个；
    - 到达恢复时间后端点以半开状态重新参与选择；
    - 所有端点都熔断时仍尝试优先级最高的端点，避免完全拒绝服务。
    """

    def __init__(
        self,
        endpoints: List[LLMEndpointConfig],
        *,
        client_builder: Callable[[LLMEndpointConfig], AsyncOpenAI],
        failure_threshold: int = 3,
        recovery_seconds: int = 60,
        max_concurrency: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not endpoints:
            raise ValueError("至少需要一个LLM端点配置")
        self._order: List[LLMEndpointConfig] = sorted(
            endpoints, key=lambda e: e.priority, reverse=True
        )
        self._states: Dict[str, LLMEndpointState] = {
            endpoint.name: LLMEndpointState() for endpoint in self._order
        }
        self._builder = client_builder
        self._failure_threshold = max(1, failure_threshold)
        self._recovery_seconds = max(1, recovery_seconds)
        self._clock = clock
        self._clients: Dict[str, AsyncOpenAI] = {}
        self._semaphore = asyncio.Semaphore(max(1, int(max_concurrency)))

        logger.info(
            "llm_endpoint_manager_initialized",
            endpoints=[e.name for e in self._order],
            failure_threshold=self._failure_threshold,
            recovery_seconds=self._recovery_seconds,
        )

    @classmethod
    def from_config(cls, cfg: "AppConfig") -> "LLMEndpointManager":
        return cls.from_endpoints(
            cfg.llm_endpoints,
            failure_threshold=cfg.llm_failure_threshold,
            recovery_seconds=cfg.llm_recovery_seconds,
            max_concurrency=cfg.llm_max_concurrency,
            request_timeout=cfg.llm_request_timeout_seconds,
        )

    @classmethod
    def from_endpoints(
        cls,
        endpoints: Iterable[LLMEndpointConfig],
        *,
        failure_threshold: int,
        recovery_seconds: int,
        max_concurrency: int,
        request_timeout: float,
    ) -> "LLMEndpointManager":
        timeout_seconds = max(1.0, float(request_timeout))

        def build(endpoint: LLMEndpointConfig) -> AsyncOpenAI:
            timeout = httpx.Timeout(
                connect=5.0,
                read=timeout_seconds,
                write=timeout_seconds,
                pool=timeout_seconds,
            )
            return AsyncOpenAI(
                base_url=endpoint.base_url,
                api_key=endpoint.api_key,
                http_client=httpx.AsyncClient(trust_env=False, timeout=timeout),
                timeout=timeout_seconds,
            )

        return cls(
            list(endpoints),
            client_builder=build,
            failure_threshold=failure_threshold,
            recovery_seconds=recovery_seconds,
            max_concurrency=max_concurrency,
        )

    def _select_endpoint(self) -> LLMEndpointConfig:
        now = self._clock()
        for endpoint in self._order:
            state = self._states[endpoint.name]
            if not state.available and now >= state.recovery_at:
                state.available = True
                state.half_open = True
            if state.available:
                return endpoint

        fallback = self._order[0]
        logger.warning("llm_all_endpoints_unavailable", fallback=fallback.name, states=self._snapshot())
        return fallback

    def _client_for(self, endpoint: LLMEndpointConfig) -> AsyncOpenAI:
        client = self._clients.get(endpoint.name)
        if client is None:
            client = self._builder(endpoint)
            self._clients[endpoint.name] = client
        return client

    def _on_success(self, endpoint: LLMEndpointConfig, latency_ms: int) -> None:
        state = self._states[endpoint.name]
        state.consecutive_failures = 0
        state.available = True
        state.half_open = False
        logger.debug("llm_endpoint_success", endpoint=endpoint.name, latency_ms=latency_ms)

    def _on_failure(self, endpoint: LLMEndpointConfig, latency_ms: int, error: Exception) -> None:
        state = self._states[endpoint.name]
        state.consecutive_failures += 1

        status_code = getattr(error, "status_code", None)
        rate_limited = status_code == 429
        # 半开试探失败立即重新熔断
        if state.half_open or rate_limited or state.consecutive_failures >= self._failure_threshold:
            cooldown = self._recovery_seconds * (2 if rate_limited else 1)
            state.available = False
            state.half_open = False
            state.recovery_at = self._clock() + cooldown

        logger.warning(
            "llm_endpoint_failure",
            endpoint=endpoint.name,
            latency_ms=latency_ms,
            failure_count=state.consecutive_failures,
            marked_unavailable=not state.available,
            rate_limited=rate_limited,
            error=str(error),
        )

    def _snapshot(self) -> Dict[str, Dict[str, object]]:
        return {
            name: {
                "available": state.available,
                "half_open": state.half_open,
                "failures": state.consecutive_failures,
                "recovery_at": state.recovery_at,
            }
            for name, state in self._states.items()
        }

    async def call(
        self,
        operation: str,
        caller: Callable[[AsyncOpenAI, LLMEndpointConfig], Awaitable[T]],
    ) -> T:
        """异步调用入口：失败后按熔断状态重新选择端点，直至尝试次数用尽。"""
        last_exc: Optional[Exception] = None
        max_attempts = len(self._order) + self._failure_threshold

        for _ in range(max_attempts):
            async with self._semaphore:
                endpoint = self._select_endpoint()
                client = self._client_for(endpoint)
                start = time.perf_counter()
                try:
                    result = await caller(client, endpoint)
                except Exception as exc:  # noqa: BLE001
                    self._on_failure(endpoint, int((time.perf_counter() - start) * 1000), exc)
                    last_exc = exc
                    continue
                self._on_success(endpoint, int((time.perf_counter() - start) * 1000))
                return result

        assert last_exc is not None
        snapshot = self._snapshot()
        logger.error("llm_endpoints_exhausted", operation=operation, states=snapshot)
        raise LLMEndpointsExhaustedError(operation, snapshot) from last_exc

    def status_snapshot(self) -> Dict[str, Dict[str, object]]:
        """供监控/日志使用的状态快照。"""
        return self._snapshot()

    async def aclose(self) -> None:
        for client in self._clients.values():
            await client.close()
        self._clients.clear()

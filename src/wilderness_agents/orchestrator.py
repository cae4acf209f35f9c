"""
刷新编排器

状态机：IDLE → FETCHING_WEATHER → FETCHING_DERIVED → FETCHING_FIRE_ALERTS（仅火情模式）→ IDLE

要点：
- 可重入保护：周期进行中再次请求刷新直接丢弃（不排队）；
- 天气结果先行发布，界面可在其余请求完成前渲染天气；
- 危险评估、出行结论、地形三路并发，等待全部结束（wait-all），单路异常不影响其余两路；
- 无论成功、异常还是取消，周期结束时忙碌标志与进度都复位到空闲值；
- 编排层不设超时，耗时完全取决于协作者自身（HTTP 客户端超时）。
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
import uuid
from typing import Callable, List, Optional, Union

import structlog
from prometheus_client import Counter, Histogram

from wilderness_agents.fetchers import (
    FetcherSettings,
    fetch_guidance,
    fetch_hazard_assessment,
    fetch_terrain,
    fetch_weather,
    search_fire_alerts,
)
from wilderness_agents.llm.client import LLMCollaborator
from wilderness_agents.logging import bind_trace_id, reset_trace_id
from wilderness_agents.models import LocationQuery
from wilderness_agents.state import PresentationState, RefreshCycle, RefreshPhase

logger = structlog.get_logger(__name__)

PROGRESS_STARTED = 10
PROGRESS_WEATHER_REQUESTED = 20
PROGRESS_WEATHER_DONE = 45
PROGRESS_DERIVED_DONE = 85
PROGRESS_COMPLETE = 100

refresh_total = Counter(
    "wilderness_refresh_total",
    "刷新周期数（按结果分类）",
    ["outcome"],
)
refresh_seconds = Histogram(
    "wilderness_refresh_seconds",
    "刷新周期耗时（秒）",
    buckets=(1.0, 2.5, 5.0, 10.0, 20.0, 40.0, 80.0),
)

ProgressListener = Callable[[RefreshCycle], None]


class RefreshOrchestrator:
    """按依赖顺序调度各领域请求，并把结果发布到界面状态。"""

    def __init__(
        self,
        collaborator: LLMCollaborator,
        state: PresentationState,
        *,
        settings: Optional[FetcherSettings] = None,
    ) -> None:
        self._collaborator = collaborator
        self._state = state
        self._settings = settings or FetcherSettings()
        self._listeners: List[ProgressListener] = []

    @property
    def state(self) -> PresentationState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._state.cycle.busy

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        snapshot = dataclasses.replace(self._state.cycle)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning("refresh_listener_failed", error=str(exc))

    def _advance(self, *, phase: Optional[RefreshPhase] = None, progress: Optional[int] = None) -> None:
        cycle = self._state.cycle
        if phase is not None:
            cycle.phase = phase
        if progress is not None:
            cycle.progress = progress
        self._notify()

    async def refresh(self, location: Union[str, LocationQuery]) -> bool:
        """执行一次完整刷新周期。

        Returns:
            True 表示本次请求启动并完成了一个周期；
            False 表示请求被丢弃（已有周期进行中，或地点为空）。
        """
        if self._state.cycle.busy:
            logger.info("refresh_dropped_busy", cycle_id=self._state.cycle.cycle_id)
            refresh_total.labels(outcome="dropped").inc()
            return False

        if isinstance(location, LocationQuery):
            query = location
        else:
            if not location or not location.strip():
                logger.info("refresh_dropped_empty_location")
                refresh_total.labels(outcome="dropped").inc()
                return False
            query = LocationQuery(text=location, coordinates=self._state.coordinates)

        # 置忙必须在第一个 await 之前完成
        cycle_id = uuid.uuid4().hex[:12]
        self._state.cycle = RefreshCycle(
            query=query,
            cycle_id=cycle_id,
            phase=RefreshPhase.FETCHING_WEATHER,
            progress=PROGRESS_STARTED,
            busy=True,
            weather_busy=True,
        )
        token = bind_trace_id(cycle_id)
        start = time.perf_counter()
        outcome = "completed"
        try:
            self._notify()
            await self._run_cycle(query)
        except Exception as exc:  # noqa: BLE001
            outcome = "failed"
            logger.exception("refresh_cycle_failed", location=query.text, error=str(exc))
        except asyncio.CancelledError:
            outcome = "cancelled"
            logger.info("refresh_cycle_cancelled", location=query.text)
            raise
        finally:
            elapsed = time.perf_counter() - start
            refresh_total.labels(outcome=outcome).inc()
            refresh_seconds.observe(elapsed)
            self._state.cycle = RefreshCycle()
            self._notify()
            logger.info(
                "refresh_cycle_finished",
                location=query.text,
                outcome=outcome,
                elapsed_ms=int(elapsed * 1000),
            )
            reset_trace_id(token)
        return True

    async def _run_cycle(self, query: LocationQuery) -> None:
        state = self._state
        # 周期开始时固定输入，周期内用户编辑不影响本次请求
        profile = state.profile
        coordinates = query.coordinates or state.coordinates
        fire_mode = state.fire_mode
        logger.info("refresh_cycle_started", location=query.text, fire_mode=fire_mode)

        self._advance(progress=PROGRESS_WEATHER_REQUESTED)
        weather = await fetch_weather(self._collaborator, query.text, settings=self._settings)
        state.weather = weather
        state.cycle.weather_busy = False
        self._advance(phase=RefreshPhase.FETCHING_DERIVED, progress=PROGRESS_WEATHER_DONE)

        results = await asyncio.gather(
            fetch_hazard_assessment(
                self._collaborator, weather, fire_mode=fire_mode, settings=self._settings
            ),
            fetch_guidance(
                self._collaborator,
                weather,
                profile,
                coordinates=coordinates,
                fire_mode=fire_mode,
                settings=self._settings,
            ),
            fetch_terrain(self._collaborator, weather.location_name, settings=self._settings),
            return_exceptions=True,
        )
        assessment, guidance, terrain = results
        for slot, result in (("assessment", assessment), ("guidance", guidance), ("terrain", terrain)):
            if isinstance(result, BaseException):
                # fetcher 违反不抛异常约定时保留该槽位上一周期的值
                logger.error("derived_fetch_raised", slot=slot, error=repr(result))
                continue
            setattr(state, slot, result)

        if fire_mode:
            self._advance(phase=RefreshPhase.FETCHING_FIRE_ALERTS, progress=PROGRESS_DERIVED_DONE)
            state.fire_alerts = await search_fire_alerts(
                self._collaborator, weather.location_name, settings=self._settings
            )
        else:
            # 火情通报只在火情模式下存在
            state.fire_alerts = None
            self._advance(progress=PROGRESS_DERIVED_DONE)

        self._advance(progress=PROGRESS_COMPLETE)

# Copyright 2025 msq
from __future__ import annotations

import asyncio
import inspect
from contextlib import suppress
from typing import Optional, Set

import structlog

from wilderness_agents.geo import GeolocationProvider
from wilderness_agents.orchestrator import RefreshOrchestrator
from wilderness_agents.state import PresentationState

logger = structlog.get_logger(__name__)


class DashboardSession:
    """界面状态的生命周期：挂载时定位并自动刷新一次，卸载时取消未完成任务。"""

    def __init__(
        self,
        orchestrator: RefreshOrchestrator,
        *,
        geolocator: Optional[GeolocationProvider] = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._geolocator = geolocator
        self._tasks: Set[asyncio.Task[None]] = set()
        self._initial_refresh_done = False
        self._refresh_task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> PresentationState:
        return self._orchestrator.state

    @property
    def orchestrator(self) -> RefreshOrchestrator:
        return self._orchestrator

    def _spawn(self, coro, *, name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def mount(self) -> None:
        """挂载：首次挂载触发一次刷新，并发起一次定位请求。"""
        if self.state.mounted:
            return
        self.state.mounted = True
        logger.info("dashboard_mounted", location=self.state.location_input)

        if not self._initial_refresh_done:
            self._initial_refresh_done = True
            self._refresh_task = self._spawn(
                self._run_refresh(self.state.location_input), name="initial-refresh"
            )
        if self._geolocator is not None:
            self._spawn(self._locate(), name="geolocate")

    async def unmount(self) -> None:
        if not self.state.mounted:
            return
        self.state.mounted = False
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        for task in pending:
            with suppress(asyncio.CancelledError):
                await task
        close = getattr(self._geolocator, "close", None)
        if callable(close):
            result = close()
            if inspect.isawaitable(result):
                await result
        logger.info("dashboard_unmounted", cancelled_tasks=len(pending))

    async def _locate(self) -> None:
        assert self._geolocator is not None
        try:
            coordinates = await self._geolocator.locate()
        except Exception as exc:  # noqa: BLE001
            logger.info("geolocation_opted_out", error=str(exc))
            return
        if coordinates is None:
            logger.info("geolocation_unavailable")
            return
        self.state.set_coordinates(coordinates)
        logger.info("geolocation_resolved", lat=coordinates.lat, lng=coordinates.lng)

    async def _run_refresh(self, location: str) -> None:
        await self._orchestrator.refresh(location)

    def request_refresh(self, location: Optional[str] = None) -> bool:
        """用户提交地点或点击重新计算：后台启动刷新周期。

        Args:
            location: 新地点；None 表示沿用当前输入框中的地点。

        Returns:
            是否启动了新周期（已有周期进行中时返回 False）。

        Raises:
            ValueError: 地点去除空白后为空。
        """
        text = self.state.location_input if location is None else location
        if not text or not text.strip():
            raise ValueError("地点不能为空")
        self.state.set_location_input(text)
        in_flight = self._refresh_task is not None and not self._refresh_task.done()
        if self._orchestrator.busy or in_flight:
            logger.info("refresh_request_dropped_busy", location=text)
            return False
        self._refresh_task = self._spawn(self._run_refresh(text), name="refresh")
        return True

    async def wait_idle(self) -> None:
        """等待当前后台刷新周期结束（没有周期时立即返回）。"""
        task = self._refresh_task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def refresh(self, location: Optional[str] = None) -> bool:
        """前台执行刷新并等待周期结束。"""
        text = self.state.location_input if location is None else location
        if not text or not text.strip():
            raise ValueError("地点不能为空")
        self.state.set_location_input(text)
        return await self._orchestrator.refresh(text)

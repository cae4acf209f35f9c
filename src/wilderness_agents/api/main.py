#!/usr/bin/env python3
# Copyright 2025 msq
from __future__ import annotations

import inspect
import uuid
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from wilderness_agents.config import AppConfig, load_env_files
from wilderness_agents.fetchers import FetcherSettings
from wilderness_agents.geo import GeolocationProvider, build_geolocation_provider
from wilderness_agents.llm.client import LLMCollaborator, get_collaborator
from wilderness_agents.logging import clear_trace_id, configure_logging, set_trace_id
from wilderness_agents.models import Coordinates, ThemeMode
from wilderness_agents.orchestrator import RefreshOrchestrator
from wilderness_agents.session import DashboardSession
from wilderness_agents.state import PresentationState

logger = structlog.get_logger(__name__)


# ========== Trace-ID中间件：自动注入请求追踪ID ==========
class TraceIDMiddleware(BaseHTTPMiddleware):
    """为每个HTTP请求注入trace-id到日志上下文，并通过响应头 X-Trace-Id 返回。"""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id") or str(uuid.uuid4())
        set_trace_id(trace_id)
        try:
            response = await call_next(request)
            response.headers["X-Trace-Id"] = trace_id
            return response
        finally:
            clear_trace_id()


class RefreshRequest(BaseModel):
    """刷新请求；location 为空时沿用当前地点输入。"""

    location: Optional[str] = Field(None, description="地点自由文本")
    wait: bool = Field(False, description="是否等待周期结束再返回")


class ProfileUpdate(BaseModel):
    """用户档案部分更新，范围校验由 UserCapability 负责。"""

    experience: Optional[float] = None
    fitness: Optional[float] = None
    pack_weight: Optional[float] = None
    group_size: Optional[int] = None
    start_time: Optional[str] = None


class ThemeUpdate(BaseModel):
    theme: ThemeMode


def _session(request: Request) -> DashboardSession:
    return request.app.state.session


def create_app(
    config: Optional[AppConfig] = None,
    *,
    collaborator: Optional[LLMCollaborator] = None,
    geolocator: Optional[GeolocationProvider] = None,
) -> FastAPI:
    """构建 API 应用；collaborator / geolocator 未传入时按配置创建。"""
    cfg = config or AppConfig.load_from_env()
    app = FastAPI(title="Wilderness Safety Intelligence API")
    app.add_middleware(TraceIDMiddleware)

    @app.on_event("startup")
    async def startup_event() -> None:
        configure_logging(json_logs=cfg.log_json, log_level=cfg.log_level)
        llm = collaborator if collaborator is not None else get_collaborator(cfg)
        locator = geolocator if geolocator is not None else build_geolocation_provider(cfg)
        state = PresentationState(
            location_input=cfg.default_location,
            theme=ThemeMode(cfg.default_theme),
        )
        orchestrator = RefreshOrchestrator(
            llm,
            state,
            settings=FetcherSettings.from_config(cfg),
        )
        session = DashboardSession(orchestrator, geolocator=locator)
        app.state.collaborator = llm
        app.state.session = session
        await session.mount()
        logger.info("api_startup_completed", location=cfg.default_location)

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        session: Optional[DashboardSession] = getattr(app.state, "session", None)
        if session is not None:
            await session.unmount()
        # 只关闭由应用自行创建的协作者
        if collaborator is None:
            close = getattr(app.state.collaborator, "aclose", None)
            if callable(close):
                result = close()
                if inspect.isawaitable(result):
                    await result
        logger.info("api_shutdown_completed")

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/state")
    async def get_state(request: Request) -> Dict[str, Any]:
        return _session(request).state.snapshot()

    @app.post("/refresh", status_code=202)
    async def refresh(body: RefreshRequest, request: Request) -> Dict[str, Any]:
        session = _session(request)
        try:
            accepted = session.request_refresh(body.location)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if body.wait:
            await session.wait_idle()
        return {"accepted": accepted, "state": session.state.snapshot()}

    @app.put("/profile")
    async def update_profile(body: ProfileUpdate, request: Request) -> Dict[str, Any]:
        changes = body.model_dump(exclude_none=True)
        try:
            profile = _session(request).state.update_profile(**changes)
        except ValidationError as exc:
            detail = exc.errors(include_url=False, include_context=False, include_input=False)
            raise HTTPException(status_code=422, detail=detail) from exc
        return profile.model_dump(mode="json")

    @app.put("/theme")
    async def update_theme(body: ThemeUpdate, request: Request) -> Dict[str, Any]:
        state = _session(request).state
        mode = state.set_theme(body.theme)
        return {"theme": mode.value, "fire_mode": state.fire_mode}

    @app.put("/coordinates")
    async def update_coordinates(body: Coordinates, request: Request) -> Dict[str, Any]:
        _session(request).state.set_coordinates(body)
        return body.model_dump(mode="json")

    return app


load_env_files()
app = create_app()

# Copyright 2025 msq
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

import httpx
import structlog

from wilderness_agents.config import AppConfig
from wilderness_agents.models import Coordinates

logger = structlog.get_logger(__name__)


@runtime_checkable
class GeolocationProvider(Protocol):
    """尽力而为的定位服务，失败返回 None 或抛出异常均可，由调用方吞掉。"""

    async def locate(self) -> Optional[Coordinates]:
        ...


class StaticGeolocationProvider:
    """返回配置中的固定坐标。"""

    def __init__(self, coordinates: Optional[Coordinates]) -> None:
        self._coordinates = coordinates

    async def locate(self) -> Optional[Coordinates]:
        return self._coordinates


class HttpGeolocationProvider:
    """基于 IP 定位接口的坐标获取，兼容 lat/lng、lat/lon、latitude/longitude 三种字段写法。"""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=timeout),
            trust_env=False,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def locate(self) -> Optional[Coordinates]:
        response = await self._client.get(self._url)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            return None
        return _coordinates_from(payload)


def _coordinates_from(payload: dict[str, Any]) -> Optional[Coordinates]:
    lat = payload.get("lat", payload.get("latitude"))
    lng = payload.get("lng", payload.get("lon", payload.get("longitude")))
    if lat is None or lng is None:
        logger.info("geolocation_payload_missing_coordinates", keys=sorted(payload))
        return None
    return Coordinates(lat=float(lat), lng=float(lng))


def build_geolocation_provider(cfg: AppConfig) -> Optional[GeolocationProvider]:
    """静态坐标优先，其次 HTTP 定位；都未配置时不启用定位。"""
    if cfg.geolocation_lat is not None and cfg.geolocation_lng is not None:
        return StaticGeolocationProvider(
            Coordinates(lat=cfg.geolocation_lat, lng=cfg.geolocation_lng)
        )
    if cfg.geolocation_url:
        return HttpGeolocationProvider(cfg.geolocation_url, timeout=cfg.geolocation_timeout_seconds)
    return None

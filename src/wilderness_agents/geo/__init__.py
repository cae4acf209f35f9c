"""定位服务导出。"""

from .provider import (
    GeolocationProvider,
    HttpGeolocationProvider,
    StaticGeolocationProvider,
    build_geolocation_provider,
)

__all__ = [
    "GeolocationProvider",
    "HttpGeolocationProvider",
    "StaticGeolocationProvider",
    "build_geolocation_provider",
]

"""领域请求：天气、危险评估、出行结论、地形、火情通报。"""

from .base import FetcherSettings
from .fire_alerts import search_fire_alerts
from .guidance import fetch_guidance
from .hazard import fetch_hazard_assessment
from .terrain import fetch_terrain
from .weather import fetch_weather

__all__ = [
    "FetcherSettings",
    "fetch_guidance",
    "fetch_hazard_assessment",
    "fetch_terrain",
    "fetch_weather",
    "search_fire_alerts",
]

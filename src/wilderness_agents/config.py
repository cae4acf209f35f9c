# Copyright 2025 msq
from __future__ import annotations

import json
import os
from dataclasses import dataclass

import structlog
from dotenv import load_dotenv

from wilderness_agents.llm.endpoint_manager import LLMEndpointConfig

_logger = structlog.get_logger(__name__)

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LOCATION = "Olympic National Park"
_THEMES = {"NIGHT", "SUNRISE", "RAIN", "FIRE", "EARTH"}


def load_env_files(config_dir: str | None = None) -> str:
    """按 APP_ENV 分层加载 config/ 目录下的环境文件，返回选中的环境文件路径。

    加载顺序：
    1) llm_keys.env：共享密钥，不覆盖已有环境变量；
    2) env.<APP_ENV>：APP_ENV 未设置时回退到 dev.env，允许覆盖上一层；
    3) dev.local.env：开发者本地补充层，仅补充未定义的变量。
    文件不存在时 load_dotenv 静默跳过。
    """
    if config_dir is None:
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        config_dir = os.path.join(base_dir, "config")

    load_dotenv(os.path.join(config_dir, "llm_keys.env"), override=False)

    env_name = (os.getenv("APP_ENV") or "").strip().lower()
    if env_name:
        env_file = os.path.join(config_dir, f"env.{env_name}")
    else:
        env_file = os.path.join(config_dir, "dev.env")
    load_dotenv(env_file, override=True)
    _logger.info("dotenv_env_selected", app_env=env_name or "(default:dev)", file=env_file)

    load_dotenv(os.path.join(config_dir, "dev.local.env"), override=False)
    return env_file


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=default)
        return default


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        _logger.warning("config_value_invalid", name=name, raw=raw, fallback=None)
        return None


def _parse_endpoints(raw: str, default_api_key: str) -> list[LLMEndpointConfig]:
    """解析 LLM_ENDPOINTS（JSON 数组），跳过缺少 base_url 的条目。"""
    endpoints: list[LLMEndpointConfig] = []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError:
        _logger.warning("llm_endpoints_parse_failed", raw=raw)
        return endpoints
    if not isinstance(items, list):
        _logger.warning("llm_endpoints_not_a_list", raw=raw)
        return endpoints
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        base_url = str(item.get("base_url") or "")
        if not base_url:
            continue
        try:
            priority = int(item.get("priority", 100))
        except (TypeError, ValueError):
            priority = 100
        endpoints.append(
            LLMEndpointConfig(
                name=str(item.get("name") or f"endpoint-{idx}"),
                base_url=base_url,
                api_key=str(item.get("api_key") or default_api_key),
                priority=priority,
            )
        )
    return endpoints


@dataclass(frozen=True)
class AppConfig:
    openai_base_url: str
    openai_api_key: str
    llm_endpoints: tuple[LLMEndpointConfig, ...]
    llm_failure_threshold: int
    llm_recovery_seconds: int
    llm_max_concurrency: int
    llm_request_timeout_seconds: float
    fast_model: str
    reasoning_model: str
    search_model: str
    guidance_reasoning_budget: int | None
    default_location: str
    default_theme: str
    geolocation_url: str | None
    geolocation_lat: float | None
    geolocation_lng: float | None
    geolocation_timeout_seconds: float
    log_json: bool
    log_level: str

    def __post_init__(self) -> None:
        if not self.llm_endpoints:
            raise ValueError("至少需要一个LLM端点配置")
        if not self.default_location.strip():
            raise ValueError("DEFAULT_LOCATION 不能为空")
        if self.default_theme not in _THEMES:
            raise ValueError(f"DEFAULT_THEME 不合法: {self.default_theme}")

    @staticmethod
    def load_from_env() -> "AppConfig":
        openai_base_url = os.getenv("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL)
        openai_api_key = os.getenv("OPENAI_API_KEY", "dummy")

        endpoints: list[LLMEndpointConfig] = []
        endpoints_env = os.getenv("LLM_ENDPOINTS")
        if endpoints_env:
            endpoints = _parse_endpoints(endpoints_env, openai_api_key)

        # 未提供 LLM_ENDPOINTS 时主端点来自 OPENAI_BASE_URL，备用端点追加其后
        if not endpoints:
            endpoints.append(
                LLMEndpointConfig(
                    name="primary",
                    base_url=openai_base_url,
                    api_key=openai_api_key,
                    priority=100,
                )
            )

        backup_url = os.getenv("OPENAI_BACKUP_URL")
        if backup_url:
            endpoints.append(
                LLMEndpointConfig(
                    name=os.getenv("OPENAI_BACKUP_NAME", "backup"),
                    base_url=backup_url,
                    api_key=os.getenv("OPENAI_BACKUP_KEY", openai_api_key),
                    priority=_env_int("OPENAI_BACKUP_PRIORITY", 80),
                )
            )

        # 0 或负数表示不向模型传递推理预算
        budget = _env_int("GUIDANCE_REASONING_BUDGET", 10000)

        fast_model = os.getenv("LLM_FAST_MODEL", "gpt-4o-mini")
        return AppConfig(
            openai_base_url=openai_base_url,
            openai_api_key=openai_api_key,
            llm_endpoints=tuple(endpoints),
            llm_failure_threshold=_env_int("LLM_FAILURE_THRESHOLD", 3),
            llm_recovery_seconds=_env_int("LLM_RECOVERY_SECONDS", 60),
            llm_max_concurrency=_env_int("LLM_MAX_CONCURRENCY", 5),
            llm_request_timeout_seconds=_env_float("LLM_REQUEST_TIMEOUT_SECONDS", 60.0),
            fast_model=fast_model,
            reasoning_model=os.getenv("LLM_REASONING_MODEL", "gpt-4o"),
            search_model=os.getenv("LLM_SEARCH_MODEL", "gpt-4o-mini-search-preview"),
            guidance_reasoning_budget=budget if budget > 0 else None,
            default_location=os.getenv("DEFAULT_LOCATION", DEFAULT_LOCATION),
            default_theme=os.getenv("DEFAULT_THEME", "NIGHT").strip().upper(),
            geolocation_url=os.getenv("GEOLOCATION_URL") or None,
            geolocation_lat=_env_optional_float("GEOLOCATION_LAT"),
            geolocation_lng=_env_optional_float("GEOLOCATION_LNG"),
            geolocation_timeout_seconds=_env_float("GEOLOCATION_TIMEOUT_SECONDS", 5.0),
            log_json=os.getenv("LOG_JSON", "false").lower() in {"1", "true", "yes", "y", "on"},
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

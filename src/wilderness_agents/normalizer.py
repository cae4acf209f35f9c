"""
模型输出规范化

大模型返回的是不可信的自由文本，可能带 markdown 代码块、解释性文字，
也可能完全不是 JSON。本模块负责：
- normalize：把原始文本解析为 JSON 对象/数组，任何异常都退回调用方给定的 fallback；
- overlay：把解析结果逐字段覆盖到强类型 fallback 记录上，
  只有键存在且值通过该字段类型校验时才覆盖，缺失或类型不符的字段保留安全默认值。

两个函数都不会抛出异常。
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """移除 ```json / ``` 代码块标记并去除首尾空白。"""
    return _FENCE_RE.sub("", text).strip()


def normalize(raw_text: Any, fallback: T) -> Any:
    """解析模型输出；空文本、非 JSON、解析失败、非复合值均返回 fallback 本身。"""
    if not raw_text or not isinstance(raw_text, str):
        return fallback

    cleaned = strip_code_fences(raw_text)
    if not cleaned or cleaned[0] not in "{[":
        return fallback

    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, RecursionError) as exc:
        logger.warning("llm_json_parse_failed", error=str(exc), raw=raw_text[:500])
        return fallback

    if not isinstance(parsed, (dict, list)):
        return fallback
    return parsed


def _lookup(parsed: Mapping[str, Any], name: str, alias: str | None) -> tuple[bool, Any]:
    if alias and alias in parsed:
        return True, parsed[alias]
    if name in parsed:
        return True, parsed[name]
    return False, None


def overlay(fallback: M, parsed: Any, **overrides: Any) -> M:
    """逐字段覆盖：fallback 打底，合法的解析字段覆盖，overrides 最后强制写入。

    非映射类型的 parsed（例如 JSON 数组）整体忽略。
    overrides 使用字段名，值不经模型输出校验之外的任何转换。
    """
    model_cls = type(fallback)
    data: dict[str, Any] = fallback.model_dump()

    if isinstance(parsed, Mapping):
        for name, field in model_cls.model_fields.items():
            found, value = _lookup(parsed, name, field.alias)
            if not found:
                continue
            try:
                candidate = model_cls.model_validate({**data, name: value})
            except ValidationError:
                logger.debug("llm_field_rejected", model=model_cls.__name__, field=name)
                continue
            data[name] = getattr(candidate, name)

    data.update(overrides)
    return model_cls.model_validate(data)

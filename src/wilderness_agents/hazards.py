# Copyright 2025 msq
from __future__ import annotations

import math
from typing import Any

from wilderness_agents.models import HazardLevel, HazardTier

# 由高到低依次匹配，首个命中即返回
_THRESHOLDS: tuple[tuple[float, HazardTier], ...] = (
    (80, HazardTier.EXTREME),
    (60, HazardTier.HIGH),
    (30, HazardTier.MODERATE),
)


def coerce_score(value: Any) -> float:
    """把模型给出的分值转为数字；缺失或无法识别时视为 0。"""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _format_score(score: float) -> str:
    return f"{score:g}"


def score_to_level(score: Any) -> HazardLevel:
    """分值映射为危险等级：>80 EXTREME，>60 HIGH，>30 MODERATE，其余 LOW。"""
    s = coerce_score(score)
    tier = HazardTier.LOW
    for threshold, candidate in _THRESHOLDS:
        if s > threshold:
            tier = candidate
            break
    return HazardLevel(
        level=tier,
        score=s,
        label=tier.value,
        description=f"{_format_score(s)}% calculated risk",
    )

from __future__ import annotations

import asyncio
import inspect
import json
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, os.fspath(ROOT / "src"))

from wilderness_agents.fetchers import FetcherSettings  # noqa: E402
from wilderness_agents.llm.client import GenerationOptions  # noqa: E402
from wilderness_agents.state import PresentationState  # noqa: E402


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Optional[bool]:
    """异步测试执行钩子。

    标注了 asyncio 标记的用例交由 pytest-asyncio 管理；
    未标注的协程用例使用手动事件循环执行。
    """

    function = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(function):
        return None

    if "asyncio" in pyfuncitem.keywords:
        return None

    signature = inspect.signature(function)
    accepted = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in signature.parameters
    }

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(function(**accepted))
    finally:
        loop.close()
    return True


# ============================================================================
# 协作者桩
# ============================================================================

# 按提示词中的标志性语句识别是哪一个 fetcher 发起的调用
_MARKERS = {
    "weather": "ACTUAL CURRENT weather",
    "hazard": "Rate wilderness hazards",
    "guidance": "SENIOR WILDERNESS RANGER",
    "terrain": "Provide terrain profile",
    "fire_alerts": "Active fire incidents",
}


def classify_prompt(prompt: str) -> str:
    for kind, marker in _MARKERS.items():
        if marker in prompt:
            return kind
    raise AssertionError(f"unrecognised prompt: {prompt[:80]}")


@dataclass
class RecordedCall:
    kind: str
    model: str
    prompt: str
    options: GenerationOptions


@dataclass
class StubCollaborator:
    """按 fetcher 类型返回预设文本或抛出预设异常；gates 中的事件未置位前调用会挂起。"""

    responses: Dict[str, Any] = field(default_factory=dict)
    gates: Dict[str, asyncio.Event] = field(default_factory=dict)
    calls: List[RecordedCall] = field(default_factory=list)

    async def generate(self, model: str, prompt: str, options: GenerationOptions) -> Optional[str]:
        kind = classify_prompt(prompt)
        self.calls.append(RecordedCall(kind=kind, model=model, prompt=prompt, options=options))
        gate = self.gates.get(kind)
        if gate is not None:
            await gate.wait()
        action = self.responses.get(kind)
        if isinstance(action, BaseException):
            raise action
        return action

    def kinds(self) -> List[str]:
        return [call.kind for call in self.calls]


WEATHER_PAYLOAD: Dict[str, Any] = {
    "temp": 11.5,
    "condition": "Light Rain",
    "windSpeed": 18,
    "windDir": "SW",
    "humidity": 88,
    "precipProb": 70,
    "visibility": 6,
    "sunset": "19:42",
    "elevation": 1200,
    "confidence": 82,
    "locationName": "Somewhere Else Entirely",
}

HAZARD_PAYLOAD: Dict[str, Any] = {
    "thunderstorm": 35,
    "heat": 5,
    "cold": 62,
    "fire": 12,
    "flood": 85,
    "safetyScore": 58,
}

GUIDANCE_PAYLOAD: Dict[str, Any] = {
    "status": "MODIFY",
    "reasoning": "Wet trail and gusty ridge winds.",
    "packingHints": ["Rain shell", "Microspikes", "Headlamp"],
    "aiSummary": "Stay below the ridge line.",
    "safetyIndex": 64,
}

TERRAIN_PAYLOAD: Dict[str, Any] = {
    "type": "Temperate rainforest",
    "exposure": "Low",
    "hazards": ["Slippery roots", "River crossings"],
    "rangerNote": "Check tide tables before coastal sections.",
}


def full_responses() -> Dict[str, Any]:
    return {
        "weather": json.dumps(WEATHER_PAYLOAD),
        "hazard": json.dumps(HAZARD_PAYLOAD),
        "guidance": json.dumps(GUIDANCE_PAYLOAD),
        "terrain": json.dumps(TERRAIN_PAYLOAD),
        "fire_alerts": "Two small fires reported 20 km east; no trail closures.",
    }


@pytest.fixture
def settings() -> FetcherSettings:
    return FetcherSettings(
        fast_model="fast-model",
        reasoning_model="pro-model",
        search_model="search-model",
        guidance_reasoning_budget=10000,
    )


@pytest.fixture
def collaborator() -> StubCollaborator:
    return StubCollaborator(responses=full_responses())


@pytest.fixture
def state() -> PresentationState:
    return PresentationState(location_input="Olympic National Park")

"""
Shared fixtures for the weather agent server tests.

Provides:
- Scripted fake LLM clients (online and offline)
- A mocked Open-Meteo API served through httpx.MockTransport
- Sample forecast data
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import httpx
import pytest

from agents.base_agent import ChatTurn, ToolCall

# =============================================================================
# Fake LLM clients
# =============================================================================


class FakeLLM:
    """LLM client that replays scripted turns.

    Each turn is ``(text_chunks, tool_calls)``. Every conversation the agent
    sends is recorded on ``calls``.
    """

    configured = True

    def __init__(self, turns: list[tuple[list[str], list[ToolCall]]]) -> None:
        self.turns = list(turns)
        self.calls: list[list[dict[str, Any]]] = []
        self.tools: list[Any] = []

    async def stream_chat(
        self, messages: list[dict[str, Any]], tools: Any, turn: ChatTurn
    ) -> AsyncIterator[str]:
        self.calls.append([dict(message) for message in messages])
        self.tools.append(tools)
        texts, tool_calls = self.turns.pop(0) if self.turns else (["done"], [])
        for text in texts:
            yield text
        turn.tool_calls = list(tool_calls)


class OfflineLLM:
    configured = False


@pytest.fixture
def offline_llm() -> OfflineLLM:
    return OfflineLLM()


# =============================================================================
# Open-Meteo mock
# =============================================================================

GEOCODING_RESULT = {
    "results": [
        {"id": 2988507, "name": "Paris", "latitude": 48.85341, "longitude": 2.3488, "country": "France"}
    ]
}

CURRENT_WEATHER = {
    "current": {
        "time": "2026-10-19T12:00",
        "temperature_2m": 14.2,
        "apparent_temperature": 12.9,
        "relative_humidity_2m": 71,
        "wind_speed_10m": 11.5,
        "wind_gusts_10m": 25.2,
        "weather_code": 3,
    }
}

HOURLY_FORECAST = {
    "current": {"time": "2026-10-19T12:00", "precipitation": 0.0, "weather_code": 61},
    "hourly": {
        "time": ["2026-10-19T00:00", "2026-10-19T01:00", "2026-10-19T02:00"],
        "precipitation_probability": [10, 65, 40],
        "temperature_2m": [9.5, 16.1, 12.0],
    },
}

SAMPLE_FORECAST = {
    "date": "2026-10-19T12:00:00+00:00",
    "maxTemp": 16.1,
    "minTemp": 9.5,
    "precipitationChance": 65,
    "condition": "Slight rain",
    "location": "Paris",
}


def open_meteo_handler(request: httpx.Request) -> httpx.Response:
    if request.url.host == "geocoding-api.open-meteo.com":
        if request.url.params["name"] == "Atlantis":
            # Open-Meteo omits "results" when nothing matches
            return httpx.Response(200, json={"generationtime_ms": 0.4})
        if request.url.params["name"] == "Broken":
            return httpx.Response(503, json={"reason": "unavailable"})
        return httpx.Response(200, json=GEOCODING_RESULT)
    if request.url.params.get("hourly"):
        return httpx.Response(200, json=HOURLY_FORECAST)
    return httpx.Response(200, json=CURRENT_WEATHER)


@pytest.fixture
async def weather_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(open_meteo_handler)) as client:
        yield client

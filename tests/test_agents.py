"""
Tests for the agent runtime, the weather agent and its A2A handler.
"""

import json

import pytest
from a2a.client.helpers import create_text_message_object
from a2a.types import Message, MessageSendParams, TextPart

from agents import weather_agent as weather_agent_module
from agents.base_agent import (
    Agent,
    AgentA2AHandler,
    LLMClient,
    ToolCall,
    build_agent_card,
    extract_text,
    normalize_messages,
)
from agents.weather_agent import build_weather_agent, format_snapshot, offline_reply
from conftest import FakeLLM, OfflineLLM
from errors import LocationNotFoundError
from pydantic import BaseModel
from tools.base_tool import Tool
from tools.weather_tool import WeatherSnapshot


class EchoInput(BaseModel):
    text: str


async def _echo(params: EchoInput) -> dict:
    return {"echo": params.text.upper()}


async def _explode(params: EchoInput) -> dict:
    raise RuntimeError("tool exploded")


echo_tool = Tool(id="echo", description="Echo text", input_model=EchoInput, execute=_echo)
broken_tool = Tool(id="broken", description="Always fails", input_model=EchoInput, execute=_explode)


def make_snapshot(location="Paris"):
    return WeatherSnapshot(
        temperature=14.2,
        feels_like=12.9,
        humidity=71,
        wind_speed=11.5,
        wind_gust=25.2,
        conditions="Overcast",
        location=location,
    )


class TestNormalizeMessages:
    def test_string_becomes_user_message(self):
        assert normalize_messages("hi") == [{"role": "user", "content": "hi"}]

    def test_mixed_list(self):
        messages = normalize_messages(["hi", {"role": "assistant", "content": "hello"}])

        assert messages == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_rejects_malformed_entries(self):
        with pytest.raises(ValueError):
            normalize_messages([{"role": "user"}])


class TestLLMClient:
    def test_unconfigured_without_environment(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.delenv("OLLAMA_MODEL", raising=False)

        assert LLMClient().configured is False

    def test_ollama_counts_as_configured(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setenv("OLLAMA_MODEL", "llama3")

        client = LLMClient()

        assert client.configured is True
        assert client.ollama_base == "http://localhost:11434"


class TestAgentStream:
    async def test_streams_text_chunks(self):
        llm = FakeLLM([(["Hello", ", ", "world"], [])])
        agent = Agent("test", "Test", "Be brief.", llm=llm)

        chunks = [chunk async for chunk in agent.stream("hi").text_stream]

        assert chunks == ["Hello", ", ", "world"]
        assert llm.calls[0][0] == {"role": "system", "content": "Be brief."}
        assert llm.calls[0][1] == {"role": "user", "content": "hi"}

    async def test_no_tools_sends_no_schemas(self):
        llm = FakeLLM([(["ok"], [])])
        agent = Agent("test", "Test", "Be brief.", llm=llm)

        await agent.generate("hi")

        assert llm.tools == [None]

    async def test_tool_call_result_is_fed_back(self):
        llm = FakeLLM(
            [
                ([], [ToolCall(id="call_1", name="echo", arguments='{"text": "hi"}')]),
                (["It says HI"], []),
            ]
        )
        agent = Agent("test", "Test", "Use tools.", tools=[echo_tool], llm=llm)

        result = await agent.generate("echo hi")

        assert result == {"text": "It says HI"}
        second_call = llm.calls[1]
        assert second_call[2]["role"] == "assistant"
        assert second_call[2]["tool_calls"][0]["function"]["name"] == "echo"
        assert second_call[3] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": json.dumps({"echo": "HI"}),
        }
        assert llm.tools[0][0]["function"]["name"] == "echo"

    async def test_tool_failure_is_reported_to_model(self):
        llm = FakeLLM(
            [
                ([], [ToolCall(id="call_1", name="broken", arguments='{"text": "x"}')]),
                (["Sorry"], []),
            ]
        )
        agent = Agent("test", "Test", "Use tools.", tools=[broken_tool], llm=llm)

        result = await agent.generate("break it")

        assert result["text"] == "Sorry"
        assert json.loads(llm.calls[1][-1]["content"]) == {"error": "tool exploded"}

    async def test_unknown_tool_is_reported_to_model(self):
        llm = FakeLLM(
            [
                ([], [ToolCall(id="call_1", name="missing", arguments="{}")]),
                (["ok"], []),
            ]
        )
        agent = Agent("test", "Test", "Use tools.", tools=[echo_tool], llm=llm)

        await agent.generate("hi")

        assert json.loads(llm.calls[1][-1]["content"]) == {"error": "Unknown tool 'missing'"}

    async def test_stops_after_max_steps(self):
        looping_call = ToolCall(id="call", name="echo", arguments='{"text": "again"}')
        llm = FakeLLM([(["."], [looping_call])] * 5)
        agent = Agent("test", "Test", "Loop.", tools=[echo_tool], llm=llm, max_steps=3)

        result = await agent.generate("loop")

        assert result["text"] == "..."
        assert len(llm.calls) == 3

    async def test_offline_agent_uses_fallback(self):
        async def fallback(messages):
            return f"offline: {messages[-1]['content']}"

        agent = Agent("test", "Test", "Unused.", llm=OfflineLLM(), fallback=fallback)

        assert await agent.stream("ping").text() == "offline: ping"

    async def test_offline_agent_echoes_by_default(self):
        agent = Agent("test", "Test", "Unused.", llm=OfflineLLM())

        assert (await agent.generate("ping"))["text"] == "ping"

    def test_describe_lists_tools(self):
        agent = Agent("test", "Test", "Use tools.", tools=[echo_tool], llm=OfflineLLM())

        info = agent.describe()

        assert info["id"] == "test"
        assert info["tools"]["echo"]["description"] == "Echo text"


class TestWeatherAgent:
    def test_registers_weather_tool(self):
        agent = build_weather_agent(llm=OfflineLLM())

        assert agent.id == "weatherAgent"
        assert list(agent.tools) == ["get-weather"]
        assert "get-weather" in agent.instructions

    def test_format_snapshot(self):
        text = format_snapshot(make_snapshot())

        assert text.startswith("Current weather in Paris: Overcast, 14.2°C")
        assert "humidity 71%" in text
        assert "gusts up to 25.2 km/h" in text

    async def test_offline_reply_looks_up_last_message(self, monkeypatch):
        async def fake_get_weather(location):
            return make_snapshot(location.title())

        monkeypatch.setattr(weather_agent_module, "get_weather", fake_get_weather)

        reply = await offline_reply([{"role": "user", "content": " berlin "}])

        assert reply.startswith("Current weather in Berlin")

    async def test_offline_reply_for_unknown_location(self, monkeypatch):
        async def fake_get_weather(location):
            raise LocationNotFoundError(f"Location '{location}' not found")

        monkeypatch.setattr(weather_agent_module, "get_weather", fake_get_weather)

        reply = await offline_reply([{"role": "user", "content": "Atlantis"}])

        assert "Location 'Atlantis' not found" in reply

    async def test_offline_reply_asks_for_location(self):
        reply = await offline_reply([{"role": "user", "content": "   "}])

        assert reply == "Which location would you like the weather for?"


class TestA2A:
    def test_extract_text(self):
        message = create_text_message_object(content="hello")

        assert extract_text(message) == "hello"

    async def test_handler_replies_with_agent_text(self):
        agent = Agent("test", "Test", "Be brief.", llm=FakeLLM([(["Sunny"], [])]))
        handler = AgentA2AHandler(agent)

        reply = await handler.on_message_send(
            MessageSendParams(message=create_text_message_object(content="weather?"))
        )

        assert isinstance(reply, Message)
        assert isinstance(reply.parts[0].root, TextPart)
        assert reply.parts[0].root.text == "Sunny"

    def test_agent_card(self):
        agent = build_weather_agent(llm=OfflineLLM())

        card = build_agent_card(agent, "http://localhost:3000/a2a/weather", "Weather")

        assert card.name == "Weather Agent"
        assert card.skills[0].id == "weatherAgent"
        assert "get-weather" in card.skills[0].tags

"""Utilities for building LLM-backed agents that can call tools."""

from __future__ import annotations

import json
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, AsyncIterator, Awaitable, Callable

import httpx
from a2a.server.apps.jsonrpc import A2AFastAPIApplication
from a2a.server.request_handlers.request_handler import RequestHandler
from a2a.types import (
    AgentCapabilities,
    AgentCard,
    AgentSkill,
    DeleteTaskPushNotificationConfigParams,
    GetTaskPushNotificationConfigParams,
    ListTaskPushNotificationConfigParams,
    Message,
    MessageSendParams,
    Part,
    Role,
    Task,
    TaskIdParams,
    TaskPushNotificationConfig,
    TaskQueryParams,
    TextPart,
    TransportProtocol,
    UnsupportedOperationError,
)
from a2a.utils.errors import ServerError
from openai import AsyncOpenAI

from tools.base_tool import Tool
from utils.structured_logger import get_logger

logger = get_logger(__name__)

ChatMessage = dict[str, Any]
Fallback = Callable[[list[ChatMessage]], Awaitable[str]]


@dataclass
class ToolCall:
    id: str = ""
    name: str = ""
    arguments: str = ""

    def as_message_part(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass
class ChatTurn:
    """Tool calls requested by the model during one streamed completion."""

    tool_calls: list[ToolCall] = field(default_factory=list)


class LLMClient:
    """Wrapper around OpenAI or a local Ollama server."""

    def __init__(self) -> None:
        api_key = os.getenv("OPENAI_API_KEY")
        self.model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.openai = AsyncOpenAI(api_key=api_key) if api_key else None
        self.ollama_model = os.getenv("OLLAMA_MODEL")
        self.ollama_base = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

    @property
    def configured(self) -> bool:
        return self.openai is not None or bool(self.ollama_model)

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None,
        turn: ChatTurn,
    ) -> AsyncIterator[str]:
        """Yield text deltas; requested tool calls are collected on ``turn``."""
        if self.openai:
            async for text in self._stream_openai(messages, tools, turn):
                yield text
            return
        if self.ollama_model:
            yield await self._complete_ollama(messages)
            return
        raise RuntimeError("No LLM backend configured")

    async def _stream_openai(
        self,
        messages: list[ChatMessage],
        tools: list[dict[str, Any]] | None,
        turn: ChatTurn,
    ) -> AsyncIterator[str]:
        kwargs: dict[str, Any] = {"model": self.model, "messages": messages, "stream": True}
        if tools:
            kwargs["tools"] = tools
        stream = await self.openai.chat.completions.create(**kwargs)
        calls: dict[int, ToolCall] = {}
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield delta.content
            for part in delta.tool_calls or []:
                call = calls.setdefault(part.index, ToolCall())
                if part.id:
                    call.id = part.id
                if part.function and part.function.name:
                    call.name = part.function.name
                if part.function and part.function.arguments:
                    call.arguments += part.function.arguments
        turn.tool_calls = [calls[index] for index in sorted(calls)]

    async def _complete_ollama(self, messages: list[ChatMessage]) -> str:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self.ollama_base}/api/chat",
                json={
                    "model": self.ollama_model,
                    "messages": messages,
                    "stream": False,
                },
                timeout=30,
            )
            resp.raise_for_status()
            data = resp.json()
        return data.get("message", {}).get("content", "")


def normalize_messages(messages: str | list[Any]) -> list[ChatMessage]:
    """Accept a bare string or a list of strings / ``{role, content}`` dicts."""
    if isinstance(messages, str):
        return [{"role": "user", "content": messages}]
    normalized = []
    for message in messages:
        if isinstance(message, str):
            normalized.append({"role": "user", "content": message})
        elif isinstance(message, dict) and "content" in message:
            normalized.append({"role": message.get("role", "user"), "content": message["content"]})
        else:
            raise ValueError("Messages must be strings or objects with role and content")
    return normalized


def last_user_message(messages: list[ChatMessage]) -> str:
    for message in reversed(messages):
        if message["role"] == "user":
            return str(message["content"])
    return ""


async def _echo_fallback(messages: list[ChatMessage]) -> str:
    return last_user_message(messages)


class AgentStream:
    """Streamed agent reply; iterate ``text_stream`` or await ``text()``."""

    def __init__(self, chunks: AsyncIterator[str]) -> None:
        self.text_stream = chunks

    async def text(self) -> str:
        content = ""
        async for chunk in self.text_stream:
            content += chunk
        return content


class Agent:
    """Conversational agent running a tool-calling loop over an LLM."""

    def __init__(
        self,
        agent_id: str,
        name: str,
        instructions: str,
        tools: list[Tool] | None = None,
        llm: LLMClient | None = None,
        fallback: Fallback | None = None,
        max_steps: int = 5,
    ) -> None:
        self.id = agent_id
        self.name = name
        self.instructions = instructions
        self.tools = {tool.id: tool for tool in tools or []}
        self.llm = llm or LLMClient()
        self.fallback = fallback or _echo_fallback
        self.max_steps = max_steps

    def stream(self, messages: str | list[Any]) -> AgentStream:
        conversation = [
            {"role": "system", "content": self.instructions},
            *normalize_messages(messages),
        ]
        return AgentStream(self._run(conversation))

    async def generate(self, messages: str | list[Any]) -> dict[str, Any]:
        return {"text": await self.stream(messages).text()}

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "instructions": self.instructions,
            "tools": {tool_id: tool.describe() for tool_id, tool in self.tools.items()},
        }

    async def _run(self, conversation: list[ChatMessage]) -> AsyncIterator[str]:
        if not self.llm.configured:
            logger.debug("agent.offline_reply", agent=self.id)
            yield await self.fallback(conversation[1:])
            return

        schemas = [tool.openai_schema() for tool in self.tools.values()] or None
        for _ in range(self.max_steps):
            turn = ChatTurn()
            content = ""
            async for text in self.llm.stream_chat(conversation, schemas, turn):
                content += text
                yield text
            if not turn.tool_calls:
                return
            conversation.append(
                {
                    "role": "assistant",
                    "content": content or None,
                    "tool_calls": [call.as_message_part() for call in turn.tool_calls],
                }
            )
            for call in turn.tool_calls:
                result = await self._call_tool(call)
                conversation.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result)}
                )
        logger.warning("agent.max_steps_reached", agent=self.id, max_steps=self.max_steps)

    async def _call_tool(self, call: ToolCall) -> Any:
        tool = self.tools.get(call.name)
        if tool is None:
            return {"error": f"Unknown tool '{call.name}'"}
        logger.info("agent.tool_call", agent=self.id, tool=call.name)
        try:
            return await tool.call(call.arguments)
        except Exception as exc:
            # the model sees the failure and can answer or ask again
            logger.warning("agent.tool_failed", agent=self.id, tool=call.name, error=str(exc))
            return {"error": str(exc)}


def extract_text(message: Message) -> str:
    """Return the first text part from a message if present."""
    if message.parts:
        part = message.parts[0].root
        if isinstance(part, TextPart):
            return part.text
    return ""


class BaseA2AHandler(RequestHandler):
    """Request handler with unimplemented task management APIs."""

    async def on_get_task(
        self, params: TaskQueryParams, context: Any | None = None
    ) -> Task | None:
        return None

    async def on_cancel_task(
        self, params: TaskIdParams, context: Any | None = None
    ) -> Task | None:
        return None

    async def on_message_send_stream(
        self, params: MessageSendParams, context: Any | None = None
    ) -> AsyncGenerator[Any, None]:
        raise ServerError(error=UnsupportedOperationError())
        yield  # pragma: no cover

    async def on_set_task_push_notification_config(
        self, params: TaskPushNotificationConfig, context: Any | None = None
    ) -> TaskPushNotificationConfig:
        raise ServerError(error=UnsupportedOperationError())

    async def on_get_task_push_notification_config(
        self,
        params: TaskIdParams | GetTaskPushNotificationConfigParams,
        context: Any | None = None,
    ) -> TaskPushNotificationConfig:
        raise ServerError(error=UnsupportedOperationError())

    async def on_resubscribe_to_task(
        self, params: TaskIdParams, context: Any | None = None
    ) -> AsyncGenerator[Any, None]:
        raise ServerError(error=UnsupportedOperationError())
        yield  # pragma: no cover

    async def on_list_task_push_notification_config(
        self, params: ListTaskPushNotificationConfigParams, context: Any | None = None
    ) -> list[TaskPushNotificationConfig]:
        raise ServerError(error=UnsupportedOperationError())

    async def on_delete_task_push_notification_config(
        self, params: DeleteTaskPushNotificationConfigParams, context: Any | None = None
    ) -> None:
        raise ServerError(error=UnsupportedOperationError())


class AgentA2AHandler(BaseA2AHandler):
    """Answers A2A ``message/send`` requests with an agent reply."""

    def __init__(self, agent: Agent) -> None:
        self.agent = agent

    async def on_message_send(
        self, params: MessageSendParams, context: Any | None = None
    ) -> Message:
        text = extract_text(params.message)
        reply = await self.agent.generate(text)
        return Message(
            message_id=str(uuid.uuid4()),
            parts=[Part(TextPart(text=reply["text"]))],
            role=Role.agent,
        )


def build_agent_card(agent: Agent, url: str, description: str) -> AgentCard:
    return AgentCard(
        url=url,
        name=agent.name,
        description=description,
        version="0.1.0",
        capabilities=AgentCapabilities(),
        skills=[
            AgentSkill(
                id=agent.id,
                name=agent.name,
                description=description,
                tags=["llm", *agent.tools],
            )
        ],
        default_input_modes=["text/plain"],
        default_output_modes=["text/plain"],
        preferred_transport=TransportProtocol.jsonrpc.value,
    )


def build_agent_app(agent: Agent, url: str, description: str):
    """Create and return a FastAPI A2A app for the given agent."""
    card = build_agent_card(agent, url, description)
    return A2AFastAPIApplication(agent_card=card, http_handler=AgentA2AHandler(agent)).build()

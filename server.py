"""HTTP server exposing the weather agent and the weather workflow."""

from __future__ import annotations

import os
from typing import TypeVar

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError, field_validator
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from agents.base_agent import build_agent_app
from agents.weather_agent import DESCRIPTION as WEATHER_AGENT_DESCRIPTION
from api.handlers import format_validation_error
from errors import error_message
from registry import Registry, build_registry
from utils.structured_logger import bind_context, clear_context, configure_logging, get_logger
from workflows.base_workflow import serialize_result

logger = get_logger(__name__)

DEFAULT_PORT = 3000

Payload = TypeVar("Payload", bound=BaseModel)


class AgentRequest(BaseModel):
    """Body of ``POST /agents/weather``."""

    message: str = Field(default="", validate_default=True)

    @field_validator("message")
    @classmethod
    def _message_required(cls, value: str) -> str:
        if not value:
            raise ValueError("Message is required")
        return value


class WorkflowRequest(BaseModel):
    """Body of ``POST /workflows/weather``."""

    city: str = Field(default="", validate_default=True)

    @field_validator("city")
    @classmethod
    def _city_required(cls, value: str) -> str:
        if not value:
            raise ValueError("City is required")
        return value


class InvalidPayload(Exception):
    """Request body is not JSON or fails validation; reported as a 400."""


async def parse_request_body(model: type[Payload], request: Request) -> Payload:
    try:
        data = await request.json()
    except ValueError as exc:
        raise InvalidPayload("Invalid JSON payload") from exc
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvalidPayload(format_validation_error(exc)) from exc


class RequestAdapter:
    """ASGI wrapper between the socket server and the router.

    Rejects requests without a method or path and turns errors that escape
    the router into plain-text 500 responses.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if not scope.get("method") or not scope.get("path"):
            response = PlainTextResponse("Bad Request", status_code=400)
            await response(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        bind_context(method=scope["method"], path=scope["path"])
        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            logger.exception("http.unhandled_error")
            if response_started:
                raise
            response = PlainTextResponse(error_message(exc), status_code=500)
            await response(scope, receive, send)
        finally:
            clear_context()


def create_app(registry: Registry | None = None, port: int = DEFAULT_PORT) -> FastAPI:
    registry = registry or build_registry()
    app = FastAPI(title="Weather Agent Server")
    app.state.registry = registry
    app.add_middleware(RequestAdapter)

    @app.exception_handler(InvalidPayload)
    async def invalid_payload(request: Request, exc: InvalidPayload) -> JSONResponse:
        logger.info("http.invalid_payload", error=str(exc))
        return JSONResponse({"error": str(exc)}, status_code=400)

    @app.post("/agents/weather")
    async def weather_agent(request: Request):
        parsed = await parse_request_body(AgentRequest, request)
        try:
            agent = request.app.state.registry.get_agent("weatherAgent")
            stream = agent.stream([{"role": "user", "content": parsed.message}])
            content = ""
            async for chunk in stream.text_stream:
                content += chunk
        except Exception as exc:
            logger.error("agent.request_failed", error=str(exc), exc_info=exc)
            return JSONResponse({"error": error_message(exc)}, status_code=500)
        return {"reply": content}

    @app.post("/workflows/weather")
    async def weather_workflow(request: Request):
        parsed = await parse_request_body(WorkflowRequest, request)
        try:
            workflow = request.app.state.registry.get_workflow("weatherWorkflow")
            run = workflow.create_run()
            result = await run.start({"city": parsed.city})
        except Exception as exc:
            logger.error("workflow.request_failed", error=str(exc), exc_info=exc)
            return JSONResponse({"error": error_message(exc)}, status_code=500)
        return serialize_result(run, result)

    weather = registry.agents.get("weatherAgent")
    if weather is not None:
        app.mount(
            "/a2a/weather",
            build_agent_app(
                weather,
                url=f"http://localhost:{port}/a2a/weather",
                description=WEATHER_AGENT_DESCRIPTION,
            ),
        )

    return app


def listen_port() -> int:
    return int(os.getenv("PORT", str(DEFAULT_PORT)))


configure_logging()
app = create_app(port=listen_port())


def main() -> None:
    port = listen_port()
    host = os.getenv("HOST", "0.0.0.0")
    logger.info("server.listening", host=host, port=port)
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()

"""Serverless entry point exposing the generic agent and workflow API."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api import handlers
from errors import AppError
from registry import Registry, build_registry
from utils.structured_logger import configure_logging, get_logger

logger = get_logger(__name__)


def json_error(error: Exception, message: str) -> JSONResponse:
    """Report ``error`` with its own status and message when it carries them."""
    status = error.status if isinstance(error, AppError) else 500
    if status >= 500:
        logger.error("api.request_failed", error=str(error), exc_info=error)
    else:
        logger.info("api.request_rejected", status=status, error=str(error))
    return JSONResponse({"error": str(error) or message}, status_code=status)


async def read_json(request: Request) -> object:
    try:
        return await request.json()
    except ValueError as exc:
        raise AppError("Invalid JSON payload", status=400) from exc


def create_app(registry: Registry | None = None) -> FastAPI:
    app = FastAPI(title="Weather Agent API")
    app.state.registry = registry or build_registry()

    @app.get("/api")
    async def status() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/agents")
    async def list_agents(request: Request):
        try:
            return await handlers.get_agents_handler(request.app.state.registry)
        except Exception as error:
            return json_error(error, "Failed to load agents")

    @app.get("/api/agents/{agent_id}")
    async def get_agent(agent_id: str, request: Request):
        try:
            return await handlers.get_agent_by_id_handler(request.app.state.registry, agent_id)
        except Exception as error:
            return json_error(error, "Failed to load agent")

    @app.post("/api/agents/{agent_id}/generate")
    async def generate(agent_id: str, request: Request):
        try:
            body = await read_json(request)
            return await handlers.generate_handler(request.app.state.registry, agent_id, body)
        except Exception as error:
            return json_error(error, "Failed to generate response")

    @app.get("/api/workflows")
    async def list_workflows(request: Request):
        try:
            return await handlers.get_workflows_handler(request.app.state.registry)
        except Exception as error:
            return json_error(error, "Failed to load workflows")

    @app.get("/api/workflows/{workflow_id}")
    async def get_workflow(workflow_id: str, request: Request):
        try:
            return await handlers.get_workflow_by_id_handler(
                request.app.state.registry, workflow_id
            )
        except Exception as error:
            return json_error(error, "Failed to load workflow")

    @app.post("/api/workflows/{workflow_id}/run")
    async def run_workflow(workflow_id: str, request: Request):
        try:
            trigger_data = await read_json(request)
            return await handlers.start_workflow_handler(
                request.app.state.registry, workflow_id, trigger_data
            )
        except Exception as error:
            return json_error(error, "Failed to run workflow")

    return app


configure_logging()
app = create_app()

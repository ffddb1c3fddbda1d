"""Generic agent and workflow handlers behind the ``/api`` routes."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from agents.base_agent import normalize_messages
from errors import BadRequestError
from registry import Registry
from workflows.base_workflow import serialize_result


async def get_agents_handler(registry: Registry) -> dict[str, Any]:
    return {agent_id: agent.describe() for agent_id, agent in registry.agents.items()}


async def get_agent_by_id_handler(registry: Registry, agent_id: str) -> dict[str, Any]:
    return registry.get_agent(agent_id).describe()


async def generate_handler(
    registry: Registry, agent_id: str, body: dict[str, Any]
) -> dict[str, Any]:
    agent = registry.get_agent(agent_id)
    messages = body.get("messages") if isinstance(body, dict) else None
    if not messages or not isinstance(messages, (str, list)):
        raise BadRequestError("Messages are required")
    try:
        messages = normalize_messages(messages)
    except ValueError as exc:
        raise BadRequestError(str(exc)) from exc
    return await agent.generate(messages)


async def get_workflows_handler(registry: Registry) -> dict[str, Any]:
    return {
        workflow_id: workflow.describe()
        for workflow_id, workflow in registry.workflows.items()
    }


async def get_workflow_by_id_handler(registry: Registry, workflow_id: str) -> dict[str, Any]:
    return registry.get_workflow(workflow_id).describe()


async def start_workflow_handler(
    registry: Registry, workflow_id: str, trigger_data: Any
) -> dict[str, Any]:
    workflow = registry.get_workflow(workflow_id)
    run = workflow.create_run()
    try:
        result = await run.start(trigger_data)
    except ValidationError as exc:
        raise BadRequestError(format_validation_error(exc)) from exc
    return serialize_result(run, result)


def format_validation_error(exc: ValidationError) -> str:
    """Join pydantic error messages, preferring the raw text of value errors."""
    messages = []
    for error in exc.errors():
        if error["type"] == "value_error":
            messages.append(str(error["ctx"]["error"]))
        else:
            messages.append(error["msg"])
    return ", ".join(messages)

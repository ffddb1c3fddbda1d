"""Process-wide registry of the agents and workflows this server exposes."""

from __future__ import annotations

from agents.base_agent import Agent
from agents.weather_agent import build_weather_agent
from errors import NotFoundError
from workflows.base_workflow import Workflow
from workflows.weather_workflow import build_weather_workflow


class Registry:
    def __init__(
        self,
        agents: list[Agent] | None = None,
        workflows: list[Workflow] | None = None,
    ) -> None:
        self.agents = {agent.id: agent for agent in agents or []}
        self.workflows = {workflow.id: workflow for workflow in workflows or []}

    def get_agent(self, agent_id: str) -> Agent:
        try:
            return self.agents[agent_id]
        except KeyError:
            raise NotFoundError(f"Agent with id '{agent_id}' not found") from None

    def get_workflow(self, workflow_id: str) -> Workflow:
        try:
            return self.workflows[workflow_id]
        except KeyError:
            raise NotFoundError(f"Workflow with id '{workflow_id}' not found") from None


def build_registry() -> Registry:
    return Registry(
        agents=[build_weather_agent()],
        workflows=[build_weather_workflow()],
    )

"""Sequential multi-step workflows with per-step results and active paths."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from utils.structured_logger import get_logger

logger = get_logger(__name__)

SUCCESS = "success"
FAILED = "failed"
SUSPENDED = "suspended"


class StepSuspended(Exception):
    """Raised by ``StepContext.suspend`` to pause a run at the current step."""

    def __init__(self, payload: Any = None) -> None:
        super().__init__("step suspended")
        self.payload = payload


@dataclass
class StepResult:
    status: str
    output: Any = None
    error: str | None = None
    suspend_payload: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status}
        if self.status == SUCCESS:
            data["output"] = self.output
        elif self.status == FAILED:
            data["error"] = self.error
        elif self.status == SUSPENDED:
            data["suspendPayload"] = self.suspend_payload
        return data


@dataclass
class ActivePath:
    status: str
    step_path: list[str]
    suspend_payload: Any = None


@dataclass
class StepContext:
    run_id: str
    trigger_data: dict[str, Any]
    steps: dict[str, StepResult] = field(default_factory=dict)

    def get_step_result(self, step_id: str) -> Any:
        """Return the output of a successful earlier step, else ``None``."""
        result = self.steps.get(step_id)
        if result is None or result.status != SUCCESS:
            return None
        return result.output

    def suspend(self, payload: Any = None) -> None:
        raise StepSuspended(payload)


@dataclass
class Step:
    id: str
    execute: Callable[[StepContext], Awaitable[Any]]
    description: str = ""


@dataclass
class WorkflowResult:
    trigger_data: dict[str, Any]
    results: dict[str, StepResult]
    active_paths: dict[str, ActivePath]
    timestamp: int


class Workflow:
    """A named chain of steps started with validated trigger data."""

    def __init__(self, workflow_id: str, name: str, trigger_model: type[BaseModel]) -> None:
        self.id = workflow_id
        self.name = name
        self.trigger_model = trigger_model
        self.steps: list[Step] = []

    def step(self, step: Step) -> Workflow:
        if any(existing.id == step.id for existing in self.steps):
            raise ValueError(f"Duplicate step id '{step.id}'")
        self.steps.append(step)
        return self

    then = step

    def create_run(self) -> WorkflowRun:
        return WorkflowRun(self)

    def describe(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "triggerSchema": self.trigger_model.model_json_schema(),
            "steps": {
                step.id: {"id": step.id, "description": step.description}
                for step in self.steps
            },
            "stepGraph": [step.id for step in self.steps],
        }


class WorkflowRun:
    def __init__(self, workflow: Workflow) -> None:
        self.workflow = workflow
        self.run_id = str(uuid.uuid4())

    async def start(self, trigger_data: dict[str, Any]) -> WorkflowResult:
        """Run every step in order.

        A step that raises or suspends ends the run; its status is recorded
        in the results and on the active path.
        """
        trigger = self.workflow.trigger_model.model_validate(trigger_data)
        context = StepContext(run_id=self.run_id, trigger_data=trigger.model_dump())
        step_path: list[str] = []
        active_paths: dict[str, ActivePath] = {}
        log = logger.bind(workflow=self.workflow.id, run_id=self.run_id)

        for step in self.workflow.steps:
            step_path.append(step.id)
            active_paths = {step.id: ActivePath(status="running", step_path=list(step_path))}
            try:
                output = await step.execute(context)
            except StepSuspended as suspended:
                log.info("workflow.step_suspended", step=step.id)
                result = StepResult(status=SUSPENDED, suspend_payload=suspended.payload)
            except Exception as exc:
                log.warning("workflow.step_failed", step=step.id, error=str(exc))
                result = StepResult(status=FAILED, error=str(exc) or type(exc).__name__)
            else:
                log.debug("workflow.step_succeeded", step=step.id)
                result = StepResult(status=SUCCESS, output=output)

            context.steps[step.id] = result
            active_paths[step.id] = ActivePath(
                status=result.status,
                step_path=list(step_path),
                suspend_payload=result.suspend_payload,
            )
            if result.status != SUCCESS:
                break

        return WorkflowResult(
            trigger_data=context.trigger_data,
            results=dict(context.steps),
            active_paths=active_paths,
            timestamp=int(time.time() * 1000),
        )


def serialize_result(run: WorkflowRun, result: WorkflowResult) -> dict[str, Any]:
    """Shape a run result as the JSON body returned by the HTTP routes."""
    return {
        "runId": run.run_id,
        "results": {step_id: step.to_dict() for step_id, step in result.results.items()},
        "activePaths": [
            {
                "stepId": step_id,
                "status": path.status,
                "suspendPayload": path.suspend_payload,
                "stepPath": path.step_path,
            }
            for step_id, path in result.active_paths.items()
        ],
        "timestamp": result.timestamp,
    }

"""Tool definitions that agents can call through an LLM."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel


@dataclass
class Tool:
    """A named async callable with a pydantic input model."""

    id: str
    description: str
    input_model: type[BaseModel]
    execute: Callable[[BaseModel], Awaitable[Any]]
    output_model: type[BaseModel] | None = None

    def openai_schema(self) -> dict[str, Any]:
        """Return the tool in OpenAI ``tools=[...]`` function format."""
        return {
            "type": "function",
            "function": {
                "name": self.id,
                "description": self.description,
                "parameters": self.input_model.model_json_schema(),
            },
        }

    def describe(self) -> dict[str, Any]:
        info: dict[str, Any] = {
            "id": self.id,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
        }
        if self.output_model is not None:
            info["outputSchema"] = self.output_model.model_json_schema(by_alias=True)
        return info

    async def call(self, arguments: str | dict[str, Any]) -> Any:
        """Validate raw arguments and run the tool.

        Pydantic models in the result are dumped to plain JSON-ready data.
        """
        if isinstance(arguments, str):
            arguments = json.loads(arguments or "{}")
        params = self.input_model.model_validate(arguments)
        result = await self.execute(params)
        if isinstance(result, BaseModel):
            return result.model_dump(by_alias=True)
        return result

"""Weather workflow: fetch a city's forecast, then plan activities for it."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from agents.base_agent import Agent, ChatMessage, LLMClient, last_user_message
from tools.weather_tool import get_daily_forecast
from workflows.base_workflow import Step, StepContext, Workflow

WORKFLOW_ID = "weatherWorkflow"
PROMPT_HEADER = "Based on the following weather forecast, suggest appropriate activities:"

PLANNER_INSTRUCTIONS = """\
You are a local activities and travel expert who excels at weather-based planning.
Analyze the weather data and provide practical activity recommendations.
For each day in the forecast, structure your response with the conditions,
two to three time-specific outdoor activities with locations, one to two indoor
alternatives, and any special weather considerations.
Keep the plan concise and use plain text."""


class WeatherTrigger(BaseModel):
    city: str = Field(description="The city to get the weather for")


def build_planning_prompt(forecast: dict[str, Any]) -> str:
    return f"{PROMPT_HEADER}\n{json.dumps(forecast)}"


def suggest_activities(forecast: dict[str, Any]) -> str:
    """Rule-based plan used when no LLM backend is configured."""
    lines = [
        f"Weather in {forecast['location']}: {forecast['condition']}, "
        f"{forecast['minTemp']:g}°C to {forecast['maxTemp']:g}°C, "
        f"{forecast['precipitationChance']:g}% chance of rain.",
    ]
    if forecast["precipitationChance"] >= 50:
        lines.append("Indoor activities: visit a museum, explore a covered market, see a show.")
        lines.append("Bring an umbrella if you head out.")
    elif forecast["maxTemp"] >= 28:
        lines.append("Outdoor activities: swim or find shade in a park in the early morning or evening.")
        lines.append("Indoor alternatives: galleries or cafes during the midday heat.")
    else:
        lines.append("Outdoor activities: a walking tour, a picnic in the park, cycling along the waterfront.")
        lines.append("Indoor alternatives: a museum or a local restaurant.")
    return "\n".join(lines)


async def offline_plan(messages: list[ChatMessage]) -> str:
    _, _, payload = last_user_message(messages).partition("\n")
    return suggest_activities(json.loads(payload))


def build_planning_agent(llm: LLMClient | None = None) -> Agent:
    return Agent(
        agent_id="planningAgent",
        name="Activity Planner",
        instructions=PLANNER_INSTRUCTIONS,
        llm=llm,
        fallback=offline_plan,
    )


def build_weather_workflow(planner: Agent | None = None) -> Workflow:
    planner = planner or build_planning_agent()

    async def fetch_weather(context: StepContext) -> dict[str, Any]:
        forecast = await get_daily_forecast(context.trigger_data["city"])
        return forecast.model_dump(by_alias=True)

    async def plan_activities(context: StepContext) -> dict[str, Any]:
        forecast = context.get_step_result("fetch-weather")
        if not forecast:
            raise ValueError("Forecast data not found")
        stream = planner.stream([{"role": "user", "content": build_planning_prompt(forecast)}])
        return {"activities": await stream.text()}

    workflow = Workflow(WORKFLOW_ID, "weather-workflow", trigger_model=WeatherTrigger)
    workflow.step(
        Step(
            id="fetch-weather",
            execute=fetch_weather,
            description="Fetches weather forecast for a given city",
        )
    ).then(
        Step(
            id="plan-activities",
            execute=plan_activities,
            description="Suggests activities based on weather conditions",
        )
    )
    return workflow

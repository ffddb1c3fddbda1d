"""The weather assistant agent."""

from __future__ import annotations

from agents.base_agent import Agent, ChatMessage, LLMClient, last_user_message
from errors import LocationNotFoundError
from tools.weather_tool import WeatherSnapshot, get_weather, weather_tool

AGENT_ID = "weatherAgent"
DESCRIPTION = "Answers questions about the current weather in a city"

INSTRUCTIONS = """\
You are a helpful weather assistant that provides accurate weather information.

Your primary function is to help users get weather details for specific locations. When responding:
- Always ask for a location if none is provided
- If the location name isn't in English, please translate it
- If giving a location with multiple parts (e.g. "New York, NY"), use the most relevant part (e.g. "New York")
- Include relevant details like humidity, wind conditions, and precipitation
- Keep responses concise but informative

Use the get-weather tool to fetch current weather data."""


def format_snapshot(snapshot: WeatherSnapshot) -> str:
    return (
        f"Current weather in {snapshot.location}: {snapshot.conditions}, "
        f"{snapshot.temperature:g}°C (feels like {snapshot.feels_like:g}°C), "
        f"humidity {snapshot.humidity:g}%, wind {snapshot.wind_speed:g} km/h "
        f"with gusts up to {snapshot.wind_gust:g} km/h."
    )


async def offline_reply(messages: list[ChatMessage]) -> str:
    """Answer without an LLM by treating the last user message as a city."""
    location = last_user_message(messages).strip()
    if not location:
        return "Which location would you like the weather for?"
    try:
        snapshot = await get_weather(location)
    except LocationNotFoundError as exc:
        return f"Sorry, I couldn't get the weather: {exc}. Please try another city name."
    return format_snapshot(snapshot)


def build_weather_agent(llm: LLMClient | None = None) -> Agent:
    return Agent(
        agent_id=AGENT_ID,
        name="Weather Agent",
        instructions=INSTRUCTIONS,
        tools=[weather_tool],
        llm=llm,
        fallback=offline_reply,
    )

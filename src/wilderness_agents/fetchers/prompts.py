"""
领域提示词构造

每个 fetcher 的提示词都明确列出期望的 JSON 键名（camelCase），
与 models.py 中的字段别名一一对应。
"""

from __future__ import annotations

from typing import Optional

from wilderness_agents.models import Coordinates, UserCapability, WeatherSnapshot

WEATHER_JSON_SCHEMA_HINT = """{
  "temp": number (Celsius),
  "condition": string,
  "windSpeed": number (km/h),
  "windDir": string (e.g. "NW"),
  "humidity": number (%),
  "precipProb": number (%),
  "visibility": number (km),
  "sunset": string (time),
  "elevation": number (meters),
  "confidence": number (0-100)
}"""

FIRE_DETAILS_SCHEMA_HINT = (
    '"fireDetails": { "dangerRating": string, "windEffect": string, '
    '"dryingTrend": string, "fuelDryness": string, "aiInterpretation": string }'
)


def build_weather_prompt(location: str) -> str:
    return (
        f'CRITICAL INSTRUCTION: Perform a web search to find the ACTUAL CURRENT weather for "{location}".\n'
        "Do NOT use default values.\n"
        "\n"
        "Respond with JSON only. Required JSON structure:\n"
        f"{WEATHER_JSON_SCHEMA_HINT}"
    )


def build_hazard_prompt(weather: WeatherSnapshot, fire_mode: bool) -> str:
    lines = [
        "Rate wilderness hazards 0-100 (100 = most dangerous) based on:",
        f"Location: {weather.location_name}",
        f"Temp: {weather.temp}C, Condition: {weather.condition}, "
        f"Wind: {weather.wind_speed}km/h {weather.wind_dir}, "
        f"Humid: {weather.humidity}%, Precip: {weather.precip_prob}%.",
        "Also give safetyScore 0-100 where 100 is perfectly safe.",
        "JSON: { thunderstorm, heat, cold, fire, flood, safetyScore }",
        f"FIRE MODE: {'ACTIVE' if fire_mode else 'INACTIVE'}",
    ]
    if fire_mode:
        lines.append(f"Fire mode is active, so also provide {FIRE_DETAILS_SCHEMA_HINT}.")
    return "\n".join(lines)


def build_guidance_prompt(
    weather: WeatherSnapshot,
    user: UserCapability,
    coordinates: Optional[Coordinates],
    fire_mode: bool,
) -> str:
    lines = [
        "ACT AS A SENIOR WILDERNESS RANGER.",
        f"Location: {weather.location_name}",
    ]
    if coordinates is not None:
        lines.append(f"Coordinates: {coordinates.lat:.4f}, {coordinates.lng:.4f}")
    lines.extend(
        [
            f"Weather: {weather.temp}°C, {weather.condition}, Wind {weather.wind_speed}km/h, "
            f"Precip {weather.precip_prob}%, Visibility {weather.visibility}km, Sunset {weather.sunset}",
            f"User: Experience {user.experience:g}%, Fitness {user.fitness:g}%, "
            f"Pack {user.pack_weight:g}kg, Group of {user.group_size}, Start {user.start_time}",
            f"FIRE MODE: {'ACTIVE' if fire_mode else 'INACTIVE'}",
            "",
            "Output JSON: { status (GO|CAUTION|MODIFY|NOGO), reasoning, packingHints[], aiSummary, safetyIndex (0-100) }",
        ]
    )
    return "\n".join(lines)


def build_terrain_prompt(location_name: str) -> str:
    return (
        f"Provide terrain profile for {location_name}. "
        "JSON: { type, exposure, hazards[], rangerNote }"
    )


def build_fire_alert_prompt(location: str) -> str:
    return (
        f"Active fire incidents or trail closures near {location} last 72 hours. "
        "Summarize in 2-3 sentences."
    )

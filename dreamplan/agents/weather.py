# =============================================================================
# Weather Agent — Forecasts, Alerts, Outdoor Activity Advice
# =============================================================================
#
# PROVIDER LADDER (getWeatherForecast):
#   OpenWeather via RapidAPI ──▶ OpenWeatherMap ──▶ seeded synthetic forecast
#   (needs coordinates)          (by city name)
#
# getCurrentWeather, getWeatherAlerts and getOutdoorActivityAdvice all run
# the forecast ladder first and derive their answer from its periods, so
# they inherit its fallback tagging.
#
# The synthetic forecast is seeded from "<city>:<date>", so the same city on
# the same day always yields the same numbers.
# =============================================================================

from __future__ import annotations

import logging
import math
import random
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import Field

from dreamplan.agents.base import BaseAgent, TaskParams, TaskSpec
from dreamplan.agents.cascade import (
    ProviderError,
    ProviderTier,
    RetrievalCascade,
    get_json,
    require,
)
from dreamplan.agents.types import AgentCapability, AgentType

logger = logging.getLogger(__name__)

RAPIDAPI_HOST = "open-weather13.p.rapidapi.com"
RAPIDAPI_URL = f"https://{RAPIDAPI_HOST}/fivedaysforcast"
OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/forecast"

KELVIN_OFFSET = 273.15
PERIODS_PER_DAY = 8  # both OpenWeather feeds report in 3-hour steps

_SYNTHETIC_CONDITIONS = [
    ("Clear sky", "01d", "Clear"),
    ("Partly cloudy", "02d", "Clouds"),
    ("Light rain", "10d", "Rain"),
    ("Sunny", "01d", "Clear"),
    ("Overcast", "03d", "Clouds"),
    ("Light breeze", "50d", "Mist"),
]


# ---------------------------------------------------------------------------
# Parameter Models
# ---------------------------------------------------------------------------


class Coordinates(TaskParams):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class TemperatureThreshold(TaskParams):
    min: float | None = None
    max: float | None = None


class AlertThresholds(TaskParams):
    temperature: TemperatureThreshold | None = None
    wind_speed: float | None = None
    precipitation: float | None = None


class ForecastParams(TaskParams):
    city: str = Field(min_length=1)
    country: str | None = None
    days: int = Field(default=5, ge=1, le=16)
    coordinates: Coordinates | None = None


class CurrentWeatherParams(TaskParams):
    city: str = Field(min_length=1)
    country: str | None = None
    coordinates: Coordinates | None = None


class WeatherAlertParams(TaskParams):
    city: str = Field(min_length=1)
    country: str | None = None
    alert_types: list[str]
    thresholds: AlertThresholds | None = None
    coordinates: Coordinates | None = None


class ActivityAdviceParams(TaskParams):
    city: str = Field(min_length=1)
    country: str | None = None
    activity: str = Field(min_length=1)
    on_date: str | None = Field(default=None, alias="date")
    coordinates: Coordinates | None = None


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class WeatherAgent(BaseAgent):
    """Weather forecasts and the advice derived from them."""

    agent_type = AgentType.WEATHER

    CAPABILITIES = [
        AgentCapability.from_model(
            "getWeatherForecast", "Get detailed weather forecast for any location",
            ForecastParams,
        ),
        AgentCapability.from_model(
            "getCurrentWeather", "Get current weather conditions for any location",
            CurrentWeatherParams,
        ),
        AgentCapability.from_model(
            "getWeatherAlerts", "Set up weather alerts and warnings", WeatherAlertParams,
        ),
        AgentCapability.from_model(
            "getOutdoorActivityAdvice", "Get weather-based advice for outdoor activities",
            ActivityAdviceParams,
        ),
    ]

    def task_specs(self) -> dict[str, TaskSpec]:
        return {
            "getWeatherForecast": TaskSpec(self.get_weather_forecast, ForecastParams, 0.9),
            "getCurrentWeather": TaskSpec(self.get_current_weather, CurrentWeatherParams, 0.9),
            "getWeatherAlerts": TaskSpec(self.get_weather_alerts, WeatherAlertParams, 0.8),
            "getOutdoorActivityAdvice": TaskSpec(
                self.get_outdoor_activity_advice, ActivityAdviceParams, 0.85,
            ),
        }

    def validate_parameters(self, parameters: Any, task_type: str | None = None) -> bool:
        if not isinstance(parameters, Mapping) or not parameters.get("city"):
            return False
        return super().validate_parameters(parameters, task_type)

    # -----------------------------------------------------------------------
    # Forecast ladder
    # -----------------------------------------------------------------------

    async def get_weather_forecast(self, params: ForecastParams) -> dict[str, Any]:
        logger.info("Getting weather forecast for %s", params.city)
        return await self._forecast(
            params.city, params.country, params.days, params.coordinates,
        )

    async def _forecast(
        self,
        city: str,
        country: str | None,
        days: int,
        coordinates: Coordinates | None,
    ) -> dict[str, Any]:
        rapidapi_key = self.rapidapi_key()
        owm_key = self.credential_value("openweathermap")

        cascade = RetrievalCascade(
            "getWeatherForecast",
            tiers=[
                ProviderTier(
                    "openweather-rapidapi",
                    lambda: self._rapidapi_forecast(city, country, days, coordinates,
                                                    rapidapi_key),
                    enabled=rapidapi_key is not None and coordinates is not None,
                ),
                ProviderTier(
                    "openweathermap",
                    lambda: self._openweathermap_forecast(city, country, days, owm_key),
                    enabled=owm_key is not None,
                ),
            ],
            fallback=lambda: synthetic_forecast(city, country, days, coordinates),
            fallback_source="synthetic forecast",
        )
        return (await cascade.run()).payload

    async def _rapidapi_forecast(
        self,
        city: str,
        country: str | None,
        days: int,
        coordinates: Coordinates | None,
        api_key: str | None,
    ) -> dict[str, Any]:
        if coordinates is None:
            raise ProviderError("OpenWeather RapidAPI needs coordinates")
        body = await get_json(
            self.http,
            RAPIDAPI_URL,
            params={
                "latitude": coordinates.latitude,
                "longitude": coordinates.longitude,
                "lang": "EN",
            },
            headers={"x-rapidapi-key": api_key or "", "x-rapidapi-host": RAPIDAPI_HOST},
        )
        return _provider_forecast(
            body, city, country, days, kelvin=True, source="openweather-rapidapi",
        )

    async def _openweathermap_forecast(
        self,
        city: str,
        country: str | None,
        days: int,
        api_key: str | None,
    ) -> dict[str, Any]:
        query = f"{city},{country}" if country else city
        body = await get_json(
            self.http,
            OPENWEATHERMAP_URL,
            params={"q": query, "appid": api_key or "", "units": "metric"},
        )
        return _provider_forecast(
            body, city, country, days, kelvin=False, source="openweathermap",
        )

    # -----------------------------------------------------------------------
    # Derived tasks
    # -----------------------------------------------------------------------

    async def get_current_weather(self, params: CurrentWeatherParams) -> dict[str, Any]:
        logger.info("Getting current weather for %s", params.city)
        forecast = await self._forecast(params.city, params.country, 1, params.coordinates)
        periods = forecast.pop("forecast")
        return {**forecast, "current": periods[0]}

    async def get_weather_alerts(self, params: WeatherAlertParams) -> dict[str, Any]:
        logger.info("Setting up weather alerts for %s", params.city)
        forecast = await self._forecast(params.city, params.country, 3, params.coordinates)
        return {
            "city": params.city,
            "country": params.country,
            "alertTypes": params.alert_types,
            "alerts": weather_alerts(
                forecast["forecast"], params.alert_types, params.thresholds,
            ),
            "forecast": forecast,
            "createdAt": datetime.now(UTC).isoformat(),
            **_fallback_tags(forecast),
        }

    async def get_outdoor_activity_advice(
        self, params: ActivityAdviceParams,
    ) -> dict[str, Any]:
        logger.info(
            "Getting outdoor activity advice for %s in %s", params.activity, params.city,
        )
        days = 1 if params.on_date else 3
        forecast = await self._forecast(
            params.city, params.country, days, params.coordinates,
        )
        return {
            "city": params.city,
            "country": params.country,
            "activity": params.activity,
            "advice": activity_advice(params.activity, forecast["forecast"][0]),
            "forecast": forecast,
            "recommendedTimes": recommended_times(forecast["forecast"]),
            "lastUpdated": datetime.now(UTC).isoformat(),
            **_fallback_tags(forecast),
        }


# ---------------------------------------------------------------------------
# Forecast Builders
# ---------------------------------------------------------------------------


def _fallback_tags(forecast: dict[str, Any]) -> dict[str, Any]:
    if not forecast.get("fallback"):
        return {}
    return {"fallback": True, "dataSource": forecast.get("dataSource")}


def _celsius(value: float, kelvin: bool) -> int:
    return round(value - KELVIN_OFFSET) if kelvin else round(value)


def _provider_period(entry: dict[str, Any], kelvin: bool) -> dict[str, Any]:
    main = require(entry, "main")
    condition = require(entry, "weather", 0)
    when = entry.get("dt_txt") or datetime.fromtimestamp(
        require(entry, "dt"), UTC,
    ).isoformat()
    return {
        "date": when,
        "temperature": {
            "current": _celsius(require(main, "temp"), kelvin),
            "feels_like": _celsius(main.get("feels_like", main["temp"]), kelvin),
            "min": _celsius(main.get("temp_min", main["temp"]), kelvin),
            "max": _celsius(main.get("temp_max", main["temp"]), kelvin),
        },
        "weather": {
            "description": condition.get("description", "Clear sky"),
            "icon": condition.get("icon", "01d"),
            "main": condition.get("main", "Clear"),
        },
        "humidity": main.get("humidity", 50),
        "windSpeed": round((entry.get("wind") or {}).get("speed", 5), 1),
        "pressure": main.get("pressure", 1013),
        "visibility": entry.get("visibility", 10000),
        "cloudCover": (entry.get("clouds") or {}).get("all", 0),
    }


def _provider_forecast(
    body: Any,
    city: str,
    country: str | None,
    days: int,
    *,
    kelvin: bool,
    source: str,
) -> dict[str, Any]:
    entries = require(body, "list")
    if not isinstance(entries, list) or not entries:
        raise ProviderError(f"{source} returned no forecast periods")

    info = body.get("city") or {}
    return {
        "city": info.get("name") or city,
        "country": info.get("country") or country or "Unknown",
        "coordinates": info.get("coord"),
        "forecast": [
            _provider_period(entry, kelvin)
            for entry in entries[: days * PERIODS_PER_DAY]
        ],
        "dataSource": source,
        "lastUpdated": datetime.now(UTC).isoformat(),
        "requestedDays": days,
    }


def synthetic_forecast(
    city: str,
    country: str | None,
    days: int,
    coordinates: Coordinates | None = None,
    today: datetime | None = None,
) -> dict[str, Any]:
    """One noon period per day, deterministic for a given city and date."""
    start = (today or datetime.now(UTC)).replace(hour=12, minute=0, second=0, microsecond=0)
    periods = []
    for offset in range(days):
        when = start + timedelta(days=offset)
        rng = random.Random(f"{city.lower()}:{when.date().isoformat()}")
        base = 20 + math.sin(offset * 0.5) * 5 + rng.uniform(-5, 5)
        description, icon, main = rng.choice(_SYNTHETIC_CONDITIONS)
        periods.append({
            "date": when.isoformat(),
            "temperature": {
                "current": round(base),
                "feels_like": round(base + rng.uniform(-1, 1)),
                "min": round(base - 3),
                "max": round(base + 5),
            },
            "weather": {"description": description, "icon": icon, "main": main},
            "humidity": round(rng.uniform(40, 80)),
            "windSpeed": round(rng.uniform(2, 10), 1),
            "pressure": round(rng.uniform(1010, 1030)),
            "visibility": round(rng.uniform(8000, 12000)),
            "cloudCover": round(rng.uniform(0, 100)),
        })

    return {
        "city": city,
        "country": country or "Unknown",
        "coordinates": coordinates.to_wire() if coordinates else None,
        "forecast": periods,
        "lastUpdated": datetime.now(UTC).isoformat(),
        "requestedDays": days,
    }


# ---------------------------------------------------------------------------
# Alerts & Advice
# ---------------------------------------------------------------------------


def weather_alerts(
    periods: list[dict[str, Any]],
    alert_types: list[str],
    thresholds: AlertThresholds | None = None,
) -> list[dict[str, Any]]:
    temperature = thresholds.temperature if thresholds else None
    min_temp = temperature.min if temperature and temperature.min is not None else 0
    max_temp = temperature.max if temperature and temperature.max is not None else 35
    max_wind = thresholds.wind_speed if thresholds and thresholds.wind_speed else 15

    alerts = []
    for period in periods:
        temp = period["temperature"]["current"]
        wind = period["windSpeed"]
        condition = period["weather"]["main"].lower()

        if "extreme_temp" in alert_types:
            if temp < min_temp:
                alerts.append({
                    "type": "extreme_temp",
                    "severity": "warning",
                    "message": f"Low temperature alert: {temp}°C (below {min_temp}°C)",
                    "date": period["date"],
                })
            if temp > max_temp:
                alerts.append({
                    "type": "extreme_temp",
                    "severity": "warning",
                    "message": f"High temperature alert: {temp}°C (above {max_temp}°C)",
                    "date": period["date"],
                })
        if "rain" in alert_types and "rain" in condition:
            alerts.append({
                "type": "rain",
                "severity": "info",
                "message": f"Rain expected: {period['weather']['description']}",
                "date": period["date"],
            })
        if "wind" in alert_types and wind > max_wind:
            alerts.append({
                "type": "wind",
                "severity": "warning",
                "message": f"High wind alert: {wind} m/s",
                "date": period["date"],
            })
    return alerts


def activity_advice(activity: str, period: dict[str, Any]) -> dict[str, Any]:
    temp = period["temperature"]["current"]
    condition = period["weather"]["main"].lower()
    wind = period["windSpeed"]
    humidity = period["humidity"]

    suitability = "good"
    best_time = "afternoon"
    recommendations: list[str] = []
    warnings: list[str] = []

    kind = activity.lower()
    if kind == "picnic":
        if "rain" in condition:
            suitability = "poor"
            warnings.append("Rain expected - consider indoor alternatives")
        elif wind > 20:
            suitability = "fair"
            warnings.append("High winds may affect outdoor dining")
        elif temp < 15 or temp > 30:
            suitability = "fair"
            recommendations.append(
                "Dress warmly" if temp < 15 else "Seek shade, bring plenty of water",
            )
        if suitability == "good":
            recommendations.append("Perfect weather for outdoor dining")
            recommendations.append("Consider bringing a light jacket for evening")
    elif kind in ("hiking", "walking"):
        if "storm" in condition or "thunder" in condition:
            suitability = "poor"
            warnings.append("Thunderstorms pose safety risks")
        elif temp < 5 or temp > 35:
            suitability = "fair"
            warnings.append("Extreme temperatures - take precautions")
        recommendations.append("Wear appropriate footwear")
        recommendations.append("Bring water and snacks")
        if "rain" in condition:
            recommendations.append("Waterproof clothing recommended")
    elif kind in ("sports", "football", "soccer"):
        if "rain" in condition:
            suitability = "fair"
            recommendations.append("Field may be slippery")
        if wind > 15:
            warnings.append("Wind may affect ball trajectory")
        recommendations.append("Stay hydrated")
    elif kind == "gardening":
        if "rain" in condition:
            suitability = "poor"
            warnings.append("Soil will be muddy")
        elif humidity > 80:
            recommendations.append("Good conditions for watering plants")
        if temp > 25:
            best_time = "early morning or evening"
            recommendations.append("Avoid midday sun")
    else:
        recommendations.append("Check weather conditions before heading out")
        if "rain" in condition:
            recommendations.append("Consider waterproof gear")

    return {
        "suitability": suitability,
        "recommendations": recommendations,
        "warnings": warnings,
        "bestTime": best_time,
    }


def time_of_day(hour: int) -> str:
    if hour < 6:
        return "early morning"
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    if hour < 20:
        return "evening"
    return "night"


def recommended_times(periods: list[dict[str, Any]]) -> list[str]:
    """Dry, mild slots among the first three periods."""
    times = []
    for period in periods[:3]:
        temp = period["temperature"]["current"]
        condition = period["weather"]["main"].lower()
        if "rain" in condition or "storm" in condition or not 10 <= temp <= 30:
            continue
        when = datetime.fromisoformat(period["date"])
        times.append(f"{when.date().isoformat()} - {time_of_day(when.hour)}")
    return times

"""Current-weather lookups through OpenWeatherMap."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import requests

logger = logging.getLogger(__name__)

OPENWEATHERMAP_URL = "https://api.openweathermap.org/data/2.5/weather"


@dataclass(frozen=True)
class WeatherSnapshot:
    location: str
    description: str
    temperature: float
    feels_like: float | None = None
    wind_speed: float | None = None
    units: str = "imperial"

    @property
    def temperature_unit(self) -> str:
        return {"metric": "°C", "standard": "K"}.get(self.units, "°F")


class WeatherClient(Protocol):
    def lookup(self, location: str) -> WeatherSnapshot | None: ...


class OpenWeatherMapClient:
    """Return ``None`` instead of raising when the lookup is unavailable."""

    provider = "openweathermap"

    def __init__(
        self,
        *,
        api_key: str | None,
        units: str = "imperial",
        timeout: float = 10.0,
        session: requests.Session | None = None,
        url: str = OPENWEATHERMAP_URL,
    ) -> None:
        self._api_key = api_key
        self._units = units
        self._timeout = timeout
        self._session = session or requests.Session()
        self._url = url

    def lookup(self, location: str) -> WeatherSnapshot | None:
        if not self._api_key or not location:
            return None
        params = {"q": location, "appid": self._api_key, "units": self._units}
        try:
            response = self._session.get(self._url, params=params, timeout=self._timeout)
            response.raise_for_status()
            data = response.json()
            main = data["main"]
            conditions = data.get("weather") or [{}]
            return WeatherSnapshot(
                location=data.get("name") or location,
                description=str(conditions[0].get("description") or "unknown conditions"),
                temperature=float(main["temp"]),
                feels_like=float(main["feels_like"]) if "feels_like" in main else None,
                wind_speed=float(data["wind"]["speed"]) if "wind" in data else None,
                units=self._units,
            )
        except (requests.RequestException, ValueError, KeyError, TypeError) as exc:
            logger.warning("Weather lookup for %r failed: %s", location, exc)
            return None

"""Clients for advisory enrichment collaborators (AI image analysis, geocoding, weather).

None of these are fatal: every failure surfaces as EnrichmentUnavailable and
callers fall back to manual or empty values.
"""

import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.config import get_settings
from app.errors import EnrichmentUnavailable
from app.schemas.report import ImageAnalysis

logger = logging.getLogger(__name__)
settings = get_settings()

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
MAX_IMAGE_BYTES = 10 * 1024 * 1024


class ImageAnalysisClient:
    """
    Client for the AI road-issue classifier.

    POSTs the raw image and expects
    `{"issue_type", "severity", "confidence", "description", "details"}` back.
    """

    def __init__(
        self,
        service_url: str | None = settings.ai_service_url,
        timeout: float = settings.ai_timeout_seconds,
    ):
        self.service_url = service_url
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.service_url)

    async def _post(self, image_bytes: bytes, mime_type: str) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.service_url,
                content=image_bytes,
                headers={"Content-Type": mime_type, "Accept": "application/json"},
            )
            response.raise_for_status()
            return response.json()

    async def analyze(self, image_bytes: bytes, mime_type: str) -> ImageAnalysis:
        """Classify an image; raises EnrichmentUnavailable on any failure."""
        if not self.enabled:
            raise EnrichmentUnavailable("Image analysis service is not configured")
        if mime_type not in ALLOWED_IMAGE_TYPES:
            raise EnrichmentUnavailable(f"Unsupported image type: {mime_type}")
        if not image_bytes or len(image_bytes) > MAX_IMAGE_BYTES:
            raise EnrichmentUnavailable("Image is empty or larger than 10MB")

        try:
            data = await self._post(image_bytes, mime_type)
        except httpx.TimeoutException as e:
            logger.warning(f"Image analysis timed out after {self.timeout}s")
            raise EnrichmentUnavailable("Image analysis timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"Image analysis failed: {e}")
            raise EnrichmentUnavailable(f"Image analysis failed: {e}") from e

        try:
            return ImageAnalysis.model_validate(data)
        except PydanticValidationError as e:
            logger.warning(f"Image analysis returned an unexpected payload: {e}")
            raise EnrichmentUnavailable("Image analysis returned an invalid result") from e


class GeoClient:
    """
    Reverse geocoding (Nominatim API) and current weather (Open-Meteo API).

    Features:
    - Short exponential backoff on 5xx and transport errors (2 attempts)
    - No retry on 4xx; every failure surfaces as EnrichmentUnavailable
    """

    def __init__(
        self,
        geocoding_base_url: str = settings.geocoding_base_url,
        weather_base_url: str = settings.weather_base_url,
        timeout: float = settings.enrichment_timeout_seconds,
        max_retries: int = 2,
    ):
        self.geocoding_base_url = geocoding_base_url.rstrip("/")
        self.weather_base_url = weather_base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.headers = {"Accept": "application/json", "User-Agent": "roadtracker-backend"}

    async def _request_with_retry(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make HTTP request with exponential backoff retry."""
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=self.headers, params=params)
                    response.raise_for_status()
                    return response.json()

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code < 500:
                    raise EnrichmentUnavailable(f"HTTP error: {e}") from e
                wait_time = 0.5 * 2**attempt
                logger.warning(f"Server error {e.response.status_code}, retry in {wait_time}s")
                await asyncio.sleep(wait_time)

            except httpx.RequestError as e:
                last_error = e
                wait_time = 0.5 * 2**attempt
                logger.warning(f"Request error: {e}, retry in {wait_time}s")
                await asyncio.sleep(wait_time)

        raise EnrichmentUnavailable(f"Failed after {self.max_retries} retries: {last_error}")

    async def resolve_address(self, lat: float, lon: float) -> str:
        """Reverse-geocode coordinates to a display address."""
        data = await self._request_with_retry(
            f"{self.geocoding_base_url}/reverse",
            {"lat": lat, "lon": lon, "format": "json"},
        )
        address = data.get("display_name")
        if not address:
            raise EnrichmentUnavailable("No address found for coordinates")
        return address

    async def current_weather(self, lat: float, lon: float) -> dict[str, Any]:
        """Current conditions at the coordinates."""
        data = await self._request_with_retry(
            f"{self.weather_base_url}/forecast",
            {
                "latitude": lat,
                "longitude": lon,
                "current": "temperature_2m,relative_humidity_2m,precipitation,wind_speed_10m",
            },
        )
        current = data.get("current")
        if not current:
            raise EnrichmentUnavailable("Weather service returned no current conditions")
        return {
            "temperature": current.get("temperature_2m"),
            "humidity": current.get("relative_humidity_2m"),
            "precipitation": current.get("precipitation"),
            "wind_speed": current.get("wind_speed_10m"),
            "observed_at": current.get("time"),
        }

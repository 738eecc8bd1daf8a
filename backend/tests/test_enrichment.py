"""Tests for enrichment and notification clients."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from app.errors import EnrichmentUnavailable
from app.schemas.report import ReportOut
from app.services.enrichment import MAX_IMAGE_BYTES, GeoClient, ImageAnalysisClient
from app.services.events import Actor
from app.services.notifications import NotificationDispatcher

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def sample_analysis() -> dict:
    return {
        "issue_type": "pothole",
        "severity": "high",
        "confidence": 0.87,
        "description": "Deep pothole with exposed base layer",
        "details": {"size": "large", "traffic_impact": "medium", "safety_risk": "high"},
    }


@pytest.fixture
def sample_report() -> ReportOut:
    now = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
    return ReportOut(
        id="report-1",
        reporter_id="user-citizen",
        type="debris",
        severity="medium",
        status="in-progress",
        location={
            "address": "500 Howard Street",
            "coordinates": {"latitude": 37.7879, "longitude": -122.3964},
        },
        description="Construction debris across the bike lane",
        traffic_impact="low",
        safety_risk="medium",
        priority=5,
        created_at=now,
        updated_at=now,
    )


class TestImageAnalysisClient:
    """Tests for ImageAnalysisClient."""

    @pytest.mark.asyncio
    async def test_analyze_success(self, sample_analysis):
        client = ImageAnalysisClient(service_url="http://ai.test/analyze")
        client._post = AsyncMock(return_value=sample_analysis)

        analysis = await client.analyze(PNG_BYTES, "image/png")

        assert analysis.issue_type == "pothole"
        assert analysis.severity == "high"
        assert analysis.details.safety_risk == "high"
        client._post.assert_called_once_with(PNG_BYTES, "image/png")

    @pytest.mark.asyncio
    async def test_disabled_without_url(self):
        client = ImageAnalysisClient(service_url=None)

        assert client.enabled is False
        with pytest.raises(EnrichmentUnavailable):
            await client.analyze(PNG_BYTES, "image/png")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload,mime_type",
        [
            (PNG_BYTES, "application/pdf"),
            (b"", "image/png"),
            (b"\x00" * (MAX_IMAGE_BYTES + 1), "image/jpeg"),
        ],
    )
    async def test_rejects_bad_input_without_calling_service(self, payload, mime_type):
        client = ImageAnalysisClient(service_url="http://ai.test/analyze")
        client._post = AsyncMock()

        with pytest.raises(EnrichmentUnavailable):
            await client.analyze(payload, mime_type)

        client._post.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        client = ImageAnalysisClient(service_url="http://ai.test/analyze", timeout=0.1)
        client._post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(EnrichmentUnavailable) as exc_info:
            await client.analyze(PNG_BYTES, "image/png")

        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_payload_is_unavailable(self):
        client = ImageAnalysisClient(service_url="http://ai.test/analyze")
        client._post = AsyncMock(return_value={"issue_type": "sinkhole", "confidence": 3})

        with pytest.raises(EnrichmentUnavailable):
            await client.analyze(PNG_BYTES, "image/png")


class TestGeoClient:
    """Tests for GeoClient."""

    @pytest.mark.asyncio
    async def test_resolve_address(self):
        client = GeoClient(geocoding_base_url="http://geo.test/")
        client._request_with_retry = AsyncMock(
            return_value={"display_name": "500 Howard Street, San Francisco"}
        )

        address = await client.resolve_address(37.7879, -122.3964)

        assert address == "500 Howard Street, San Francisco"
        url, params = client._request_with_retry.call_args.args
        assert url == "http://geo.test/reverse"
        assert params["lat"] == 37.7879

    @pytest.mark.asyncio
    async def test_resolve_address_without_result(self):
        client = GeoClient()
        client._request_with_retry = AsyncMock(return_value={"error": "Unable to geocode"})

        with pytest.raises(EnrichmentUnavailable):
            await client.resolve_address(0.0, 0.0)

    @pytest.mark.asyncio
    async def test_current_weather(self):
        client = GeoClient(weather_base_url="http://weather.test")
        client._request_with_retry = AsyncMock(
            return_value={
                "current": {
                    "time": "2024-06-01T12:00",
                    "temperature_2m": 17.5,
                    "relative_humidity_2m": 72,
                    "precipitation": 0.0,
                    "wind_speed_10m": 14.2,
                }
            }
        )

        weather = await client.current_weather(37.7879, -122.3964)

        assert weather == {
            "temperature": 17.5,
            "humidity": 72,
            "precipitation": 0.0,
            "wind_speed": 14.2,
            "observed_at": "2024-06-01T12:00",
        }

    @pytest.mark.asyncio
    async def test_retry_on_server_error(self):
        """Test retry on 500 server errors."""
        client = GeoClient(max_retries=2)

        mock_response = httpx.Response(500, request=httpx.Request("GET", "http://test"))

        with (
            patch("httpx.AsyncClient.get") as mock_get,
            patch("app.services.enrichment.asyncio.sleep", new=AsyncMock()),
        ):
            mock_get.side_effect = httpx.HTTPStatusError(
                "Server error", request=mock_response.request, response=mock_response
            )

            with pytest.raises(EnrichmentUnavailable) as exc_info:
                await client._request_with_retry("http://test/reverse", {})

            assert "Failed after" in str(exc_info.value)
            assert mock_get.call_count == 2

    @pytest.mark.asyncio
    async def test_no_retry_on_client_error(self):
        """Test no retry on 4xx client errors."""
        client = GeoClient(max_retries=3)

        mock_response = httpx.Response(
            404,
            request=httpx.Request("GET", "http://test"),
            content=b"Not found",
        )

        with patch("httpx.AsyncClient.get") as mock_get:
            mock_get.side_effect = httpx.HTTPStatusError(
                "Not found", request=mock_response.request, response=mock_response
            )

            with pytest.raises(EnrichmentUnavailable):
                await client._request_with_retry("http://test/reverse", {})

            # Should only try once for client errors
            assert mock_get.call_count == 1

    @pytest.mark.asyncio
    async def test_retry_on_transport_error(self):
        client = GeoClient(max_retries=2)

        with (
            patch("httpx.AsyncClient.get") as mock_get,
            patch("app.services.enrichment.asyncio.sleep", new=AsyncMock()) as mock_sleep,
        ):
            mock_get.side_effect = httpx.ConnectError("connection refused")

            with pytest.raises(EnrichmentUnavailable):
                await client._request_with_retry("http://test/forecast", {})

            assert [call.args[0] for call in mock_sleep.call_args_list] == [0.5, 1.0]


class TestNotificationDispatcher:
    """Tests for NotificationDispatcher."""

    def test_build_message(self, sample_report):
        dispatcher = NotificationDispatcher(webhook_url="http://mail.test/hook")

        message = dispatcher.build_message(
            "status_changed", sample_report, Actor(id="user-operator", name="Olive Operator")
        )

        assert message["audience"] == "reporter"
        assert message["subject"] == "Your report is now in-progress"
        assert message["report"]["address"] == "500 Howard Street"
        assert message["actor"] == {"id": "user-operator", "name": "Olive Operator"}

    @pytest.mark.asyncio
    async def test_disabled_without_webhook(self, sample_report):
        dispatcher = NotificationDispatcher(webhook_url=None)
        dispatcher._post = AsyncMock()

        assert await dispatcher.notify("report_created", sample_report) is False
        dispatcher._post.assert_not_called()

    @pytest.mark.asyncio
    async def test_notify_posts_message(self, sample_report):
        dispatcher = NotificationDispatcher(webhook_url="http://mail.test/hook")
        dispatcher._post = AsyncMock()

        assert await dispatcher.notify("report_created", sample_report) is True

        message = dispatcher._post.call_args.args[0]
        assert message["kind"] == "report_created"
        assert message["subject"] == "New debris report: 500 Howard Street"

    @pytest.mark.asyncio
    async def test_http_failure_returns_false(self, sample_report):
        dispatcher = NotificationDispatcher(webhook_url="http://mail.test/hook")
        dispatcher._post = AsyncMock(side_effect=httpx.ConnectError("refused"))

        assert await dispatcher.notify("status_changed", sample_report) is False

    @pytest.mark.asyncio
    async def test_unknown_kind_returns_false(self, sample_report):
        dispatcher = NotificationDispatcher(webhook_url="http://mail.test/hook")
        dispatcher._post = AsyncMock()

        assert await dispatcher.notify("report_deleted", sample_report) is False
        dispatcher._post.assert_not_called()

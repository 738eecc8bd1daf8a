"""Services for the report lifecycle and business logic."""

from app.services.enrichment import GeoClient, ImageAnalysisClient
from app.services.events import EventDispatcher, MutationEvent
from app.services.notifications import NotificationDispatcher
from app.services.reports import ReportService

__all__ = [
    "EventDispatcher",
    "GeoClient",
    "ImageAnalysisClient",
    "MutationEvent",
    "NotificationDispatcher",
    "ReportService",
]

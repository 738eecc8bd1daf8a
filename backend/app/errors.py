"""Domain exceptions raised by the report lifecycle services."""


class RoadTrackerError(Exception):
    """Base exception for domain errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(RoadTrackerError):
    """Malformed input: unknown enum value, missing field, out-of-range value."""

    status_code = 400


class NotFound(RoadTrackerError):
    """A report or user id does not resolve."""

    status_code = 404


class Unauthorized(RoadTrackerError):
    """Missing or invalid credentials."""

    status_code = 401


class Forbidden(RoadTrackerError):
    """Authenticated, but lacking the capability for the action."""

    status_code = 403


class InvalidTransition(RoadTrackerError):
    """Requested status is not reachable from the current status."""

    status_code = 409

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move report from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class ConcurrencyConflict(RoadTrackerError):
    """A mutation kept losing the optimistic version check."""

    status_code = 409


class EnrichmentUnavailable(RoadTrackerError):
    """AI, geocoding or weather collaborator failed or timed out."""

    status_code = 503


class NotificationFailure(RoadTrackerError):
    """Outbound notification could not be delivered."""

    status_code = 502

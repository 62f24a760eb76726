"""Custom exception hierarchy for the location enrichment service."""
from typing import Optional


class GeoEnrichError(Exception):
    """Base exception for all location enrichment errors."""


class GatewayError(GeoEnrichError):
    """A spatial query against the gateway failed."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class GatewayUnavailableError(GatewayError):
    """The spatial store could not be reached; affects the whole batch."""


class GatewayQueryError(GatewayError):
    """A spatial query was rejected for data reasons; may be retried per item."""


class RoutingError(GeoEnrichError):
    """The walking-routing collaborator failed or was given unusable input."""


class BrokerError(GeoEnrichError):
    """A stream broker command failed."""

    def __init__(self, command: str, detail: str):
        self.command = command
        self.detail = detail
        super().__init__(f"Broker {command} failed: {detail}")


class MessageParseError(GeoEnrichError):
    """An inbound stream message could not be turned into a location event."""

    def __init__(self, message_id: str, detail: str, payload: Optional[str] = None):
        self.message_id = message_id
        self.detail = detail
        self.payload = payload
        super().__init__(f"Malformed message {message_id}: {detail}")

"""Error taxonomy for the speech bridge.

Every error carries the HTTP status it maps to and a public ``message`` that is
safe to return to callers. ``details`` holds the underlying cause and is only
rendered when the service runs in development mode.
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for failures converted to HTTP responses at the request boundary."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: str | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message if details is None else f"{self.message}: {details}")

    def to_payload(self, *, include_details: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": self.message}
        if include_details and self.details:
            payload["details"] = self.details
        return payload


class InvalidInputError(BridgeError):
    """Request text is missing, not a string, or blank after trimming."""

    status_code = 400
    default_message = "Text is required and must be a non-empty string"


class UpstreamError(BridgeError):
    """The synthesis provider was unreachable or answered with a failure."""

    default_message = "Error communicating with Kokoro TTS"


class UpstreamTimeoutError(UpstreamError):
    """The synthesis provider did not finish within the configured timeout."""


class StreamProcessingError(BridgeError):
    """Concatenating, resampling or chunking the provider payload failed."""

    default_message = "Error processing audio"


__all__ = [
    "BridgeError",
    "InvalidInputError",
    "StreamProcessingError",
    "UpstreamError",
    "UpstreamTimeoutError",
]

"""Error taxonomy shared by the video client, the CLI and the HTTP API."""

from typing import Any


class SoraPanelError(Exception):
    """Base class for errors raised by sora-panel itself."""

    status_code: int = 500


class InvalidArgumentError(SoraPanelError, ValueError):
    """A required identifier, payload or path was missing or empty."""

    status_code = 400


class UnsupportedMediaTypeError(SoraPanelError):
    """Raised when an input reference is not one of the supported file types."""

    status_code = 415

    def __init__(self, message: str, mime_type: str | None = None, filename: str | None = None):
        super().__init__(message)
        self.mime_type = mime_type
        self.filename = filename


class EmptyResponseError(SoraPanelError):
    """The download call returned no usable content."""


class UnsupportedResponseError(SoraPanelError):
    """The download call returned a payload of an unknown shape."""


class RequestCancelledError(SoraPanelError):
    """The caller cancelled the request before the API answered."""

    status_code = 499


class UpstreamAPIError(SoraPanelError):
    """
    The OpenAI API rejected a call.

    Carries the upstream HTTP status and the structured error body unchanged.
    """

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code or 500
        self.details = details

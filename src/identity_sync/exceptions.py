from __future__ import annotations

import json
from typing import Any


class WebhookError(Exception):
    """
    Base for failures that end a webhook request before any mutation.

    `status_code` is the HTTP status the route answers with.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(WebhookError):
    """Raised when the webhook signing secret is not configured."""

    status_code = 500


class MissingHeadersError(WebhookError):
    status_code = 400


class MalformedBodyError(WebhookError):
    status_code = 400


class SignatureInvalidError(WebhookError):
    status_code = 400


class ValidationError(WebhookError):
    """Raised when a verified event lacks a field the sync cannot do without."""

    status_code = 400


class MetadataWriteError(Exception):
    """Raised when the identity provider rejects a metadata update."""

    def __init__(self, external_id: str, message: str, status_code: int | None = None) -> None:
        self.external_id = external_id
        self.status_code = status_code
        super().__init__(message)


def handle_error(error: Any) -> str:
    """
    Normalize any failure value into a stable message string.

    Exceptions become their message (or class name when they carry none),
    strings are returned unchanged and anything else is JSON encoded.
    """
    if isinstance(error, BaseException):
        return str(error) or error.__class__.__name__
    if isinstance(error, str):
        return error
    return json.dumps(error, default=str)

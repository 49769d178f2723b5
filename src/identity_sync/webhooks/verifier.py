"""
Signature verification for provider webhooks.

The provider signs deliveries with the Svix scheme:

- the signing secret is `whsec_` followed by a base64 encoded key
- the signed content is `{svix-id}.{svix-timestamp}.{raw body}`
- the signature is base64(HMAC-SHA256(key, content))
- `svix-signature` carries space separated `v1,<signature>` entries; the
  delivery is valid if any of them matches
- the timestamp must lie within a tolerance window around now
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from typing import Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import (
    ConfigurationError,
    MalformedBodyError,
    MissingHeadersError,
    SignatureInvalidError,
)
from ..models.events import WebhookEvent, parse_event


MESSAGE_ID_HEADER = "svix-id"
TIMESTAMP_HEADER = "svix-timestamp"
SIGNATURE_HEADER = "svix-signature"

SECRET_PREFIX = "whsec_"
SIGNATURE_VERSION = "v1"
DEFAULT_TOLERANCE_SECONDS = 5 * 60


def _decode_secret(secret: str) -> bytes:
    if secret.startswith(SECRET_PREFIX):
        secret = secret[len(SECRET_PREFIX):]
    try:
        return base64.b64decode(secret, validate=True)
    except binascii.Error as exc:
        raise ConfigurationError("Webhook secret is not valid base64") from exc


def sign_payload(secret: str, message_id: str, timestamp: int | str, body: bytes) -> str:
    """Compute the `v1,<signature>` header value for a delivery."""
    key = _decode_secret(secret)
    content = f"{message_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(key, content, hashlib.sha256).digest()
    return f"{SIGNATURE_VERSION},{base64.b64encode(digest).decode('ascii')}"


class WebhookVerifier:
    """Authenticates raw webhook deliveries and turns them into typed events."""

    def __init__(
        self,
        secret: Optional[str],
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ) -> None:
        self._secret = secret
        self._tolerance_seconds = tolerance_seconds

    @property
    def is_configured(self) -> bool:
        """True when a secret is set and decodes to a signing key."""
        if not self._secret:
            return False
        try:
            _decode_secret(self._secret)
        except ConfigurationError:
            return False
        return True

    def verify(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """
        Verify `body` against the signature headers and return the event.

        Raises ConfigurationError, MissingHeadersError, MalformedBodyError or
        SignatureInvalidError, checked in that order.
        """
        if not self._secret:
            raise ConfigurationError("Missing WEBHOOK_SECRET environment variable")

        normalized = {k.lower(): v for k, v in headers.items()}
        message_id = normalized.get(MESSAGE_ID_HEADER)
        timestamp = normalized.get(TIMESTAMP_HEADER)
        signature = normalized.get(SIGNATURE_HEADER)
        if not message_id or not timestamp or not signature:
            raise MissingHeadersError("Missing svix headers")

        try:
            payload = json.loads(body)
        except ValueError as exc:
            raise MalformedBodyError("Error parsing request body") from exc
        if not isinstance(payload, dict):
            raise MalformedBodyError("Error parsing request body")

        self._verify_timestamp(timestamp)
        self._verify_signature(message_id, timestamp, body, signature)

        try:
            return parse_event(payload)
        except PydanticValidationError as exc:
            raise MalformedBodyError(f"Unexpected webhook payload: {exc.error_count()} invalid field(s)") from exc

    def _verify_timestamp(self, timestamp: str) -> None:
        try:
            sent_at = int(timestamp)
        except ValueError as exc:
            raise SignatureInvalidError("Invalid signature timestamp") from exc

        now = int(time.time())
        if sent_at < now - self._tolerance_seconds:
            raise SignatureInvalidError("Message timestamp too old")
        if sent_at > now + self._tolerance_seconds:
            raise SignatureInvalidError("Message timestamp too new")

    def _verify_signature(
        self, message_id: str, timestamp: str, body: bytes, signature_header: str
    ) -> None:
        expected = sign_payload(self._secret, message_id, timestamp, body)  # type: ignore[arg-type]
        expected_signature = expected.split(",", 1)[1]

        for candidate in signature_header.split(" "):
            version, _, value = candidate.partition(",")
            if version != SIGNATURE_VERSION or not value:
                continue
            # Constant-time comparison
            if hmac.compare_digest(expected_signature.encode("ascii"), value.encode("ascii", "ignore")):
                return
        raise SignatureInvalidError("No matching signature found")

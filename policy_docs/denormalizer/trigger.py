"""
Policy Doc Change Notifications

This module is the Pub/Sub interface of the denormalizer. It does as little
as possible: decode the notification, hand the (site, env, hostname) triple
to the Denormalizer once, and tell the trigger framework whether the message
is done with.

Envelope format (Pub/Sub push body / CloudEvent data):
    {
        "message": {
            "data": "<base64 of UTF-8 JSON>",
            "attributes": {"key": "value", ...}
        },
        "subscription": "..."
    }

Payload format:
    {"site": "<site id>", "env": "<environment>", "hostname": "<hostname>"}

Acknowledgement policy:
- Malformed envelopes or payloads are acknowledged so that poison messages
  are not redelivered forever.
- Retryable failures (store unavailable, transient write failure) are not
  acknowledged; the trigger framework redelivers them.
- Terminal failures (missing or malformed records) are logged with the
  payload and acknowledged.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .denormalize import Denormalizer
from .document_store import StoreError
from .models import DeserializationError
from .paths import InvalidPathError

Envelope = Union[Mapping[str, Any], str, bytes]


class MalformedMessageError(Exception):
    """Raised when a notification envelope or payload cannot be decoded."""
    pass


@dataclass(frozen=True)
class PubSubMessage:
    """Message carried by a Pub/Sub envelope."""

    data: bytes
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyDocsMessage:
    """Identifies the hostname whose policy docs changed."""

    site: str
    env: str
    hostname: str


def decode_envelope(event: Envelope) -> PubSubMessage:
    """
    Decode a Pub/Sub envelope into its message.

    Args:
        event: Envelope as a mapping, or its raw JSON text

    Returns:
        PubSubMessage with the decoded binary payload and string attributes

    Raises:
        MalformedMessageError: If the envelope is not valid JSON, has no
                               message, or carries undecodable data
    """
    if isinstance(event, (str, bytes)):
        try:
            event = json.loads(event)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedMessageError(f"envelope is not valid JSON: {e}") from e

    if not isinstance(event, Mapping):
        raise MalformedMessageError("envelope must be a JSON object")

    message = event.get("message")
    if not isinstance(message, Mapping):
        raise MalformedMessageError("envelope has no message object")

    raw_data = message.get("data")
    if isinstance(raw_data, bytes):
        data = raw_data
    elif isinstance(raw_data, str):
        try:
            data = base64.b64decode(raw_data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedMessageError(f"message data is not valid base64: {e}") from e
    else:
        raise MalformedMessageError("message has no data")

    attributes = message.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise MalformedMessageError("message attributes must be an object")

    return PubSubMessage(
        data=data,
        attributes={str(key): str(value) for key, value in attributes.items()},
    )


def parse_policy_docs_message(data: bytes) -> PolicyDocsMessage:
    """
    Parse a message payload as a policy docs notification.

    Raises:
        MalformedMessageError: If the payload is not UTF-8 JSON or lacks a
                               non-empty string site, env or hostname, or
                               one of them has surrounding whitespace
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessageError(f"payload is not valid UTF-8 JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedMessageError("payload must be a JSON object")

    values = {}
    for key in ("site", "env", "hostname"):
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            raise MalformedMessageError(f"payload field '{key}' must be a non-empty string")
        if value != value.strip():
            raise MalformedMessageError(f"payload field '{key}' has surrounding whitespace: {value!r}")
        values[key] = value

    return PolicyDocsMessage(**values)


class UpdateHandler:
    """Handles policy doc change notifications."""

    def __init__(self, denormalizer: Denormalizer, logger: Optional[logging.Logger] = None):
        self.denormalizer = denormalizer
        self.logger = logger or logging.getLogger(__name__)

    def policy_doc_updated(self, event: Envelope) -> bool:
        """
        Denormalize the policy doc named by a change notification.

        Args:
            event: Pub/Sub envelope (mapping or raw JSON)

        Returns:
            True to acknowledge the message, False to request redelivery
        """
        try:
            message = decode_envelope(event)
        except MalformedMessageError as e:
            self.logger.error(
                f"Unable to decode pubsub envelope, dropping message: {e}",
                extra={'error': str(e)},
            )
            return True

        msg_text = message.data.decode("utf-8", errors="replace")

        try:
            pdocs_message = parse_policy_docs_message(message.data)
        except MalformedMessageError as e:
            self.logger.error(
                f"Unable to parse pubsub message as PolicyDocsMessage, dropping message: {e} (message: {msg_text})",
                extra={'pubsub_message': msg_text, 'error': str(e)},
            )
            return True

        self.logger.info(
            "Pubsub triggered",
            extra={'pubsub_message': msg_text, 'attributes': message.attributes},
        )

        try:
            self.denormalizer.denormalize(
                pdocs_message.site,
                pdocs_message.env,
                pdocs_message.hostname,
            )
        except (StoreError, DeserializationError, InvalidPathError) as e:
            retryable = getattr(e, "retryable", False)
            self.logger.error(
                f"Unable to denormalize policy doc for {pdocs_message.hostname}: {e} "
                f"(retryable: {retryable}, message: {msg_text})",
                extra={
                    'pubsub_message': msg_text,
                    'hostname': pdocs_message.hostname,
                    'error': str(e),
                    'error_type': type(e).__name__,
                    'retryable': retryable,
                },
            )
            return not retryable

        self.logger.info(
            f"Policy doc successfully denormalized for {pdocs_message.hostname}",
            extra={'hostname': pdocs_message.hostname},
        )
        return True


__all__ = [
    "MalformedMessageError",
    "PolicyDocsMessage",
    "PubSubMessage",
    "UpdateHandler",
    "decode_envelope",
    "parse_policy_docs_message",
]

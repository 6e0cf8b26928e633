"""Agent-to-agent message models and metadata helpers.

This module provides:

* **Content parts** -- :class:`TextPart`, :class:`DataPart` and
  :class:`FilePart`, discriminated on ``kind``.
* **Message** -- an ordered sequence of parts plus an opaque,
  string-keyed ``metadata`` map.
* **Extension keys** -- the two metadata keys under which the
  sender-identity and user-delegation envelopes travel.
* **Helpers** to build messages and attach metadata without mutating
  the original message.

Messages are frozen; every helper returns a new :class:`Message`.
"""
from __future__ import annotations

import uuid
from typing import Annotated, Any, Literal

from pydantic import Field, model_validator

from a2a_trust.core.types import WireModel

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SENDER_IDENTITY_EXTENSION: str = "urn:a2a-trust:ext:sender-identity:v1"
"""Metadata key carrying a :class:`~a2a_trust.core.types.SenderEnvelope`."""

USER_DELEGATION_EXTENSION: str = "urn:a2a-trust:ext:user-delegation:v1"
"""Metadata key carrying a :class:`~a2a_trust.core.types.DelegationEnvelope`."""


# ---------------------------------------------------------------------------
# Content parts
# ---------------------------------------------------------------------------

class TextPart(WireModel):
    kind: Literal["text"] = "text"
    text: str
    metadata: dict[str, Any] | None = None


class DataPart(WireModel):
    kind: Literal["data"] = "data"
    data: dict[str, Any]
    metadata: dict[str, Any] | None = None


class FileContent(WireModel):
    """A file reference (``uri``) or inline base64 content (``bytes``)."""

    uri: str | None = None
    bytes_: str | None = Field(default=None, alias="bytes")
    name: str | None = None
    mime_type: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> FileContent:
        if (self.uri is None) == (self.bytes_ is None):
            raise ValueError("file content needs exactly one of 'uri' or 'bytes'")
        return self


class FilePart(WireModel):
    kind: Literal["file"] = "file"
    file: FileContent
    metadata: dict[str, Any] | None = None


Part = Annotated[TextPart | DataPart | FilePart, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------

class Message(WireModel):
    """A single protocol message."""

    kind: Literal["message"] = "message"
    message_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "agent"] = "user"
    parts: list[Part]
    metadata: dict[str, Any] | None = None
    context_id: str | None = None
    task_id: str | None = None

    def with_metadata(self, key: str, value: Any) -> Message:
        """Return a copy of this message with ``metadata[key] = value``."""
        metadata = dict(self.metadata or {})
        metadata[key] = value
        return self.model_copy(update={"metadata": metadata})


def build_message(
    text: str | None = None,
    data: dict[str, Any] | None = None,
    parts: list[TextPart | DataPart | FilePart] | None = None,
    *,
    role: Literal["user", "agent"] = "user",
    message_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    context_id: str | None = None,
    task_id: str | None = None,
) -> Message:
    """Build a :class:`Message` from text, structured data and/or parts.

    Parts appear in the order *text*, *data*, then *parts*.

    Raises
    ------
    ValueError
        If no content is given.
    """
    content: list[TextPart | DataPart | FilePart] = []
    if text is not None:
        content.append(TextPart(text=text))
    if data is not None:
        content.append(DataPart(data=data))
    content.extend(parts or [])
    if not content:
        raise ValueError("a message needs at least one of text, data or parts")
    fields: dict[str, Any] = {
        "role": role,
        "parts": content,
        "metadata": metadata,
        "context_id": context_id,
        "task_id": task_id,
    }
    if message_id is not None:
        fields["message_id"] = message_id
    return Message(**fields)


def parse_message(raw: dict[str, Any]) -> Message:
    """Validate a wire-format message dictionary.

    Raises :class:`pydantic.ValidationError` on schema mismatch.
    """
    return Message.model_validate(raw)

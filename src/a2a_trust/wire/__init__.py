"""a2a-trust wire models -- messages, content parts and extension keys."""
from __future__ import annotations

from a2a_trust.wire.messages import (
    SENDER_IDENTITY_EXTENSION,
    USER_DELEGATION_EXTENSION,
    DataPart,
    FileContent,
    FilePart,
    Message,
    Part,
    TextPart,
    build_message,
    parse_message,
)

__all__ = [
    "SENDER_IDENTITY_EXTENSION",
    "USER_DELEGATION_EXTENSION",
    "DataPart",
    "FileContent",
    "FilePart",
    "Message",
    "Part",
    "TextPart",
    "build_message",
    "parse_message",
]

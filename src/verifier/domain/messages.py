from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class Medium:
    """A typed binary attachment carried alongside a message."""

    mime_type: str
    data: bytes

    def to_data_uri(self) -> str:
        payload = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{payload}"


@dataclass(frozen=True)
class CanonicalMessage:
    role: str
    text: str
    media: Tuple[Medium, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ContentBlock:
    kind: str
    text: Optional[str] = None


@dataclass(frozen=True)
class PlainText:
    text: str


@dataclass(frozen=True)
class Blocks:
    blocks: Tuple[ContentBlock, ...]


MessageContent = Union[PlainText, Blocks]


@dataclass(frozen=True)
class NormalizedMessage:
    """Model-facing message plus the human-readable text stored in history."""

    canonical: CanonicalMessage
    persisted_text: str
    attachment_count: int = 0

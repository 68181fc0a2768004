from __future__ import annotations

from typing import Any, List, Optional, Sequence

from ..domain.messages import Blocks, CanonicalMessage, ContentBlock, MessageContent, NormalizedMessage, PlainText
from ..domain.verification_models import ClientMessage
from .attachments import decode_all


IMAGE_MARKER = "[Image Attached]"


def parse_content(raw: Any) -> MessageContent:
    """Resolve raw client content into ``PlainText`` or ``Blocks``."""
    if isinstance(raw, str):
        return PlainText(raw)
    if isinstance(raw, (list, tuple)):
        blocks: List[ContentBlock] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            text = item.get("text")
            blocks.append(ContentBlock(kind=str(item.get("type") or ""), text=text if isinstance(text, str) else None))
        return Blocks(tuple(blocks))
    return PlainText("")


def extract_text(content: MessageContent) -> str:
    if isinstance(content, PlainText):
        return content.text
    return "".join(block.text or "" for block in content.blocks if block.kind == "text")


def persisted_text(text: str, attachment_count: int) -> str:
    if attachment_count:
        return f"{text} {IMAGE_MARKER}"
    return text


def normalize_message(message: ClientMessage, references: Optional[Sequence[Optional[str]]] = None) -> NormalizedMessage:
    """Build the canonical (model-facing) form of a user turn.

    Attachments that fail to decode are dropped; the marker in the persisted
    text still reflects that something was attached.
    """
    refs = list(references if references is not None else message.attachment_urls)
    text = extract_text(parse_content(message.content))
    media = decode_all(refs)
    canonical = CanonicalMessage(role="user", text=text, media=tuple(media))
    return NormalizedMessage(
        canonical=canonical,
        persisted_text=persisted_text(text, len(refs)),
        attachment_count=len(refs),
    )

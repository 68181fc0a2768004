"""Decoding of inline ``data:`` attachment references into typed media."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Iterable, List, Optional

from ..domain.errors import AttachmentDecodeError
from ..domain.messages import Medium
from ..observability.metrics import ATTACHMENT_DECODE_FAILURES


logger = logging.getLogger("verifier.attachments")

_MIME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*$")


def is_inline_reference(reference: Optional[str]) -> bool:
    return isinstance(reference, str) and reference.startswith("data:")


def decode_data_uri(reference: str) -> Medium:
    """Decode ``data:<mime>;base64,<payload>`` into a :class:`Medium`.

    Raises
    ------
    AttachmentDecodeError
        If the reference is not an inline data URI or any segment is malformed.
    """
    if not is_inline_reference(reference):
        raise AttachmentDecodeError("Not an inline data reference")
    header, sep, payload = reference[len("data:"):].partition(",")
    if not sep:
        raise AttachmentDecodeError("Missing payload segment")
    mime_type, sep, encoding = header.partition(";")
    mime_type = mime_type.strip()
    if not _MIME_RE.match(mime_type):
        raise AttachmentDecodeError(f"Malformed MIME type: {mime_type!r}")
    if not sep or encoding.strip().lower() != "base64":
        raise AttachmentDecodeError(f"Unsupported encoding marker: {encoding!r}")
    try:
        data = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AttachmentDecodeError("Invalid base64 payload") from exc
    if not data:
        raise AttachmentDecodeError("Empty payload")
    return Medium(mime_type=mime_type, data=data)


def try_decode(reference: Optional[str]) -> Optional[Medium]:
    """Decode a reference, returning ``None`` for anything that is not usable."""
    if not is_inline_reference(reference):
        logger.debug("attachment_skipped_not_inline", extra={"reference": (reference or "")[:64]})
        return None
    try:
        return decode_data_uri(reference)  # type: ignore[arg-type]
    except AttachmentDecodeError as exc:
        ATTACHMENT_DECODE_FAILURES.inc()
        logger.warning("Failed to process attachment: %s", exc)
        return None


def decode_all(references: Iterable[Optional[str]]) -> List[Medium]:
    out: List[Medium] = []
    for reference in references:
        medium = try_decode(reference)
        if medium is not None:
            out.append(medium)
    return out


def guess_image_mime(filename: Optional[str], content_type: Optional[str] = None) -> str:
    """Pick a MIME type for an uploaded image, defaulting to JPEG."""
    if content_type and content_type.lower().startswith("image/"):
        return content_type.lower()
    lowered = (filename or "").lower()
    if lowered.endswith(".png"):
        return "image/png"
    if lowered.endswith(".gif"):
        return "image/gif"
    if lowered.endswith(".webp"):
        return "image/webp"
    return "image/jpeg"

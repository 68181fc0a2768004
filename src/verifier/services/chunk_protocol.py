from __future__ import annotations

import json
import logging
from typing import Optional


logger = logging.getLogger("verifier.stream")

TEXT_PART_PREFIX = "0:"


def encode_chunk(fragment: Optional[str]) -> str:
    """Wrap a text fragment as ``0:<json string>\\n``.

    Returns an empty string when the fragment cannot be serialised or would
    not survive UTF-8 transport; the caller drops such chunks.
    """
    if fragment is None:
        return ""
    try:
        escaped = json.dumps(fragment, ensure_ascii=False)
        escaped.encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.warning("chunk_encode_failed", extra={"err": str(exc)})
        return ""
    return f"{TEXT_PART_PREFIX}{escaped}\n"


def frame_sse(chunk: str) -> str:
    """Frame an encoded chunk as a server-sent event ``data:`` line."""
    if not chunk:
        return ""
    return "data:" + chunk.rstrip("\n") + "\n\n"

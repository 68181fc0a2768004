from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..domain.messages import CanonicalMessage, NormalizedMessage
from ..domain.verification_models import ClientMessage, VerificationIntent
from .normalizer import extract_text, normalize_message, parse_content
from .prompts import build_system_prompt


@dataclass(frozen=True)
class VerificationContext:
    messages: Tuple[CanonicalMessage, ...]
    # Only the final turn is stored; earlier turns were saved by earlier requests.
    last_user_message: Optional[NormalizedMessage] = None


def build_context(intent: VerificationIntent, messages: Sequence[ClientMessage]) -> VerificationContext:
    out: List[CanonicalMessage] = [CanonicalMessage(role="system", text=build_system_prompt(intent))]
    last_user: Optional[NormalizedMessage] = None
    for index, message in enumerate(messages):
        role = (message.role or "").strip().lower()
        if role == "user":
            normalized = normalize_message(message)
            out.append(normalized.canonical)
            if index == len(messages) - 1:
                last_user = normalized
        elif role == "assistant":
            text = extract_text(parse_content(message.content))
            out.append(CanonicalMessage(role="assistant", text=text))
    return VerificationContext(messages=tuple(out), last_user_message=last_user)

from __future__ import annotations

import logging
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

from ..domain.verification_models import VerificationIntent


LOG = logging.getLogger("verifier.prompts")

DEFAULT_CHUNK_SIZE = 10


_CONVERSATION_BASE = """\
You are a professional brand assistant helping a customer through a return or complaint verification.
Your goal is to analyze the customer's request and the provided photo evidence to determine if it meets our policy.

CORE INSTRUCTIONS:
1. Analyze the image carefully (look for defects, wear, tags, damage).
2. Compare findings against the POLICY below.
3. FIRST, think step-by-step in ENGLISH inside <thought> tags to form your logic.
4. THEN, reply to the user exclusively in POLISH (Polski).
5. Be polite, professional, and empathetic, but firm on the policy.

OUTPUT FORMAT:
<thought>
[Analyze the image visuals]
[Compare with policy]
[Formulate verdict]
</thought>

[Your response in Polish]
"""

_RETURN_POLICY = """\
POLICY: STANDARD RETURN (ZWROT)
- Timeframe: Must be within 30 days of purchase.
- Condition: Item must be UNWORN, UNWASHED, and have ORIGINAL TAGS attached.
- Rejection Criteria: Visible signs of use (wrinkles from wearing, stains, smells), missing tags, mechanical damage caused by user.
- Acceptance Criteria: Item looks brand new, ready for resale.
"""

_COMPLAINT_POLICY = """\
POLICY: COMPLAINT (REKLAMACJA)
- Timeframe: 2 years warranty for manufacturing defects.
- Scope: Covers material failure, seam slippage, discoloration, broken zippers (if not forced).
- Rejection Criteria: Mechanical damage (cuts, tears from snagging), improper washing (shrinking), normal wear and tear over time.
- Acceptance Criteria: Clear manufacturing fault visible.
"""

_ANALYSIS_BASE = """\
Role
You are a senior QA specialist for garment quality assessment, textile defect analysis and customer service policy enforcement.

Task
Verify the customer's return or complaint by analyzing the provided information against the policy rules below.
Approve whenever reasonable; reject only when fraud is obvious and undeniable. When in doubt, approve.

Instructions
- Examine all evidence: description, images, purchase details and customer statements.
- Classify the issue as a manufacturing defect (seam slippage, pilling, color bleeding, barre, slub) or user damage (cuts, bleach spots, wear-and-tear).
- Decide APPROVED or REJECTED.

Output format
First line: ONLY a JSON object with the status field, {{"status": "APPROVED"}} or {{"status": "REJECTED"}}.
Then, on a new line, a plain-English explanation referencing the policy rules and the defect classification.
Begin immediately with the analysis, without introductory phrases.

Policy Rules Reference:

{policy}
Edge cases
- Both manufacturing defects and user damage visible: approve if the defect could reasonably have existed independently.
- Ambiguous defect type or policy gap: approve rather than request more evidence.
"""

_ANALYSIS_RETURN_RULES = """\
- Returns: 30-day window, item must be unused, receipt required
- Verify receipt authenticity and extract order/receipt ID and purchase date
- Match extracted information with user-provided data
"""

_ANALYSIS_COMPLAINT_RULES = """\
- Complaints: 2-year statutory warranty, manufacturing defects only
- Analyze defect photos to classify defect type
- Distinguish between manufacturing defects and user-caused damage
"""


def _is_return(kind: VerificationIntent | str) -> bool:
    value = kind.value if isinstance(kind, VerificationIntent) else str(kind or "")
    return value.strip().upper() == VerificationIntent.RETURN.value


def build_system_prompt(intent: VerificationIntent | str) -> str:
    """System instruction for the conversational verification flow.

    The intent-specific policy block is always appended after the base
    instructions; anything that is not RETURN gets the complaint policy.
    """
    policy = _RETURN_POLICY if _is_return(intent) else _COMPLAINT_POLICY
    prompt = _CONVERSATION_BASE + "\n" + policy
    LOG.debug("system_prompt_built", extra={"intent": str(intent), "length": len(prompt)})
    return prompt


def build_simplified_prompt(request_kind: VerificationIntent | str) -> str:
    """System instruction for the single-shot analysis flow."""
    rules = _ANALYSIS_RETURN_RULES if _is_return(request_kind) else _ANALYSIS_COMPLAINT_RULES
    prompt = _ANALYSIS_BASE.format(policy=rules)
    LOG.debug("simplified_prompt_built", extra={"request_kind": str(request_kind), "length": len(prompt)})
    return prompt


def split_fragment(fragment: str, size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(fragment), size):
        yield fragment[start:start + size]


def rechunk(fragments: Iterable[str], size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """Lazily split every fragment into slices of at most ``size`` characters.

    Slices never span two upstream fragments.
    """
    for fragment in fragments:
        yield from split_fragment(fragment, size)


async def arechunk(fragments: AsyncIterable[str], size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    async for fragment in fragments:
        for piece in split_fragment(fragment, size):
            yield piece

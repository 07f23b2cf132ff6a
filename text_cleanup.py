"""Pure post-processing of LLM proofreading output.

Models sometimes wrap their answer in a preamble, echo the input delimiters or
quote the result. ``clean_response`` undoes that. ``check_quality`` then
decides whether the answer still looks like a cleanup of the input rather
than something the model made up.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Set

from models import RejectReason

THINK_BLOCK = re.compile(r"<think>.*?</think>\s*", re.DOTALL)

# Applied in order, each at most once, to the start of the response.
PREAMBLE_PATTERNS = (
    re.compile(
        r"^here[’']?s?\s+(the\s+)?(cleaned|corrected|proofread|polished|revised|updated|draft|a\s+draft)\b[^:\n]*:\s*",
        re.IGNORECASE,
    ),
    re.compile(r"^(sure|okay|of course)[!,.]?\s*(here[’']?s?\b[^:\n]*:\s*)?", re.IGNORECASE),
)

OPEN_TAG = re.compile(r"^\[TEXT\]\s*", re.IGNORECASE)
CLOSE_TAG = re.compile(r"\s*\[/TEXT\]$", re.IGNORECASE)

QUOTE_PAIRS = (('"', '"'), ("“", "”"))

_PUNCT = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class QualityPolicy:
    min_length_ratio: float = 0.2
    max_length_ratio: float = 2.0
    max_length_floor: int = 200
    min_overlap: float = 0.3
    min_token_length: int = 3


DEFAULT_POLICY = QualityPolicy()


def wrap_transcript(text: str) -> str:
    return f"[TEXT]{text}[/TEXT]"


def clean_response(text: str) -> str:
    result = THINK_BLOCK.sub("", text).strip()
    for pattern in PREAMBLE_PATTERNS:
        result = pattern.sub("", result, count=1)
    result = OPEN_TAG.sub("", result.strip())
    result = CLOSE_TAG.sub("", result)
    for left, right in QUOTE_PAIRS:
        if len(result) >= 2 and result.startswith(left) and result.endswith(right):
            result = result[1:-1]
            break
    return result.strip()


def significant_words(text: str, min_length: int = 3) -> Set[str]:
    stripped = _PUNCT.sub("", text.lower())
    return {w for w in stripped.split() if len(w) >= min_length}


def word_overlap(source: str, candidate: str, min_length: int = 3) -> Optional[float]:
    """Share of the source's significant words found in the candidate."""
    source_words = significant_words(source, min_length)
    if not source_words:
        return None
    candidate_words = significant_words(candidate, min_length)
    return len(source_words & candidate_words) / len(source_words)


def check_quality(
    source: str,
    output: str,
    policy: QualityPolicy = DEFAULT_POLICY,
) -> Optional[RejectReason]:
    """Return the reason to reject ``output``, or None if it passes."""
    if len(output) < len(source) * policy.min_length_ratio:
        return RejectReason.TOO_SHORT
    if len(output) > max(len(source) * policy.max_length_ratio, policy.max_length_floor):
        return RejectReason.TOO_LONG
    overlap = word_overlap(source, output, policy.min_token_length)
    if overlap is not None and overlap < policy.min_overlap:
        return RejectReason.LOW_OVERLAP
    return None

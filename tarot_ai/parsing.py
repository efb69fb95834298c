"""Best-effort extraction of a structured reading from model output.

Models are asked for bare JSON but often wrap it in prose or a code fence.
`parse_structured_reading` tries, in order:

1. the body of the first fenced code block (```json ... ``` or ``` ... ```)
2. the first balanced top-level {...} span in the text

and returns a `ParseSuccess` or `ParseFailure`. It never raises.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Optional, Union

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from .models import StructuredReading
from .spreads import UNIVERSAL6_POSITIONS

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class ParseSuccess(BaseModel):
    ok: bool = True
    reading: StructuredReading


class ParseFailure(BaseModel):
    ok: bool = False
    reason: str


ParseResult = Union[ParseSuccess, ParseFailure]


def fenced_block(text: str) -> Optional[str]:
    m = _FENCE_RE.search(text or "")
    if not m:
        return None
    return m.group(1).strip()


def first_brace_span(text: str) -> Optional[str]:
    """Return the first balanced {...} span, ignoring braces inside JSON strings."""
    start = (text or "").find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _candidates(text: str) -> List[str]:
    out: List[str] = []
    fenced = fenced_block(text)
    if fenced:
        out.append(fenced)
    span = first_brace_span(text)
    if span and span not in out:
        out.append(span)
    return out


def _validate(payload: Any) -> StructuredReading:
    if not isinstance(payload, dict):
        raise ValueError("top-level JSON value is not an object")

    reading = StructuredReading(
        positions=payload.get("positions") or [],
        overall=payload.get("overall") or "",
    )
    expected = len(UNIVERSAL6_POSITIONS)
    if len(reading.positions) != expected:
        raise ValueError(f"expected {expected} positions, got {len(reading.positions)}")
    if sorted(p.position for p in reading.positions) != list(range(1, expected + 1)):
        raise ValueError("positions must be numbered 1..6 exactly once")
    if not reading.overall.strip():
        raise ValueError("missing overall synthesis")

    reading.positions.sort(key=lambda p: p.position)
    return reading


def parse_structured_reading(text: str) -> ParseResult:
    candidates = _candidates(text)
    if not candidates:
        return ParseFailure(reason="no JSON object found")

    reason = "unparseable"
    for cand in candidates:
        try:
            payload = json.loads(cand)
        except json.JSONDecodeError as e:
            reason = f"invalid JSON: {e.msg}"
            continue
        try:
            return ParseSuccess(reading=_validate(payload))
        except (ValueError, ModelValidationError) as e:
            reason = f"unexpected shape: {e}"
    return ParseFailure(reason=reason)

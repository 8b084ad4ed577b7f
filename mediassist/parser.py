"""Extract the structured booking block from a model reply.

The system prompt asks the model to close a confirmed or cancelled booking
with a fenced JSON block::

    All set, Priya! See you tomorrow.

    ```json
    {"status": "confirmed", "patient_name": "Priya", ...}
    ```

Only the first such block is honoured. When it cannot be decoded the reply
is shown verbatim and no booking is produced.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from mediassist.models.booking import BookingRecord

log = logging.getLogger("mediassist.parser")

_BLOCK_PATTERN = re.compile(r"```json[ \t]*\n(.*?)\n[ \t]*```", re.DOTALL)


@dataclass(frozen=True)
class ParseResult:
    """What the session needs from one model reply."""

    display_text: str
    booking: Optional[BookingRecord] = None
    failure_reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_reason is not None


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        problems.append(f"{field}: {err.get('msg', 'invalid')}")
    return "invalid booking record (" + "; ".join(problems) + ")"


def parse(raw_text: str) -> ParseResult:
    """Split a model reply into display text and an optional booking.

    Never raises. A block that fails to decode leaves ``raw_text`` untouched
    and sets ``failure_reason``.
    """
    raw_text = raw_text or ""
    match = _BLOCK_PATTERN.search(raw_text)
    if not match:
        return ParseResult(display_text=raw_text.strip())

    body = match.group(1)
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        reason = f"malformed JSON: {exc.msg} at line {exc.lineno} column {exc.colno}"
        log.warning("Booking block could not be decoded: %s", reason)
        return ParseResult(display_text=raw_text, failure_reason=reason)

    if not isinstance(payload, dict):
        reason = f"expected a JSON object, got {type(payload).__name__}"
        log.warning("Booking block could not be decoded: %s", reason)
        return ParseResult(display_text=raw_text, failure_reason=reason)

    try:
        booking = BookingRecord.model_validate(payload)
    except ValidationError as exc:
        reason = _describe_validation_error(exc)
        log.warning("Booking block could not be decoded: %s", reason)
        return ParseResult(display_text=raw_text, failure_reason=reason)

    display_text = (raw_text[: match.start()] + raw_text[match.end():]).strip()
    log.debug("Parsed booking block with status=%s", booking.status)
    return ParseResult(display_text=display_text, booking=booking)

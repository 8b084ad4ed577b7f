"""Pydantic model for booking records emitted by the assistant."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

log = logging.getLogger("mediassist.models.booking")


class BookingStatus(str, Enum):
    """Statuses the system prompt asks the model to emit.

    The model may still send something else; ``BookingRecord.status`` is a
    plain string so those records are kept as active bookings.
    """

    CONFIRMED = "confirmed"
    PENDING_CALLBACK = "pending_callback"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"


class BookingRecord(BaseModel):
    """One appointment or callback entry in the ledger.

    ``recorded_at`` is owned by the ledger: it is stamped on insertion and
    rewritten once on cancellation. Any value the model sends is replaced.
    """

    model_config = ConfigDict(coerce_numbers_to_str=True, extra="ignore")

    status: str
    patient_name: str
    department: str
    time: str
    priority: Optional[Priority] = None
    contact_number: Optional[str] = None
    reason: Optional[str] = None
    recorded_at: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: Any) -> Any:
        if value is None or isinstance(value, Priority):
            return value
        text = str(value).strip().lower()
        if text in (Priority.HIGH.value, Priority.NORMAL.value):
            return text
        log.debug("Dropping unrecognised priority %r", value)
        return None

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    @property
    def is_active(self) -> bool:
        return not self.is_cancelled

    @property
    def is_high_priority(self) -> bool:
        return self.priority == Priority.HIGH

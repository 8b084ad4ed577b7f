"""Ordered booking history for one session.

Newest bookings sit at the front. Records are only ever prepended, flipped
to cancelled once, or wiped by ``clear``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional

from mediassist.models.booking import BookingRecord, BookingStatus

log = logging.getLogger("mediassist.ledger")

CANCELLED_SUFFIX = " (Cancelled)"


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def format_wall_clock(moment: datetime) -> str:
    """Client-style wall-clock stamp, e.g. ``02:30 PM``."""
    return moment.strftime("%I:%M %p")


def names_match(stored: str, requested: str) -> bool:
    """Case-insensitive containment in either direction.

    "John" matches "John Smith" and "John Smith" matches "John". A blank
    request never matches.
    """
    stored = (stored or "").strip().lower()
    requested = (requested or "").strip().lower()
    if not stored or not requested:
        return False
    return requested in stored or stored in requested


class CancelOutcome(str, Enum):
    MATCHED = "matched"
    UNMATCHED = "unmatched"


class BookingLedger:
    """In-memory, newest-first ledger of booking records.

    Readers get copies via ``snapshot()``; the ledger is the only thing that
    mutates its records. ``on_change`` runs after every mutation so the owner
    can persist.
    """

    def __init__(
        self,
        records: Iterable[BookingRecord] = (),
        clock: Callable[[], datetime] = datetime.now,
        on_change: Optional[Callable[["BookingLedger"], None]] = None,
    ) -> None:
        self._records: list[BookingRecord] = [r.model_copy() for r in records]
        self._clock = clock
        self._on_change = on_change

    # ── Read access ───────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[BookingRecord]:
        return iter(self.snapshot())

    def snapshot(self) -> list[BookingRecord]:
        """Copy of the records, newest first."""
        return [r.model_copy() for r in self._records]

    def active(self) -> list[BookingRecord]:
        return [r.model_copy() for r in self._records if r.is_active]

    # ── Mutations ─────────────────────────────────────────────

    def set_on_change(self, callback: Optional[Callable[["BookingLedger"], None]]) -> None:
        self._on_change = callback

    def load(self, records: Iterable[BookingRecord]) -> None:
        """Replace the contents with persisted records, keeping their stamps."""
        self._records = [r.model_copy() for r in records]
        log.info("Ledger loaded with %d record(s)", len(self._records))

    def insert(self, record: BookingRecord) -> BookingRecord:
        """Stamp ``recorded_at`` and prepend. Duplicates are allowed."""
        stored = record.model_copy(update={"recorded_at": self._now()})
        self._records.insert(0, stored)
        log.info(
            "Booking inserted: patient=%s department=%s status=%s",
            redact_pii(stored.patient_name),
            stored.department,
            stored.status,
        )
        self._changed()
        return stored.model_copy()

    def cancel(
        self, patient_name: str, template: Optional[BookingRecord] = None,
    ) -> CancelOutcome:
        """Cancel the most recent active booking whose name matches.

        With no match a standalone cancelled record is prepended instead, so
        the cancellation is never lost (e.g. after the history was cleared).
        ``template`` supplies department/time for that standalone record.
        """
        now = self._now()

        for idx, record in enumerate(self._records):
            if record.is_cancelled:
                continue
            if names_match(record.patient_name, patient_name):
                self._records[idx] = record.model_copy(update={
                    "status": BookingStatus.CANCELLED.value,
                    "recorded_at": now + CANCELLED_SUFFIX,
                })
                log.info(
                    "Booking cancelled: patient=%s position=%d",
                    redact_pii(record.patient_name),
                    idx,
                )
                self._changed()
                return CancelOutcome.MATCHED

        if template is not None:
            standalone = template.model_copy(update={
                "status": BookingStatus.CANCELLED.value,
                "recorded_at": now,
            })
        else:
            standalone = BookingRecord(
                status=BookingStatus.CANCELLED.value,
                patient_name=patient_name or "",
                department="",
                time="",
                recorded_at=now,
            )
        self._records.insert(0, standalone)
        log.info(
            "No active booking for %s; recorded standalone cancellation",
            redact_pii(patient_name),
        )
        self._changed()
        return CancelOutcome.UNMATCHED

    def clear(self) -> None:
        """Drop every record. Callers confirm with the user first."""
        count = len(self._records)
        self._records = []
        log.info("Ledger cleared (%d record(s) removed)", count)
        self._changed()

    # ── Internal ──────────────────────────────────────────────

    def _now(self) -> str:
        return format_wall_clock(self._clock())

    def _changed(self) -> None:
        if self._on_change:
            self._on_change(self)

"""Derived statistics and the daily report, computed from a ledger snapshot.

Everything here is pure: pass in the records (newest first) and get a fresh
value back. Nothing is cached or persisted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from mediassist.models.booking import BookingRecord

DEFAULT_DEPARTMENT = "General"
TOP_DEPARTMENTS = 4
EMPTY_REPORT = "No active appointments today."


@dataclass(frozen=True)
class DepartmentCount:
    name: str
    count: int
    percentage: int


@dataclass(frozen=True)
class DerivedStats:
    total: int
    active_count: int
    cancelled_count: int
    high_priority_active_count: int
    top_departments: tuple[DepartmentCount, ...] = ()


def percentage_of(count: int, active_count: int) -> int:
    """Share of active bookings, rounded half-up to a whole percent."""
    return int(math.floor(count / max(active_count, 1) * 100 + 0.5))


def compute(records: Iterable[BookingRecord]) -> DerivedStats:
    """Compute totals and the top departments among active bookings.

    Department ties keep the order in which departments first appear in the
    (newest-first) records.
    """
    records = list(records)
    active = [r for r in records if r.is_active]

    dept_counts: dict[str, int] = {}
    for record in active:
        dept = (record.department or "").strip() or DEFAULT_DEPARTMENT
        dept_counts[dept] = dept_counts.get(dept, 0) + 1

    ranked = sorted(dept_counts.items(), key=lambda item: item[1], reverse=True)
    top = tuple(
        DepartmentCount(name=name, count=count, percentage=percentage_of(count, len(active)))
        for name, count in ranked[:TOP_DEPARTMENTS]
    )

    return DerivedStats(
        total=len(records),
        active_count=len(active),
        cancelled_count=len(records) - len(active),
        high_priority_active_count=sum(1 for r in active if r.is_high_priority),
        top_departments=top,
    )


def generate_report(records: Iterable[BookingRecord]) -> str:
    """Daily report of active bookings, formatted for WhatsApp."""
    active = [r for r in records if r.is_active]
    if not active:
        return EMPTY_REPORT

    lines = ["*📅 Hospital Daily Report*", ""]
    for booking in active:
        urgency = "🚨 *URGENT* " if booking.is_high_priority else ""
        lines.append(f"• {urgency}*{booking.time}*: {booking.patient_name} ({booking.department})")
        if booking.contact_number:
            lines.append(f"  _Contact: {booking.contact_number}_")
    return "\n".join(lines) + "\n"

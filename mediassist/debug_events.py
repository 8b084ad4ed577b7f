"""Per-session event broadcaster for tracing booking turns.

A BookingSession can have a DebugBroadcaster attached. Events (turns,
model errors, parse failures, ledger changes, scheduled notifications) are
kept in a bounded event log and pushed to every subscriber's asyncio.Queue
so a front end can stream them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter, deque
from enum import Enum
from typing import Any, TypedDict, Union

from mediassist.ledger import redact_pii
from mediassist.models.booking import BookingRecord

log = logging.getLogger("mediassist.debug_events")

QUEUE_SIZE = 200
EVENT_LOG_SIZE = 1000


class EventType(str, Enum):
    USER_TURN = "user_turn"
    MODEL_TURN = "model_turn"
    MODEL_ERROR = "model_error"
    PARSE_FAILURE = "parse_failure"
    BOOKING_INSERTED = "booking_inserted"
    BOOKING_CANCELLED = "booking_cancelled"
    NOTIFICATION = "notification"
    TURN_REJECTED = "turn_rejected"


class DebugEvent(TypedDict):
    type: str          # an EventType value
    timestamp: float
    session_id: str
    turn_id: str
    data: dict


def booking_payload(record: BookingRecord) -> dict[str, Any]:
    """Event data for a ledger record. The patient name is masked."""
    return {
        "patient": redact_pii(record.patient_name),
        "department": record.department,
        "status": record.status,
        "priority": record.priority.value if record.priority else None,
        "recorded_at": record.recorded_at,
    }


class DebugBroadcaster:
    """Per-session event broadcaster using asyncio.Queue per subscriber.

    Only the most recent ``EVENT_LOG_SIZE`` events are kept in the log.
    """

    def __init__(self, session_id: str, log_size: int = EVENT_LOG_SIZE) -> None:
        self._session_id = session_id
        self._subscribers: list[asyncio.Queue[DebugEvent]] = []
        self._event_log: deque[DebugEvent] = deque(maxlen=log_size)

    @property
    def session_id(self) -> str:
        return self._session_id

    def subscribe(self) -> asyncio.Queue[DebugEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[DebugEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers.append(q)
        log.info("Debug subscriber added for session %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[DebugEvent]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)
        log.info("Debug subscriber removed for session %s (total: %d)",
                 self._session_id, len(self._subscribers))

    def emit(self, event_type: Union[EventType, str], turn_id: str, data: dict) -> None:
        """Record an event and push it to every subscriber.

        Raises ValueError for a name that is not an EventType.
        """
        event: DebugEvent = {
            "type": EventType(event_type).value,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "turn_id": turn_id,
            "data": data,
        }
        self._event_log.append(event)

        for q in self._subscribers:
            if q.full():
                # Drop oldest event to make room
                q.get_nowait()
            q.put_nowait(event)

    def events_of(self, event_type: Union[EventType, str]) -> list[DebugEvent]:
        wanted = EventType(event_type).value
        return [e for e in self._event_log if e["type"] == wanted]

    def counts(self) -> Counter[str]:
        """Number of logged events per type, e.g. bookings vs. cancellations."""
        return Counter(e["type"] for e in self._event_log)

    @property
    def event_log(self) -> list[DebugEvent]:
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

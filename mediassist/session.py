"""Booking session — drives one chat conversation with the model.

Each turn:
  1. Appends the user's text to the transcript
  2. Sends it to the model (opening the chat lazily on first use)
  3. Splits the reply into display text and an optional booking block
  4. Applies the booking to the ledger as a cancellation or an insertion
  5. For new bookings, schedules the WhatsApp notification when enabled

Model failures never escape: the turn becomes a fixed apology.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from mediassist import parser
from mediassist.debug_events import DebugBroadcaster, EventType, booking_payload
from mediassist.ledger import BookingLedger, CancelOutcome, redact_pii
from mediassist.model_providers.base import ChatSession, ModelProvider
from mediassist.models.booking import BookingRecord
from mediassist.models.turn import Turn
from mediassist.notifier import (
    NotificationScheduler,
    NotifierConfig,
    OutboundMessage,
    on_new_booking,
)
from mediassist.prompts import build_system_instruction, opening_prompt

log = logging.getLogger("mediassist.session")

APOLOGY_TEXT = "System connection interrupted. Please try again in a moment."


@dataclass(frozen=True)
class TurnResult:
    """Everything that happened during the last turn, for callers and tests."""

    turn: Turn
    parse: Optional[parser.ParseResult] = None
    booking: Optional[BookingRecord] = None
    cancel_outcome: Optional[CancelOutcome] = None
    notification: Optional[OutboundMessage] = None
    model_error: Optional[str] = None


class BookingSession:
    """One chat conversation and the ledger it feeds.

    Typical lifecycle::

        session = BookingSession(provider, ledger, scheduler, NotifierConfig())

        greeting = await session.start_conversation()
        turn = await session.send_turn("I have chest pain, I'm Priya")
        # → render turn.text; session.last_result holds the booking outcome
    """

    def __init__(
        self,
        provider: ModelProvider,
        ledger: BookingLedger,
        scheduler: NotificationScheduler,
        notifier_config: Optional[NotifierConfig] = None,
        system_instruction: Optional[str] = None,
        assistant_name: str = "MediAssist",
    ) -> None:
        self._provider = provider
        self._ledger = ledger
        self._scheduler = scheduler
        self._notifier_config = notifier_config or NotifierConfig()
        self._system_instruction = system_instruction
        self._assistant_name = assistant_name

        self._session_id = secrets.token_urlsafe(12)
        self._chat: Optional[ChatSession] = None
        self._transcript: list[Turn] = []
        self._in_flight = False
        self._last_result: Optional[TurnResult] = None

        self._debug_broadcaster: DebugBroadcaster | None = None

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def transcript(self) -> list[Turn]:
        return list(self._transcript)

    @property
    def is_busy(self) -> bool:
        return self._in_flight

    @property
    def has_chat(self) -> bool:
        return self._chat is not None

    @property
    def last_result(self) -> Optional[TurnResult]:
        return self._last_result

    @property
    def notifier_config(self) -> NotifierConfig:
        return self._notifier_config

    def attach_broadcaster(self, broadcaster: DebugBroadcaster) -> None:
        """Attach a debug broadcaster for real-time event streaming."""
        self._debug_broadcaster = broadcaster

    def _emit_event(self, event_type: EventType, turn_id: str, data: dict) -> None:
        """Emit a debug event if a broadcaster is attached."""
        if self._debug_broadcaster:
            self._debug_broadcaster.emit(event_type, turn_id, data)

    def reset(self) -> None:
        """Drop the chat and transcript. The ledger is untouched."""
        self._chat = None
        self._transcript = []
        self._last_result = None
        log.info("Session %s reset", self._session_id)

    async def start_conversation(self) -> Optional[Turn]:
        """Open a fresh chat and return the assistant's greeting turn.

        The opening prompt is not shown in the transcript; only the greeting is.
        """
        if self._in_flight:
            log.debug("Start ignored: a turn is already in flight")
            return None

        self.reset()
        self._in_flight = True
        try:
            result = await self._exchange(opening_prompt(self._assistant_name))
        finally:
            self._in_flight = False
        return result.turn

    async def send_turn(self, user_text: str) -> Optional[Turn]:
        """Process one user message and return the model turn.

        Returns None, without touching the transcript, for blank input or
        while another turn is still waiting on the model.
        """
        text = (user_text or "").strip()
        if not text:
            log.debug("Turn ignored: empty input")
            self._emit_event(EventType.TURN_REJECTED, "", {"reason": "empty"})
            return None
        if self._in_flight:
            log.debug("Turn ignored: a turn is already in flight")
            self._emit_event(EventType.TURN_REJECTED, "", {"reason": "in_flight"})
            return None

        self._in_flight = True
        try:
            user_turn = Turn(role="user", text=text)
            self._transcript.append(user_turn)
            self._emit_event(EventType.USER_TURN, user_turn.id, {"text": text})

            result = await self._exchange(text)
        finally:
            self._in_flight = False

        return result.turn

    # ── Internal: model exchange ─────────────────────────────

    def _ensure_chat(self) -> ChatSession:
        if self._chat is None:
            system = self._system_instruction or build_system_instruction(
                assistant_name=self._assistant_name,
            )
            self._chat = self._provider.start_chat(system)
            log.info("Session %s: model chat started", self._session_id)
        return self._chat

    async def _exchange(self, text: str) -> TurnResult:
        try:
            chat = self._ensure_chat()
            reply = await chat.send_message(text)
        except Exception as e:
            log.exception("Model call failed in session %s", self._session_id)
            turn = Turn(role="model", text=APOLOGY_TEXT)
            self._transcript.append(turn)
            self._emit_event(EventType.MODEL_ERROR, turn.id, {"error": str(e)})
            result = TurnResult(turn=turn, model_error=str(e) or type(e).__name__)
            self._last_result = result
            return result

        parsed = parser.parse(reply)
        turn = Turn(role="model", text=parsed.display_text)
        self._transcript.append(turn)
        self._emit_event(EventType.MODEL_TURN, turn.id, {
            "text": parsed.display_text,
            "has_booking": parsed.booking is not None,
        })
        if parsed.failed:
            self._emit_event(EventType.PARSE_FAILURE, turn.id, {"reason": parsed.failure_reason})

        result = self._apply_booking(turn, parsed)
        self._last_result = result
        return result

    # ── Internal: ledger reconciliation ──────────────────────

    def _apply_booking(self, turn: Turn, parsed: parser.ParseResult) -> TurnResult:
        booking = parsed.booking
        if booking is None:
            return TurnResult(turn=turn, parse=parsed)

        if booking.is_cancelled:
            outcome = self._ledger.cancel(booking.patient_name, template=booking)
            self._emit_event(EventType.BOOKING_CANCELLED, turn.id, {
                "patient": redact_pii(booking.patient_name),
                "outcome": outcome.value,
            })
            return TurnResult(turn=turn, parse=parsed, booking=booking, cancel_outcome=outcome)

        stored = self._ledger.insert(booking)
        self._emit_event(EventType.BOOKING_INSERTED, turn.id, booking_payload(stored))

        message = on_new_booking(stored, self._notifier_config)
        if message is not None:
            self._scheduler.schedule(message)
            self._emit_event(EventType.NOTIFICATION, turn.id, {
                "destination": message.destination,
                "delay": self._scheduler.delay_seconds,
            })

        return TurnResult(turn=turn, parse=parsed, booking=stored, notification=message)

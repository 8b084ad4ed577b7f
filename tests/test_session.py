"""Tests for BookingSession — the per-turn controller."""

import asyncio

import pytest

from mediassist.debug_events import DebugBroadcaster
from mediassist.ledger import BookingLedger, CancelOutcome
from mediassist.model_providers.base import ModelError, ModelProvider
from mediassist.models.booking import BookingRecord
from mediassist.notifier import NotificationScheduler, NotifierConfig
from mediassist.session import APOLOGY_TEXT, BookingSession
from mediassist.stats import compute

from conftest import FakeProvider, RecordingDispatcher, booking_reply


def make_session(provider, clock=None, enabled=False, destination="", delay=0.0):
    ledger = BookingLedger(clock=clock) if clock else BookingLedger()
    dispatcher = RecordingDispatcher()
    scheduler = NotificationScheduler(dispatcher, delay_seconds=delay)
    session = BookingSession(
        provider=provider,
        ledger=ledger,
        scheduler=scheduler,
        notifier_config=NotifierConfig(enabled=enabled, destination_number=destination),
        system_instruction="You are a test assistant.",
    )
    return session, ledger, dispatcher


class TestSessionInit:
    def test_chat_created_lazily(self):
        session, _, _ = make_session(FakeProvider())
        assert session.has_chat is False
        assert session.transcript == []

    @pytest.mark.asyncio
    async def test_first_turn_opens_chat(self):
        provider = FakeProvider("Hello! What's your name?")
        session, _, _ = make_session(provider)

        turn = await session.send_turn("Hi")

        assert session.has_chat is True
        assert turn.role == "model"
        assert turn.text == "Hello! What's your name?"
        system, messages = provider.calls[0]
        assert system == "You are a test assistant."
        assert messages == [{"role": "user", "content": "Hi"}]


class TestInputRejection:
    @pytest.mark.asyncio
    async def test_blank_input_ignored(self):
        provider = FakeProvider()
        session, _, _ = make_session(provider)

        assert await session.send_turn("   ") is None
        assert await session.send_turn("") is None
        assert session.transcript == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_overlapping_turn_ignored(self):
        release = asyncio.Event()

        class SlowProvider(ModelProvider):
            async def complete(self, system, messages):
                await release.wait()
                return "Done."

        session, _, _ = make_session(SlowProvider())
        first = asyncio.create_task(session.send_turn("first"))
        await asyncio.sleep(0)
        assert session.is_busy is True

        second = await session.send_turn("second")
        assert second is None

        release.set()
        turn = await first
        assert turn.text == "Done."
        assert session.is_busy is False
        assert [t.text for t in session.transcript] == ["first", "Done."]


class TestModelFailure:
    @pytest.mark.asyncio
    async def test_failure_becomes_apology(self):
        provider = FakeProvider(ModelError("connection refused"))
        session, ledger, _ = make_session(provider)

        turn = await session.send_turn("Book me in")

        assert turn.role == "model"
        assert turn.text == APOLOGY_TEXT
        assert [t.role for t in session.transcript] == ["user", "model"]
        assert session.last_result.model_error == "connection refused"
        assert session.last_result.booking is None
        assert len(ledger) == 0
        assert session.is_busy is False

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_absorbed(self):
        session, _, _ = make_session(FakeProvider(RuntimeError("boom")))
        turn = await session.send_turn("Hello")
        assert turn.text == APOLOGY_TEXT

    @pytest.mark.asyncio
    async def test_session_recovers_after_failure(self):
        provider = FakeProvider(ModelError("timeout"), "Back online.")
        session, _, _ = make_session(provider)

        await session.send_turn("one")
        turn = await session.send_turn("two")

        assert turn.text == "Back online."
        # The failed message never entered the model's history
        _, messages = provider.calls[1]
        assert messages == [{"role": "user", "content": "two"}]


class TestBookingReconciliation:
    @pytest.mark.asyncio
    async def test_confirmed_booking_inserted(self, clock):
        session, ledger, _ = make_session(FakeProvider(booking_reply("Booked!")), clock=clock)

        turn = await session.send_turn("Yes please")

        assert turn.text == "Booked!"
        assert len(ledger) == 1
        record = ledger.snapshot()[0]
        assert record.patient_name == "Priya"
        assert record.recorded_at == "09:15 AM"
        assert session.last_result.booking == record
        assert session.last_result.notification is None

    @pytest.mark.asyncio
    async def test_cancellation_matches_existing(self, clock):
        provider = FakeProvider(
            booking_reply("Booked.", patient_name="John Smith"),
            booking_reply("Cancelled.", status="cancelled", patient_name="john"),
        )
        session, ledger, dispatcher = make_session(provider, clock=clock, enabled=True)

        await session.send_turn("Book John Smith")
        await session.send_turn("Cancel it")

        assert session.last_result.cancel_outcome is CancelOutcome.MATCHED
        assert session.last_result.notification is None
        assert len(ledger) == 1
        assert ledger.snapshot()[0].status == "cancelled"

    @pytest.mark.asyncio
    async def test_cancellation_without_booking_recorded(self, clock):
        provider = FakeProvider(
            booking_reply("Cancelled.", status="cancelled", patient_name="Unknown Patient"),
        )
        session, ledger, _ = make_session(provider, clock=clock)

        await session.send_turn("Cancel my appointment")

        assert session.last_result.cancel_outcome is CancelOutcome.UNMATCHED
        assert len(ledger) == 1
        assert ledger.snapshot()[0].status == "cancelled"

    @pytest.mark.asyncio
    async def test_malformed_block_shown_verbatim(self):
        raw = "Booked!\n```json\n{oops}\n```"
        session, ledger, _ = make_session(FakeProvider(raw))

        turn = await session.send_turn("Yes")

        assert turn.text == raw
        assert len(ledger) == 0
        assert session.last_result.parse.failure_reason is not None


class TestNotification:
    @pytest.mark.asyncio
    async def test_end_to_end_priya_cardiology(self, clock):
        reply = booking_reply(
            "I will book this under Cardiology. See you tomorrow, Priya!",
            department="Cardiology",
            priority="normal",
        )
        session, ledger, dispatcher = make_session(
            FakeProvider(reply), clock=clock, enabled=True, destination="+91 99999 00000", delay=0.05,
        )
        before = compute(ledger.snapshot())

        await session.send_turn("I have chest pain, book me for tomorrow, I'm Priya")

        after = compute(ledger.snapshot())
        assert after.active_count == before.active_count + 1
        assert after.high_priority_active_count == before.high_priority_active_count

        message = session.last_result.notification
        assert message is not None
        assert "Priya" in message.text and "Cardiology" in message.text
        # Payload is available immediately; the dispatch itself is deferred
        assert dispatcher.sent == []
        await asyncio.sleep(0.1)
        assert dispatcher.sent == [message]

    @pytest.mark.asyncio
    async def test_disabled_config_sends_nothing(self):
        session, _, dispatcher = make_session(FakeProvider(booking_reply()), enabled=False)
        await session.send_turn("Yes")
        await asyncio.sleep(0.01)
        assert session.last_result.notification is None
        assert dispatcher.sent == []

    @pytest.mark.asyncio
    async def test_config_changes_apply_to_next_turn(self):
        session, _, _ = make_session(FakeProvider(booking_reply(), booking_reply()))
        await session.send_turn("one")
        assert session.last_result.notification is None

        session.notifier_config.enabled = True
        await session.send_turn("two")
        assert session.last_result.notification is not None


class TestConversationStart:
    @pytest.mark.asyncio
    async def test_start_keeps_only_greeting(self):
        provider = FakeProvider("Old reply", "Welcome to City Hospital!")
        session, _, _ = make_session(provider)
        await session.send_turn("earlier message")

        greeting = await session.start_conversation()

        assert greeting.text == "Welcome to City Hospital!"
        assert session.transcript == [greeting]
        # A fresh chat: the opening prompt is the only history sent
        _, messages = provider.calls[-1]
        assert len(messages) == 1
        assert "MediAssist" in messages[0]["content"]

    def test_reset_keeps_ledger(self, clock):
        session, ledger, _ = make_session(FakeProvider(), clock=clock)
        ledger.insert(BookingRecord(status="confirmed", patient_name="A", department="B", time="C"))
        session.reset()
        assert len(ledger) == 1
        assert session.has_chat is False


class TestDebugEvents:
    @pytest.mark.asyncio
    async def test_events_emitted_for_booking_turn(self):
        session, _, _ = make_session(FakeProvider(booking_reply()), enabled=True)
        broadcaster = DebugBroadcaster(session.session_id)
        session.attach_broadcaster(broadcaster)

        await session.send_turn("Yes")

        types = [e["type"] for e in broadcaster.event_log]
        assert types == ["user_turn", "model_turn", "booking_inserted", "notification"]
        inserted = broadcaster.events_of("booking_inserted")[0]
        assert inserted["data"]["department"] == "Cardiology"
        assert "Priya" not in str(inserted["data"])

    @pytest.mark.asyncio
    async def test_parse_failure_and_rejections_traced(self):
        session, _, _ = make_session(FakeProvider("```json\n[1]\n```"))
        broadcaster = DebugBroadcaster(session.session_id)
        session.attach_broadcaster(broadcaster)

        await session.send_turn("  ")
        await session.send_turn("Yes")

        assert broadcaster.events_of("turn_rejected")[0]["data"]["reason"] == "empty"
        failure = broadcaster.events_of("parse_failure")[0]
        assert "JSON object" in failure["data"]["reason"]

    @pytest.mark.asyncio
    async def test_model_error_traced(self):
        session, _, _ = make_session(FakeProvider(ModelError("down")))
        broadcaster = DebugBroadcaster(session.session_id)
        session.attach_broadcaster(broadcaster)

        await session.send_turn("Hi")

        assert broadcaster.events_of("model_error")[0]["data"]["error"] == "down"

"""Shared fakes for the booking engine tests."""

import json
import os
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from mediassist.model_providers.base import ModelProvider
from mediassist.notifier import Dispatcher, OutboundMessage


def booking_reply(text: str = "All booked!", **fields) -> str:
    """A model reply ending with a fenced booking block."""
    payload = {
        "status": "confirmed",
        "patient_name": "Priya",
        "department": "Cardiology",
        "time": "Tomorrow 10:00 AM",
        "priority": "normal",
    }
    payload.update(fields)
    return f"{text}\n\n```json\n{json.dumps(payload)}\n```"


class FakeProvider(ModelProvider):
    """Returns queued replies; an Exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, list[dict]]] = []

    async def complete(self, system, messages):
        self.calls.append((system, list(messages)))
        if not self.replies:
            return "How can I help you?"
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingDispatcher(Dispatcher):
    def __init__(self, fail: bool = False):
        self.sent: list[OutboundMessage] = []
        self.fail = fail

    def dispatch(self, message):
        if self.fail:
            raise RuntimeError("browser unavailable")
        self.sent.append(message)


class FixedClock:
    """Clock returning 09:15 AM, then advancing a minute per call."""

    def __init__(self):
        self.minute = 15

    def __call__(self):
        moment = datetime(2026, 3, 14, 9, self.minute)
        self.minute += 1
        return moment


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()

"""Outbound WhatsApp notifications for new bookings.

``on_new_booking`` decides whether a booking should be announced and builds
the message. Actually opening the link is handed to a ``Dispatcher`` through
a ``NotificationScheduler``, which defers it slightly so the confirmation
renders first. Delivery is fire-and-forget.
"""

from __future__ import annotations

import asyncio
import logging
import re
import webbrowser
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import quote

from mediassist.models.booking import BookingRecord
from mediassist.stats import generate_report

log = logging.getLogger("mediassist.notifier")

WHATSAPP_BASE_URL = "https://wa.me/"

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass
class NotifierConfig:
    """Auto-send toggle and admin destination, as set from the admin panel."""

    enabled: bool = False
    destination_number: str = ""


@dataclass(frozen=True)
class OutboundMessage:
    destination: str  # digits only, may be empty
    text: str
    url: str


def digits_only(number: str) -> str:
    return re.sub(r"[^0-9]", "", number or "")


def build_whatsapp_url(destination_number: str, text: str) -> str:
    """``https://wa.me/<digits>?text=<encoded>``; no digits → any recipient."""
    encoded = quote(text, safe=_URI_COMPONENT_SAFE)
    digits = digits_only(destination_number)
    if digits:
        return f"{WHATSAPP_BASE_URL}{digits}?text={encoded}"
    return f"{WHATSAPP_BASE_URL}?text={encoded}"


def format_booking_summary(record: BookingRecord) -> str:
    return (
        "*✅ New Booking Confirmed*\n\n"
        f"• *Patient*: {record.patient_name}\n"
        f"• *Dept*: {record.department}\n"
        f"• *Time*: {record.time}"
    )


def _message(destination_number: str, text: str) -> OutboundMessage:
    return OutboundMessage(
        destination=digits_only(destination_number),
        text=text,
        url=build_whatsapp_url(destination_number, text),
    )


def on_new_booking(
    record: BookingRecord, config: NotifierConfig,
) -> Optional[OutboundMessage]:
    """Build the notification for a freshly inserted booking.

    Returns None when auto-send is off or the record is a cancellation.
    """
    if not config.enabled:
        return None
    if record.is_cancelled:
        return None
    return _message(config.destination_number, format_booking_summary(record))


def build_report_message(
    records: Iterable[BookingRecord], destination_number: str = "",
) -> OutboundMessage:
    """Wrap the daily report for a manual send from the admin panel."""
    return _message(destination_number, generate_report(records))


# ── Dispatch ──────────────────────────────────────────────────────


class Dispatcher(ABC):
    """Hands an outbound message to the external messaging channel."""

    @abstractmethod
    def dispatch(self, message: OutboundMessage) -> None:
        """Deliver ``message``. Best effort; may raise on failure."""


class BrowserDispatcher(Dispatcher):
    """Opens the wa.me link in a new browser tab."""

    def dispatch(self, message: OutboundMessage) -> None:
        opened = webbrowser.open(message.url, new=2)
        if not opened:
            log.warning("No browser available to open notification link")


class NotificationScheduler:
    """Runs dispatches after a fixed delay on the asyncio loop.

    Scheduled dispatches are never cancelled. If the process exits before
    the delay elapses the notification is simply not sent.
    """

    def __init__(self, dispatcher: Dispatcher, delay_seconds: float = 1.0) -> None:
        self._dispatcher = dispatcher
        self._delay = max(delay_seconds, 0.0)
        self._pending = 0

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def pending(self) -> int:
        """Dispatches scheduled but not yet fired."""
        return self._pending

    def schedule(self, message: OutboundMessage) -> Optional[asyncio.TimerHandle]:
        self._pending += 1
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop, send right away
            self._fire(message)
            return None
        log.info("Notification scheduled in %.1fs", self._delay)
        return loop.call_later(self._delay, self._fire, message)

    def _fire(self, message: OutboundMessage) -> None:
        self._pending -= 1
        try:
            self._dispatcher.dispatch(message)
        except Exception:
            log.exception("Notification dispatch failed")
            return
        log.info("Notification dispatched (destination=%s)", message.destination or "any")

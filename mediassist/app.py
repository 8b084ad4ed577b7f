"""Application context: builds and owns the one session, ledger and store.

A front end constructs this once at startup and routes everything through
it: chat turns, admin-panel settings, statistics and history clearing.
Every ledger or setting change is written back to the store.
"""

from __future__ import annotations

import logging
from typing import Optional

from mediassist.config import Settings, settings as default_settings
from mediassist.debug_events import DebugBroadcaster
from mediassist.ledger import BookingLedger
from mediassist.model_providers import ModelProvider, create_provider
from mediassist.models.turn import Turn
from mediassist.notifier import (
    BrowserDispatcher,
    Dispatcher,
    NotificationScheduler,
    NotifierConfig,
    OutboundMessage,
    build_report_message,
)
from mediassist.prompts import build_system_instruction
from mediassist.session import BookingSession
from mediassist.stats import DerivedStats, compute, generate_report
from mediassist.store import JsonFileStore, PersistedState

log = logging.getLogger("mediassist.app")

LOG_FORMAT = "%(asctime)s %(name)-20s %(levelname)-7s %(message)s"


def configure_logging(debug: bool = False) -> None:
    """Configure the root logger so every mediassist logger has a handler."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
    )


class MediAssistApp:
    """Owns the single ledger, chat session and persistence for a process."""

    def __init__(
        self,
        settings: Settings,
        provider: ModelProvider,
        store: JsonFileStore,
        dispatcher: Dispatcher,
    ) -> None:
        self._settings = settings
        self._store = store

        saved = store.load()
        if saved is not None:
            config = NotifierConfig(
                enabled=saved.auto_send,
                destination_number=saved.destination_number,
            )
        else:
            config = NotifierConfig(
                enabled=settings.auto_send,
                destination_number=settings.admin_phone,
            )
        self._notifier_config = config

        self._ledger = BookingLedger(saved.bookings if saved is not None else ())
        self._ledger.set_on_change(lambda _ledger: self.save())

        self._scheduler = NotificationScheduler(
            dispatcher, delay_seconds=settings.dispatch_delay_seconds,
        )
        self._session = BookingSession(
            provider=provider,
            ledger=self._ledger,
            scheduler=self._scheduler,
            notifier_config=self._notifier_config,
            system_instruction=build_system_instruction(
                hospital_name=settings.hospital_name,
                assistant_name=settings.assistant_name,
            ),
            assistant_name=settings.assistant_name,
        )
        self._broadcaster = DebugBroadcaster(self._session.session_id)
        self._session.attach_broadcaster(self._broadcaster)

        log.info(
            "MediAssist ready: %d booking(s), auto_send=%s",
            len(self._ledger),
            config.enabled,
        )

    # ── Accessors ─────────────────────────────────────────────

    @property
    def session(self) -> BookingSession:
        return self._session

    @property
    def ledger(self) -> BookingLedger:
        return self._ledger

    @property
    def scheduler(self) -> NotificationScheduler:
        return self._scheduler

    @property
    def broadcaster(self) -> DebugBroadcaster:
        return self._broadcaster

    @property
    def notifier_config(self) -> NotifierConfig:
        return self._notifier_config

    # ── Chat ──────────────────────────────────────────────────

    async def start(self) -> Optional[Turn]:
        return await self._session.start_conversation()

    async def send(self, text: str) -> Optional[Turn]:
        return await self._session.send_turn(text)

    # ── Admin panel ───────────────────────────────────────────

    def stats(self) -> DerivedStats:
        return compute(self._ledger.snapshot())

    def report(self) -> str:
        return generate_report(self._ledger.snapshot())

    def report_message(self) -> OutboundMessage:
        return build_report_message(
            self._ledger.snapshot(), self._notifier_config.destination_number,
        )

    def set_destination_number(self, number: str) -> None:
        self._notifier_config.destination_number = number.strip()
        self.save()

    def set_auto_send(self, enabled: bool) -> None:
        self._notifier_config.enabled = enabled
        log.info("Auto-send %s", "enabled" if enabled else "disabled")
        self.save()

    def clear_history(self) -> None:
        """Wipe the ledger. The front end asks the user to confirm first."""
        self._ledger.clear()

    def save(self) -> bool:
        """Write the current state. Returns False if the write failed.

        A failed write is logged and never raised: the in-memory ledger stays
        authoritative and the next change writes the full state again.
        """
        state = PersistedState(
            bookings=self._ledger.snapshot(),
            destination_number=self._notifier_config.destination_number,
            auto_send=self._notifier_config.enabled,
        )
        try:
            self._store.save(state)
        except OSError:
            log.exception("Failed to persist state to %s", self._store.path)
            return False
        return True


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[ModelProvider] = None,
    dispatcher: Optional[Dispatcher] = None,
    store: Optional[JsonFileStore] = None,
) -> MediAssistApp:
    """Create and configure the application context."""
    settings = settings or default_settings

    if provider is None:
        for warning in settings.validate_startup():
            log.warning(warning)
        provider = create_provider(settings)

    return MediAssistApp(
        settings=settings,
        provider=provider,
        store=store or JsonFileStore(settings.data_path),
        dispatcher=dispatcher or BrowserDispatcher(),
    )

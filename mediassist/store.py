"""JSON file persistence for the ledger and the two notifier settings.

Only the booking history, the admin destination number and the auto-send
flag survive a restart. Transcript and chat state are never written.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from mediassist.models.booking import BookingRecord

log = logging.getLogger("mediassist.store")


class PersistedState(BaseModel):
    bookings: list[BookingRecord] = []
    destination_number: str = ""
    auto_send: bool = False


class JsonFileStore:
    """Single-file JSON store.

    ``load`` returns None when there is no usable saved state: the file is
    missing, or it cannot be read, decoded or validated. An unusable file is
    moved to ``<name>.corrupt`` so the next save cannot overwrite it. Booking
    records are validated one at a time. Invalid ones are dropped and the
    original file is copied to ``<name>.corrupt`` first.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def corrupt_path(self) -> Path:
        return self._path.with_name(self._path.name + ".corrupt")

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Optional[PersistedState]:
        if not self._path.exists():
            log.info("No saved state at %s; starting fresh", self._path)
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            raw_bookings = data.get("bookings") or []
            if not isinstance(raw_bookings, list):
                raise ValueError("'bookings' is not a list")
            state = PersistedState.model_validate({**data, "bookings": []})
        except (OSError, ValueError) as e:
            # pydantic.ValidationError is a ValueError
            log.warning("Unreadable state file %s: %s", self._path, e)
            self._set_aside(keep_original=False)
            return None

        dropped = 0
        for index, raw in enumerate(raw_bookings):
            try:
                state.bookings.append(BookingRecord.model_validate(raw))
            except ValidationError as e:
                dropped += 1
                log.warning(
                    "Dropping invalid booking #%d in %s: %d error(s)",
                    index, self._path, e.error_count(),
                )
        if dropped:
            self._set_aside(keep_original=True)

        log.info("Loaded %d booking(s) from %s", len(state.bookings), self._path)
        return state

    def save(self, state: PersistedState) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_text(
            json.dumps(state.model_dump(mode="json"), ensure_ascii=False, indent=2) + "\n",
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)
        log.debug("Saved %d booking(s) to %s", len(state.bookings), self._path)

    def _set_aside(self, keep_original: bool) -> None:
        target = self.corrupt_path
        try:
            if keep_original:
                shutil.copyfile(self._path, target)
            else:
                os.replace(self._path, target)
        except OSError:
            log.exception("Could not move %s aside to %s", self._path, target)
            return
        log.warning("Original state file preserved at %s", target)

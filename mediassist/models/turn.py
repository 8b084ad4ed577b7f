"""Pydantic model for transcript entries."""

import secrets
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


def _new_turn_id() -> str:
    return secrets.token_urlsafe(12)


class Turn(BaseModel):
    """One entry in the conversation transcript. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_turn_id)
    role: Literal["user", "model"]
    text: str
    created_at: datetime = Field(default_factory=datetime.now)

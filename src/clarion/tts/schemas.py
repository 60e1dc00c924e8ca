"""Deepgram speak WebSocket message schemas."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict


class ControlType(str, Enum):
    """Client control messages that carry no payload."""
    FLUSH = "Flush"   # synthesize buffered text now
    CLEAR = "Clear"   # drop buffered, unsynthesized text
    CLOSE = "Close"   # finish and close the connection


class SpeakMessage(BaseModel):
    type: Literal["Speak"] = "Speak"
    text: str


class ControlMessage(BaseModel):
    type: ControlType


class ServerMessage(BaseModel):
    """Inbound JSON frame. Known types: Metadata, Flushed, Cleared, Warning."""

    model_config = ConfigDict(extra="allow")

    type: str
    warn_code: Optional[str] = None
    warn_msg: Optional[str] = None
    sequence_id: Optional[int] = None

# chatweb/client/state.py
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field

TITLE_ELLIPSIS = "..."


def generate_id() -> str:
    return uuid.uuid4().hex[:12]


class ViewState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting-response"
    REVEALING = "revealing"


class Message(BaseModel):
    """
    A message shown in the chat view. Assistant messages start empty and
    are filled in by the reveal; kind 'error' marks an error notice shown
    as if the assistant said it.
    """

    role: Literal["user", "assistant"]
    content: str
    id: str = Field(default_factory=generate_id)
    kind: Literal["text", "error"] = "text"

    @property
    def is_error(self) -> bool:
        return self.kind == "error"


class ChatSession(BaseModel):
    """
    A saved conversation in the history list.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    title: str
    messages: List[Message] = Field(default_factory=list)
    last_updated: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
        alias="lastUpdated",
    )


def make_title(content: str, max_chars: int) -> str:
    """Bounded prefix of the first message, always ellipsized."""
    return content[:max_chars] + TITLE_ELLIPSIS

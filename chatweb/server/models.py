# chatweb/server/models.py
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

Role = Literal["user", "assistant", "system"]


class ChatTurn(BaseModel):
    """
    A single role-tagged message as it travels between the chat view,
    the proxy and the upstream provider.
    """

    role: Role
    content: str

    @field_validator("content")
    def content_not_blank(cls, v):
        if not v.strip():
            raise ValueError("content must not be empty")
        return v


class ChatRequest(BaseModel):
    """
    Body of POST /api/chat. A missing model is filled in by the proxy with
    the configured default.
    """

    messages: List[ChatTurn] = Field(min_length=1)
    model: Optional[str] = None


class ChatReply(BaseModel):
    message: str


class ErrorReply(BaseModel):
    error: str
    details: Optional[str] = None


class ModelInfo(BaseModel):
    """Entry of the model catalog served to the selector."""

    id: str
    name: str
    description: str
    provider: str
    available: bool


class ModelCatalog(BaseModel):
    default: str
    models: List[ModelInfo] = Field(default_factory=list)

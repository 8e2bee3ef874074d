"""
Saved chat sessions and the local storage they live in.

LocalStore mimics browser local storage: string values under string keys,
kept in one JSON file that is fully rewritten on every change. The session
list is read once when the view mounts.
"""

import json
import os
from typing import Dict, List, Optional

import aiofiles
from pydantic import TypeAdapter, ValidationError

from chatweb.client.state import ChatSession, Message, make_title
from chatweb.logging_config import get_loggers

_, _, history_logger = get_loggers()

HISTORY_STORAGE_KEY = "chatSessions"

_sessions_adapter = TypeAdapter(List[ChatSession])


class LocalStore:
    """A key/value file standing in for window.localStorage."""

    def __init__(self, path: str):
        self.path = path
        self._items: Optional[Dict[str, str]] = None

    async def _load(self) -> Dict[str, str]:
        if self._items is not None:
            return self._items
        self._items = {}
        if not os.path.exists(self.path):
            return self._items
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            data = json.loads(raw) if raw.strip() else {}
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            history_logger.warning(f"Local storage file {self.path} is unreadable: {e}")
            data = {}
        if isinstance(data, dict):
            self._items = {k: v for k, v in data.items() if isinstance(v, str)}
        return self._items

    async def _flush(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(self._items, ensure_ascii=False, indent=2))

    async def get_item(self, key: str) -> Optional[str]:
        items = await self._load()
        return items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        items = await self._load()
        items[key] = value
        await self._flush()

    async def remove_item(self, key: str) -> None:
        items = await self._load()
        if items.pop(key, None) is not None:
            await self._flush()


class SessionHistory:
    """
    The in-memory list of saved sessions, most recent first, mirrored to
    local storage on every change.
    """

    def __init__(self, store: LocalStore, title_max_chars: int = 30):
        self.store = store
        self.title_max_chars = title_max_chars
        self.sessions: List[ChatSession] = []

    async def load(self) -> List[ChatSession]:
        raw = await self.store.get_item(HISTORY_STORAGE_KEY)
        if not raw:
            self.sessions = []
            return self.sessions
        try:
            self.sessions = _sessions_adapter.validate_json(raw)
        except ValidationError as e:
            history_logger.warning(
                f"Saved chat sessions could not be parsed, starting empty: {e}"
            )
            self.sessions = []
        history_logger.info(f"Loaded {len(self.sessions)} saved chat session(s)")
        return self.sessions

    async def _persist(self) -> None:
        raw = _sessions_adapter.dump_json(self.sessions, by_alias=True).decode("utf-8")
        await self.store.set_item(HISTORY_STORAGE_KEY, raw)

    def get(self, session_id: str) -> Optional[ChatSession]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    async def save(
        self, messages: List[Message], session_id: Optional[str] = None
    ) -> ChatSession:
        """
        Stores a finished conversation at the front of the list.

        A new conversation (no session_id, or one no longer in the list)
        becomes a new entry; a continued one replaces its own entry.
        """
        if not messages:
            raise ValueError("Cannot save an empty conversation")

        snapshot = [m.model_copy() for m in messages]
        title = make_title(snapshot[0].content, self.title_max_chars)
        existing = self.get(session_id) if session_id else None
        if existing is not None:
            session = ChatSession(id=existing.id, title=title, messages=snapshot)
            self.sessions = [s for s in self.sessions if s.id != existing.id]
        else:
            session = ChatSession(title=title, messages=snapshot)

        self.sessions.insert(0, session)
        await self._persist()
        history_logger.info(
            f"Saved session '{session.id}' with {len(snapshot)} message(s). "
            f"Total sessions: {len(self.sessions)}"
        )
        return session

    async def delete(self, session_id: str) -> bool:
        remaining = [s for s in self.sessions if s.id != session_id]
        if len(remaining) == len(self.sessions):
            return False
        self.sessions = remaining
        await self._persist()
        history_logger.info(f"Deleted session '{session_id}'")
        return True

    async def clear(self) -> None:
        self.sessions = []
        await self._persist()

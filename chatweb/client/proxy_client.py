"""
HTTP client for the completion proxy, as used by the chat view.
"""

from typing import List, Optional

import aiohttp

from chatweb.logging_config import get_loggers
from chatweb.server.models import ChatTurn

app_logger, _, _ = get_loggers()


class ChatClientError(Exception):
    """A chat turn failed on the way to or from the proxy."""


class ProxyClient:
    """Posts the whole conversation to /api/chat and returns the reply text."""

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def send(self, messages: List[ChatTurn], model: str) -> str:
        """
        Raises:
            ChatClientError: On network failure, a non-2xx status, or a body
                without a 'message' field.
        """
        payload = {
            "messages": [m.model_dump() for m in messages],
            "model": model,
        }
        app_logger.debug(
            "Sending messages to API",
            extra={"messages_count": len(messages), "model": model},
        )
        session = await self._get_session()
        try:
            async with session.post(
                f"{self.base_url}/api/chat",
                json=payload,
                headers={"Accept": "application/json"},
            ) as response:
                app_logger.debug(f"Response status: {response.status}")
                try:
                    data = await response.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    # JSONDecodeError and UnicodeDecodeError are both ValueErrors
                    app_logger.warning(f"Unreadable response body from proxy: {e}")
                    data = None
        except aiohttp.ClientError as e:
            raise ChatClientError(str(e) or type(e).__name__) from e

        if response.status >= 400:
            error = data.get("error") if isinstance(data, dict) else None
            raise ChatClientError(error or f"HTTP error! status: {response.status}")

        if not isinstance(data, dict) or not data.get("message"):
            raise ChatClientError("Invalid response format")
        return data["message"]

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

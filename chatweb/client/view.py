"""
Headless chat view: the conversation state machine behind the chat page.

    idle --submit--> awaiting-response --reply--> revealing --end--> idle
                              \\--failure--> idle (error message appended)

Only one reveal exists at a time. Submitting while a reveal runs completes
it at once (and saves) before the new turn starts. Submitting, loading a
session or starting a new conversation while a request is in flight is
refused.
"""

from typing import List, Optional, Protocol

from chatweb.client.history import LocalStore, SessionHistory
from chatweb.client.proxy_client import ChatClientError, ProxyClient
from chatweb.client.reveal import RevealTask
from chatweb.client.state import ChatSession, Message, ViewState
from chatweb.config import Config
from chatweb.logging_config import get_loggers
from chatweb.server.models import ChatTurn

app_logger, _, _ = get_loggers()

ERROR_MESSAGE_PREFIX = "Sorry, an error occurred: "


class ChatTransport(Protocol):
    async def send(self, messages: List[ChatTurn], model: str) -> str: ...


class ChatView:
    def __init__(
        self,
        transport: ChatTransport,
        history: SessionHistory,
        model: str,
        reveal_interval: float = 0.03,
    ):
        self.transport = transport
        self.history = history
        self.model = model
        self.reveal_interval = reveal_interval
        self.messages: List[Message] = []
        self.state = ViewState.IDLE
        self.current_session_id: Optional[str] = None
        self._reveal: Optional[RevealTask] = None

    @classmethod
    async def mount(cls, config: Config, transport: Optional[ChatTransport] = None) -> "ChatView":
        """Builds a view from configuration and reads the saved sessions once."""
        history = SessionHistory(
            LocalStore(config.history_file), title_max_chars=config.title_max_chars
        )
        await history.load()
        return cls(
            transport or ProxyClient(config.proxy_url),
            history,
            model=config.default_model,
            reveal_interval=config.reveal_interval,
        )

    @property
    def sessions(self) -> List[ChatSession]:
        return self.history.sessions

    @property
    def is_loading(self) -> bool:
        return self.state is ViewState.AWAITING_RESPONSE

    @property
    def is_typing(self) -> bool:
        return self.state is ViewState.REVEALING

    def select_model(self, model: str) -> None:
        self.model = model

    def _find(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def _conversation_for_upstream(self) -> List[ChatTurn]:
        return [
            ChatTurn(role=m.role, content=m.content)
            for m in self.messages
            if not m.is_error and m.content.strip()
        ]

    async def submit(self, text: str) -> Optional[Message]:
        """
        Sends one user turn. Returns the assistant message that receives the
        reply (or the error notice), or None when the input was refused.
        """
        content = text.strip()
        if not content or self.is_loading:
            return None
        # Claimed before any await so concurrent submits are refused
        self.state = ViewState.AWAITING_RESPONSE
        try:
            await self._settle_reveal()
        except Exception:
            self.state = ViewState.IDLE
            raise

        user_message = Message(role="user", content=content)
        self.messages.append(user_message)

        try:
            reply = await self.transport.send(self._conversation_for_upstream(), self.model)
        except ChatClientError as e:
            app_logger.error(f"Chat turn failed: {e}")
            return self._fail_turn(str(e))
        except Exception as e:
            app_logger.exception(f"Unexpected error during chat turn: {e}")
            return self._fail_turn(str(e) or type(e).__name__)

        assistant_message = Message(role="assistant", content="")
        self.messages.append(assistant_message)
        self.state = ViewState.REVEALING
        self._start_reveal(assistant_message, reply)
        return assistant_message

    def _fail_turn(self, reason: str) -> Message:
        notice = Message(
            role="assistant", content=f"{ERROR_MESSAGE_PREFIX}{reason}", kind="error"
        )
        self.messages.append(notice)
        self.state = ViewState.IDLE
        return notice

    def _start_reveal(self, message: Message, text: str) -> None:
        message_id = message.id

        def on_tick(prefix: str) -> None:
            target = self._find(message_id)
            if target is not None:
                target.content = prefix

        async def on_done() -> None:
            await self._reveal_finished(message_id)

        self._reveal = RevealTask(
            message_id, text, self.reveal_interval, on_tick, on_done
        ).start()

    async def _reveal_finished(self, message_id: str) -> None:
        self._reveal = None
        if self.state is ViewState.REVEALING:
            self.state = ViewState.IDLE
        if self._find(message_id) is None:
            return
        session = await self.history.save(self.messages, self.current_session_id)
        self.current_session_id = session.id

    async def wait_revealed(self) -> None:
        if self._reveal is not None:
            await self._reveal.wait()

    async def _settle_reveal(self) -> None:
        """Completes any running reveal so its conversation is saved first."""
        if self._reveal is not None:
            await self._reveal.finish()
        self._reveal = None
        if self.state is ViewState.REVEALING:
            self.state = ViewState.IDLE

    async def new_conversation(self) -> bool:
        """Clears the conversation. Refused while a reply is pending."""
        if self.is_loading:
            return False
        await self._settle_reveal()
        self.messages = []
        self.current_session_id = None
        return True

    async def load_session(self, session_id: str) -> bool:
        """
        Replaces the current conversation with a saved one. Refused while a
        reply is pending, since that reply belongs to the current one.
        """
        if self.is_loading:
            return False
        await self._settle_reveal()
        session = self.history.get(session_id)
        if session is None:
            return False
        self.messages = [m.model_copy() for m in session.messages]
        self.current_session_id = session.id
        return True

    async def delete_session(self, session_id: str) -> bool:
        deleted = await self.history.delete(session_id)
        if deleted and self.current_session_id == session_id:
            self.current_session_id = None
        return deleted

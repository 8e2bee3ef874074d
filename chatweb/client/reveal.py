"""
Character-by-character reveal of an already complete reply.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from chatweb.logging_config import get_loggers

app_logger, _, _ = get_loggers()


class RevealTask:
    """
    Animates `text` into one message, one character per tick.

    The task is bound to the id of the message it fills. `on_tick` receives
    each prefix, `on_done` runs once the full text is shown, whether that
    happened by reaching the end or by `finish()`. `cancel()` stops without
    calling `on_done`.
    """

    def __init__(
        self,
        message_id: str,
        text: str,
        interval: float,
        on_tick: Callable[[str], None],
        on_done: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.message_id = message_id
        self.text = text
        self.interval = interval
        self.index = 0
        self._on_tick = on_tick
        self._on_done = on_done
        self._task: Optional[asyncio.Task] = None
        self._completed = False

    def start(self) -> "RevealTask":
        if self._task is not None:
            raise RuntimeError(f"Reveal for message {self.message_id} already started")
        self._task = asyncio.create_task(self._run(), name=f"reveal-{self.message_id}")
        return self

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        while self.index < len(self.text):
            await asyncio.sleep(self.interval)
            self.index += 1
            self._on_tick(self.text[: self.index])
        self._completed = True
        app_logger.debug(
            "Reveal finished",
            extra={"message_id": self.message_id, "chars": len(self.text)},
        )
        if self._on_done is not None:
            await self._on_done()

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.wait({self._task})

    async def cancel(self) -> None:
        """Stops the reveal where it is; the message keeps its current prefix."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        app_logger.debug(
            "Reveal cancelled",
            extra={"message_id": self.message_id, "index": self.index},
        )

    async def finish(self) -> None:
        """Stops the timer and shows the full text at once."""
        if self._task is None or self._task.done():
            return
        if self._completed:
            # Already past the last tick, only on_done is still running
            await self.wait()
            return
        await self.cancel()
        self._completed = True
        self.index = len(self.text)
        self._on_tick(self.text)
        if self._on_done is not None:
            await self._on_done()

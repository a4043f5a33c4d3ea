from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Callable, Deque, Iterable, Optional

from padbridge.errors import DispatchError
from padbridge.intents import CommandIntent


logger = logging.getLogger(__name__)

WarningHandler = Callable[[CommandIntent, Exception], None]


class Dispatcher:
    """Hands resolved intents to the remote-control client in order.

    ``submit`` never waits: intents are queued and a single worker task sends
    them one at a time. When ``max_pending`` intents are already waiting the
    oldest one is dropped, since a stale command (an old fader level) is worse
    to apply than to skip. Client failures drop the intent and are reported to
    ``on_warning``; nothing is retried.
    """

    def __init__(self, client, max_pending: int = 64, on_warning: Optional[WarningHandler] = None):
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        self.client = client
        self.max_pending = int(max_pending)
        self.on_warning = on_warning
        self._pending: Deque[CommandIntent] = deque()
        self._wakeup: Optional[asyncio.Event] = None
        self._idle: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._busy = False
        self.sent = 0
        self.dropped = 0
        self.failed = 0

    # -- lifecycle -----------------------------------------------------------

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._update_idle()
        if self._pending:
            self._wakeup.set()
        self._task = asyncio.get_running_loop().create_task(self._run(), name="padbridge-dispatch")

    def stop(self) -> None:
        """Cancel the worker. An in-flight send is abandoned, not awaited."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._pending:
            logger.debug("%d pending intents discarded on stop", len(self._pending))
            self._pending.clear()
        self._busy = False
        self._update_idle()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def pending(self) -> int:
        return len(self._pending)

    # -- producer side -------------------------------------------------------

    def submit(self, batch: Iterable[CommandIntent]) -> int:
        """Queue a batch of intents; return how many older intents were dropped."""
        dropped = 0
        for intent in batch:
            if len(self._pending) >= self.max_pending:
                stale = self._pending.popleft()
                dropped += 1
                self.dropped += 1
                logger.warning("dispatch queue full (%d); dropped stale %s", self.max_pending, stale)
                self._warn(stale, DispatchError("dispatch queue full"))
            self._pending.append(intent)
        if self._wakeup is not None:
            self._wakeup.set()
        self._update_idle()
        return dropped

    async def join(self) -> None:
        """Wait until every queued intent has been sent or dropped."""
        if self._idle is None:
            return
        await self._idle.wait()

    # -- worker --------------------------------------------------------------

    async def _run(self) -> None:
        assert self._wakeup is not None
        while True:
            if not self._pending:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue
            intent = self._pending.popleft()
            self._busy = True
            try:
                await self.client.send(intent)
                self.sent += 1
                logger.debug("sent %s", intent)
            except DispatchError as exc:
                self.failed += 1
                logger.warning("dropped %s: %s", intent, exc)
                self._warn(intent, exc)
            except Exception as exc:
                self.failed += 1
                logger.exception("unexpected error sending %s", intent)
                self._warn(intent, exc)
            finally:
                self._busy = False
                self._update_idle()

    def _warn(self, intent: CommandIntent, exc: Exception) -> None:
        if self.on_warning is None:
            return
        try:
            self.on_warning(intent, exc)
        except Exception:
            logger.exception("warning handler failed")

    def _update_idle(self) -> None:
        if self._idle is None:
            return
        if self._pending or self._busy:
            self._idle.clear()
        else:
            self._idle.set()

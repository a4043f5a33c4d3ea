from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional

import mido

from padbridge.errors import DeviceNotFound, TransportDisconnected


logger = logging.getLogger(__name__)

_CLOSED = object()


def list_input_names() -> List[str]:
    try:
        return list(mido.get_input_names())
    except Exception as exc:
        # rtmidi raises on hosts without a usable MIDI stack
        logger.debug("[midi-in] cannot list ports: %s", exc)
        return []


def find_input_name(name_filter: Optional[str]) -> str:
    """Return the first input port whose name contains ``name_filter``.

    With no filter the first available port is used.
    """
    names = list_input_names()
    for name in names:
        if not name_filter or name_filter in name:
            return name
    available = ", ".join(names) or "none"
    raise DeviceNotFound(f"no MIDI input matching {name_filter!r} (available: {available})")


class MidoInput:
    """Raw byte source reading one mido input port.

    The rtmidi callback thread only hands bytes over to the event loop;
    ``chunks()`` yields them and raises TransportDisconnected once the port
    disappears from the system.
    """

    def __init__(self, name_filter: Optional[str] = "LPD8", poll_interval: float = 1.0):
        self.name_filter = name_filter
        self.poll_interval = float(poll_interval)
        self.port_name: Optional[str] = None
        self._port = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None

    def open(self) -> str:
        """Open the matching port; must be called from the running loop."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self.port_name = find_input_name(self.name_filter)
        self._port = mido.open_input(self.port_name, callback=self._on_message)
        logger.info("[midi-in] listening on %s", self.port_name)
        return self.port_name

    def close(self) -> None:
        port, self._port = self._port, None
        if port is not None:
            try:
                port.close()
            except Exception as exc:
                logger.debug("[midi-in] close failed: %s", exc)
            if self._queue is not None:
                self._queue.put_nowait(_CLOSED)

    def _on_message(self, msg) -> None:
        data = bytes(msg.bytes())
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._queue.put_nowait, data)

    def _port_present(self) -> bool:
        return self.port_name in list_input_names()

    async def chunks(self) -> AsyncIterator[bytes]:
        if self._queue is None:
            raise RuntimeError("MidoInput.open() must be called first")
        while True:
            try:
                chunk = await asyncio.wait_for(self._queue.get(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                if not await asyncio.to_thread(self._port_present):
                    raise TransportDisconnected(f"MIDI port {self.port_name!r} disappeared")
                continue
            if chunk is _CLOSED:
                return
            yield chunk

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Union


logger = logging.getLogger(__name__)


class InputId(str, enum.Enum):
    """The 16 physical controls of the pad controller."""

    PAD1 = "pad1"
    PAD2 = "pad2"
    PAD3 = "pad3"
    PAD4 = "pad4"
    PAD5 = "pad5"
    PAD6 = "pad6"
    PAD7 = "pad7"
    PAD8 = "pad8"
    FADER1 = "fader1"
    FADER2 = "fader2"
    FADER3 = "fader3"
    FADER4 = "fader4"
    FADER5 = "fader5"
    FADER6 = "fader6"
    FADER7 = "fader7"
    FADER8 = "fader8"

    def __str__(self) -> str:
        return self.value


PADS = [InputId(f"pad{i}") for i in range(1, 9)]
FADERS = [InputId(f"fader{i}") for i in range(1, 9)]

# The LPD8 prints "K1".."K8" on its continuous controls
INPUT_ALIASES: Dict[str, InputId] = {f"knob{i}": InputId(f"fader{i}") for i in range(1, 9)}


def parse_input_id(name: str) -> InputId:
    """Return the InputId for a configuration key. Raises ValueError."""
    key = str(name).strip().lower()
    if key in INPUT_ALIASES:
        return INPUT_ALIASES[key]
    return InputId(key)


@dataclass(frozen=True)
class ProgramChange:
    """Pad pressed while the controller is in PC mode."""

    pad: InputId


@dataclass(frozen=True)
class ControlChange:
    """Pad in CC mode or a fader, with its raw 7-bit value."""

    input: InputId
    value: int


ControllerEvent = Union[ProgramChange, ControlChange]


@dataclass(frozen=True)
class DeviceProfile:
    """Static wire numbering of one controller model.

    ``channel`` is 0-based; ``None`` accepts all 16 channels.
    """

    name: str
    program_map: Dict[int, InputId]
    control_map: Dict[int, InputId]
    channel: Optional[int] = None
    port_match: str = ""


LPD8 = DeviceProfile(
    name="AKAI LPD8",
    # PC mode: pads send programs 0..7 or 12..19 depending on the preset
    program_map={
        **{i: pad for i, pad in enumerate(PADS)},
        **{12 + i: pad for i, pad in enumerate(PADS)},
    },
    # CC mode: pads send CC 0..7 or 12..19, knobs CC 70..77
    control_map={
        **{i: pad for i, pad in enumerate(PADS)},
        **{12 + i: pad for i, pad in enumerate(PADS)},
        **{70 + i: fader for i, fader in enumerate(FADERS)},
    },
    port_match="LPD8",
)


# Data bytes following each status nibble (0x80..0xE0)
_CHANNEL_DATA_LEN = {0x80: 2, 0x90: 2, 0xA0: 2, 0xB0: 2, 0xC0: 1, 0xD0: 1, 0xE0: 2}
# Data bytes following system common messages
_SYSTEM_DATA_LEN = {0xF1: 1, 0xF2: 2, 0xF3: 1, 0xF4: 0, 0xF5: 0, 0xF6: 0, 0xF7: 0}

SYSEX_START = 0xF0
SYSEX_END = 0xF7
REALTIME_MIN = 0xF8


class FrameDecoder:
    """Incremental MIDI byte-stream parser yielding controller events.

    Bytes may arrive in arbitrary chunks; an incomplete frame stays buffered
    until the rest of it is fed. Anything other than Program Change and
    Control Change for a mapped control is consumed and dropped.
    """

    def __init__(self, profile: DeviceProfile = LPD8) -> None:
        self.profile = profile
        self._status: Optional[int] = None
        self._data: List[int] = []
        self._in_sysex = False

    def reset(self) -> None:
        self._status = None
        self._data = []
        self._in_sysex = False

    def feed(self, chunk: bytes) -> Iterator[ControllerEvent]:
        for byte in bytes(chunk):
            event = self._push(byte)
            if event is not None:
                yield event

    def decode(self, chunk: bytes) -> List[ControllerEvent]:
        return list(self.feed(chunk))

    def _push(self, byte: int) -> Optional[ControllerEvent]:
        if byte >= REALTIME_MIN:
            # Clock/start/stop/active sensing may interleave any frame
            return None

        if self._in_sysex:
            if byte == SYSEX_END:
                self._in_sysex = False
            elif byte & 0x80:
                # Any other status terminates an unfinished sysex block
                self._in_sysex = False
                return self._start(byte)
            return None

        if byte & 0x80:
            return self._start(byte)

        if self._status is None:
            logger.debug("[midi-in] stray data byte 0x%02X dropped", byte)
            return None

        self._data.append(byte)
        if len(self._data) < self._expected():
            return None

        status, data = self._status, self._data
        # No running status: the next frame must carry its own status byte
        self._status = None
        self._data = []
        return self._complete(status, data)

    def _start(self, status: int) -> Optional[ControllerEvent]:
        if self._status is not None and self._data:
            logger.debug("[midi-in] truncated frame 0x%02X %s dropped", self._status, self._data)
        self._data = []
        self._status = None

        if status == SYSEX_START:
            self._in_sysex = True
            return None
        if status >= 0xF0:
            length = _SYSTEM_DATA_LEN.get(status, 0)
            if length:
                self._status = status
            return None
        self._status = status
        return None

    def _expected(self) -> int:
        status = self._status or 0
        if status >= 0xF0:
            return _SYSTEM_DATA_LEN.get(status, 0)
        return _CHANNEL_DATA_LEN[status & 0xF0]

    def _complete(self, status: int, data: List[int]) -> Optional[ControllerEvent]:
        kind = status & 0xF0
        if kind not in (0xB0, 0xC0):
            logger.debug("[midi-in] unsupported message 0x%02X %s ignored", status, data)
            return None

        channel = status & 0x0F
        if self.profile.channel is not None and channel != self.profile.channel:
            logger.debug("[midi-in] ch %d ignored (listening on %d)", channel + 1, self.profile.channel + 1)
            return None

        if kind == 0xC0:
            pad = self.profile.program_map.get(data[0])
            if pad is None:
                logger.debug("[midi-in] unmapped program %d ignored", data[0])
                return None
            return ProgramChange(pad)

        control = self.profile.control_map.get(data[0])
        if control is None:
            logger.debug("[midi-in] unmapped CC %d ignored", data[0])
            return None
        return ControlChange(control, data[1])

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


SET_SCENE = "set_scene"
SET_VOLUME = "set_volume"
TOGGLE_MUTE = "toggle_mute"
ENABLE_ITEM = "enable_item"
DISABLE_ITEM = "disable_item"
TOGGLE_ITEM = "toggle_item"

KINDS = (SET_SCENE, SET_VOLUME, TOGGLE_MUTE, ENABLE_ITEM, DISABLE_ITEM, TOGGLE_ITEM)


@dataclass(frozen=True)
class CommandIntent:
    """A fully resolved remote-control command, ready to send.

    ``name`` is the scene, input or scene-item name. ``percent`` (0..100) is
    only set for ``set_volume``; there ``name`` may be None, meaning the
    bridge's default volume input.
    """

    kind: str
    name: Optional[str] = None
    percent: Optional[int] = None

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"unknown command kind {self.kind!r}")
        if self.kind == SET_VOLUME:
            if self.percent is None or not 0 <= self.percent <= 100:
                raise ValueError(f"volume percent {self.percent!r} out of range 0..100")
        elif not self.name:
            raise ValueError(f"{self.kind} requires a name")

    def __str__(self) -> str:
        if self.kind == SET_VOLUME:
            return f"{self.kind}({self.name or '<default>'}, {self.percent}%)"
        return f"{self.kind}({self.name})"


def set_scene(name: str) -> CommandIntent:
    return CommandIntent(SET_SCENE, name=name)


def set_volume(percent: int, name: Optional[str] = None) -> CommandIntent:
    return CommandIntent(SET_VOLUME, name=name, percent=percent)


def toggle_mute(name: str) -> CommandIntent:
    return CommandIntent(TOGGLE_MUTE, name=name)


def enable_item(name: str) -> CommandIntent:
    return CommandIntent(ENABLE_ITEM, name=name)


def disable_item(name: str) -> CommandIntent:
    return CommandIntent(DISABLE_ITEM, name=name)


def toggle_item(name: str) -> CommandIntent:
    return CommandIntent(TOGGLE_ITEM, name=name)

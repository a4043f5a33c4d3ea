from __future__ import annotations

import logging
from typing import List

from padbridge import intents
from padbridge.actions import (
    PASS,
    Action,
    DisableSceneItem,
    EnableSceneItem,
    SetScene,
    SetVolume,
    ToggleInput,
    ToggleSceneItem,
    VolumeSpec,
)
from padbridge.bindings import BindingTable
from padbridge.intents import CommandIntent
from padbridge.lpd8 import ControlChange, ControllerEvent, ProgramChange


logger = logging.getLogger(__name__)

# Program Change carries no value; pass-through volumes resolve from this
PROGRAM_CHANGE_VALUE = 0


def pass_to_percent(value: int) -> int:
    """Map a raw 7-bit value onto 0..100 (0 -> 0, 64 -> 50, 127 -> 100)."""
    v = max(0, min(127, int(value)))
    return int(round(v * 100 / 127))


def resolve_volume(spec: VolumeSpec, value: int) -> int:
    if spec is PASS:
        return pass_to_percent(value)
    return int(spec)


def resolve(action: Action, value: int) -> CommandIntent:
    """Turn a declared action into a ready-to-send intent for ``value``."""
    if isinstance(action, SetScene):
        return intents.set_scene(action.name)
    if isinstance(action, SetVolume):
        return intents.set_volume(resolve_volume(action.value, value), name=action.name)
    if isinstance(action, ToggleInput):
        return intents.toggle_mute(action.name)
    if isinstance(action, EnableSceneItem):
        return intents.enable_item(action.name)
    if isinstance(action, DisableSceneItem):
        return intents.disable_item(action.name)
    if isinstance(action, ToggleSceneItem):
        return intents.toggle_item(action.name)
    raise TypeError(f"unsupported action {action!r}")


class Router:
    """Matches controller events against the binding table.

    Synchronous and never suspends: each call returns the complete batch for
    one event, in declaration order.
    """

    def __init__(self, table: BindingTable) -> None:
        self.table = table

    def route(self, event: ControllerEvent) -> List[CommandIntent]:
        if isinstance(event, ProgramChange):
            return self._program_change(event)
        if isinstance(event, ControlChange):
            return self._control_change(event)
        logger.debug("unroutable event %r", event)
        return []

    def _program_change(self, event: ProgramChange) -> List[CommandIntent]:
        action = self.table.program_action(event.pad)
        if action is None:
            logger.debug("PC %s unbound", event.pad)
            return []
        logger.info("PC %s: %s", event.pad, action)
        return [resolve(action, PROGRAM_CHANGE_VALUE)]

    def _control_change(self, event: ControlChange) -> List[CommandIntent]:
        out: List[CommandIntent] = []
        # Every matching entry fires, not just the first
        for entry in self.table.conditional_actions(event.input):
            if entry.matches(event.value):
                logger.debug("CC %s=%d: %s", event.input, event.value, entry.action)
                out.append(resolve(entry.action, event.value))
        if not out:
            logger.debug("CC %s=%d matched nothing", event.input, event.value)
        return out

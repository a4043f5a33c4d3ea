"""Actions a control can be bound to, as declared in the mappings file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


class _Pass:
    """Use the triggering event's raw value as the volume."""

    _instance: Optional["_Pass"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PASS"

    def __str__(self) -> str:
        return "input value"


PASS = _Pass()

VolumeSpec = Union[_Pass, int]


@dataclass(frozen=True)
class SetScene:
    name: str

    def __str__(self) -> str:
        return f"set current scene to {self.name}"


@dataclass(frozen=True)
class SetVolume:
    value: VolumeSpec
    name: Optional[str] = None

    def __post_init__(self):
        if self.value is PASS:
            return
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError(f"volume must be 'pass' or an integer, got {self.value!r}")
        if not 0 <= self.value <= 100:
            raise ValueError(f"volume {self.value} out of range 0..100")

    def __str__(self) -> str:
        target = self.name or "default input"
        return f"set volume of {target} to {self.value}"


@dataclass(frozen=True)
class ToggleInput:
    name: str

    def __str__(self) -> str:
        return f"toggle input {self.name}"


@dataclass(frozen=True)
class EnableSceneItem:
    name: str

    def __str__(self) -> str:
        return f"enable scene item {self.name}"


@dataclass(frozen=True)
class DisableSceneItem:
    name: str

    def __str__(self) -> str:
        return f"disable scene item {self.name}"


@dataclass(frozen=True)
class ToggleSceneItem:
    name: str

    def __str__(self) -> str:
        return f"toggle scene item {self.name}"


Action = Union[SetScene, SetVolume, ToggleInput, EnableSceneItem, DisableSceneItem, ToggleSceneItem]

# Mappings-file ``action`` tag -> variant
ACTION_TYPES = {
    "SetScene": SetScene,
    "SetVolume": SetVolume,
    "ToggleInput": ToggleInput,
    "EnableSceneItem": EnableSceneItem,
    "DisableSceneItem": DisableSceneItem,
    "ToggleSceneItem": ToggleSceneItem,
}


@dataclass(frozen=True)
class ConditionalAction:
    """An action that fires on any value (``on=None``) or on exactly ``on``."""

    action: Action
    on: Optional[int] = None

    def __post_init__(self):
        if self.on is None:
            return
        if isinstance(self.on, bool) or not isinstance(self.on, int) or not 0 <= self.on <= 127:
            raise ValueError(f"trigger value {self.on!r} out of range 0..127")

    def matches(self, value: int) -> bool:
        return self.on is None or self.on == value

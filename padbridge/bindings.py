from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from padbridge.actions import ACTION_TYPES, PASS, Action, ConditionalAction, SetVolume
from padbridge.errors import ConfigError
from padbridge.lpd8 import InputId, parse_input_id


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindingTable:
    """Read-only binding of controls to actions, built once at startup."""

    program_changes: Mapping[InputId, Action] = field(default_factory=lambda: MappingProxyType({}))
    control_changes: Mapping[InputId, Tuple[ConditionalAction, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def program_action(self, pad: InputId) -> Optional[Action]:
        return self.program_changes.get(pad)

    def conditional_actions(self, control: InputId) -> Tuple[ConditionalAction, ...]:
        return self.control_changes.get(control, ())

    def unnamed_volume_controls(self) -> List[InputId]:
        """Controls bound to a SetVolume that relies on the default volume input."""
        found = [pad for pad, a in self.program_changes.items() if isinstance(a, SetVolume) and not a.name]
        for control, conds in self.control_changes.items():
            if any(isinstance(c.action, SetVolume) and not c.action.name for c in conds):
                found.append(control)
        return found

    def __len__(self) -> int:
        return len(self.program_changes) + sum(len(v) for v in self.control_changes.values())


def _err(errors: List[str], path: str, msg: str) -> None:
    errors.append(f"{path}: {msg}")


def _parse_volume(raw: Any, path: str, errors: List[str]):
    if isinstance(raw, str):
        if raw.strip().lower() == "pass":
            return PASS
        _err(errors, path, "must be 'pass' or an integer 0..100")
        return None
    if isinstance(raw, dict):
        # serde-style externally tagged form: { Value = 10 }
        if set(raw) == {"Value"}:
            raw = raw["Value"]
        else:
            _err(errors, path, "table form must be { Value = N }")
            return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        _err(errors, path, "must be 'pass' or an integer 0..100")
        return None
    if not 0 <= raw <= 100:
        _err(errors, path, f"volume {raw} out of range 0..100")
        return None
    return raw


def _parse_action(raw: Any, path: str, errors: List[str]) -> Optional[Action]:
    if not isinstance(raw, dict):
        _err(errors, path, "must be a table with an 'action' key")
        return None
    tag = raw.get("action")
    kind = ACTION_TYPES.get(tag) if isinstance(tag, str) else None
    if kind is None:
        _err(errors, f"{path}/action", f"unknown action {tag!r}; expected one of {', '.join(ACTION_TYPES)}")
        return None

    name = raw.get("name")
    if name is not None and not isinstance(name, str):
        _err(errors, f"{path}/name", "must be a string")
        return None

    if kind is SetVolume:
        if "value" not in raw:
            _err(errors, f"{path}/value", "required for SetVolume")
            return None
        value = _parse_volume(raw["value"], f"{path}/value", errors)
        if value is None:
            return None
        return SetVolume(value=value, name=name or None)

    if not name:
        _err(errors, f"{path}/name", f"required string for {tag}")
        return None
    return kind(name=name)


def _parse_trigger(raw: Any, path: str, errors: List[str]) -> Tuple[bool, Optional[int]]:
    if raw is None:
        return True, None
    if isinstance(raw, bool) or not isinstance(raw, int):
        _err(errors, path, "must be an integer 0..127")
        return False, None
    if not 0 <= raw <= 127:
        _err(errors, path, f"trigger value {raw} out of range 0..127")
        return False, None
    return True, raw


def _parse_input(key: Any, path: str, errors: List[str]) -> Optional[InputId]:
    try:
        return parse_input_id(key)
    except ValueError:
        _err(errors, path, "unknown input; expected pad1..pad8, fader1..fader8 or knob1..knob8")
        return None


def _sections(doc: Any, key: str, errors: List[str]) -> List[Tuple[str, Dict[str, Any]]]:
    """Normalize a section that may be one table or a list of tables."""
    raw = doc.get(key)
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [(f"/{key}", raw)]
    if isinstance(raw, list):
        out = []
        for i, entry in enumerate(raw):
            if isinstance(entry, dict):
                out.append((f"/{key}/{i}", entry))
            else:
                _err(errors, f"/{key}/{i}", "must be a table of input -> action")
        return out
    _err(errors, f"/{key}", "must be a table or an array of tables")
    return []


def _collect(doc: Any, errors: List[str]):
    pcs: Dict[InputId, Action] = {}
    ccs: Dict[InputId, List[ConditionalAction]] = {}
    if not isinstance(doc, dict):
        _err(errors, "/", "mappings must be a table")
        return pcs, ccs

    for key in doc:
        if key not in ("program_changes", "control_changes"):
            _err(errors, f"/{key}", "unknown section")

    for spath, section in _sections(doc, "program_changes", errors):
        for key, raw in section.items():
            path = f"{spath}/{key}"
            pad = _parse_input(key, path, errors)
            action = _parse_action(raw, path, errors)
            if pad is None or action is None:
                continue
            if pad in pcs:
                logger.warning("%s: %s declared again; last declaration wins", path, pad)
            pcs[pad] = action

    for spath, section in _sections(doc, "control_changes", errors):
        for key, raw in section.items():
            path = f"{spath}/{key}"
            control = _parse_input(key, path, errors)
            action = _parse_action(raw, path, errors)
            ok, on = _parse_trigger(raw.get("on") if isinstance(raw, dict) else None, f"{path}/on", errors)
            if control is None or action is None or not ok:
                continue
            ccs.setdefault(control, []).append(ConditionalAction(action=action, on=on))

    return pcs, ccs


def validate_mappings(doc: Dict[str, Any]) -> List[str]:
    """Return human-readable errors with JSON-pointer-like paths.

    An empty list means ``build_binding_table`` will succeed.
    """
    errors: List[str] = []
    _collect(doc, errors)
    return errors


def build_binding_table(doc: Dict[str, Any]) -> BindingTable:
    """Build the immutable BindingTable or raise ConfigError listing every problem."""
    errors: List[str] = []
    pcs, ccs = _collect(doc, errors)
    if errors:
        raise ConfigError(errors)
    table = BindingTable(
        program_changes=MappingProxyType(dict(pcs)),
        control_changes=MappingProxyType({k: tuple(v) for k, v in ccs.items()}),
    )
    logger.debug("binding table: %d program, %d control bindings", len(pcs), len(table) - len(pcs))
    return table

from __future__ import annotations

import json
import os
import tomllib
from typing import Any, Dict

from padbridge.bindings import BindingTable, build_binding_table
from padbridge.errors import ConfigError


DEFAULT_CONFIG_PATH = "lpd8-mappings.toml"


def load_mappings(path: str) -> Dict[str, Any]:
    """Read a mappings file: TOML for ``.toml``, JSON for anything else."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"mappings file not found: {path}")
    try:
        if path.lower().endswith(".toml"):
            with open(path, "rb") as f:
                return tomllib.load(f)
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ConfigError([f"{path}: {exc}"]) from exc
    except OSError as exc:
        # directories, unreadable files
        raise ConfigError([f"{path}: {exc.strerror or exc}"]) from exc


def load_binding_table(path: str) -> BindingTable:
    return build_binding_table(load_mappings(path))

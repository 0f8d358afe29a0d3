# antroute/antroute_config.py
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Set
import json
import os

import yaml

HANDEDNESS_VALUES = ("LH", "RH")


def _load_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def load_config_file(path: Optional[str]) -> Dict[str, Any]:
    """
    Load YAML or JSON into a dict. Returns {} if path is None.
    """
    if not path:
        return {}
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    text = _load_text(path)
    lower = path.lower()
    if lower.endswith((".yml", ".yaml")):
        data = yaml.safe_load(text) or {}
    elif lower.endswith(".json"):
        data = json.loads(text) or {}
    else:
        raise ValueError("Unsupported config format (use .json, .yml, or .yaml).")
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be a mapping/object.")
    return data


def deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two dicts. override wins on conflicts.
    """
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_update(out[k], v)
        else:
            out[k] = v
    return out


def parse_columns(value: Any) -> Dict[str, str]:
    """
    Accept either:
      - a string like "junction_id=Node,width=Width"
      - a dict like {"junction_id": "Node", "width": "Width"}
    Return a dict (empty for None).
    """
    if value is None:
        return {}
    if isinstance(value, dict):
        return {str(k): str(v) for k, v in value.items()}
    if isinstance(value, str):
        out: Dict[str, str] = {}
        for kv in value.split(","):
            if not kv.strip():
                continue
            k, v = kv.split("=")
            out[k.strip()] = v.strip()
        return out
    raise ValueError("columns must be a dict or 'name=column,...' string")


def overlay_config_on_namespace(ns, cfg: Dict[str, Any], subcommand: str, provided_keys: Optional[Set[str]] = None) -> None:
    defaults = cfg.get("defaults", {})
    subcfg = cfg.get(subcommand, {})
    flat = deep_update(defaults, subcfg)

    if "columns" in flat:
        flat["columns"] = parse_columns(flat["columns"])

    for k, v in flat.items():
        if not hasattr(ns, k):
            continue
        # If user explicitly passed it on CLI, don't touch it.
        if provided_keys and k in provided_keys:
            continue

        cur = getattr(ns, k)
        if isinstance(cur, bool) and isinstance(v, bool):
            # Config may raise False->True for flags; True->False is left alone
            if cur is False and v is True:
                setattr(ns, k, True)
        else:
            setattr(ns, k, v)


class HandednessOverrides(Mapping):
    """Read-only map of junction id -> ground-truth handedness.

    Consulted only for junctions whose handedness cannot be inferred from
    branch widths (e.g. two branches tied at the minimum width).
    """

    def __init__(self, entries: Optional[Mapping[Any, str]] = None):
        checked: Dict[str, str] = {}
        for jid, hand in (entries or {}).items():
            hand = str(hand).strip().upper()
            if hand not in HANDEDNESS_VALUES:
                raise ValueError(f"Handedness override for junction {jid!r} must be LH or RH, got {hand!r}")
            checked[str(jid)] = hand
        self._entries = MappingProxyType(checked)

    def __getitem__(self, junction_id: Any) -> str:
        return self._entries[str(junction_id)]

    def __contains__(self, junction_id: object) -> bool:
        return str(junction_id) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"HandednessOverrides({dict(self._entries)!r})"

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "HandednessOverrides":
        return cls(cfg.get("handedness_overrides") or {})


@dataclass(frozen=True)
class AnalysisSettings:
    """Constants shared by reconstruction, joining and prediction"""
    start_node: str = "start"
    end_node: str = "end"
    inspect_action: str = "inspect"
    ignore_action: str = "ignore"
    conservation_rtol: float = 1e-9
    workers: int = 1
    first_member: Optional[str] = None

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> "AnalysisSettings":
        """Build settings from a config section, ignoring unknown keys"""
        values = values or {}
        known = {k: v for k, v in values.items() if k in cls.__dataclass_fields__}
        return cls(**known)

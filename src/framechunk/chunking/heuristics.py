"""
Best-effort regex hints layered over parsed Svelte scripts.

These run after structural chunking and only add metadata. They can miss or
over-report (strings and comments are not excluded), so nothing downstream
may rely on them for correctness.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List

REACTIVE_STATEMENT = re.compile(r"^\s*\$:", re.MULTILINE)
STORE_REFERENCE = re.compile(r"(?<![\w$])\$(?!\$)([A-Za-z_][\w]*)\b(?!\s*\()")
RUNE_CALL = re.compile(r"(?<![\w$])\$(state|derived|effect|props|bindable|inspect|host)(?:\.\w+)?\s*\(")
EVENT_DISPATCHER = re.compile(r"\bcreateEventDispatcher\s*\(")
LIFECYCLE_CALL = re.compile(r"\b(onMount|onDestroy|beforeUpdate|afterUpdate|tick)\s*\(")

_RUNE_NAMES = {"state", "derived", "effect", "props", "bindable", "inspect", "host"}


def _ordered_unique(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


def detect_svelte_reactivity(script: str) -> Dict[str, Any]:
    """Summarise reactive constructs found in a component script."""
    stores = [
        name
        for name in STORE_REFERENCE.findall(script)
        if name not in _RUNE_NAMES
    ]
    return {
        "bestEffort": True,
        "reactiveStatements": len(REACTIVE_STATEMENT.findall(script)),
        "storeReferences": _ordered_unique(stores),
        "runes": _ordered_unique(RUNE_CALL.findall(script)),
        "dispatchesEvents": bool(EVENT_DISPATCHER.search(script)),
        "lifecycle": _ordered_unique(LIFECYCLE_CALL.findall(script)),
    }


def summarise(script: str) -> Dict[str, Any]:
    """Heuristics with empty findings dropped, ready to merge into metadata."""
    hints = detect_svelte_reactivity(script)
    return {
        key: value
        for key, value in hints.items()
        if key == "bestEffort" or value
    }

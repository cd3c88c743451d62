"""Bring workflow documents written by older versions up to the current schema.

``migrate_workflow`` is total (never raises) and idempotent, and it never
mutates its input.
"""

from __future__ import annotations

import copy
import math
from typing import Any

CURRENT_SCHEMA_VERSION = "1.1.0"

_LEGACY_KEYS: tuple[tuple[str, str], ...] = (
    ("created_at", "createdAt"),
    ("updated_at", "updatedAt"),
)


def _number(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def _migrate_node(node: dict[str, Any]) -> dict[str, Any]:
    if not isinstance(node.get("data"), dict):
        node["data"] = {}
    position = node.get("position")
    if not isinstance(position, dict):
        position = {}
    node["position"] = {
        **position,
        "x": _number(position.get("x")),
        "y": _number(position.get("y")),
    }
    return node


def migrate_workflow(raw: object) -> dict[str, Any]:
    if not isinstance(raw, dict):
        return {"nodes": [], "edges": [], "schemaVersion": CURRENT_SCHEMA_VERSION}

    doc: dict[str, Any] = copy.deepcopy(raw)

    for legacy, current in _LEGACY_KEYS:
        if legacy in doc:
            value = doc.pop(legacy)
            doc.setdefault(current, value)

    nodes = doc.get("nodes")
    doc["nodes"] = (
        [_migrate_node(n) for n in nodes if isinstance(n, dict)] if isinstance(nodes, list) else []
    )
    edges = doc.get("edges")
    doc["edges"] = [e for e in edges if isinstance(e, dict)] if isinstance(edges, list) else []

    doc["schemaVersion"] = CURRENT_SCHEMA_VERSION
    return doc

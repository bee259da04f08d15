"""Structural validators shared by every loader and cache write path."""

from __future__ import annotations

from typing import Any, List, Mapping

DEFAULT_TOPOLOGY_OBJECT = "kreise"


def is_valid_index(data: Any) -> bool:
    """Return True when ``data`` looks like a versioned search index document."""
    if not isinstance(data, Mapping):
        return False
    data_version = data.get("dataVersion")
    build_hash = data.get("buildHash")
    return (
        isinstance(data_version, str)
        and bool(data_version)
        and isinstance(build_hash, str)
        and bool(build_hash)
        and isinstance(data.get("codeToIds"), Mapping)
        and isinstance(data.get("features"), Mapping)
    )


def is_valid_topology(data: Any, object_name: str = DEFAULT_TOPOLOGY_OBJECT) -> bool:
    """Return True when the named geometry group exists and holds at least one geometry."""
    if not isinstance(data, Mapping):
        return False
    objects = data.get("objects")
    if not isinstance(objects, Mapping):
        return False
    group = objects.get(object_name)
    if not isinstance(group, Mapping):
        return False
    geometries = group.get("geometries")
    return isinstance(geometries, list) and len(geometries) > 0


def is_valid_auxiliary(data: Any) -> bool:
    return isinstance(data, Mapping) and len(data) > 0


def index_integrity_errors(data: Mapping[str, Any]) -> List[str]:
    """List dangling references from ``codeToIds`` into ``features``."""
    errors: List[str] = []
    features = data.get("features") or {}
    for code, ids in (data.get("codeToIds") or {}).items():
        if not isinstance(ids, list) or not ids:
            errors.append(f"code {code!r} maps to no entities")
            continue
        for entity_id in ids:
            if entity_id not in features:
                errors.append(f"code {code!r} references unknown entity {entity_id!r}")
    return errors


__all__ = [
    "DEFAULT_TOPOLOGY_OBJECT",
    "index_integrity_errors",
    "is_valid_auxiliary",
    "is_valid_index",
    "is_valid_topology",
]

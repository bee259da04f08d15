"""Lookups against a resolved search index document."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple

from pydantic import BaseModel, Field

from .normalize import normalize_code
from .regions import bundesland_for_region_key

UNKNOWN_STATE = "Unbekannt"


class SearchResult(BaseModel):
    id: str
    name: str
    region_key: str
    code: str
    codes: List[str] = Field(default_factory=list)
    bundesland: str = UNKNOWN_STATE
    bundesland_short: str = "??"
    center: Optional[Tuple[float, float]] = None


def search_code(code: str, index: Mapping[str, Any]) -> List[SearchResult]:
    """Return every district registered under ``code``; one code may span several."""
    normalized = normalize_code(code)
    if not normalized:
        return []
    ids = (index.get("codeToIds") or {}).get(normalized) or []
    features = index.get("features") or {}

    results: List[SearchResult] = []
    for entity_id in ids:
        feature = features.get(entity_id)
        if not isinstance(feature, Mapping):
            continue
        region_key = str(feature.get("regionKey") or "")
        state = bundesland_for_region_key(region_key)
        center = feature.get("center")
        results.append(
            SearchResult(
                id=entity_id,
                name=str(feature.get("name", "")),
                region_key=region_key,
                code=normalized,
                codes=list(feature.get("codes") or []),
                bundesland=state.name if state else UNKNOWN_STATE,
                bundesland_short=state.short_name if state else "??",
                center=tuple(center) if isinstance(center, list) and len(center) == 2 else None,
            )
        )
    return results


def autocomplete(partial: str, index: Mapping[str, Any], limit: int = 5) -> List[str]:
    normalized = normalize_code(partial)
    if not normalized:
        return []
    matches = [code for code in (index.get("codeToIds") or {}) if code.startswith(normalized)]
    matches.sort(key=lambda code: (len(code), code))
    return matches[:limit]


def all_codes(index: Mapping[str, Any]) -> List[str]:
    return sorted(index.get("codeToIds") or {})


__all__ = ["SearchResult", "all_codes", "autocomplete", "search_code"]

"""German federal states (Bundesländer) keyed by regional key prefix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Bundesland:
    code: str
    name: str
    short_name: str


BUNDESLAENDER: Dict[str, Bundesland] = {
    state.code: state
    for state in (
        Bundesland("01", "Schleswig-Holstein", "SH"),
        Bundesland("02", "Hamburg", "HH"),
        Bundesland("03", "Niedersachsen", "NI"),
        Bundesland("04", "Bremen", "HB"),
        Bundesland("05", "Nordrhein-Westfalen", "NW"),
        Bundesland("06", "Hessen", "HE"),
        Bundesland("07", "Rheinland-Pfalz", "RP"),
        Bundesland("08", "Baden-Württemberg", "BW"),
        Bundesland("09", "Bayern", "BY"),
        Bundesland("10", "Saarland", "SL"),
        Bundesland("11", "Berlin", "BE"),
        Bundesland("12", "Brandenburg", "BB"),
        Bundesland("13", "Mecklenburg-Vorpommern", "MV"),
        Bundesland("14", "Sachsen", "SN"),
        Bundesland("15", "Sachsen-Anhalt", "ST"),
        Bundesland("16", "Thüringen", "TH"),
    )
}

_BY_SHORT_NAME: Dict[str, Bundesland] = {state.short_name: state for state in BUNDESLAENDER.values()}


def bundesland_for_region_key(region_key: Optional[str]) -> Optional[Bundesland]:
    if not region_key:
        return None
    key = region_key.strip()
    if len(key) >= 2 and key[:2].isdigit():
        return BUNDESLAENDER.get(key[:2])
    return _BY_SHORT_NAME.get(key.upper())


__all__ = ["BUNDESLAENDER", "Bundesland", "bundesland_for_region_key"]

"""Canonical vocabulary tables.

Every table maps an alternate spelling (upper case, periods removed) to the one
canonical form used throughout the library.  The tables are plain data; callers pass
a :class:`Vocabulary` explicitly to the parser and key deriver so that runs stay
reproducible.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Mapping, Optional

from .config import ConfigurationError, VocabularyConfig


class Directional(str, Enum):
    N = "N"
    S = "S"
    E = "E"
    W = "W"
    NE = "NE"
    NW = "NW"
    SE = "SE"
    SW = "SW"


DIRECTIONALS: dict[str, str] = {
    "N": "N",
    "NORTH": "N",
    "S": "S",
    "SOUTH": "S",
    "E": "E",
    "EAST": "E",
    "W": "W",
    "WEST": "W",
    "NE": "NE",
    "NORTHEAST": "NE",
    "NW": "NW",
    "NORTHWEST": "NW",
    "SE": "SE",
    "SOUTHEAST": "SE",
    "SW": "SW",
    "SOUTHWEST": "SW",
}

# Subset of USPS Publication 28, Appendix C1.
STREET_TYPES: dict[str, str] = {
    "ALLEY": "ALY",
    "ALLY": "ALY",
    "ALY": "ALY",
    "AVENUE": "AVE",
    "AV": "AVE",
    "AVE": "AVE",
    "AVEN": "AVE",
    "BEND": "BND",
    "BND": "BND",
    "BOULEVARD": "BLVD",
    "BLVD": "BLVD",
    "BOUL": "BLVD",
    "CIRCLE": "CIR",
    "CIR": "CIR",
    "CIRC": "CIR",
    "COURT": "CT",
    "CT": "CT",
    "COVE": "CV",
    "CV": "CV",
    "CREEK": "CRK",
    "CRK": "CRK",
    "CREST": "CRST",
    "CRST": "CRST",
    "CROSSING": "XING",
    "XING": "XING",
    "DRIVE": "DR",
    "DR": "DR",
    "DRV": "DR",
    "EXPRESSWAY": "EXPY",
    "EXPY": "EXPY",
    "FREEWAY": "FWY",
    "FWY": "FWY",
    "GARDEN": "GDN",
    "GDN": "GDN",
    "GARDENS": "GDNS",
    "GDNS": "GDNS",
    "GLEN": "GLN",
    "GLN": "GLN",
    "GROVE": "GRV",
    "GRV": "GRV",
    "HEIGHTS": "HTS",
    "HTS": "HTS",
    "HIGHWAY": "HWY",
    "HWY": "HWY",
    "HIWAY": "HWY",
    "HILL": "HL",
    "HL": "HL",
    "HOLLOW": "HOLW",
    "HOLW": "HOLW",
    "LANE": "LN",
    "LN": "LN",
    "LOOP": "LOOP",
    "MEADOWS": "MDWS",
    "MDWS": "MDWS",
    "PARK": "PARK",
    "PARKWAY": "PKWY",
    "PKWY": "PKWY",
    "PKY": "PKWY",
    "PATH": "PATH",
    "PIKE": "PIKE",
    "PLACE": "PL",
    "PL": "PL",
    "PLAZA": "PLZ",
    "PLZ": "PLZ",
    "POINT": "PT",
    "PT": "PT",
    "RIDGE": "RDG",
    "RDG": "RDG",
    "ROAD": "RD",
    "RD": "RD",
    "ROW": "ROW",
    "RUN": "RUN",
    "SQUARE": "SQ",
    "SQ": "SQ",
    "STREET": "ST",
    "STR": "ST",
    "ST": "ST",
    "TERRACE": "TER",
    "TER": "TER",
    "TRAIL": "TRL",
    "TRL": "TRL",
    "VIEW": "VW",
    "VW": "VW",
    "VILLAGE": "VLG",
    "VLG": "VLG",
    "WALK": "WALK",
    "WAY": "WAY",
    "WY": "WAY",
}

# USPS Publication 28, Appendix C2, plus the bare number sign.
SUBADDRESS_TYPES: dict[str, str] = {
    "APARTMENT": "APT",
    "APT": "APT",
    "BASEMENT": "BSMT",
    "BSMT": "BSMT",
    "BUILDING": "BLDG",
    "BLDG": "BLDG",
    "DEPARTMENT": "DEPT",
    "DEPT": "DEPT",
    "FLOOR": "FL",
    "FL": "FL",
    "HANGAR": "HNGR",
    "HANGER": "HNGR",
    "HNGR": "HNGR",
    "LOT": "LOT",
    "OFFICE": "OFC",
    "OFC": "OFC",
    "PENTHOUSE": "PH",
    "PH": "PH",
    "PIER": "PIER",
    "ROOM": "RM",
    "RM": "RM",
    "SLIP": "SLIP",
    "SPACE": "SPC",
    "SPC": "SPC",
    "SUITE": "STE",
    "STE": "STE",
    "TRAILER": "TRLR",
    "TRLR": "TRLR",
    "UNIT": "UNIT",
    "#": "#",
}

STATES: dict[str, str] = {
    "ALABAMA": "AL",
    "ALASKA": "AK",
    "ARIZONA": "AZ",
    "ARKANSAS": "AR",
    "CALIFORNIA": "CA",
    "COLORADO": "CO",
    "CONNECTICUT": "CT",
    "DELAWARE": "DE",
    "DISTRICT OF COLUMBIA": "DC",
    "FLORIDA": "FL",
    "GEORGIA": "GA",
    "HAWAII": "HI",
    "IDAHO": "ID",
    "ILLINOIS": "IL",
    "INDIANA": "IN",
    "IOWA": "IA",
    "KANSAS": "KS",
    "KENTUCKY": "KY",
    "LOUISIANA": "LA",
    "MAINE": "ME",
    "MARYLAND": "MD",
    "MASSACHUSETTS": "MA",
    "MICHIGAN": "MI",
    "MINNESOTA": "MN",
    "MISSISSIPPI": "MS",
    "MISSOURI": "MO",
    "MONTANA": "MT",
    "NEBRASKA": "NE",
    "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH",
    "NEW JERSEY": "NJ",
    "NEW MEXICO": "NM",
    "NEW YORK": "NY",
    "NORTH CAROLINA": "NC",
    "NORTH DAKOTA": "ND",
    "OHIO": "OH",
    "OKLAHOMA": "OK",
    "OREGON": "OR",
    "PENNSYLVANIA": "PA",
    "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN",
    "TEXAS": "TX",
    "UTAH": "UT",
    "VERMONT": "VT",
    "VIRGINIA": "VA",
    "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI",
    "WYOMING": "WY",
}


def lookup_key(token: Optional[str]) -> str:
    if not token:
        return ""
    return " ".join(str(token).upper().replace(".", "").split())


def _with_canonical(table: Mapping[str, str]) -> dict[str, str]:
    result = {lookup_key(alias): lookup_key(canonical) for alias, canonical in table.items()}
    for canonical in set(result.values()):
        result.setdefault(canonical, canonical)
    return result


@dataclass(frozen=True)
class Vocabulary:
    directionals: dict[str, str] = field(default_factory=lambda: _with_canonical(DIRECTIONALS))
    street_types: dict[str, str] = field(default_factory=lambda: _with_canonical(STREET_TYPES))
    subaddress_types: dict[str, str] = field(default_factory=lambda: _with_canonical(SUBADDRESS_TYPES))
    states: dict[str, str] = field(default_factory=lambda: _with_canonical(STATES))
    postal_communities: dict[str, str] = field(default_factory=dict)

    def directional(self, token: Optional[str]) -> Optional[Directional]:
        canonical = self.directionals.get(lookup_key(token))
        return Directional(canonical) if canonical else None

    def street_type(self, token: Optional[str]) -> Optional[str]:
        return self.street_types.get(lookup_key(token))

    def subaddress_type(self, token: Optional[str]) -> Optional[str]:
        key = lookup_key(token)
        return self.subaddress_types.get(key) if key else None

    def state(self, token: Optional[str]) -> Optional[str]:
        return self.states.get(lookup_key(token))

    def postal_community(self, text: Optional[str]) -> Optional[str]:
        return self.postal_communities.get(lookup_key(text))

    @property
    def longest_community(self) -> int:
        if not self.postal_communities:
            return 0
        return max(len(name.split()) for name in self.postal_communities)


def _merge(defaults: Mapping[str, str], extra: Mapping[str, str], replace: bool) -> dict[str, str]:
    merged: dict[str, str] = {} if replace else dict(defaults)
    merged.update(extra)
    return _with_canonical(merged)


def build_vocabulary(config: VocabularyConfig | None = None) -> Vocabulary:
    """Build a vocabulary from user tables, failing fast on unusable configuration."""
    if config is None:
        return default_vocabulary()
    replace = config.replace_defaults
    directionals = _merge(DIRECTIONALS, config.directionals, replace)
    street_types = _merge(STREET_TYPES, config.street_types, replace)
    subaddress_types = _merge(SUBADDRESS_TYPES, config.subaddress_types, replace)
    for name, table in (
        ("directionals", directionals),
        ("street_types", street_types),
        ("subaddress_types", subaddress_types),
    ):
        if not table:
            raise ConfigurationError(f"vocabulary table '{name}' is empty")
    invalid = sorted({value for value in directionals.values() if value not in Directional.__members__})
    if invalid:
        raise ConfigurationError(f"directionals must map to N, S, E, W, NE, NW, SE or SW; got {', '.join(invalid)}")
    return Vocabulary(
        directionals=directionals,
        street_types=street_types,
        subaddress_types=subaddress_types,
        states=_merge(STATES, config.states, replace),
        postal_communities=_with_canonical(config.postal_communities),
    )


@lru_cache(maxsize=1)
def default_vocabulary() -> Vocabulary:
    return Vocabulary()

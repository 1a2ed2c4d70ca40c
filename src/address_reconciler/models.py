from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Iterator, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict

from .vocabulary import Directional

if TYPE_CHECKING:
    from .capability import AddressCapable
    from .normalizer import MatchKey

ZIP_PREFIX_PATTERN = re.compile(r"\d{5}")


def zip5(value: Optional[str]) -> str:
    if not value:
        return ""
    match = ZIP_PREFIX_PATTERN.search(str(value))
    if match:
        return match.group(0)
    return str(value).strip().upper()


class Address(BaseModel):
    """Structured address components; immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    record_id: str = ""
    source: str = ""
    house_number: Optional[str] = None
    pre_directional: Optional[Directional] = None
    street_name: Optional[str] = None
    street_type: Optional[str] = None
    post_directional: Optional[Directional] = None
    subaddress_type: Optional[str] = None
    subaddress_id: Optional[str] = None
    floor: Optional[str] = None
    building: Optional[str] = None
    postal_community: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def identity(self) -> str:
        return self.record_id

    @property
    def components(self) -> "Address":
        return self

    @property
    def coordinates(self) -> Optional[tuple[float, float]]:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    @property
    def is_matchable(self) -> bool:
        return bool(self.house_number and self.street_name)

    def comparable_fields(self) -> dict[str, Any]:
        return {
            "unit": self.subaddress_id,
            "subaddress_type": self.subaddress_type,
            "floor": self.floor,
            "building": self.building,
            "zip_code": zip5(self.zip_code),
            "postal_community": self.postal_community,
            "state": self.state,
            "post_directional": self.post_directional.value if self.post_directional else None,
            "coordinates": self.coordinates,
        }

    def complete_street_name(self) -> str:
        parts = [
            self.pre_directional.value if self.pre_directional else None,
            self.street_name,
            self.street_type,
            self.post_directional.value if self.post_directional else None,
        ]
        return " ".join(part for part in parts if part)

    def label(self) -> str:
        """Mailing label: complete address number, complete street name and subaddress."""
        parts = [self.house_number, self.complete_street_name()]
        if self.building:
            parts.append(f"BLDG {self.building}")
        if self.floor:
            parts.append(f"FL {self.floor}")
        if self.subaddress_id:
            if self.subaddress_type and self.subaddress_type != "#":
                parts.append(f"{self.subaddress_type} {self.subaddress_id}")
            else:
                parts.append(f"#{self.subaddress_id}")
        elif self.subaddress_type:
            parts.append(self.subaddress_type)
        return " ".join(part for part in parts if part)


class AddressStatus(str, Enum):
    CURRENT = "current"
    PENDING = "pending"
    RETIRED = "retired"
    TEMPORARY = "temporary"
    VIRTUAL = "virtual"
    OTHER = "other"


class MunicipalAddress(BaseModel):
    """Address point maintained by a city or county, with its assignment status."""

    model_config = ConfigDict(frozen=True)

    address: Address
    status: AddressStatus = AddressStatus.OTHER

    @property
    def identity(self) -> str:
        return self.address.record_id

    @property
    def components(self) -> Address:
        return self.address

    @property
    def coordinates(self) -> Optional[tuple[float, float]]:
        return self.address.coordinates

    def comparable_fields(self) -> dict[str, Any]:
        fields = self.address.comparable_fields()
        fields["status"] = self.status.value
        return fields


class BusinessLicense(BaseModel):
    """Business license record whose location is compared against address points."""

    model_config = ConfigDict(frozen=True)

    license: str
    address: Address
    company_name: Optional[str] = None
    business_type: str = ""

    @property
    def identity(self) -> str:
        return self.license

    @property
    def components(self) -> Address:
        return self.address

    @property
    def coordinates(self) -> Optional[tuple[float, float]]:
        return self.address.coordinates

    def comparable_fields(self) -> dict[str, Any]:
        return self.address.comparable_fields()


class ParseStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class Complete:
    address: Address
    status: ClassVar[ParseStatus] = ParseStatus.COMPLETE


@dataclass(frozen=True)
class PartialWithRemainder:
    address: Address
    remainder: str
    missing: frozenset[str] = frozenset()
    status: ClassVar[ParseStatus] = ParseStatus.PARTIAL


@dataclass(frozen=True)
class Unparseable:
    reason: str
    raw_text: str = ""
    status: ClassVar[ParseStatus] = ParseStatus.UNPARSEABLE


ParseOutcome = Union[Complete, PartialWithRemainder, Unparseable]


class MatchStatus(str, Enum):
    MATCHING = "matching"
    DIVERGENT = "divergent"
    MISSING = "missing"


@dataclass(frozen=True)
class Matching:
    source: "AddressCapable"
    target: "AddressCapable"
    status: ClassVar[MatchStatus] = MatchStatus.MATCHING

    @property
    def source_id(self) -> str:
        return self.source.identity

    @property
    def target_id(self) -> Optional[str]:
        return self.target.identity

    @property
    def fields(self) -> frozenset[str]:
        return frozenset()


@dataclass(frozen=True)
class Divergent:
    source: "AddressCapable"
    target: "AddressCapable"
    fields: frozenset[str]
    status: ClassVar[MatchStatus] = MatchStatus.DIVERGENT

    @property
    def source_id(self) -> str:
        return self.source.identity

    @property
    def target_id(self) -> Optional[str]:
        return self.target.identity


@dataclass(frozen=True)
class Missing:
    """A record with no counterpart; ``side`` names the dataset it belongs to."""

    record: "AddressCapable"
    side: str = "source"
    status: ClassVar[MatchStatus] = MatchStatus.MISSING

    @property
    def source_id(self) -> Optional[str]:
        return self.record.identity if self.side == "source" else None

    @property
    def target_id(self) -> Optional[str]:
        return self.record.identity if self.side == "target" else None

    @property
    def fields(self) -> frozenset[str]:
        return frozenset()


ComparisonResult = Union[Matching, Divergent, Missing]


@dataclass
class ComparisonReport:
    results: list[ComparisonResult] = field(default_factory=list)
    source_count: int = 0
    target_count: int = 0

    def __iter__(self) -> Iterator[ComparisonResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def matching(self) -> list[Matching]:
        return [r for r in self.results if isinstance(r, Matching)]

    @property
    def divergent(self) -> list[Divergent]:
        return [r for r in self.results if isinstance(r, Divergent)]

    @property
    def missing(self) -> list[Missing]:
        return [r for r in self.results if isinstance(r, Missing)]

    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in MatchStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts

    def pairs(self) -> list[Union[Matching, Divergent]]:
        return [r for r in self.results if isinstance(r, (Matching, Divergent))]

    def filter(self, name: str) -> "ComparisonReport":
        """Keep results with status ``name``, or divergent results differing in field ``name``."""
        name = name.strip().lower()
        statuses = {status.value for status in MatchStatus}
        if name in statuses:
            kept = [r for r in self.results if r.status.value == name]
        else:
            kept = [r for r in self.results if isinstance(r, Divergent) and name in r.fields]
        return ComparisonReport(results=kept, source_count=self.source_count, target_count=self.target_count)

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for result in self.results:
            subject = result.record if isinstance(result, Missing) else result.source
            other = None if isinstance(result, Missing) else result.target
            coordinates = subject.coordinates or (None, None)
            rows.append(
                {
                    "match_status": result.status.value,
                    "side": result.side if isinstance(result, Missing) else "source",
                    "source_id": result.source_id,
                    "target_id": result.target_id,
                    "address_label": subject.components.label(),
                    "other_label": other.components.label() if other is not None else None,
                    "differing_fields": ";".join(sorted(result.fields)),
                    "latitude": coordinates[0],
                    "longitude": coordinates[1],
                }
            )
        return pd.DataFrame(rows)


@dataclass(frozen=True)
class DuplicateGroup:
    key: "MatchKey"
    records: tuple["AddressCapable", ...]

    @property
    def identities(self) -> tuple[str, ...]:
        return tuple(record.identity for record in self.records)

    def __len__(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class DriftRecord:
    pair: Union[Matching, Divergent]
    distance: float
    exceeds_threshold: bool

    @property
    def source_id(self) -> str:
        return self.pair.source_id

    @property
    def target_id(self) -> Optional[str]:
        return self.pair.target_id


@dataclass(frozen=True)
class OrphanStreet:
    name: str
    side: str
    closest: Optional[str] = None
    score: float = 0.0

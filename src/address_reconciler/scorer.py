from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from .capability import AddressCapable
from .config import DEFAULT_COMPARABLE_FIELDS


def planar_distance(a: tuple[float, float], b: tuple[float, float]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


@dataclass
class FieldRules:
    comparable_fields: Sequence[str] = DEFAULT_COMPARABLE_FIELDS
    drift_threshold: float = 30.0


class FieldComparator:
    """Counts the comparable fields on which two same-key records disagree."""

    def __init__(self, rules: FieldRules) -> None:
        self.rules = rules

    def differing_fields(self, source: AddressCapable, target: AddressCapable) -> frozenset[str]:
        left = source.comparable_fields()
        right = target.comparable_fields()
        differing = set()
        for name in self.rules.comparable_fields:
            if name not in left or name not in right:
                continue
            if name == "coordinates":
                if self._coordinates_differ(left[name], right[name]):
                    differing.add(name)
            elif self._value(left[name]) != self._value(right[name]):
                differing.add(name)
        return frozenset(differing)

    def best_candidate(
        self, source: AddressCapable, candidates: Iterable[AddressCapable]
    ) -> tuple[Optional[AddressCapable], frozenset[str]]:
        """Candidate with the fewest differing fields; the earliest wins a tie."""
        best: Optional[AddressCapable] = None
        best_fields: frozenset[str] = frozenset()
        for candidate in candidates:
            fields = self.differing_fields(source, candidate)
            if best is None or len(fields) < len(best_fields):
                best, best_fields = candidate, fields
            if not fields:
                break
        return best, best_fields

    def _coordinates_differ(self, a: Any, b: Any) -> bool:
        if a is None or b is None:
            return False
        return planar_distance(a, b) > self.rules.drift_threshold

    def _value(self, value: Any) -> str:
        if value is None:
            return ""
        if hasattr(value, "value"):
            value = value.value
        return " ".join(str(value).split()).upper()

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence

from .capability import AddressCapable
from .normalizer import MatchKey, derive_key
from .vocabulary import Vocabulary


class KeyIndex:
    """Match key -> target records, in insertion order. Built once, read-only afterwards."""

    def __init__(self, vocabulary: Optional[Vocabulary] = None) -> None:
        self.vocabulary = vocabulary
        self.key_to_records: Dict[MatchKey, List[AddressCapable]] = defaultdict(list)
        self.skipped: List[AddressCapable] = []
        self.size = 0

    def build(self, records: Sequence[AddressCapable]) -> "KeyIndex":
        for record in records:
            if not record.components.is_matchable:
                self.skipped.append(record)
                continue
            self.key_to_records[derive_key(record, self.vocabulary)].append(record)
            self.size += 1
        return self

    def query(self, key: MatchKey) -> List[AddressCapable]:
        return list(self.key_to_records.get(key, ()))

    def keys(self) -> Iterable[MatchKey]:
        return self.key_to_records.keys()

    def __contains__(self, key: object) -> bool:
        return key in self.key_to_records

    def __len__(self) -> int:
        return self.size

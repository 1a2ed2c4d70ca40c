from __future__ import annotations

from enum import Enum
from typing import Any, NamedTuple, Optional

from .vocabulary import Vocabulary, default_vocabulary


class MatchKey(NamedTuple):
    """Canonical identity of an address location; absent parts are empty strings."""

    house_number: str
    pre_directional: str
    street_name: str
    street_type: str
    postal_community: str

    def __str__(self) -> str:
        return "|".join(self)

    @property
    def complete_street_name(self) -> str:
        return " ".join(part for part in (self.pre_directional, self.street_name, self.street_type) if part)


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return " ".join(str(value).upper().replace(".", "").split())


def _canonical_word(word: str, vocabulary: Vocabulary) -> str:
    # "HIGHWAY 199" and "HWY 199", "AVENUE A" and "AVE A"
    directional = vocabulary.directional(word)
    if directional is not None:
        return directional.value
    return vocabulary.street_type(word) or word


def derive_key(record: Any, vocabulary: Optional[Vocabulary] = None) -> MatchKey:
    """Derive the match key of an address or of any record exposing ``components``.

    Deterministic and total: every part is upper-cased for lookup, canonicalized
    through the vocabulary, then lower-cased.  Street name words that spell a type
    or a directional take its canonical form too.  A street type left inside the
    street name ("MAIN STREET" with no type) is split off so both spellings share
    a key.
    """
    vocabulary = vocabulary or default_vocabulary()
    address = getattr(record, "components", record)

    house_number = clean_text(address.house_number)
    directional = vocabulary.directional(clean_text(address.pre_directional))
    street_name = " ".join(_canonical_word(word, vocabulary) for word in clean_text(address.street_name).split())
    street_type = clean_text(address.street_type)
    if street_type:
        street_type = vocabulary.street_type(street_type) or street_type
    else:
        words = street_name.split()
        if len(words) > 1 and vocabulary.street_type(words[-1]):
            street_type = vocabulary.street_type(words[-1]) or ""
            street_name = " ".join(words[:-1])
    community = clean_text(address.postal_community)
    community = vocabulary.postal_community(community) or community

    return MatchKey(
        house_number=house_number.lower(),
        pre_directional=directional.value.lower() if directional else "",
        street_name=street_name.lower(),
        street_type=street_type.lower(),
        postal_community=community.lower(),
    )

"""Backtracking grammar that turns free-text addresses into :class:`Address` records.

The grammar reads a street line left to right:

    house number [suffix] [pre-directional] street name [street type]
    [post-directional] [subaddress designator identifier] [postal community]

followed by the locality (city, state, ZIP), which is validated but not parsed any
further.  Ambiguity is resolved by trying alternatives in order and keeping the first
that still yields a street name, so "100 North St" reads as the street NORTH ST rather
than a directional followed by nothing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator, Optional

from loguru import logger

from .models import Address, Complete, ParseOutcome, PartialWithRemainder, Unparseable
from .vocabulary import Directional, Vocabulary, default_vocabulary

TOKEN_PATTERN = re.compile(r"#|&|[^\s,#&]+")
HOUSE_NUMBER_PATTERN = re.compile(r"(\d+(?:-\d+)?)([A-Z])?")
FRACTION_PATTERN = re.compile(r"\d/\d")
NAME_TOKEN_PATTERN = re.compile(r"[A-Z0-9][A-Z0-9'\-]*")
IDENTIFIER_PATTERN = re.compile(r"[A-Z0-9][A-Z0-9'\-]*")
ZIP_PATTERN = re.compile(r"\d{5}(?:-\d{4})?")
ZIP_LIKE_PATTERN = re.compile(r"[\w\-]*\d[\w\-]*")
CITY_PATTERN = re.compile(r"[A-Z][A-Z .'\-]*")
LOCALITY_TOKEN_PATTERN = re.compile(r"[^\s,]+")

BUILDING = "BLDG"
FLOOR = "FL"

COMPOUND_DIRECTIONALS = {
    (Directional.N, Directional.E): Directional.NE,
    (Directional.N, Directional.W): Directional.NW,
    (Directional.S, Directional.E): Directional.SE,
    (Directional.S, Directional.W): Directional.SW,
}


@dataclass(frozen=True)
class _Token:
    word: str
    start: int


@dataclass
class _Street:
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
    end: int = 0


@dataclass
class _Locality:
    postal_community: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    invalid: tuple[str, ...] = ()
    leftover: str = ""


def tokenize(text: str) -> list[_Token]:
    tokens = []
    for match in TOKEN_PATTERN.finditer(text):
        word = match.group(0).upper().replace(".", "")
        if word:
            tokens.append(_Token(word=word, start=match.start()))
    return tokens


class AddressParser:
    """Stateless parser bound to one read-only vocabulary; safe to share across workers."""

    def __init__(self, vocabulary: Vocabulary | None = None) -> None:
        self.vocabulary = vocabulary or default_vocabulary()

    def parse(
        self,
        raw_text: Optional[str],
        *,
        record_id: str = "",
        source: str = "",
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> ParseOutcome:
        text = "" if raw_text is None else str(raw_text)
        if not text.strip():
            return Unparseable(reason="empty input", raw_text=text)

        street_line, _, locality_text = text.partition(",")
        if locality_text.strip():
            tokens = tokenize(street_line)
            street = self._parse_street([t.word for t in tokens])
            remainder = self._remainder(street_line, tokens, street.end)
            # "123 Main St, Apt 4, Springfield": the subaddress has its own segment.
            segment, _, rest = locality_text.partition(",")
            segment_tokens = tokenize(segment)
            if segment_tokens and self.vocabulary.subaddress_type(segment_tokens[0].word):
                end = self._subaddresses([t.word for t in segment_tokens], 0, street)
                extra = self._remainder(segment, segment_tokens, end)
                remainder = " ".join(part for part in (remainder, extra) if part)
                locality_text = rest
            locality = self._parse_locality(locality_text)
        else:
            tokens = tokenize(text)
            words = [t.word for t in tokens]
            locality, kept = self._peel_locality(words)
            street = self._parse_street(words[:kept])
            if kept < len(words):
                self._trailing_post_directional(words[:kept], street)
            leftover = words[street.end : kept]
            if leftover and kept < len(words) and all(w.isalpha() for w in leftover) and not street.postal_community:
                locality.postal_community = self._community_name(" ".join(leftover))
                remainder = ""
            else:
                remainder = self._remainder(text, tokens, street.end, kept)

        return self._outcome(
            text,
            street,
            locality,
            remainder,
            record_id=record_id,
            source=source,
            latitude=latitude,
            longitude=longitude,
        )

    def parse_fields(
        self,
        street_line: Optional[str],
        city: Optional[str] = None,
        state: Optional[str] = None,
        zip_code: Optional[str] = None,
        *,
        record_id: str = "",
        source: str = "",
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> ParseOutcome:
        """Parse a street line supplied with separate city, state and ZIP fields."""
        text = "" if street_line is None else str(street_line)
        if not text.strip():
            return Unparseable(reason="empty street line", raw_text=text)
        tokens = tokenize(text)
        street = self._parse_street([t.word for t in tokens])
        remainder = self._remainder(text, tokens, street.end)

        locality = _Locality()
        invalid: list[str] = []
        leftover: list[str] = []
        for name, value, check in (
            ("postal_community", city, self._check_city),
            ("state", state, self._check_state),
            ("zip_code", zip_code, self._check_zip),
        ):
            if value is None or not str(value).strip():
                continue
            checked = check(str(value))
            if checked is None:
                invalid.append(name)
                leftover.append(str(value).strip())
            else:
                setattr(locality, name, checked)
        locality.invalid = tuple(invalid)
        locality.leftover = " ".join(leftover)

        return self._outcome(
            text,
            street,
            locality,
            remainder,
            record_id=record_id,
            source=source,
            latitude=latitude,
            longitude=longitude,
        )

    # -- street line grammar -------------------------------------------------

    def _parse_street(self, words: list[str]) -> _Street:
        number, pos = self._house_number(words, 0)
        for directional, start in self._pre_directional_options(words, pos):
            street = self._street_name(words, start, strict=True)
            if street is not None:
                street.pre_directional = directional
                break
        else:
            street = self._street_name(words, pos, strict=False) or _Street(end=pos)
        street.house_number = number

        i = self._subaddresses(words, street.end, street)
        community, after = self._community_at(words, i)
        if community:
            street.postal_community = community
            i = after
        street.end = i
        return street

    def _house_number(self, words: list[str], pos: int) -> tuple[Optional[str], int]:
        if pos >= len(words):
            return None, pos
        match = HOUSE_NUMBER_PATTERN.fullmatch(words[pos])
        if not match:
            return None, pos
        number = match.group(1) + (match.group(2) or "")
        pos += 1
        if pos < len(words) and FRACTION_PATTERN.fullmatch(words[pos]):
            number = f"{number} {words[pos]}"
            pos += 1
        return number, pos

    def _directional_at(self, words: list[str], pos: int) -> tuple[Optional[Directional], int]:
        """Longest directional at ``pos``: compound first, then single, else none."""
        if pos >= len(words):
            return None, pos
        first = self.vocabulary.directional(words[pos])
        if first is None:
            return None, pos
        if pos + 1 < len(words):
            second = self.vocabulary.directional(words[pos + 1])
            compound = COMPOUND_DIRECTIONALS.get((first, second)) if second else None
            if compound:
                return compound, pos + 2
        return first, pos + 1

    def _pre_directional_options(
        self, words: list[str], pos: int
    ) -> Iterator[tuple[Optional[Directional], int]]:
        directional, after = self._directional_at(words, pos)
        if directional is not None:
            yield directional, after
            if after - pos == 2:
                yield self.vocabulary.directional(words[pos]), pos + 1
        yield None, pos

    def _street_name(self, words: list[str], pos: int, strict: bool) -> Optional[_Street]:
        name: list[str] = []
        i = pos
        while i < len(words):
            if name and self._ends_name(words, i):
                break
            if not name and strict and self._type_without_name(words, i):
                return None
            if not NAME_TOKEN_PATTERN.fullmatch(words[i]):
                break
            name.append(words[i])
            i += 1
        if not name:
            return None

        street = _Street(street_name=" ".join(name))
        if i < len(words):
            street_type = self.vocabulary.street_type(words[i])
            if street_type:
                street.street_type = street_type
                i += 1
        street.post_directional, i = self._post_directional(words, i)
        street.end = i
        return street

    def _ends_name(self, words: list[str], i: int) -> bool:
        word = words[i]
        nxt = words[i + 1] if i + 1 < len(words) else None
        if self.vocabulary.street_type(word):
            # "MOUNTAIN VIEW AVE": only the last of two type words is the street type.
            return not (nxt and self.vocabulary.street_type(nxt))
        if self._post_directional(words, i)[0] is not None:
            return True
        if self.vocabulary.subaddress_type(word):
            return not (nxt and self.vocabulary.street_type(nxt))
        return self._community_at(words, i)[0] is not None

    def _type_without_name(self, words: list[str], i: int) -> bool:
        if not self.vocabulary.street_type(words[i]):
            return False
        nxt = i + 1
        if nxt >= len(words):
            return True
        return bool(self.vocabulary.subaddress_type(words[nxt])) or self._community_at(words, nxt)[0] is not None

    def _post_directional(self, words: list[str], i: int) -> tuple[Optional[Directional], int]:
        directional, after = self._directional_at(words, i)
        if directional is None:
            return None, i
        if after == len(words) or self.vocabulary.subaddress_type(words[after]):
            return directional, after
        if self._community_at(words, after)[0] is not None:
            return directional, after
        return None, i

    def _trailing_post_directional(self, words: list[str], street: _Street) -> None:
        """In "123 Main St N Portland OR", read N as the post-directional, not part of the city."""
        if street.street_type is None or street.post_directional or street.subaddress_type or street.postal_community:
            return
        directional, after = self._directional_at(words, street.end)
        if directional is not None and after < len(words) and all(w.isalpha() for w in words[after:]):
            street.post_directional = directional
            street.end = after

    def _subaddresses(self, words: list[str], i: int, street: _Street) -> int:
        """Read building, floor and unit elements in any order; each may appear once."""
        while i < len(words):
            designator = self.vocabulary.subaddress_type(words[i])
            if designator is None:
                break
            if designator in (BUILDING, FLOOR):
                attr = "building" if designator == BUILDING else "floor"
                if getattr(street, attr) is not None:
                    break
                value, i = self._subaddress_id(words, i + 1)
                setattr(street, attr, value or "")
            elif street.subaddress_type is None:
                street.subaddress_type = designator
                street.subaddress_id, i = self._subaddress_id(words, i + 1)
            else:
                break
        return i

    def _subaddress_id(self, words: list[str], i: int) -> tuple[Optional[str], int]:
        parts: list[str] = []
        while i < len(words) and IDENTIFIER_PATTERN.fullmatch(words[i]):
            if parts and self._community_at(words, i)[0] is not None:
                break
            parts.append(words[i])
            i += 1
            if i + 1 < len(words) and words[i] == "&" and IDENTIFIER_PATTERN.fullmatch(words[i + 1]):
                i += 1
                continue
            break
        return (" ".join(parts) if parts else None), i

    def _community_at(self, words: list[str], i: int) -> tuple[Optional[str], int]:
        longest = self.vocabulary.longest_community
        for size in range(min(longest, len(words) - i), 0, -1):
            community = self.vocabulary.postal_community(" ".join(words[i : i + size]))
            if community:
                return community, i + size
        return None, i

    # -- locality ------------------------------------------------------------

    def _parse_locality(self, text: str) -> _Locality:
        spans = list(LOCALITY_TOKEN_PATTERN.finditer(text))
        words = [match.group(0).upper() for match in spans]
        locality = _Locality()
        invalid: list[str] = []
        # leftover pieces are sliced from ``text`` so the remainder keeps the input's case
        leftover: list[str] = []

        def verbatim(start: int, stop: int) -> str:
            return text[spans[start].start() : spans[stop - 1].end()]

        if words and ZIP_LIKE_PATTERN.fullmatch(words[-1]):
            candidate = words.pop()
            if ZIP_PATTERN.fullmatch(candidate):
                locality.zip_code = candidate
            else:
                invalid.append("zip_code")
                leftover.append(verbatim(len(words), len(words) + 1))
        if words:
            state, used = self._state_at_end(words)
            if state:
                locality.state = state
                del words[-used:]
            elif len(words) > 1 and len(words[-1]) == 2 and words[-1].isalpha():
                invalid.append("state")
                words.pop()
                leftover.insert(0, verbatim(len(words), len(words) + 1))
        if words:
            city = self._check_city(" ".join(words))
            if city is None:
                invalid.append("postal_community")
                leftover.insert(0, verbatim(0, len(words)))
            else:
                locality.postal_community = city
        locality.invalid = tuple(invalid)
        locality.leftover = " ".join(leftover)
        return locality

    def _peel_locality(self, words: list[str]) -> tuple[_Locality, int]:
        """Strip a trailing ZIP and state from a comma-free address."""
        locality = _Locality()
        kept = len(words)
        if kept > 2 and ZIP_PATTERN.fullmatch(words[kept - 1]):
            locality.zip_code = words[kept - 1]
            kept -= 1
        if kept > 2:
            state, used = self._state_at_end(words[:kept])
            last = words[kept - 1]
            bare_code = used == 1 and len(last) == 2 and not self._ambiguous_state(last)
            if state and (locality.zip_code or bare_code) and kept - used >= 2:
                locality.state = state
                kept -= used
        return locality, kept

    def _ambiguous_state(self, word: str) -> bool:
        vocabulary = self.vocabulary
        return bool(
            vocabulary.directional(word) or vocabulary.street_type(word) or vocabulary.subaddress_type(word)
        )

    def _state_at_end(self, words: list[str]) -> tuple[Optional[str], int]:
        for size in (3, 2, 1):
            if size > len(words):
                continue
            state = self.vocabulary.state(" ".join(words[-size:]))
            if state:
                return state, size
        return None, 0

    def _check_city(self, value: str) -> Optional[str]:
        text = " ".join(value.upper().split())
        if not CITY_PATTERN.fullmatch(text):
            return None
        return self._community_name(text)

    def _community_name(self, text: str) -> str:
        return self.vocabulary.postal_community(text) or " ".join(text.upper().replace(".", "").split())

    def _check_state(self, value: str) -> Optional[str]:
        return self.vocabulary.state(value)

    def _check_zip(self, value: str) -> Optional[str]:
        text = value.strip()
        return text if ZIP_PATTERN.fullmatch(text) else None

    # -- result --------------------------------------------------------------

    @staticmethod
    def _remainder(text: str, tokens: list[_Token], start: int, stop: Optional[int] = None) -> str:
        """Verbatim text from token ``start`` up to token ``stop`` (or the end)."""
        stop = len(tokens) if stop is None else stop
        if start >= stop:
            return ""
        end = tokens[stop].start if stop < len(tokens) else len(text)
        return text[tokens[start].start : end].strip(" ,")

    def _outcome(
        self,
        raw_text: str,
        street: _Street,
        locality: _Locality,
        remainder: str,
        **identity,
    ) -> ParseOutcome:
        if street.house_number is None and street.street_name is None:
            logger.debug("unparseable address {!r}", raw_text)
            return Unparseable(reason="no house number or street name found", raw_text=raw_text)

        address = Address(
            house_number=street.house_number,
            pre_directional=street.pre_directional,
            street_name=street.street_name,
            street_type=street.street_type,
            post_directional=street.post_directional,
            subaddress_type=street.subaddress_type,
            subaddress_id=street.subaddress_id,
            floor=street.floor or None,
            building=street.building or None,
            postal_community=street.postal_community or locality.postal_community,
            state=locality.state,
            zip_code=locality.zip_code,
            **identity,
        )
        missing = set(locality.invalid)
        if street.house_number is None:
            missing.add("house_number")
        if street.street_name is None:
            missing.add("street_name")
        remainder = " ".join(part for part in (remainder, locality.leftover) if part)
        if missing or remainder:
            logger.debug("partial address {!r}: missing={} remainder={!r}", raw_text, sorted(missing), remainder)
            return PartialWithRemainder(address=address, remainder=remainder, missing=frozenset(missing))
        return Complete(address=address)


def parse(raw_text: Optional[str], vocabulary: Vocabulary | None = None, **identity) -> ParseOutcome:
    return AddressParser(vocabulary).parse(raw_text, **identity)


def parse_fields(
    street_line: Optional[str],
    city: Optional[str] = None,
    state: Optional[str] = None,
    zip_code: Optional[str] = None,
    vocabulary: Vocabulary | None = None,
    **identity,
) -> ParseOutcome:
    return AddressParser(vocabulary).parse_fields(street_line, city, state, zip_code, **identity)

"""Closed tag enumerations attached to lexicon entries and senses.

Ordinals are persisted in dictionary snapshots, so values must never be
renumbered; new members go at the end.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable


class Rarity(Enum):
    """How commonly an entry is used."""

    COMMON = 0
    UNCOMMON = 1
    RARE = 2
    OBSOLETE = 3

    @property
    def token(self) -> str:
        return self.name.lower()

    @classmethod
    def from_wiki_tags(cls, tags: Iterable[str]) -> "Rarity":
        for tag in tags:
            match = _RARITY_WIKI_TAGS.get(str(tag).strip().lower())
            if match is not None:
                return match
        return cls.COMMON


class SenseTag(Enum):
    """Register of a single sense."""

    NONE = 0
    OFFENSIVE = 1
    VULGAR = 2
    SLANG = 3
    INFORMAL = 4
    ARCHAIC = 5
    HISTORICAL = 6
    LITERARY = 7

    @property
    def token(self) -> str:
        return "" if self is SenseTag.NONE else self.name.lower()

    @classmethod
    def from_wiki_tags(cls, tags: Iterable[str]) -> "SenseTag":
        for tag in tags:
            match = _SENSE_WIKI_TAGS.get(str(tag).strip().lower())
            if match is not None:
                return match
        return cls.NONE


class PartOfSpeech(Enum):
    """Grammatical category of a sense."""

    OTHER = 0
    NOUN = 1
    VERB = 2
    ADJECTIVE = 3
    NAME = 4
    ADVERB = 5
    INTERJECTION = 6
    CONTRACTION = 7
    PREPOSITION = 8
    PRONOUN = 9
    PHRASE = 10
    NUMERAL = 11
    DETERMINER = 12
    CONJUNCTION = 13
    PARTICLE = 14

    @property
    def token(self) -> str:
        return _POS_TOKENS.get(self, self.name.lower())

    @classmethod
    def from_wiki_pos(cls, pos: str) -> "PartOfSpeech":
        return _POS_WIKI_TAGS.get(str(pos or "").strip().lower(), cls.OTHER)


_RARITY_WIKI_TAGS: Dict[str, Rarity] = {
    "common": Rarity.COMMON,
    "uncommon": Rarity.UNCOMMON,
    "rare": Rarity.RARE,
    "obsolete": Rarity.OBSOLETE,
}

_SENSE_WIKI_TAGS: Dict[str, SenseTag] = {
    "derogatory": SenseTag.OFFENSIVE,
    "offensive": SenseTag.OFFENSIVE,
    "vulgar": SenseTag.VULGAR,
    "slang": SenseTag.SLANG,
    "informal": SenseTag.INFORMAL,
    "archaic": SenseTag.ARCHAIC,
    "historical": SenseTag.HISTORICAL,
    "literary": SenseTag.LITERARY,
}

_POS_WIKI_TAGS: Dict[str, PartOfSpeech] = {
    "noun": PartOfSpeech.NOUN,
    "verb": PartOfSpeech.VERB,
    "adj": PartOfSpeech.ADJECTIVE,
    "name": PartOfSpeech.NAME,
    "adv": PartOfSpeech.ADVERB,
    "intj": PartOfSpeech.INTERJECTION,
    "contraction": PartOfSpeech.CONTRACTION,
    "prep": PartOfSpeech.PREPOSITION,
    "pron": PartOfSpeech.PRONOUN,
    "phrase": PartOfSpeech.PHRASE,
    "prep_phrase": PartOfSpeech.PHRASE,
    "proverb": PartOfSpeech.PHRASE,
    "num": PartOfSpeech.NUMERAL,
    "det": PartOfSpeech.DETERMINER,
    "conj": PartOfSpeech.CONJUNCTION,
    "particle": PartOfSpeech.PARTICLE,
}

_POS_TOKENS: Dict[PartOfSpeech, str] = {
    PartOfSpeech.ADJECTIVE: "adj.",
    PartOfSpeech.ADVERB: "adv.",
    PartOfSpeech.INTERJECTION: "intj",
    PartOfSpeech.PREPOSITION: "prep",
    PartOfSpeech.PRONOUN: "pron",
    PartOfSpeech.NUMERAL: "num.",
    PartOfSpeech.DETERMINER: "det.",
    PartOfSpeech.CONJUNCTION: "conj.",
}


__all__ = ["Rarity", "SenseTag", "PartOfSpeech"]

"""Rhyme search parameters and the preset filter groups offered to users."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from .tags import PartOfSpeech, Rarity, SenseTag

Register = Union[Rarity, SenseTag]


class RhymeType(Enum):
    """Similarity strategy used to pick index buckets."""

    PERFECT = "perfect"
    VOWEL = "vowel"

    @classmethod
    def parse(cls, value: Union[str, "RhymeType"]) -> "RhymeType":
        if isinstance(value, RhymeType):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        if normalized in {"vowel_only", "vowelonly", "vowels"}:
            normalized = "vowel"
        return cls(normalized)


_COMMON_SPEECH = frozenset(
    {
        PartOfSpeech.NOUN,
        PartOfSpeech.VERB,
        PartOfSpeech.ADJECTIVE,
        PartOfSpeech.ADVERB,
        PartOfSpeech.PRONOUN,
    }
)


class SpeechType(Enum):
    """Preset part-of-speech filters; ``ALL`` leaves results unrestricted."""

    ALL = ("All", frozenset())
    COMMON = ("Common", _COMMON_SPEECH)
    NOUN = ("Nouns", frozenset({PartOfSpeech.NOUN}))
    VERB = ("Verbs", frozenset({PartOfSpeech.VERB}))
    ADJECTIVE = ("Adjectives", frozenset({PartOfSpeech.ADJECTIVE}))
    PHRASE = ("Phrases", frozenset({PartOfSpeech.PHRASE}))
    NAME = ("Names", frozenset({PartOfSpeech.NAME}))
    OTHER = ("Other", frozenset({PartOfSpeech.OTHER}))

    @property
    def display_name(self) -> str:
        return self.value[0]

    @property
    def parts_of_speech(self) -> FrozenSet[PartOfSpeech]:
        return self.value[1]


class EntryType(Enum):
    """Preset register filters matched against entry rarity or sense tag."""

    ALL = ("All", frozenset())
    COMMON = ("Common", frozenset({Rarity.COMMON}))
    UNCOMMON = ("Uncommon", frozenset({Rarity.UNCOMMON, Rarity.RARE, Rarity.OBSOLETE}))
    SLANG = ("Slang", frozenset({SenseTag.SLANG}))
    VULGAR = ("Vulgar", frozenset({SenseTag.VULGAR, SenseTag.OFFENSIVE}))

    @property
    def display_name(self) -> str:
        return self.value[0]

    @property
    def registers(self) -> FrozenSet[Register]:
        return self.value[1]


@dataclass(frozen=True)
class RhymeSearchParams:
    """What to rhyme with and which candidates to keep.

    ``syllables == 0`` accepts any syllable count; empty allow-sets are
    unrestricted.
    """

    query: str = ""
    rhyme_type: RhymeType = RhymeType.PERFECT
    syllables: int = 0
    parts_of_speech: FrozenSet[PartOfSpeech] = field(default_factory=frozenset)
    registers: FrozenSet[Register] = field(default_factory=frozenset)

    @classmethod
    def from_presets(
        cls,
        query: str = "",
        *,
        rhyme_type: Union[str, RhymeType] = RhymeType.PERFECT,
        speech_type: SpeechType = SpeechType.ALL,
        entry_type: EntryType = EntryType.ALL,
        syllables: int = 0,
    ) -> "RhymeSearchParams":
        return cls(
            query=query,
            rhyme_type=RhymeType.parse(rhyme_type),
            syllables=max(0, int(syllables)),
            parts_of_speech=speech_type.parts_of_speech,
            registers=entry_type.registers,
        )

    def with_query(self, query: str) -> "RhymeSearchParams":
        return replace(self, query=query)

    def with_filters(
        self,
        *,
        parts_of_speech: Optional[Iterable[PartOfSpeech]] = None,
        registers: Optional[Iterable[Register]] = None,
    ) -> "RhymeSearchParams":
        return replace(
            self,
            parts_of_speech=(
                frozenset(parts_of_speech) if parts_of_speech is not None else self.parts_of_speech
            ),
            registers=frozenset(registers) if registers is not None else self.registers,
        )


__all__ = [
    "EntryType",
    "Register",
    "RhymeSearchParams",
    "RhymeType",
    "SpeechType",
]

"""Lexicon store: entries, their senses and stable global sense addressing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

from . import ipa
from .tags import PartOfSpeech, Rarity, SenseTag
from rhyme_index.utils.observability import get_logger


class FrozenLexiconError(RuntimeError):
    """Raised when a lexicon that backs a built rhyme index is mutated."""


@dataclass(frozen=True)
class DictSense:
    """One meaning of a token with its own pronunciation key and tags."""

    key: bytes = b""
    pos: PartOfSpeech = PartOfSpeech.OTHER
    tag: SenseTag = SenseTag.NONE
    meaning: str = ""

    @classmethod
    def from_ipa(cls, ipa_text: str, **kwargs) -> "DictSense":
        return cls(key=ipa.encode(ipa.strip_brackets(ipa_text)), **kwargs)

    @property
    def ipa(self) -> str:
        return ipa.decode(self.key)

    @property
    def syllables(self) -> int:
        return ipa.syllable_count(self.key)

    @property
    def definition(self) -> str:
        label = self.pos.token
        if self.tag is not SenseTag.NONE:
            label = f"{label}, {self.tag.token}"
        return f"({label}) ({self.ipa}) {self.meaning}".rstrip()


@dataclass
class DictEntry:
    """A word or space-joined phrase with its rarity and ordered senses.

    Entries held by a frozen :class:`Lexicon` are frozen too: their senses
    become a tuple and attribute assignment raises :class:`FrozenLexiconError`.
    """

    token: str = ""
    rarity: Rarity = Rarity.COMMON
    senses: Sequence[DictSense] = field(default_factory=list)
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.token = " ".join(str(self.token or "").split())

    def __setattr__(self, name: str, value) -> None:
        if getattr(self, "_frozen", False):
            raise FrozenLexiconError(f"entry {self.token!r} is frozen; copy() it before modifying")
        super().__setattr__(name, value)

    @property
    def is_phrase(self) -> bool:
        return " " in self.token

    @property
    def is_empty(self) -> bool:
        return not self.token

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def keys(self) -> List[bytes]:
        return [sense.key for sense in self.senses]

    @property
    def parts_of_speech(self) -> List[PartOfSpeech]:
        return [sense.pos for sense in self.senses]

    def add_sense(self, sense: DictSense) -> None:
        if self._frozen:
            raise FrozenLexiconError(f"entry {self.token!r} is frozen; copy() it before modifying")
        self.senses.append(sense)

    def freeze(self) -> None:
        if self._frozen:
            return
        self.senses = tuple(self.senses)
        self._frozen = True

    def copy(self) -> "DictEntry":
        """Unfrozen copy with its own senses list."""

        return DictEntry(token=self.token, rarity=self.rarity, senses=list(self.senses))


class SenseAddress(NamedTuple):
    entry_index: int
    sense_position: int


def normalize_token(token: str) -> str:
    return " ".join(str(token or "").lower().split())


class Lexicon:
    """Insertion-ordered entry collection with a flattened sense table.

    Global sense indices are assigned in insertion order and never change
    unless :meth:`sort_entries` is called. Phrase entries are not stored with
    their own senses; only the phrase token is kept and the phrase is
    synthesised from its constituent words whenever it is requested.

    A rhyme index freezes the lexicon it is built from. Mutating a frozen
    lexicon raises :class:`FrozenLexiconError`; clone it instead.
    """

    def __init__(self, entries: Optional[Iterable[DictEntry]] = None) -> None:
        self._entries: List[DictEntry] = []
        self._token_map: Dict[str, int] = {}
        self._sense_map: List[SenseAddress] = []
        self._phrases: List[str] = []
        self._phrase_map: Dict[str, int] = {}
        self._frozen = False
        self._logger = get_logger(__name__).bind(component="lexicon")
        for entry in entries or ():
            self.add_entry(entry)

    # Introspection ---------------------------------------------------------
    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[DictEntry]:
        return iter(self._entries)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.has_entry(token)

    @property
    def entries(self) -> Tuple[DictEntry, ...]:
        return tuple(self._entries)

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def sense_count(self) -> int:
        return len(self._sense_map)

    @property
    def phrases(self) -> Tuple[str, ...]:
        return tuple(self._phrases)

    @property
    def phrase_count(self) -> int:
        return len(self._phrases)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        for entry in self._entries:
            entry.freeze()
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise FrozenLexiconError(
                "lexicon is frozen by a rhyme index; clone() it before modifying"
            )

    # Insertion -------------------------------------------------------------
    def add_entry(self, entry: DictEntry) -> bool:
        """Add ``entry`` unless its token is already present.

        Returns ``True`` when the entry (or phrase token) was stored. The first
        entry for a token wins; later duplicates are dropped silently.
        """

        self._check_mutable()
        if entry.is_empty:
            return False
        if entry.is_phrase:
            return self.add_phrase(entry.token)

        normalized = normalize_token(entry.token)
        if normalized in self._token_map:
            return False

        index = len(self._entries)
        self._entries.append(entry)
        self._token_map[normalized] = index
        self._sense_map.extend(
            SenseAddress(index, position) for position in range(len(entry.senses))
        )
        return True

    def add_phrase(self, phrase: str) -> bool:
        self._check_mutable()
        normalized = normalize_token(phrase)
        if " " not in normalized or normalized in self._phrase_map:
            return False
        self._phrase_map[normalized] = len(self._phrases)
        self._phrases.append(" ".join(str(phrase).split()))
        return True

    # Lookup ----------------------------------------------------------------
    def has_entry(self, token: str) -> bool:
        return normalize_token(token) in self._token_map

    def has_entry_index(self, index: int) -> bool:
        return 0 <= index < len(self._entries)

    def has_sense_index(self, index: int) -> bool:
        return 0 <= index < len(self._sense_map)

    def has_phrase(self, phrase: str) -> bool:
        return normalize_token(phrase) in self._phrase_map

    def get_entry(self, token: str) -> Optional[DictEntry]:
        """Case-insensitive lookup with on-demand phrase synthesis."""

        normalized = normalize_token(token)
        index = self._token_map.get(normalized)
        if index is not None:
            return self._entries[index]
        if " " in normalized:
            return self.synthesize_phrase(normalized)
        return None

    def get_entry_index(self, token: str) -> int:
        return self._token_map.get(normalize_token(token), -1)

    def get_entry_by_index(self, index: int) -> Optional[DictEntry]:
        return self._entries[index] if self.has_entry_index(index) else None

    def get_sense(self, index: int) -> Optional[DictSense]:
        if not self.has_sense_index(index):
            return None
        address = self._sense_map[index]
        return self._entries[address.entry_index].senses[address.sense_position]

    def get_sense_address(self, index: int) -> Optional[SenseAddress]:
        return self._sense_map[index] if self.has_sense_index(index) else None

    def get_owning_entry_index(self, index: int) -> int:
        return self._sense_map[index].entry_index if self.has_sense_index(index) else -1

    def get_sense_entry(self, index: int) -> Optional[DictEntry]:
        return self.get_entry_by_index(self.get_owning_entry_index(index))

    def get_phrase(self, index: int) -> Optional[DictEntry]:
        if not 0 <= index < len(self._phrases):
            return None
        return self.synthesize_phrase(self._phrases[index])

    def iter_senses(self) -> Iterator[Tuple[int, DictSense]]:
        """Yield ``(global_index, sense)`` in address order."""

        for index, address in enumerate(self._sense_map):
            yield index, self._entries[address.entry_index].senses[address.sense_position]

    # Phrases ---------------------------------------------------------------
    def synthesize_phrase(self, tokens: Union[str, Sequence[str]]) -> Optional[DictEntry]:
        """Build a transient phrase entry from its constituent words.

        The single sense joins each constituent's first pronunciation with the
        word-space code. Returns ``None`` when any constituent is unknown or its
        first pronunciation is empty.
        """

        words = tokens.split() if isinstance(tokens, str) else [t for t in tokens if t]
        if not words:
            return None

        constituents: List[DictEntry] = []
        for word in words:
            index = self._token_map.get(normalize_token(word))
            if index is None:
                return None
            entry = self._entries[index]
            if not entry.senses or not entry.senses[0].key:
                return None
            constituents.append(entry)

        key = ipa.join_words([entry.senses[0].key for entry in constituents])
        return DictEntry(
            token=" ".join(entry.token for entry in constituents),
            rarity=max((entry.rarity for entry in constituents), key=lambda r: r.value),
            senses=[DictSense(key=key, pos=PartOfSpeech.PHRASE)],
        )

    # Bulk transformations --------------------------------------------------
    def filter(self, predicate: Callable[[DictEntry], bool]) -> "Lexicon":
        """Return a new lexicon holding the entries accepted by ``predicate``."""

        result = Lexicon(entry.copy() for entry in self._entries if predicate(entry))
        for phrase in self._phrases:
            result.add_phrase(phrase)
        return result

    def clone(self) -> "Lexicon":
        """Return an unfrozen copy whose entries can be modified independently."""

        result = Lexicon(entry.copy() for entry in self._entries)
        for phrase in self._phrases:
            result.add_phrase(phrase)
        return result

    def append(self, other: "Lexicon") -> int:
        """Add every entry and phrase of ``other`` not already present."""

        added = sum(1 for entry in other if self.add_entry(entry))
        for phrase in other.phrases:
            self.add_phrase(phrase)
        return added

    def sort_entries(self) -> None:
        """Sort entries by token and reassign every entry and sense index.

        Any rhyme index built before the sort would address the wrong senses,
        which is why a frozen lexicon refuses to sort.
        """

        self._check_mutable()
        ordered = sorted(self._entries, key=lambda entry: entry.token.lower())
        self._entries = []
        self._token_map = {}
        self._sense_map = []
        for entry in ordered:
            self.add_entry(entry)
        self._logger.debug("Lexicon re-sorted", context={"entries": len(self._entries)})


__all__ = [
    "DictEntry",
    "DictSense",
    "FrozenLexiconError",
    "Lexicon",
    "SenseAddress",
    "normalize_token",
]

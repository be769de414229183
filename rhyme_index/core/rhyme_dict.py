"""Precomputed rhyme buckets over a lexicon snapshot and the rhyme query path.

Candidate ids are the lexicon's global sense indices ``[0, sense_count)``
followed by its stored phrases ``[sense_count, sense_count + phrase_count)``.
Every candidate with at least one vowel is filed under several derived keys:

``vowel_seq``       full vowel skeleton (perfect rhymes of single words)
``end_vowel``       vowel run nearest the end of the last word (phrase rhymes)
``last_vowel``      final vowel only (loose rhymes of single words)
``last_consonant``  final consonant cluster of the last word, if any
``phrase_edge``     final cluster of the first and of the last word (phrases)

Bucket values are packed ``uint32`` arrays. A built :class:`RhymeDict` is
read-only and freezes the lexicon it indexes, so any number of threads may
query it concurrently.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from . import ipa
from .lexicon import DictEntry, DictSense, Lexicon
from .search_params import RhymeSearchParams, RhymeType
from rhyme_index.utils.observability import get_logger

VOWEL_SEQ = "vowel_seq"
END_VOWEL = "end_vowel"
LAST_VOWEL = "last_vowel"
LAST_CONSONANT = "last_consonant"
PHRASE_EDGE = "phrase_edge"

BUCKET_MAPS: Tuple[str, ...] = (VOWEL_SEQ, END_VOWEL, LAST_VOWEL, LAST_CONSONANT, PHRASE_EDGE)

INDEX_DTYPE = np.dtype("<u4")
_EMPTY = np.empty(0, dtype=INDEX_DTYPE)
_EMPTY.setflags(write=False)

BucketMap = Dict[str, np.ndarray]

_logger = get_logger(__name__).bind(component="rhyme_dict")


def derive_bucket_keys(key: bytes) -> List[Tuple[str, bytes]]:
    """Return every ``(map name, bucket key)`` a pronunciation is filed under."""

    last = ipa.last_vowel(key)
    if last is None:
        return []

    segments = ipa.split_on_boundary(key)
    final_word = segments[-1] if segments else key

    derived: List[Tuple[str, bytes]] = [
        (VOWEL_SEQ, ipa.vowels_of(key)),
        (LAST_VOWEL, bytes([last])),
    ]
    run = ipa.end_vowel_run(final_word)
    if run:
        derived.append((END_VOWEL, run))
    coda = ipa.trailing_consonant_cluster(final_word)
    if coda:
        derived.append((LAST_CONSONANT, coda))
    if ipa.is_phrase_key(key):
        derived.append((PHRASE_EDGE, ipa.phrase_edge_key(key)))
    return derived


def pack_indices(values: Iterable[int]) -> np.ndarray:
    packed = np.fromiter(values, dtype=INDEX_DTYPE)
    packed.setflags(write=False)
    return packed


class RhymeDict:
    """Rhyme index over one frozen :class:`Lexicon`."""

    def __init__(
        self,
        lexicon: Optional[Lexicon] = None,
        buckets: Optional[Mapping[str, Mapping[str, np.ndarray]]] = None,
    ) -> None:
        self._lexicon = lexicon if lexicon is not None else Lexicon()
        self._lexicon.freeze()
        supplied = buckets or {}
        self._buckets: Dict[str, BucketMap] = {
            name: dict(supplied.get(name, {})) for name in BUCKET_MAPS
        }
        self._phrase_entries: Tuple[Optional[DictEntry], ...] = tuple(
            self._lexicon.get_phrase(position)
            for position in range(self._lexicon.phrase_count)
        )
        for phrase in self._phrase_entries:
            if phrase is not None:
                phrase.freeze()

    # Construction ----------------------------------------------------------
    @classmethod
    def build(cls, lexicon: Lexicon) -> "RhymeDict":
        """Index every sense and stored phrase of ``lexicon`` in one pass."""

        staging: Dict[str, Dict[str, List[int]]] = {name: {} for name in BUCKET_MAPS}

        def _file(candidate_id: int, key: bytes) -> None:
            for name, bucket_key in derive_bucket_keys(key):
                staging[name].setdefault(ipa.key_code(bucket_key), []).append(candidate_id)

        for index, sense in lexicon.iter_senses():
            _file(index, sense.key)

        offset = lexicon.sense_count
        for position in range(lexicon.phrase_count):
            phrase = lexicon.get_phrase(position)
            if phrase is None or not phrase.senses:
                continue
            _file(offset + position, phrase.senses[0].key)

        buckets = {
            name: {code: pack_indices(ids) for code, ids in staged.items()}
            for name, staged in staging.items()
        }
        rhyme_dict = cls(lexicon, buckets)
        _logger.info("Rhyme index built", context=rhyme_dict.stats())
        return rhyme_dict

    # Introspection ---------------------------------------------------------
    @property
    def lexicon(self) -> Lexicon:
        return self._lexicon

    @property
    def buckets(self) -> Mapping[str, Mapping[str, np.ndarray]]:
        return MappingProxyType(
            {name: MappingProxyType(mapping) for name, mapping in self._buckets.items()}
        )

    @property
    def candidate_count(self) -> int:
        return self._lexicon.sense_count + self._lexicon.phrase_count

    @property
    def is_empty(self) -> bool:
        return self.candidate_count == 0

    def stats(self) -> Dict[str, int]:
        counts = {f"{name}_buckets": len(mapping) for name, mapping in self._buckets.items()}
        counts.update(
            entries=self._lexicon.entry_count,
            senses=self._lexicon.sense_count,
            phrases=self._lexicon.phrase_count,
        )
        return counts

    def bucket_contents(self) -> Dict[str, Dict[str, Tuple[int, ...]]]:
        """Plain-Python copy of every bucket, mainly for comparisons."""

        return {
            name: {code: tuple(int(v) for v in values) for code, values in mapping.items()}
            for name, mapping in self._buckets.items()
        }

    def bucket(self, name: str, key: bytes) -> np.ndarray:
        """Indices filed under ``key`` in map ``name``; empty when absent."""

        found = self._buckets.get(name, {}).get(ipa.key_code(key))
        return _EMPTY if found is None else found

    # Candidate resolution --------------------------------------------------
    def resolve_candidate(
        self, candidate_id: int
    ) -> Optional[Tuple[Tuple[str, int], DictEntry, DictSense]]:
        """Map a candidate id to ``(identity, entry, sense)``."""

        lexicon = self._lexicon
        if lexicon.has_sense_index(candidate_id):
            entry_index = lexicon.get_owning_entry_index(candidate_id)
            entry = lexicon.get_entry_by_index(entry_index)
            sense = lexicon.get_sense(candidate_id)
            if entry is None or sense is None:
                return None
            return ("entry", entry_index), entry, sense

        position = candidate_id - lexicon.sense_count
        if 0 <= position < len(self._phrase_entries):
            phrase = self._phrase_entries[position]
            if phrase is None or not phrase.senses:
                return None
            return ("phrase", position), phrase, phrase.senses[0]
        return None

    # Queries ---------------------------------------------------------------
    def rhyme_candidates(
        self,
        key: bytes,
        rhyme_type: RhymeType = RhymeType.PERFECT,
    ) -> np.ndarray:
        """Candidate ids rhyming with pronunciation ``key``.

        Order follows the primary bucket. Keys without vowels, and keys whose
        primary bucket does not exist, produce an empty array.
        """

        last = ipa.last_vowel(key)
        if last is None:
            return _EMPTY

        perfect = rhyme_type is RhymeType.PERFECT
        if ipa.is_phrase_key(key):
            segments = ipa.split_on_boundary(key)
            primary = self.bucket(END_VOWEL, ipa.end_vowel_run(segments[-1]))
            constraint_map, constraint_key = PHRASE_EDGE, ipa.phrase_edge_key(key)
        elif perfect:
            primary = self.bucket(VOWEL_SEQ, ipa.vowels_of(key))
            constraint_map, constraint_key = LAST_CONSONANT, ipa.trailing_consonant_cluster(key)
        else:
            return self.bucket(LAST_VOWEL, bytes([last]))

        if not perfect or primary.size == 0 or not constraint_key:
            return primary

        constraint = self._buckets[constraint_map].get(ipa.key_code(constraint_key))
        if constraint is None:
            return primary
        return primary[np.isin(primary, constraint, assume_unique=True)]

    def get_rhymes(self, params: RhymeSearchParams) -> List[DictEntry]:
        """Entries rhyming with ``params.query`` after filtering.

        Candidates from every sense of the query are unioned, filtered and
        collapsed to their owning entries in first-seen order. Unknown queries
        return an empty list.
        """

        entry = self._lexicon.get_entry(params.query) if params.query.strip() else None
        if entry is None:
            return []

        union: Dict[int, None] = {}
        for sense in entry.senses:
            for candidate_id in self.rhyme_candidates(sense.key, params.rhyme_type).tolist():
                union.setdefault(candidate_id, None)

        results: List[DictEntry] = []
        seen = set()
        for candidate_id in union:
            resolved = self.resolve_candidate(candidate_id)
            if resolved is None:
                continue
            identity, candidate, sense = resolved
            if identity in seen or not self._accepts(candidate, sense, params):
                continue
            seen.add(identity)
            results.append(candidate)
        return results

    @staticmethod
    def _accepts(entry: DictEntry, sense: DictSense, params: RhymeSearchParams) -> bool:
        if params.syllables > 0 and ipa.syllable_count(sense.key) != params.syllables:
            return False
        if params.parts_of_speech and sense.pos not in params.parts_of_speech:
            return False
        if params.registers and (
            entry.rarity not in params.registers and sense.tag not in params.registers
        ):
            return False
        return True


__all__ = [
    "BUCKET_MAPS",
    "END_VOWEL",
    "INDEX_DTYPE",
    "LAST_CONSONANT",
    "LAST_VOWEL",
    "PHRASE_EDGE",
    "RhymeDict",
    "VOWEL_SEQ",
    "derive_bucket_keys",
    "pack_indices",
]

"""Core phoneme codec, lexicon store and rhyme index for rhyme_index."""

from . import ipa
from .lexicon import DictEntry, DictSense, FrozenLexiconError, Lexicon
from .rhyme_dict import BUCKET_MAPS, RhymeDict
from .search_params import EntryType, RhymeSearchParams, RhymeType, SpeechType
from .snapshot import FORMAT_VERSION, SnapshotFormatError, dumps, loads
from .sources import (
    CMUDictLoader,
    CommonWordsSource,
    EntrySource,
    PhraseSource,
    WiktionarySource,
)
from .tags import PartOfSpeech, Rarity, SenseTag

__all__ = [
    "ipa",
    "BUCKET_MAPS",
    "CMUDictLoader",
    "CommonWordsSource",
    "DictEntry",
    "DictSense",
    "EntrySource",
    "EntryType",
    "FORMAT_VERSION",
    "FrozenLexiconError",
    "Lexicon",
    "PartOfSpeech",
    "PhraseSource",
    "Rarity",
    "RhymeDict",
    "RhymeSearchParams",
    "RhymeType",
    "SenseTag",
    "SnapshotFormatError",
    "SpeechType",
    "WiktionarySource",
    "dumps",
    "loads",
]

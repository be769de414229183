"""Ingestion sources that turn external word lists into :class:`Lexicon` objects.

Every source exposes ``name`` and ``load(progress=None, should_stop=None)``.
``progress`` receives short human readable strings; ``should_stop`` is polled
while reading and a source that is asked to stop returns what it has so far.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from . import ipa
from .lexicon import DictEntry, DictSense, Lexicon, normalize_token
from .tags import PartOfSpeech, Rarity, SenseTag
from rhyme_index.utils.observability import get_logger

ProgressCallback = Callable[[str], None]
StopPredicate = Callable[[], bool]

STATUS_INTERVAL = 5000
COMMON_RANK_LIMIT = 15000
UNCOMMON_RANK_LIMIT = 40000

ARPABET_TO_IPA: Dict[str, str] = {
    "AA": "ɑ",
    "AE": "æ",
    "AH": "ɐ",
    "AO": "ɔ",
    "AW": "aʊ",
    "AY": "aɪ",
    "EH": "ɛ",
    "ER": "ɝ",
    "EY": "eɪ",
    "IH": "ɪ",
    "IY": "i",
    "OW": "oʊ",
    "OY": "ɔɪ",
    "UH": "ʊ",
    "UW": "u",
    "P": "p",
    "B": "b",
    "T": "t",
    "D": "d",
    "K": "k",
    "G": "ɡ",
    "CH": "tʃ",
    "JH": "dʒ",
    "F": "f",
    "V": "v",
    "TH": "θ",
    "DH": "ð",
    "S": "s",
    "Z": "z",
    "SH": "ʃ",
    "ZH": "ʒ",
    "HH": "h",
    "M": "m",
    "N": "n",
    "NG": "ŋ",
    "L": "l",
    "R": "ɹ",
    "Y": "j",
    "W": "w",
}

_STRESS_MARKS = {"1": ipa.REVERSE_MAP[ipa.PRIMARY_STRESS], "2": ipa.REVERSE_MAP[ipa.SECONDARY_STRESS]}

_WORD_VARIANT_PATTERN = re.compile(r"\(\d+\)$")
_ARPABET_PATTERN = re.compile(r"^([A-Z]+)([0-2]?)$")
_PHRASE_PUNCTUATION = re.compile(r"[\"?!():\[\]]")

_logger = get_logger(__name__).bind(component="sources")


def _noop_progress(message: str) -> None:
    return None


def _never_stop() -> bool:
    return False


def _strip_variant(word: str) -> str:
    return _WORD_VARIANT_PATTERN.sub("", word).lower()


def _read_lines(path: Path) -> Iterator[str]:
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            yield line.rstrip("\n")


def arpabet_to_ipa(phones: Iterable[str]) -> str:
    """Convert ARPAbet phones to IPA, turning stress digits into stress marks."""

    pieces: List[str] = []
    for phone in phones:
        match = _ARPABET_PATTERN.match(phone.strip().upper())
        if match is None:
            continue
        base, stress = match.groups()
        symbol = ARPABET_TO_IPA.get(base)
        if symbol is None:
            _logger.warning("Unknown ARPAbet phone", context={"phone": phone})
            continue
        pieces.append(_STRESS_MARKS.get(stress, ""))
        pieces.append(symbol)
    return "".join(pieces)


# CMU pronouncing dictionary -------------------------------------------------
class CMUDictLoader:
    """Lazy loader for a CMU-style pronunciation table.

    Alternate pronunciations (``WORD(1)``) become additional senses of the
    same entry. A missing or unreadable file yields an empty lexicon.
    """

    name = "cmudict"

    def __init__(self, dict_path: Optional[Path | str] = None) -> None:
        if dict_path is not None:
            base_path = Path(dict_path)
        else:
            module_path = Path(__file__).resolve()
            candidates = [
                module_path.with_name("cmudict.txt"),
                module_path.parents[1] / "cmudict.txt",
                module_path.parents[2] / "source_dicts" / "cmudict.txt",
            ]
            base_path = candidates[0]
            for candidate in candidates[1:]:
                try:
                    if candidate.exists():
                        base_path = candidate
                        break
                except OSError:
                    continue
        self.dict_path: Path = base_path
        self._pronunciations: Dict[str, Tuple[Tuple[str, ...], ...]] = {}
        self._loaded: bool = False

    def _ensure_loaded(self, should_stop: StopPredicate = _never_stop) -> None:
        if self._loaded:
            return

        if not self.dict_path.exists():
            _logger.warning("CMU dictionary not found", context={"path": str(self.dict_path)})
            return

        pronunciations: Dict[str, List[Tuple[str, ...]]] = {}
        try:
            for line in _read_lines(self.dict_path):
                if should_stop():
                    return
                entry = line.strip()
                if not entry or entry.startswith(";;;"):
                    continue

                parts = entry.split()
                if len(parts) < 2:
                    continue

                raw_word, *phones = parts
                word = _strip_variant(raw_word)
                if not word:
                    continue
                pronunciations.setdefault(word, []).append(tuple(phones))
        except (OSError, UnicodeDecodeError) as exc:
            _logger.warning(
                "CMU dictionary unreadable",
                context={"path": str(self.dict_path), "error": str(exc)},
            )
            return

        self._pronunciations = {
            word: tuple(entries) for word, entries in pronunciations.items()
        }
        self._loaded = True

    def get_pronunciations(self, word: str) -> List[List[str]]:
        self._ensure_loaded()
        stored = self._pronunciations.get(word.lower(), ())
        return [list(entry) for entry in stored]

    def get_ipa(self, word: str) -> List[str]:
        return [arpabet_to_ipa(phones) for phones in self.get_pronunciations(word)]

    def load(
        self,
        progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopPredicate] = None,
    ) -> Lexicon:
        report = progress or _noop_progress
        report("Building CMU...")
        self._ensure_loaded(should_stop or _never_stop)

        lexicon = Lexicon()
        for word, variants in self._pronunciations.items():
            senses = [DictSense.from_ipa(arpabet_to_ipa(phones)) for phones in variants]
            lexicon.add_entry(DictEntry(token=word, senses=senses))

        report(f"Finished CMU ({lexicon.entry_count} words).")
        return lexicon


# Wiktionary JSONL -----------------------------------------------------------
def _first_usable_ipa(sounds: Sequence[object], existing: Sequence[bytes]) -> str:
    for item in sounds:
        if not isinstance(item, dict) or "ipa" not in item:
            continue
        candidate = str(item.get("ipa") or "")
        trimmed = ipa.strip_brackets(candidate)
        if not trimmed:
            continue
        # affix or fragment transcriptions
        if trimmed.startswith("-") or trimmed.endswith("-"):
            continue
        if ipa.encode(trimmed) in existing:
            continue
        return trimmed
    return ""


def parse_wiktionary_line(line: str, staged: Dict[str, DictEntry]) -> Optional[DictEntry]:
    """Fold one Wiktionary JSONL record into ``staged``.

    ``staged`` maps normalised tokens to entries under construction. A record
    for a token that is already staged contributes a new sense when it brings
    a new part of speech. Returns the touched entry, or ``None`` when the
    record is malformed or filtered out.
    """

    try:
        data = json.loads(line.strip())
    except json.JSONDecodeError:
        _logger.error("Wiktionary JSON parse failed", context={"line": line[:80]})
        return None
    if not isinstance(data, dict):
        return None

    token = " ".join(str(data.get("word") or "").split())
    if not token:
        return None

    normalized = normalize_token(token)
    existing = staged.get(normalized)
    entry = existing if existing is not None else DictEntry(token=token)

    sounds = data.get("sounds") or []
    if not sounds:
        return None

    wiki_pos = data.get("pos")
    if wiki_pos is None:
        return None
    pos = PartOfSpeech.from_wiki_pos(wiki_pos)
    if pos in entry.parts_of_speech:
        return None

    tag = SenseTag.NONE
    meaning = ""
    senses = data.get("senses") or []
    if senses and isinstance(senses[0], dict):
        first = senses[0]
        wiki_tags = [str(wiki_tag) for wiki_tag in first.get("tags") or []]
        if existing is None:
            entry.rarity = Rarity.from_wiki_tags(wiki_tags)
        tag = SenseTag.from_wiki_tags(wiki_tags)

        definition = first.get("definition") or first.get("glosses")
        if isinstance(definition, list) and definition:
            meaning = str(definition[0])
        elif isinstance(definition, str):
            meaning = definition

    ipa_text = _first_usable_ipa(sounds, entry.keys)
    entry.add_sense(DictSense.from_ipa(ipa_text, pos=pos, tag=tag, meaning=meaning))
    if existing is None:
        staged[normalized] = entry
    return entry


def load_wiktionary(
    path: Path | str,
    progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopPredicate] = None,
) -> Lexicon:
    report = progress or _noop_progress
    stop = should_stop or _never_stop
    report("Building Wiktionary...")

    staged: Dict[str, DictEntry] = {}
    lines_read = 0
    for line in _read_lines(Path(path)):
        if stop():
            break
        lines_read += 1
        if line.strip():
            parse_wiktionary_line(line, staged)
        if lines_read % STATUS_INTERVAL == 0:
            report(f"Processed {lines_read} lines ({len(staged)} words)...")

    lexicon = Lexicon(staged.values())
    report(f"Finished! ({lines_read} lines, {lexicon.entry_count} words).")
    return lexicon


# Common word frequency lists ------------------------------------------------
def rarity_for_rank(rank: int) -> Rarity:
    if rank < COMMON_RANK_LIMIT:
        return Rarity.COMMON
    if rank < UNCOMMON_RANK_LIMIT:
        return Rarity.UNCOMMON
    return Rarity.RARE


def load_common_words(
    path: Path | str,
    progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopPredicate] = None,
) -> Lexicon:
    """Ranked word list (most frequent first) to sense-less entries."""

    report = progress or _noop_progress
    stop = should_stop or _never_stop
    report("Building common words...")

    lexicon = Lexicon()
    rank = 0
    for line in _read_lines(Path(path)):
        if stop():
            break
        word = line.strip().lower()
        if not word or word.startswith("#"):
            continue
        if lexicon.add_entry(DictEntry(token=word, rarity=rarity_for_rank(rank))):
            rank += 1

    report(f"Finished common words ({lexicon.entry_count} words).")
    return lexicon


# Phrase corpus --------------------------------------------------------------
def clean_phrase_word(word: str) -> str:
    cleaned = _PHRASE_PUNCTUATION.sub("", word).strip()
    if cleaned.startswith("'"):
        cleaned = cleaned[1:]
    if cleaned.endswith("in'"):
        cleaned = cleaned[:-3] + "ing"
    if cleaned.endswith("'s"):
        cleaned = cleaned[:-2]
    return cleaned


def load_phrases(
    path: Path | str,
    max_words: int = 4,
    max_phrases: int = 100000,
    progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopPredicate] = None,
) -> List[str]:
    """Short multi-word phrases from comma separated lyric lines.

    Bracketed annotations such as ``[Chorus]`` are skipped, as are fields of a
    single word or more than ``max_words`` words.
    """

    report = progress or _noop_progress
    stop = should_stop or _never_stop
    report("Building Phrase Dict...")

    phrases: List[str] = []
    seen = set()
    for line in _read_lines(Path(path)):
        if stop() or len(phrases) >= max_phrases:
            break
        for field in line.split(","):
            if field.strip().startswith("["):
                continue
            words = field.split()
            if len(words) < 2 or len(words) > max_words:
                continue
            cleaned = [clean_phrase_word(word) for word in words]
            phrase = " ".join(word for word in cleaned if word)
            if " " not in phrase or phrase.lower() in seen:
                continue
            seen.add(phrase.lower())
            phrases.append(phrase)
            if len(phrases) >= max_phrases:
                break
        if phrases and len(phrases) % STATUS_INTERVAL == 0:
            report(f"Added {len(phrases)} phrases...")

    report(f"Finished Parsing Phrase Dict ({len(phrases)} phrases).")
    return phrases


# Source adapters ------------------------------------------------------------
class WiktionarySource:
    name = "wiktionary"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self, progress=None, should_stop=None) -> Lexicon:
        return load_wiktionary(self.path, progress, should_stop)


class CommonWordsSource:
    name = "common_words"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self, progress=None, should_stop=None) -> Lexicon:
        return load_common_words(self.path, progress, should_stop)


class PhraseSource:
    name = "phrases"

    def __init__(self, path: Path | str, max_words: int = 4, max_phrases: int = 100000) -> None:
        self.path = Path(path)
        self.max_words = max_words
        self.max_phrases = max_phrases

    def load(self, progress=None, should_stop=None) -> Lexicon:
        lexicon = Lexicon()
        for phrase in load_phrases(
            self.path, self.max_words, self.max_phrases, progress, should_stop
        ):
            lexicon.add_phrase(phrase)
        return lexicon


class EntrySource:
    """Already-normalised entries supplied in memory."""

    def __init__(self, entries: Iterable[DictEntry], name: str = "entries") -> None:
        self.name = name
        self._entries = list(entries)

    def load(self, progress=None, should_stop=None) -> Lexicon:
        return Lexicon(self._entries)


__all__ = [
    "ARPABET_TO_IPA",
    "CMUDictLoader",
    "CommonWordsSource",
    "EntrySource",
    "PhraseSource",
    "WiktionarySource",
    "arpabet_to_ipa",
    "clean_phrase_word",
    "load_common_words",
    "load_phrases",
    "load_wiktionary",
    "parse_wiktionary_line",
    "rarity_for_rank",
]

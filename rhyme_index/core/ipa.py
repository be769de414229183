"""IPA phoneme codec: IPA text <-> compact byte keys.

Each matched IPA symbol or attested cluster (diphthong, affricate, onset or
coda cluster) becomes one byte. Code ranges are fixed so a byte can be
classified without re-parsing text:

* ``0-66``    vowels (monophthongs, diphthongs, triphthongs)
* ``67-193``  consonants (singles, clusters, affricates)
* ``194-197`` boundaries (primary stress, secondary stress, syllable break,
  word space); any unassigned code is treated as a boundary too.

Encoding is lossy on purpose: length marks, tie bars, diacritics and tone
letters are consumed silently, and characters the table does not know are
skipped with a warning.
"""

from __future__ import annotations

import enum
from typing import Dict, List, Optional, Tuple

from rhyme_index.utils.observability import get_logger

_logger = get_logger(__name__).bind(component="ipa_codec")

MAX_CLUSTER_LENGTH = 3

VOWEL_RANGE = range(0, 67)
CONSONANT_RANGE = range(67, 194)

PRIMARY_STRESS = 194
SECONDARY_STRESS = 195
SYLLABLE_BREAK = 196
WORD_SPACE = 197


class PhonemeClass(enum.Enum):
    VOWEL = "vowel"
    CONSONANT = "consonant"
    BOUNDARY = "boundary"


# Only symbols attested in the most widely spoken languages are mapped; the
# ranges above must stay in sync with the codes assigned here.
CLUSTER_MAP: Dict[str, int] = {
    # Vowel monophthongs + rhotics
    "i": 0, "iː": 1, "ɪ": 2, "e": 3, "ɛ": 4, "æ": 5, "a": 6, "ɑ": 7, "ɑː": 8,
    "ɒ": 9, "o": 10, "ɔ": 11, "ɔː": 12, "u": 13, "ʊ": 14, "uː": 15, "ə": 16,
    "ʌ": 17, "ɝ": 18, "ɚ": 19, "y": 20, "ø": 21, "œ": 22, "ɜ": 23, "ɜː": 24,
    "ɨ": 25, "ɐ": 26, "ʉ": 27, "ɵ": 28, "ɘ": 29, "ã": 30, "õ": 31,
    # Diphthongs
    "eɪ": 32, "aɪ": 33, "ɔɪ": 34, "oʊ": 35, "əʊ": 36, "aʊ": 37,
    "ɪə": 38, "eə": 39, "ʊə": 40, "ai": 41, "ei": 42, "oi": 43, "au": 44,
    "eu": 45, "ou": 46, "ie": 47, "uo": 48, "ui": 49, "iu": 50, "oa": 51,
    "ja": 52, "ju": 53, "wa": 54, "wo": 55, "ɔu": 56, "ɑɪ": 57,
    # Triphthongs
    "eɪə": 58, "aɪə": 59, "ɔɪə": 60, "iau": 61, "uai": 62, "iao": 63, "iou": 64,
    "aʊə": 65, "oʊə": 66,
    # Pulmonic consonants
    "p": 67, "b": 68, "t": 69, "d": 70, "ʈ": 71, "ɖ": 72,
    "k": 73, "ɡ": 74, "q": 75, "ʔ": 76,
    "m": 77, "n": 78, "ɲ": 79, "ŋ": 80,
    "f": 81, "v": 82, "θ": 83, "ð": 84, "s": 85, "z": 86,
    "ʃ": 87, "ʒ": 88, "x": 89, "ɣ": 90, "h": 91, "ɦ": 92,
    "j": 93, "w": 94, "ɹ": 95, "ɻ": 96,
    "l": 97, "ʎ": 98, "r": 99, "ɫ": 100, "ɾ": 101, "ʍ": 102, "χ": 103,
    # Onset clusters
    "pr": 104, "pl": 105, "br": 106, "bl": 107, "tr": 108, "dr": 109,
    "kr": 110, "kl": 111, "gr": 112, "gl": 113, "fr": 114, "fl": 115,
    "sp": 116, "st": 117, "sk": 118, "sm": 119, "sn": 120, "sw": 121,
    "spl": 122, "spr": 123, "str": 124, "skr": 125,
    "θr": 126, "ʃr": 127, "tw": 128, "dw": 129,
    "ʈr": 130, "ɖr": 131, "ʃt": 132, "ʒr": 133, "ʃk": 134, "ʃp": 135,
    "ʧr": 136, "dʒr": 137, "ts": 138, "dz": 139, "tɕ": 140, "dʑ": 141,
    "tɬ": 142, "dɮ": 143,
    "kw": 144, "gw": 145, "θw": 146,
    # Coda clusters and affricates
    "nd": 147, "nds": 148, "nt": 149, "nts": 150, "ns": 151, "nz": 152,
    "ld": 153, "lds": 154, "lk": 155, "lks": 156, "lp": 157, "lps": 158,
    "lf": 159, "lfs": 160, "lm": 161, "lms": 162, "rd": 163, "rds": 164,
    "rk": 165, "rks": 166, "rt": 167, "rts": 168, "rn": 169, "rm": 170,
    "mp": 171, "mps": 172, "mb": 173, "mbs": 174, "ŋk": 175, "ŋks": 176,
    "ŋg": 177, "ŋgs": 178, "st̚": 179, "sts": 180, "sp̚": 181, "sps": 182,
    "sk̚": 183, "sks": 184, "ks": 185, "gz": 186, "dʒ": 187, "tʃ": 188,
    "θs": 189, "ɲs": 190, "ŋs": 191,
    "lv": 192, "ntr": 193,
    # Boundaries
    "ˈ": PRIMARY_STRESS,
    "ˌ": SECONDARY_STRESS,
    ".": SYLLABLE_BREAK,
    " ": WORD_SPACE,
}

# Suprasegmentals, diacritics and transcription punctuation that carry no
# rhyme information. They are consumed without emitting a code.
IGNORED_MARKS = frozenset(
    [
        "ː", "͡", "(", ")", "̯", "̩", "ʴ", "̠", "̃", "˨", "˩", "̚",
        "/", "[", "]", "ʰ", "̥", "˭", "̪", "˧", "̈", "ᵊ", "-", "˦", "c",
        "ǁ", "‿", "ʱ", "ʙ", "ʁ", "ç", "͜", "˞", "ˑ", "|", "̆", "ɶ", "ɳ", "ʷ",
        "ɭ", "̰", "ǀ", "ʲ", "~", "ˤ", "̙", "̝", "ɬ", "˥", "ä", "ɸ", "ā", "ɽ",
        "ĭ", "ĩ", "ʼ", "ă", "ŏ", "ɱ", "ǐ", "ʋ", "̞", "ɟ", "ʏ", "⁻", "³", "͆",
        "ɤ", "̂", "̊", "β", "ˀ", "¹", "²", "⁴", "ˠ", "ü", "ɯ", "ɕ", "ʳ",
    ]
)

REVERSE_MAP: Dict[int, str] = {code: symbol for symbol, code in CLUSTER_MAP.items()}


def _classify_code(code: int) -> PhonemeClass:
    if code in VOWEL_RANGE:
        return PhonemeClass.VOWEL
    if code in CONSONANT_RANGE:
        return PhonemeClass.CONSONANT
    return PhonemeClass.BOUNDARY


_CLASS_TABLE: Tuple[PhonemeClass, ...] = tuple(_classify_code(code) for code in range(256))
_SPACE_BYTES = bytes([WORD_SPACE])


def classify(code: int) -> PhonemeClass:
    """Return the phoneme class of ``code``; values outside 0-255 are boundaries."""

    if 0 <= code < 256:
        return _CLASS_TABLE[code]
    return PhonemeClass.BOUNDARY


def is_vowel(code: int) -> bool:
    return classify(code) is PhonemeClass.VOWEL


def is_consonant(code: int) -> bool:
    return classify(code) is PhonemeClass.CONSONANT


def encode(ipa: str) -> bytes:
    """Tokenise ``ipa`` into a pronunciation key.

    Among all ways of covering the text with table symbols, the one that
    leaves the fewest characters unmatched wins, then the one with the fewest
    symbols, then the one taking the longest symbol first. Plain greedy
    matching would read ``aiː`` as ``ai`` plus a dropped length mark instead
    of ``a`` + ``iː``. Any concatenation of table symbols therefore decodes
    back to itself. Characters are only skipped where no symbol starts.
    """

    if not ipa:
        return b""

    length = len(ipa)
    # best[i] = (skipped, symbols, step) for the suffix starting at i
    best: List[Tuple[int, int, int]] = [(0, 0, 0)] * (length + 1)
    for index in range(length - 1, -1, -1):
        choice: Optional[Tuple[int, int, int]] = None
        for size in range(min(MAX_CLUSTER_LENGTH, length - index), 0, -1):
            if ipa[index : index + size] not in CLUSTER_MAP:
                continue
            skipped, symbols, _ = best[index + size]
            candidate = (skipped, symbols + 1, size)
            if choice is None or candidate[:2] < choice[:2]:
                choice = candidate
        if choice is None:
            skipped, symbols, _ = best[index + 1]
            choice = (skipped + 1, symbols, -1)
        best[index] = choice

    codes: List[int] = []
    index = 0
    while index < length:
        step = best[index][2]
        if step > 0:
            codes.append(CLUSTER_MAP[ipa[index : index + step]])
            index += step
            continue
        symbol = ipa[index]
        if symbol not in IGNORED_MARKS:
            _logger.warning(
                "Unknown IPA symbol skipped",
                context={"symbol": symbol, "position": index, "ipa": ipa},
            )
        index += 1

    return bytes(codes)


def decode(key: bytes) -> str:
    """Best-effort IPA text for ``key``; unmapped codes are dropped."""

    return "".join(REVERSE_MAP.get(code, "") for code in key)


def vowels_of(key: bytes) -> bytes:
    return bytes(code for code in key if _CLASS_TABLE[code] is PhonemeClass.VOWEL)


def consonants_of(key: bytes) -> bytes:
    return bytes(code for code in key if _CLASS_TABLE[code] is PhonemeClass.CONSONANT)


def syllable_count(key: bytes) -> int:
    return sum(1 for code in key if _CLASS_TABLE[code] is PhonemeClass.VOWEL)


def last_vowel(key: bytes) -> Optional[int]:
    for code in reversed(key):
        if _CLASS_TABLE[code] is PhonemeClass.VOWEL:
            return code
    return None


def trailing_consonant_cluster(key: bytes) -> bytes:
    """Maximal run of consonant codes ending at the final byte of ``key``."""

    start = len(key)
    while start > 0 and _CLASS_TABLE[key[start - 1]] is PhonemeClass.CONSONANT:
        start -= 1
    return key[start:]


def end_vowel_run(key: bytes) -> bytes:
    """Run of vowel codes closest to the end of ``key``.

    Trailing consonants and boundary marks are skipped first, so any key with a
    vowel yields a non-empty run.
    """

    end = len(key)
    while end > 0 and _CLASS_TABLE[key[end - 1]] is not PhonemeClass.VOWEL:
        end -= 1
    start = end
    while start > 0 and _CLASS_TABLE[key[start - 1]] is PhonemeClass.VOWEL:
        start -= 1
    return key[start:end]


def is_phrase_key(key: bytes) -> bool:
    return WORD_SPACE in key


def split_on_boundary(key: bytes) -> List[bytes]:
    """Split a phrase key into per-word keys, dropping empty segments."""

    return [segment for segment in key.split(_SPACE_BYTES) if segment]


def join_words(keys: List[bytes]) -> bytes:
    """Join per-word keys into a phrase key separated by the word-space code."""

    return _SPACE_BYTES.join(key for key in keys if key)


def phrase_edge_key(key: bytes) -> bytes:
    """Coda of the first word and coda of the last word, space separated."""

    segments = split_on_boundary(key)
    if not segments:
        return b""
    return (
        trailing_consonant_cluster(segments[0])
        + _SPACE_BYTES
        + trailing_consonant_cluster(segments[-1])
    )


def key_code(key: bytes) -> str:
    """String form of a key used as a bucket name (one character per byte)."""

    return bytes(key).decode("latin-1")


def code_key(code: str) -> bytes:
    return code.encode("latin-1")


def strip_brackets(ipa: str) -> str:
    """Drop the ``/.../`` or ``[...]`` delimiters around a transcription."""

    text = (ipa or "").strip()
    if len(text) > 2 and text[0] in "/[" and text[-1] in "/]":
        return text[1:-1]
    return text


def normalize_ipa(ipa: str) -> str:
    """Canonical IPA for ``ipa`` as the codec sees it."""

    return decode(encode(strip_brackets(ipa)))


__all__ = [
    "CLUSTER_MAP",
    "IGNORED_MARKS",
    "MAX_CLUSTER_LENGTH",
    "PRIMARY_STRESS",
    "SECONDARY_STRESS",
    "SYLLABLE_BREAK",
    "WORD_SPACE",
    "PhonemeClass",
    "classify",
    "code_key",
    "consonants_of",
    "decode",
    "encode",
    "end_vowel_run",
    "is_consonant",
    "is_phrase_key",
    "is_vowel",
    "join_words",
    "key_code",
    "last_vowel",
    "normalize_ipa",
    "phrase_edge_key",
    "split_on_boundary",
    "strip_brackets",
    "syllable_count",
    "trailing_consonant_cluster",
    "vowels_of",
]

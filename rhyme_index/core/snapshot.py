"""Binary snapshot format for a built :class:`RhymeDict`.

Layout (little endian)::

    magic "RHIX" | version u16
    entry count u32, then per entry:
        token str | rarity u8 | sense count u16
        per sense: key bytes | pos u8 | tag u8 | meaning str
    phrase count u32, then one str per phrase token
    map count u8, then per map:
        name str | bucket count u32
        per bucket: key bytes | index count u32 | index count * u32

``str`` is a u32 length followed by UTF-8; ``bytes`` is a u16 length followed
by raw codec bytes.
"""

from __future__ import annotations

import struct
from typing import Dict, List, Tuple

import numpy as np

from . import ipa
from .lexicon import DictEntry, DictSense, Lexicon
from .rhyme_dict import BUCKET_MAPS, INDEX_DTYPE, RhymeDict
from .tags import PartOfSpeech, Rarity, SenseTag
from rhyme_index.utils.observability import get_logger

MAGIC = b"RHIX"
FORMAT_VERSION = 1

_HEADER = struct.Struct("<4sH")
_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")

_logger = get_logger(__name__).bind(component="snapshot")


class SnapshotFormatError(ValueError):
    """Raised when a snapshot blob cannot be decoded faithfully."""


class _Writer:
    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def pack(self, fmt: struct.Struct, *values) -> None:
        self._chunks.append(fmt.pack(*values))

    def u8(self, value: int) -> None:
        self.pack(_U8, value)

    def u16(self, value: int) -> None:
        self.pack(_U16, value)

    def u32(self, value: int) -> None:
        self.pack(_U32, value)

    def raw(self, value: bytes) -> None:
        self.u16(len(value))
        self._chunks.append(bytes(value))

    def text(self, value: str) -> None:
        encoded = value.encode("utf-8")
        self.u32(len(encoded))
        self._chunks.append(encoded)

    def array(self, values: np.ndarray) -> None:
        packed = np.ascontiguousarray(values, dtype=INDEX_DTYPE)
        self.u32(int(packed.size))
        self._chunks.append(packed.tobytes())

    def getvalue(self) -> bytes:
        return b"".join(self._chunks)


class _Reader:
    def __init__(self, blob: bytes) -> None:
        self._blob = bytes(blob)
        self._offset = 0

    @property
    def exhausted(self) -> bool:
        return self._offset == len(self._blob)

    def _take(self, size: int) -> int:
        start = self._offset
        if start + size > len(self._blob):
            raise SnapshotFormatError(
                f"snapshot truncated: wanted {size} bytes at offset {start}"
            )
        self._offset += size
        return start

    def unpack(self, fmt: struct.Struct) -> Tuple:
        return fmt.unpack_from(self._blob, self._take(fmt.size))

    def u8(self) -> int:
        return self.unpack(_U8)[0]

    def u16(self) -> int:
        return self.unpack(_U16)[0]

    def u32(self) -> int:
        return self.unpack(_U32)[0]

    def raw(self) -> bytes:
        size = self.u16()
        start = self._take(size)
        return self._blob[start:start + size]

    def text(self) -> str:
        size = self.u32()
        start = self._take(size)
        try:
            return self._blob[start:start + size].decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SnapshotFormatError(f"invalid UTF-8 at offset {start}") from exc

    def array(self) -> np.ndarray:
        count = self.u32()
        start = self._take(count * INDEX_DTYPE.itemsize)
        return np.frombuffer(self._blob, dtype=INDEX_DTYPE, count=count, offset=start)


def _enum_member(enum_cls, value: int):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise SnapshotFormatError(f"{enum_cls.__name__} ordinal {value} out of range") from exc


def dumps(rhyme_dict: RhymeDict) -> bytes:
    """Serialise ``rhyme_dict`` (lexicon, phrases and buckets) to bytes."""

    writer = _Writer()
    writer.pack(_HEADER, MAGIC, FORMAT_VERSION)

    lexicon = rhyme_dict.lexicon
    writer.u32(lexicon.entry_count)
    for entry in lexicon:
        writer.text(entry.token)
        writer.u8(entry.rarity.value)
        writer.u16(len(entry.senses))
        for sense in entry.senses:
            writer.raw(sense.key)
            writer.u8(sense.pos.value)
            writer.u8(sense.tag.value)
            writer.text(sense.meaning)

    writer.u32(lexicon.phrase_count)
    for phrase in lexicon.phrases:
        writer.text(phrase)

    buckets = rhyme_dict.buckets
    writer.u8(len(BUCKET_MAPS))
    for name in BUCKET_MAPS:
        mapping = buckets[name]
        writer.text(name)
        writer.u32(len(mapping))
        for code, values in mapping.items():
            writer.raw(ipa.code_key(code))
            writer.array(values)

    blob = writer.getvalue()
    _logger.debug("Snapshot encoded", context={"bytes": len(blob), **rhyme_dict.stats()})
    return blob


def loads(blob: bytes) -> RhymeDict:
    """Decode a snapshot produced by :func:`dumps`.

    Raises :class:`SnapshotFormatError` for foreign or damaged payloads.
    """

    reader = _Reader(blob)
    magic, version = reader.unpack(_HEADER)
    if magic != MAGIC:
        raise SnapshotFormatError(f"unexpected snapshot magic {magic!r}")
    if version != FORMAT_VERSION:
        raise SnapshotFormatError(
            f"unsupported snapshot version {version} (expected {FORMAT_VERSION})"
        )

    lexicon = Lexicon()
    entry_count = reader.u32()
    for _ in range(entry_count):
        token = reader.text()
        rarity = _enum_member(Rarity, reader.u8())
        senses = []
        for _ in range(reader.u16()):
            key = reader.raw()
            pos = _enum_member(PartOfSpeech, reader.u8())
            tag = _enum_member(SenseTag, reader.u8())
            senses.append(DictSense(key=key, pos=pos, tag=tag, meaning=reader.text()))
        if not lexicon.add_entry(DictEntry(token=token, rarity=rarity, senses=senses)):
            raise SnapshotFormatError(f"duplicate or invalid entry token {token!r}")

    for _ in range(reader.u32()):
        phrase = reader.text()
        if not lexicon.add_phrase(phrase):
            raise SnapshotFormatError(f"duplicate or invalid phrase {phrase!r}")

    candidate_count = lexicon.sense_count + lexicon.phrase_count
    buckets: Dict[str, Dict[str, np.ndarray]] = {}
    for _ in range(reader.u8()):
        name = reader.text()
        if name not in BUCKET_MAPS or name in buckets:
            raise SnapshotFormatError(f"unexpected bucket map {name!r}")
        mapping: Dict[str, np.ndarray] = {}
        for _ in range(reader.u32()):
            code = ipa.key_code(reader.raw())
            values = reader.array()
            if values.size and int(values.max()) >= candidate_count:
                raise SnapshotFormatError(
                    f"bucket {name}/{code!r} references index beyond {candidate_count}"
                )
            mapping[code] = values
        buckets[name] = mapping

    if not reader.exhausted:
        raise SnapshotFormatError("trailing bytes after snapshot payload")

    rhyme_dict = RhymeDict(lexicon, buckets)
    _logger.debug("Snapshot decoded", context=rhyme_dict.stats())
    return rhyme_dict


__all__ = ["FORMAT_VERSION", "MAGIC", "SnapshotFormatError", "dumps", "loads"]

import struct

import pytest

from rhyme_index.core.lexicon import Lexicon
from rhyme_index.core.rhyme_dict import RhymeDict
from rhyme_index.core.search_params import RhymeSearchParams, RhymeType
from rhyme_index.core.snapshot import FORMAT_VERSION, MAGIC, SnapshotFormatError, dumps, loads

from conftest import make_entry


def _tokens(entries):
    return [entry.token for entry in entries]


def test_snapshot_preserves_lexicon_and_buckets(sample_rhyme_dict):
    restored = loads(dumps(sample_rhyme_dict))

    assert restored.bucket_contents() == sample_rhyme_dict.bucket_contents()
    assert restored.lexicon.phrases == sample_rhyme_dict.lexicon.phrases
    assert restored.lexicon.sense_count == sample_rhyme_dict.lexicon.sense_count
    for original, copy in zip(sample_rhyme_dict.lexicon, restored.lexicon):
        assert copy == original
    assert restored.lexicon.frozen


def test_restored_snapshot_answers_queries_identically(sample_rhyme_dict):
    restored = loads(dumps(sample_rhyme_dict))

    for query in ("cat", "cat nap", "combat", "zzznotaword"):
        for rhyme_type in RhymeType:
            params = RhymeSearchParams(query, rhyme_type=rhyme_type)
            assert _tokens(restored.get_rhymes(params)) == _tokens(
                sample_rhyme_dict.get_rhymes(params)
            )


def test_empty_rhyme_dict_snapshot():
    restored = loads(dumps(RhymeDict()))

    assert restored.is_empty


def test_snapshot_header_is_versioned(sample_rhyme_dict):
    blob = dumps(sample_rhyme_dict)

    assert blob[:4] == MAGIC
    assert struct.unpack_from("<H", blob, 4)[0] == FORMAT_VERSION


def test_foreign_magic_is_rejected(sample_rhyme_dict):
    blob = dumps(sample_rhyme_dict)

    with pytest.raises(SnapshotFormatError):
        loads(b"HIVE" + blob[4:])


def test_unknown_version_is_rejected(sample_rhyme_dict):
    blob = dumps(sample_rhyme_dict)
    newer = blob[:4] + struct.pack("<H", FORMAT_VERSION + 1) + blob[6:]

    with pytest.raises(SnapshotFormatError, match="version"):
        loads(newer)


def test_truncated_and_padded_payloads_are_rejected(sample_rhyme_dict):
    blob = dumps(sample_rhyme_dict)

    with pytest.raises(SnapshotFormatError, match="truncated"):
        loads(blob[:-3])
    with pytest.raises(SnapshotFormatError, match="trailing"):
        loads(blob + b"\x00")
    with pytest.raises(SnapshotFormatError):
        loads(b"RH")


def test_out_of_range_ordinal_is_rejected():
    rhyme_dict = RhymeDict.build(Lexicon([make_entry("cat", "/kæt/")]))
    blob = bytearray(dumps(rhyme_dict))
    # header (6) + entry count (4) + token length (4) + "cat"
    rarity_offset = 6 + 4 + 4 + len("cat")
    blob[rarity_offset] = 99

    with pytest.raises(SnapshotFormatError, match="Rarity"):
        loads(bytes(blob))

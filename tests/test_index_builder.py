import threading

import pytest

from rhyme_index.app.data.blob_store import SQLiteBlobStore
from rhyme_index.app.services.index_builder import (
    SNAPSHOT_COLLECTION,
    BuildCancelled,
    IndexBuilder,
    RhymeDictHandle,
    build_in_background,
    restrict_to_vocabulary,
)
from rhyme_index.core.lexicon import DictEntry, Lexicon
from rhyme_index.core.search_params import RhymeSearchParams
from rhyme_index.core.snapshot import loads
from rhyme_index.core.sources import EntrySource
from rhyme_index.core.tags import Rarity
from rhyme_index.utils.telemetry import StructuredTelemetry

from conftest import build_sample_lexicon, make_entry


def _sources():
    sample = build_sample_lexicon()
    records = list(sample) + [DictEntry(token=phrase) for phrase in sample.phrases]
    words = EntrySource(records, name="sample")
    extra = EntrySource(
        [make_entry("cat", "/kɑt/", meaning="later duplicate"), make_entry("mat", "/mæt/")],
        name="extra",
    )
    return [words, extra]


@pytest.fixture
def store(tmp_path):
    blob_store = SQLiteBlobStore(str(tmp_path / "index.db"))
    yield blob_store
    blob_store.close()


def test_build_merges_sorts_indexes_and_persists(store):
    messages = []
    builder = IndexBuilder(_sources(), store=store, snapshot_key="english")

    rhyme_dict = builder.build(progress=messages.append)

    tokens = [entry.token for entry in rhyme_dict.lexicon]
    assert tokens == sorted(tokens, key=str.lower)
    assert rhyme_dict.lexicon.get_entry("cat").senses[0].meaning != "later duplicate"
    assert "mat" in [e.token for e in rhyme_dict.get_rhymes(RhymeSearchParams("cat"))]

    stored = store.get(SNAPSHOT_COLLECTION, "english")
    assert stored is not None
    assert loads(stored).bucket_contents() == rhyme_dict.bucket_contents()

    assert messages[0] == "Started building dictionaries..."
    assert "Saving dictionary..." in messages
    assert messages[-1].startswith("Finished building dictionaries!")


def test_build_records_phase_timings():
    telemetry = StructuredTelemetry()
    IndexBuilder(_sources(), telemetry=telemetry).build()

    snapshot = telemetry.snapshot()
    for phase in ("build.ingest.sample", "build.ingest.extra", "build.merge", "build.sort", "build.index"):
        assert phase in snapshot["timings"]
    assert "build.persist" not in snapshot["timings"]
    assert snapshot["counters"]["build.completed"] == 1
    assert any(event["type"] == "progress" for event in snapshot["events"])


@pytest.mark.parametrize("stop_after", [0, 1, 2, 4])
def test_cancelled_build_persists_nothing(store, stop_after):
    calls = {"count": 0}

    def should_stop():
        calls["count"] += 1
        return calls["count"] > stop_after

    builder = IndexBuilder(_sources(), store=store)

    with pytest.raises(BuildCancelled):
        builder.build(should_stop=should_stop)
    assert store.get(SNAPSHOT_COLLECTION, "english") is None


def test_cancellation_reports_phase():
    builder = IndexBuilder(_sources())

    with pytest.raises(BuildCancelled) as excinfo:
        builder.build(should_stop=lambda: True)
    assert excinfo.value.phase == "ingest:sample"


def test_vocabulary_restricts_entries_and_adopts_rarer_rank():
    vocabulary = EntrySource(
        [make_entry("cat", rarity=Rarity.RARE), make_entry("bat"), make_entry("rat")],
        name="vocabulary",
    )
    rhyme_dict = IndexBuilder(_sources(), vocabulary=vocabulary).build()

    lexicon = rhyme_dict.lexicon
    assert sorted(entry.token for entry in lexicon) == ["bat", "cat", "rat"]
    assert lexicon.get_entry("cat").rarity is Rarity.RARE
    assert lexicon.get_entry("rat").rarity is Rarity.UNCOMMON
    assert lexicon.phrases == ("rat trap",)


def test_restrict_to_vocabulary_leaves_source_entries_untouched():
    lexicon = Lexicon([make_entry("cat", "/kæt/")])
    vocabulary = Lexicon([make_entry("cat", rarity=Rarity.OBSOLETE)])

    restricted = restrict_to_vocabulary(lexicon, vocabulary)

    assert restricted.get_entry("cat").rarity is Rarity.OBSOLETE
    assert lexicon.get_entry("cat").rarity is Rarity.COMMON


def test_handle_swap_returns_previous_snapshot(sample_rhyme_dict):
    handle = RhymeDictHandle()
    original = handle.current

    previous = handle.swap(sample_rhyme_dict)

    assert previous is original
    assert handle.current is sample_rhyme_dict


def test_background_build_swaps_handle_on_success():
    handle = RhymeDictHandle()
    future = build_in_background(IndexBuilder(_sources()), handle=handle)

    rhyme_dict = future.result(timeout=30)

    assert handle.current is rhyme_dict
    assert handle.current.lexicon.has_entry("mat")


def test_background_build_cancellation_keeps_previous_snapshot(sample_rhyme_dict):
    handle = RhymeDictHandle(sample_rhyme_dict)
    stop = threading.Event()
    stop.set()

    future = build_in_background(IndexBuilder(_sources()), handle=handle, should_stop=stop.is_set)

    with pytest.raises(BuildCancelled):
        future.result(timeout=30)
    assert handle.current is sample_rhyme_dict

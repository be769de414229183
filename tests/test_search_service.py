import pytest

from rhyme_index.app.services.index_builder import RhymeDictHandle
from rhyme_index.app.services.search_service import RhymeSearchService
from rhyme_index.core.rhyme_dict import RhymeDict
from rhyme_index.core.search_params import EntryType, RhymeSearchParams, RhymeType, SpeechType
from rhyme_index.utils.telemetry import StructuredTelemetry

from conftest import build_sample_lexicon


@pytest.fixture
def service(sample_rhyme_dict):
    return RhymeSearchService(RhymeDictHandle(sample_rhyme_dict), telemetry=StructuredTelemetry())


def test_search_word_applies_presets(service):
    results = service.search_word("cat", rhyme_type="vowel", entry_type=EntryType.SLANG)

    assert [entry.token for entry in results] == ["brat"]


def test_search_records_timing(service):
    service.search(RhymeSearchParams("cat"))

    timing = service.telemetry.snapshot()["timings"]["search.rhymes"]
    assert timing["count"] == 1


def test_unknown_word_returns_empty_list(service):
    assert service.search_word("zzznotaword") == []
    assert service.search_word("") == []


def test_search_follows_handle_swaps(service):
    assert service.search_word("cat nap", speech_type=SpeechType.PHRASE)

    service.handle.swap(RhymeDict())
    assert service.search_word("cat") == []

    service.handle.swap(RhymeDict.build(build_sample_lexicon()))
    assert "bat" in [entry.token for entry in service.search_word("cat")]


def test_lookup_resolves_phrases(service):
    assert service.lookup("rat trap").token == "rat trap"
    assert service.lookup("zzznotaword") is None


def test_failures_propagate(service, monkeypatch):
    def _boom(params):
        raise RuntimeError("index corrupted")

    monkeypatch.setattr(service.handle.current, "get_rhymes", _boom)

    with pytest.raises(RuntimeError, match="index corrupted"):
        service.search(RhymeSearchParams("cat", rhyme_type=RhymeType.VOWEL))

import json

from rhyme_index.core import ipa
from rhyme_index.core.sources import (
    CMUDictLoader,
    CommonWordsSource,
    PhraseSource,
    WiktionarySource,
    arpabet_to_ipa,
    clean_phrase_word,
    load_common_words,
    load_phrases,
    parse_wiktionary_line,
    rarity_for_rank,
)
from rhyme_index.core.tags import PartOfSpeech, Rarity, SenseTag


def _wiki_line(word, pos, ipa_text="/kæt/", tags=(), glosses=("a feline",)):
    return json.dumps(
        {
            "word": word,
            "pos": pos,
            "sounds": [{"tags": ["US"]}, {"ipa": ipa_text}],
            "senses": [{"tags": list(tags), "glosses": list(glosses)}],
        }
    )


def test_arpabet_conversion_marks_stress():
    assert arpabet_to_ipa(["K", "AE1", "T"]) == "kˈæt"
    assert arpabet_to_ipa(["AH0", "B", "AW2", "T"]) == "ɐbˌaʊt"
    assert arpabet_to_ipa(["K", "??", "T"]) == "kt"


def test_cmudict_loader_merges_variants_into_senses(tmp_path):
    dict_path = tmp_path / "cmudict.txt"
    dict_path.write_text(
        ";;; comment line\n"
        "CAT  K AE1 T\n"
        "READ  R IY1 D\n"
        "READ(1)  R EH1 D\n",
        encoding="utf-8",
    )

    lexicon = CMUDictLoader(dict_path).load()

    assert lexicon.entry_count == 2
    read = lexicon.get_entry("read")
    assert [sense.ipa for sense in read.senses] == ["ɹˈid", "ɹˈɛd"]
    assert lexicon.get_entry("cat").senses[0].key == ipa.encode("kˈæt")


def test_cmudict_loader_retries_after_file_creation(tmp_path):
    dict_path = tmp_path / "cmudict.txt"
    loader = CMUDictLoader(dict_path=dict_path)

    assert loader.get_pronunciations("test") == []
    assert loader._loaded is False
    assert loader.load().entry_count == 0

    dict_path.write_text("TEST  T EH1 S T\n", encoding="utf-8")

    assert loader.get_pronunciations("test") == [["T", "EH1", "S", "T"]]
    assert loader.get_ipa("TEST") == ["tˈɛst"]
    assert loader._loaded is True


def test_wiktionary_line_builds_entry_with_tags():
    staged = {}
    entry = parse_wiktionary_line(
        _wiki_line("Cat", "noun", tags=["rare", "slang"], glosses=["a jazz musician"]), staged
    )

    assert entry is staged["cat"]
    assert entry.rarity is Rarity.RARE
    sense = entry.senses[0]
    assert sense.pos is PartOfSpeech.NOUN
    assert sense.tag is SenseTag.SLANG
    assert sense.meaning == "a jazz musician"
    assert sense.key == ipa.encode("kæt")


def test_wiktionary_adds_senses_only_for_new_parts_of_speech():
    staged = {}
    parse_wiktionary_line(_wiki_line("cat", "noun"), staged)

    assert parse_wiktionary_line(_wiki_line("cat", "noun", "/kɑt/"), staged) is None
    verb = parse_wiktionary_line(_wiki_line("cat", "verb", "/kɑt/", tags=["obsolete"]), staged)

    assert verb is staged["cat"]
    assert verb.parts_of_speech == [PartOfSpeech.NOUN, PartOfSpeech.VERB]
    assert verb.rarity is Rarity.COMMON


def test_wiktionary_skips_affix_transcriptions():
    staged = {}
    line = json.dumps(
        {
            "word": "ing",
            "pos": "suffix",
            "sounds": [{"ipa": "/-ɪŋ/"}, {"ipa": "/ɪŋ/"}],
        }
    )

    entry = parse_wiktionary_line(line, staged)

    assert entry.senses[0].key == ipa.encode("ɪŋ")
    assert entry.senses[0].pos is PartOfSpeech.OTHER


def test_wiktionary_rejects_malformed_records(caplog):
    staged = {}

    assert parse_wiktionary_line("{not json", staged) is None
    assert parse_wiktionary_line(json.dumps({"word": "cat", "pos": "noun"}), staged) is None
    assert parse_wiktionary_line(json.dumps({"word": "", "pos": "noun"}), staged) is None
    assert parse_wiktionary_line(json.dumps(["cat"]), staged) is None
    assert staged == {}
    assert any("Wiktionary JSON parse failed" in r.getMessage() for r in caplog.records)


def test_load_wiktionary_reports_progress(tmp_path):
    path = tmp_path / "wiktionary.jsonl"
    path.write_text(
        "\n".join(
            [_wiki_line("cat", "noun"), _wiki_line("bat", "noun", "/bæt/"), "", "{broken"]
        ),
        encoding="utf-8",
    )
    messages = []

    lexicon = WiktionarySource(path).load(progress=messages.append)

    assert [entry.token for entry in lexicon] == ["cat", "bat"]
    assert messages[0] == "Building Wiktionary..."
    assert messages[-1].startswith("Finished!")


def test_rarity_for_rank_thresholds():
    assert rarity_for_rank(0) is Rarity.COMMON
    assert rarity_for_rank(14999) is Rarity.COMMON
    assert rarity_for_rank(15000) is Rarity.UNCOMMON
    assert rarity_for_rank(39999) is Rarity.UNCOMMON
    assert rarity_for_rank(40000) is Rarity.RARE


def test_load_common_words_skips_comments_and_duplicates(tmp_path):
    path = tmp_path / "common.txt"
    path.write_text("#header\nThe\nthe\nof\n\n", encoding="utf-8")

    lexicon = load_common_words(path)

    assert [entry.token for entry in lexicon] == ["the", "of"]
    assert all(entry.rarity is Rarity.COMMON for entry in lexicon)
    assert CommonWordsSource(path).load().entry_count == 2


def test_load_common_words_stops_when_asked(tmp_path):
    path = tmp_path / "common.txt"
    path.write_text("the\nof\nand\n", encoding="utf-8")

    assert load_common_words(path, should_stop=lambda: True).entry_count == 0


def test_clean_phrase_word():
    assert clean_phrase_word("'cause") == "cause"
    assert clean_phrase_word("runnin'") == "running"
    assert clean_phrase_word("girl's") == "girl"
    assert clean_phrase_word('"(yeah)!"') == "yeah"


def test_load_phrases_filters_fields(tmp_path):
    path = tmp_path / "song_lyrics.csv"
    path.write_text(
        "[Chorus],rat trap,hello\n"
        "runnin' wild,one two three four five,rat trap\n"
        "cat nap,big bad wolf\n",
        encoding="utf-8",
    )

    assert load_phrases(path, max_words=4) == ["rat trap", "running wild", "cat nap", "big bad wolf"]
    assert load_phrases(path, max_words=2, max_phrases=2) == ["rat trap", "running wild"]

    lexicon = PhraseSource(path, max_words=2).load()
    assert lexicon.entry_count == 0
    assert lexicon.phrases == ("rat trap", "running wild", "cat nap")

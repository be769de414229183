import pytest

from rhyme_index.core import ipa
from rhyme_index.core.lexicon import DictEntry, DictSense, FrozenLexiconError, Lexicon
from rhyme_index.core.tags import PartOfSpeech, Rarity, SenseTag

from conftest import make_entry


def test_lookup_is_case_insensitive_and_first_write_wins():
    lexicon = Lexicon()

    assert lexicon.add_entry(make_entry("Cat", "/kæt/", meaning="first"))
    assert not lexicon.add_entry(make_entry("cat", "/kɑt/", meaning="second"))

    entry = lexicon.get_entry("CAT")
    assert entry is not None
    assert entry.token == "Cat"
    assert entry.senses[0].meaning == "first"
    assert lexicon.entry_count == 1
    assert "cat" in lexicon


def test_empty_tokens_are_rejected():
    lexicon = Lexicon()

    assert not lexicon.add_entry(DictEntry(token="   "))
    assert lexicon.entry_count == 0


def test_sense_addresses_are_assigned_in_insertion_order(sample_lexicon):
    # cat (1 sense), bat (2 senses), can ...
    assert sample_lexicon.get_sense_address(0) == (0, 0)
    assert sample_lexicon.get_sense_address(1) == (1, 0)
    assert sample_lexicon.get_sense_address(2) == (1, 1)
    assert sample_lexicon.get_owning_entry_index(2) == 1
    assert sample_lexicon.get_sense_entry(2).token == "bat"
    assert sample_lexicon.get_sense(2).pos is PartOfSpeech.VERB
    assert sample_lexicon.sense_count == sum(len(entry.senses) for entry in sample_lexicon)


def test_out_of_range_accessors_return_sentinels(sample_lexicon):
    assert sample_lexicon.get_sense(10_000) is None
    assert sample_lexicon.get_sense_address(-1) is None
    assert sample_lexicon.get_owning_entry_index(10_000) == -1
    assert sample_lexicon.get_entry_by_index(10_000) is None
    assert sample_lexicon.get_entry_index("zzznotaword") == -1
    assert sample_lexicon.get_phrase(5) is None


def test_phrase_entries_are_stored_as_tokens(sample_lexicon):
    assert sample_lexicon.has_phrase("Rat  Trap")
    assert sample_lexicon.phrase_count == 1
    assert not sample_lexicon.has_entry("rat trap")

    assert sample_lexicon.add_entry(DictEntry(token="cat nap"))
    assert sample_lexicon.phrase_count == 2


def test_phrase_synthesis_joins_first_pronunciations(sample_lexicon):
    phrase = sample_lexicon.get_entry("cat nap")

    assert phrase is not None
    assert phrase.token == "cat nap"
    assert phrase.is_phrase
    assert len(phrase.senses) == 1
    assert phrase.senses[0].pos is PartOfSpeech.PHRASE
    assert phrase.senses[0].key == ipa.join_words([ipa.encode("kæt"), ipa.encode("næp")])


def test_phrase_synthesis_uses_rarest_constituent(sample_lexicon):
    phrase = sample_lexicon.get_phrase(0)

    assert phrase.token == "rat trap"
    assert phrase.rarity is Rarity.UNCOMMON


def test_phrase_synthesis_requires_every_constituent(sample_lexicon):
    assert sample_lexicon.get_entry("cat zzznotaword") is None
    assert sample_lexicon.synthesize_phrase([]) is None


def test_frozen_lexicon_rejects_mutation(sample_lexicon):
    sample_lexicon.freeze()

    with pytest.raises(FrozenLexiconError):
        sample_lexicon.add_entry(make_entry("mat", "/mæt/"))
    with pytest.raises(FrozenLexiconError):
        sample_lexicon.add_phrase("fat cat")
    with pytest.raises(FrozenLexiconError):
        sample_lexicon.sort_entries()

    copy = sample_lexicon.clone()
    assert not copy.frozen
    assert copy.add_entry(make_entry("mat", "/mæt/"))
    assert copy.phrases == sample_lexicon.phrases


def test_sort_entries_reassigns_sense_addresses(sample_lexicon):
    sample_lexicon.sort_entries()

    tokens = [entry.token for entry in sample_lexicon]
    assert tokens == sorted(tokens, key=str.lower)
    assert sample_lexicon.get_entry_index("bat") == 0
    assert sample_lexicon.get_sense_entry(0).token == "bat"
    assert sample_lexicon.get_sense_entry(1).token == "bat"
    for index, sense in sample_lexicon.iter_senses():
        assert sample_lexicon.get_sense(index) is sense


def test_filter_and_append(sample_lexicon):
    uncommon = sample_lexicon.filter(lambda entry: entry.rarity is not Rarity.COMMON)

    assert [entry.token for entry in uncommon] == ["rat"]
    assert uncommon.phrases == ("rat trap",)

    extra = Lexicon([make_entry("mat", "/mæt/"), make_entry("cat", "/kɑt/")])
    added = uncommon.append(extra)
    assert added == 2
    assert uncommon.get_entry("cat").senses[0].key == ipa.encode("kɑt")


def test_sense_definition_and_tags():
    sense = DictSense.from_ipa(
        "/bɹæt/", pos=PartOfSpeech.NOUN, tag=SenseTag.SLANG, meaning="a spoiled child"
    )

    assert sense.syllables == 1
    assert sense.ipa == "bɹæt"
    assert sense.definition == "(noun, slang) (bɹæt) a spoiled child"


def test_clone_copies_entries_of_a_frozen_lexicon(sample_lexicon):
    sample_lexicon.freeze()
    frozen_bat = sample_lexicon.get_entry("bat")

    copy = sample_lexicon.clone()
    copy.get_entry("bat").senses.pop()

    assert len(frozen_bat.senses) == 2
    assert sample_lexicon.get_sense(2) is frozen_bat.senses[1]
    assert len(sample_lexicon.filter(lambda entry: True).get_entry("bat").senses) == 2


def test_entries_of_a_frozen_lexicon_are_read_only(sample_lexicon):
    sample_lexicon.freeze()
    entry = sample_lexicon.get_entry("bat")

    assert entry.frozen
    assert isinstance(entry.senses, tuple)
    with pytest.raises(FrozenLexiconError):
        entry.add_sense(DictSense.from_ipa("/bæt/"))
    with pytest.raises(FrozenLexiconError):
        entry.token = "vat"
    with pytest.raises(AttributeError):
        entry.senses[0].key = b""

    editable = entry.copy()
    editable.add_sense(DictSense.from_ipa("/bæt/"))
    assert len(editable.senses) == 3
    assert len(entry.senses) == 2


def test_phrase_synthesis_rejects_constituent_without_pronunciation():
    lexicon = Lexicon(
        [
            make_entry("cat", "/kæt/"),
            DictEntry(token="the", senses=[DictSense(pos=PartOfSpeech.DETERMINER)]),
        ]
    )
    lexicon.add_phrase("the cat")

    assert lexicon.get_entry("the cat") is None
    assert lexicon.get_phrase(0) is None

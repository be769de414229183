import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rhyme_index.core.lexicon import DictEntry, DictSense, Lexicon
from rhyme_index.core.tags import PartOfSpeech, Rarity, SenseTag


def make_entry(token, *ipas, rarity=Rarity.COMMON, pos=PartOfSpeech.NOUN, tag=SenseTag.NONE, meaning=""):
    senses = [DictSense.from_ipa(ipa, pos=pos, tag=tag, meaning=meaning) for ipa in ipas]
    return DictEntry(token=token, rarity=rarity, senses=senses)


def build_sample_lexicon() -> Lexicon:
    lexicon = Lexicon(
        [
            make_entry("cat", "/kæt/", meaning="a small domesticated feline"),
            DictEntry(
                token="bat",
                senses=[
                    DictSense.from_ipa("/bæt/", pos=PartOfSpeech.NOUN, meaning="a flying mammal"),
                    DictSense.from_ipa("/bæt/", pos=PartOfSpeech.VERB, meaning="to hit a ball"),
                ],
            ),
            make_entry("can", "/kæn/", pos=PartOfSpeech.VERB),
            make_entry("rat", "/ɹæt/", rarity=Rarity.UNCOMMON),
            make_entry("brat", "/bɹæt/", tag=SenseTag.SLANG),
            make_entry("nap", "/næp/"),
            make_entry("trap", "/tɹæp/"),
            make_entry("combat", "/ˈkɑmbæt/"),
            make_entry("hmm", "/hm/", pos=PartOfSpeech.INTERJECTION),
        ]
    )
    lexicon.add_phrase("rat trap")
    return lexicon


@pytest.fixture
def sample_lexicon() -> Lexicon:
    return build_sample_lexicon()


@pytest.fixture
def sample_rhyme_dict(sample_lexicon):
    from rhyme_index.core.rhyme_dict import RhymeDict

    return RhymeDict.build(sample_lexicon)

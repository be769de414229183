"""Application wiring for the rhyme_index project."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from rhyme_index.core.lexicon import DictEntry
from rhyme_index.core.rhyme_dict import RhymeDict
from rhyme_index.core.search_params import RhymeSearchParams
from rhyme_index.core.sources import (
    CMUDictLoader,
    CommonWordsSource,
    PhraseSource,
    WiktionarySource,
)
from rhyme_index.utils.observability import get_logger
from rhyme_index.utils.telemetry import StructuredTelemetry, TelemetryLogger

from rhyme_index.app.data.blob_store import SQLiteBlobStore
from rhyme_index.app.services.index_builder import (
    IndexBuilder,
    LexiconSource,
    RhymeDictHandle,
    build_in_background,
)
from rhyme_index.app.services.search_service import RhymeSearchService

WIKTIONARY_FILE = "wiktionary.jsonl"
CMUDICT_FILE = "cmudict.txt"
COMMON_WORDS_FILE = "wiki-100k-common.txt"
PHRASES_FILE = "song_lyrics.csv"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    try:
        return int(raw) if str(raw).strip() else default
    except ValueError:
        return default


@dataclass(frozen=True)
class AppSettings:
    """Runtime configuration, normally read from ``RHYME_INDEX_*`` variables."""

    db_path: str = "rhyme_index.db"
    snapshot_key: str = "english"
    source_dir: str = "source_dicts"
    log_level: Optional[str] = None
    max_phrase_words: int = 4
    max_phrases: int = 100000

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "AppSettings":
        values = os.environ if env is None else env
        defaults = cls()
        return cls(
            db_path=values.get("RHYME_INDEX_DB_PATH") or defaults.db_path,
            snapshot_key=values.get("RHYME_INDEX_SNAPSHOT_KEY") or defaults.snapshot_key,
            source_dir=values.get("RHYME_INDEX_SOURCE_DIR") or defaults.source_dir,
            log_level=values.get("RHYME_INDEX_LOG_LEVEL") or None,
            max_phrase_words=_env_int(
                values, "RHYME_INDEX_MAX_PHRASE_WORDS", defaults.max_phrase_words
            ),
            max_phrases=_env_int(values, "RHYME_INDEX_MAX_PHRASES", defaults.max_phrases),
        )


def default_sources(settings: AppSettings) -> List[LexiconSource]:
    """Sources found in ``settings.source_dir``, in merge priority order."""

    base = Path(settings.source_dir)
    sources: List[LexiconSource] = []
    if (base / WIKTIONARY_FILE).exists():
        sources.append(WiktionarySource(base / WIKTIONARY_FILE))
    if (base / CMUDICT_FILE).exists():
        sources.append(CMUDictLoader(base / CMUDICT_FILE))
    if (base / PHRASES_FILE).exists():
        sources.append(
            PhraseSource(
                base / PHRASES_FILE,
                max_words=settings.max_phrase_words,
                max_phrases=settings.max_phrases,
            )
        )
    return sources


def default_vocabulary(settings: AppSettings) -> Optional[LexiconSource]:
    path = Path(settings.source_dir) / COMMON_WORDS_FILE
    return CommonWordsSource(path) if path.exists() else None


class RhymeIndexApp:
    """High-level facade bundling the store, the served snapshot and search."""

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        *,
        store: Optional[SQLiteBlobStore] = None,
        handle: Optional[RhymeDictHandle] = None,
        telemetry: Optional[StructuredTelemetry] = None,
    ) -> None:
        self.settings = settings or AppSettings.from_env()
        self._logger = get_logger(__name__).bind(component="app_facade")
        self._logger.info(
            "Initialising application facade",
            context={"db_path": self.settings.db_path, "snapshot_key": self.settings.snapshot_key},
        )

        # Search runs only; each builder gets its own collector.
        self.telemetry = telemetry or StructuredTelemetry(listeners=[TelemetryLogger()])
        self.store = store or SQLiteBlobStore(self.settings.db_path)
        self.handle = handle or RhymeDictHandle()
        self.search_service = RhymeSearchService(self.handle, telemetry=self.telemetry)

    # Snapshot management ---------------------------------------------------
    def load_snapshot(self) -> bool:
        loaded = self.handle.load(self.store, self.settings.snapshot_key)
        self._logger.info(
            "Snapshot load attempted",
            context={"key": self.settings.snapshot_key, "loaded": loaded},
        )
        return loaded

    def create_builder(
        self,
        sources: Optional[List[LexiconSource]] = None,
        vocabulary: Optional[LexiconSource] = None,
    ) -> IndexBuilder:
        return IndexBuilder(
            sources if sources is not None else default_sources(self.settings),
            store=self.store,
            snapshot_key=self.settings.snapshot_key,
            vocabulary=vocabulary if vocabulary is not None else default_vocabulary(self.settings),
            telemetry=StructuredTelemetry(listeners=[TelemetryLogger()]),
        )

    def rebuild(self, builder: Optional[IndexBuilder] = None, **kwargs) -> RhymeDict:
        """Build synchronously and serve the result."""

        rhyme_dict = (builder or self.create_builder()).build(**kwargs)
        self.handle.swap(rhyme_dict)
        return rhyme_dict

    def rebuild_in_background(self, builder: Optional[IndexBuilder] = None, **kwargs):
        return build_in_background(builder or self.create_builder(), handle=self.handle, **kwargs)

    # Public API ------------------------------------------------------------
    def search(self, params: RhymeSearchParams) -> List[DictEntry]:
        return self.search_service.search(params)

    def search_word(self, query: str, **filters) -> List[DictEntry]:
        return self.search_service.search_word(query, **filters)


__all__ = ["AppSettings", "RhymeIndexApp", "default_sources", "default_vocabulary"]

"""Build pipeline that turns ingestion sources into a persisted rhyme index."""

from __future__ import annotations

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Protocol, Sequence

from rhyme_index.core.lexicon import DictEntry, Lexicon
from rhyme_index.core.rhyme_dict import RhymeDict
from rhyme_index.core.snapshot import dumps, loads
from rhyme_index.core.sources import rarity_for_rank

from ..data.blob_store import BlobStore
from ...utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from ...utils.telemetry import StructuredTelemetry

SNAPSHOT_COLLECTION = "rhyme_dicts"

ProgressCallback = Callable[[str], None]
StopPredicate = Callable[[], bool]


class LexiconSource(Protocol):
    name: str

    def load(
        self,
        progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopPredicate] = None,
    ) -> Lexicon: ...


class BuildCancelled(RuntimeError):
    """Raised when a build observes its stop predicate between phases."""

    def __init__(self, phase: str) -> None:
        super().__init__(f"index build cancelled before {phase}")
        self.phase = phase


class RhymeDictHandle:
    """Holder of the rhyme index currently served to readers.

    Readers take :attr:`current` once per query and keep using that snapshot;
    :meth:`swap` installs a replacement without touching the old instance.
    """

    def __init__(self, rhyme_dict: Optional[RhymeDict] = None) -> None:
        self._lock = threading.Lock()
        self._current = rhyme_dict if rhyme_dict is not None else RhymeDict()
        self._logger = get_logger(__name__).bind(component="rhyme_dict_handle")

    @property
    def current(self) -> RhymeDict:
        return self._current

    def swap(self, rhyme_dict: RhymeDict) -> RhymeDict:
        """Install ``rhyme_dict`` and return the snapshot it replaced."""

        with self._lock:
            previous, self._current = self._current, rhyme_dict
        self._logger.info("Rhyme index swapped", context=rhyme_dict.stats())
        return previous

    def load(self, store: BlobStore, key: str) -> bool:
        """Swap in the snapshot stored under ``key``; ``False`` if absent."""

        blob = store.get(SNAPSHOT_COLLECTION, key)
        if blob is None:
            self._logger.warning("No stored rhyme index", context={"key": key})
            return False
        self.swap(loads(blob))
        return True

    def save(self, store: BlobStore, key: str) -> None:
        store.put(SNAPSHOT_COLLECTION, key, dumps(self._current))


def restrict_to_vocabulary(lexicon: Lexicon, vocabulary: Lexicon) -> Lexicon:
    """Keep entries listed in ``vocabulary``, adopting its rarity when rarer."""

    ranked = {entry.token.lower(): entry.rarity for entry in vocabulary}
    restricted = Lexicon()
    for entry in lexicon:
        rarity = ranked.get(entry.token.lower())
        if rarity is None:
            continue
        if rarity.value > entry.rarity.value:
            entry = DictEntry(token=entry.token, rarity=rarity, senses=list(entry.senses))
        restricted.add_entry(entry)
    for phrase in lexicon.phrases:
        restricted.add_phrase(phrase)
    return restricted


class IndexBuilder:
    """Ingest, merge, sort, index and persist in that order.

    ``should_stop`` is consulted before every phase and before each source; a
    positive answer raises :class:`BuildCancelled` and nothing is persisted.
    """

    def __init__(
        self,
        sources: Sequence[LexiconSource],
        *,
        store: Optional[BlobStore] = None,
        snapshot_key: str = "english",
        vocabulary: Optional[LexiconSource] = None,
        telemetry: Optional[StructuredTelemetry] = None,
        compact: bool = True,
    ) -> None:
        self.sources: List[LexiconSource] = list(sources)
        self.store = store
        self.snapshot_key = snapshot_key
        self.vocabulary = vocabulary
        self.telemetry = telemetry or StructuredTelemetry()
        self.compact = compact
        self._logger = get_logger(__name__).bind(
            component="index_builder",
            snapshot_key=snapshot_key,
        )
        self._metric_builds = create_counter(
            "rhyme_index_builds_total",
            "Rhyme index builds by outcome.",
            label_names=("outcome",),
        )
        self._metric_build_duration = create_histogram(
            "rhyme_index_build_seconds",
            "Wall time of complete rhyme index builds.",
        )

    def build(
        self,
        progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopPredicate] = None,
    ) -> RhymeDict:
        telemetry = self.telemetry
        stop = should_stop or (lambda: False)

        def report(message: str) -> None:
            telemetry.progress(message)
            if progress is not None:
                progress(message)

        def checkpoint(phase: str) -> None:
            if stop():
                raise BuildCancelled(phase)

        telemetry.start_run("index_build")
        telemetry.annotate("sources", [source.name for source in self.sources])
        report("Started building dictionaries...")

        with start_span(
            "index.build",
            {"snapshot.key": self.snapshot_key, "sources": len(self.sources)},
        ) as span:
            try:
                with self._metric_build_duration.time():
                    rhyme_dict = self._run_phases(report, checkpoint, stop)
            except BuildCancelled as exc:
                self._metric_builds.labels(outcome="cancelled").inc()
                telemetry.increment("build.cancelled")
                self._logger.warning("Index build cancelled", context={"phase": exc.phase})
                add_span_attributes(span, {"build.cancelled": True, "build.phase": exc.phase})
                report("Build cancelled.")
                raise
            except Exception as exc:
                self._metric_builds.labels(outcome="failed").inc()
                telemetry.increment("build.failed")
                self._logger.error("Index build failed", context={"error": str(exc)})
                record_exception(span, exc)
                raise

            self._metric_builds.labels(outcome="completed").inc()
            telemetry.increment("build.completed")
            add_span_attributes(span, {"build.success": True, **rhyme_dict.stats()})

        report(f"Finished building dictionaries! ({rhyme_dict.lexicon.entry_count} words)")
        return rhyme_dict

    def _run_phases(
        self,
        report: ProgressCallback,
        checkpoint: Callable[[str], None],
        stop: StopPredicate,
    ) -> RhymeDict:
        telemetry = self.telemetry

        ingested: List[Lexicon] = []
        for source in self.sources:
            checkpoint(f"ingest:{source.name}")
            with telemetry.timer(f"build.ingest.{source.name}") as payload:
                lexicon = source.load(report, stop)
                payload["entries"] = lexicon.entry_count
                payload["phrases"] = lexicon.phrase_count
            ingested.append(lexicon)

        vocabulary: Optional[Lexicon] = None
        if self.vocabulary is not None:
            checkpoint(f"ingest:{self.vocabulary.name}")
            with telemetry.timer(f"build.ingest.{self.vocabulary.name}"):
                vocabulary = self.vocabulary.load(report, stop)

        checkpoint("merge")
        report("Building final dictionary...")
        with telemetry.timer("build.merge") as payload:
            merged = Lexicon()
            for lexicon in ingested:
                merged.append(lexicon)
            if vocabulary is not None:
                merged = restrict_to_vocabulary(merged, vocabulary)
            payload["entries"] = merged.entry_count

        checkpoint("sort")
        report("Sorting dictionary...")
        with telemetry.timer("build.sort"):
            merged.sort_entries()

        checkpoint("index")
        report("Building rhyme dictionary from final...")
        with telemetry.timer("build.index") as payload:
            rhyme_dict = RhymeDict.build(merged)
            payload.update(rhyme_dict.stats())

        if self.store is not None:
            checkpoint("persist")
            report("Saving dictionary...")
            with telemetry.timer("build.persist") as payload:
                blob = dumps(rhyme_dict)
                self.store.put(SNAPSHOT_COLLECTION, self.snapshot_key, blob)
                payload["bytes"] = len(blob)
            compact = getattr(self.store, "compact", None)
            if self.compact and callable(compact):
                report("Compacting storage...")
                compact()

        return rhyme_dict


def build_in_background(
    builder: IndexBuilder,
    *,
    handle: Optional[RhymeDictHandle] = None,
    progress: Optional[ProgressCallback] = None,
    should_stop: Optional[StopPredicate] = None,
    executor: Optional[Executor] = None,
) -> "Future[RhymeDict]":
    """Run ``builder`` on a worker thread, swapping into ``handle`` on success."""

    def _job() -> RhymeDict:
        rhyme_dict = builder.build(progress=progress, should_stop=should_stop)
        if handle is not None:
            handle.swap(rhyme_dict)
        return rhyme_dict

    if executor is not None:
        return executor.submit(_job)

    owned = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rhyme-index-build")
    try:
        return owned.submit(_job)
    finally:
        owned.shutdown(wait=False)


__all__ = [
    "BuildCancelled",
    "IndexBuilder",
    "LexiconSource",
    "RhymeDictHandle",
    "SNAPSHOT_COLLECTION",
    "build_in_background",
    "restrict_to_vocabulary",
]

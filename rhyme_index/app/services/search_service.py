"""Search service answering rhyme queries against the current snapshot."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from rhyme_index.core.lexicon import DictEntry
from rhyme_index.core.search_params import (
    EntryType,
    RhymeSearchParams,
    RhymeType,
    SpeechType,
)

from .index_builder import RhymeDictHandle
from ...utils.observability import (
    add_span_attributes,
    create_counter,
    create_histogram,
    get_logger,
    record_exception,
    start_span,
)
from ...utils.telemetry import StructuredTelemetry


class RhymeSearchService:
    """Runs :class:`RhymeSearchParams` against whatever the handle serves."""

    def __init__(
        self,
        handle: RhymeDictHandle,
        *,
        telemetry: Optional[StructuredTelemetry] = None,
    ) -> None:
        self.handle = handle
        self.telemetry = telemetry or StructuredTelemetry()
        self._logger = get_logger(__name__).bind(component="rhyme_search_service")

        self._metric_request_total = create_counter(
            "rhyme_index_search_requests_total",
            "Total rhyme index search requests received.",
            label_names=("rhyme_type",),
        )
        self._metric_request_failures = create_counter(
            "rhyme_index_search_failures_total",
            "Total rhyme index search requests that raised an exception.",
        )
        self._metric_empty_results = create_counter(
            "rhyme_index_search_empty_total",
            "Searches that produced no rhymes.",
        )
        self._metric_request_duration = create_histogram(
            "rhyme_index_search_seconds",
            "Latency of rhyme index searches.",
        )

    def search(self, params: RhymeSearchParams) -> List[DictEntry]:
        rhyme_dict = self.handle.current
        request_context: Dict[str, Any] = {
            "query": params.query,
            "rhyme_type": params.rhyme_type.value,
            "syllables": params.syllables,
        }
        self._metric_request_total.labels(rhyme_type=params.rhyme_type.value).inc()
        self._logger.debug("Search request received", context=request_context)

        with start_span("rhyme_index.search", request_context) as span:
            try:
                with self._metric_request_duration.time():
                    with self.telemetry.timer("search.rhymes", dict(request_context)) as payload:
                        results = rhyme_dict.get_rhymes(params)
                        payload["results"] = len(results)
            except Exception as exc:
                self._metric_request_failures.inc()
                self._logger.error(
                    "Search request failed",
                    context={**request_context, "error": str(exc)},
                )
                record_exception(span, exc)
                raise

            if not results:
                self._metric_empty_results.inc()
            add_span_attributes(span, {"result.total": len(results)})

        self._logger.info(
            "Search request completed",
            context={**request_context, "results": len(results)},
        )
        return results

    def search_word(
        self,
        query: str,
        *,
        rhyme_type: Union[str, RhymeType] = RhymeType.PERFECT,
        speech_type: SpeechType = SpeechType.ALL,
        entry_type: EntryType = EntryType.ALL,
        syllables: int = 0,
    ) -> List[DictEntry]:
        return self.search(
            RhymeSearchParams.from_presets(
                query,
                rhyme_type=rhyme_type,
                speech_type=speech_type,
                entry_type=entry_type,
                syllables=syllables,
            )
        )

    def lookup(self, token: str) -> Optional[DictEntry]:
        return self.handle.current.lexicon.get_entry(token)


__all__ = ["RhymeSearchService"]

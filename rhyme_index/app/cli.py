"""Command line entry point: ``rhyme-index build`` and ``rhyme-index query``."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from typing import Any, Dict, List, Sequence

from rhyme_index.core.lexicon import DictEntry
from rhyme_index.core.search_params import EntryType, RhymeSearchParams, RhymeType, SpeechType
from rhyme_index.utils.logging_config import configure_logging

from rhyme_index.app.app import AppSettings, RhymeIndexApp
from rhyme_index.app.services.index_builder import BuildCancelled


def _choice_names(enum_cls) -> List[str]:
    return [member.name.lower() for member in enum_cls]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rhyme-index",
        description="Build and query a phonetic rhyme index.",
    )
    parser.add_argument("--db", help="SQLite blob store path (RHYME_INDEX_DB_PATH).")
    parser.add_argument("--key", help="Snapshot key (RHYME_INDEX_SNAPSHOT_KEY).")
    parser.add_argument("--log-level", help="Logging level (RHYME_INDEX_LOG_LEVEL).")
    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Rebuild the index from source files.")
    build.add_argument(
        "--source-dir",
        help="Directory holding wiktionary.jsonl, cmudict.txt, word lists and phrases.",
    )

    query = commands.add_parser("query", help="Find rhymes for a word or phrase.")
    query.add_argument("word", help="Word or phrase to rhyme with.")
    query.add_argument(
        "--type",
        default=RhymeType.PERFECT.value,
        help="Rhyme type: perfect or vowel.",
    )
    query.add_argument("--speech", choices=_choice_names(SpeechType), default="all")
    query.add_argument("--entry", choices=_choice_names(EntryType), default="all")
    query.add_argument(
        "--syllables",
        type=int,
        default=0,
        help="Exact syllable count (0 accepts any).",
    )
    query.add_argument("--limit", type=int, default=50, help="Maximum rhymes to print.")
    query.add_argument("--json", action="store_true", help="Emit JSON instead of text.")
    return parser


def _resolve_settings(args: argparse.Namespace) -> AppSettings:
    settings = AppSettings.from_env()
    overrides: Dict[str, Any] = {
        "db_path": args.db,
        "snapshot_key": args.key,
        "log_level": args.log_level,
        "source_dir": getattr(args, "source_dir", None),
    }
    return replace(settings, **{key: value for key, value in overrides.items() if value})


def describe_entry(entry: DictEntry) -> Dict[str, Any]:
    return {
        "token": entry.token,
        "rarity": entry.rarity.token,
        "senses": [sense.definition for sense in entry.senses],
    }


def _run_build(app: RhymeIndexApp) -> int:
    try:
        rhyme_dict = app.rebuild(progress=lambda message: print(message, file=sys.stderr))
    except BuildCancelled as exc:
        print(str(exc), file=sys.stderr)
        return 1
    print(json.dumps(rhyme_dict.stats(), sort_keys=True))
    return 0


def _run_query(app: RhymeIndexApp, args: argparse.Namespace) -> int:
    if not app.load_snapshot():
        print(
            f"No index stored under '{app.settings.snapshot_key}'; run 'rhyme-index build' first.",
            file=sys.stderr,
        )
        return 1

    params = RhymeSearchParams.from_presets(
        args.word,
        rhyme_type=args.type,
        speech_type=SpeechType[args.speech.upper()],
        entry_type=EntryType[args.entry.upper()],
        syllables=args.syllables,
    )
    results = app.search(params)[: max(0, args.limit)]

    if args.json:
        json.dump([describe_entry(entry) for entry in results], sys.stdout, ensure_ascii=False)
        sys.stdout.write("\n")
        return 0

    if not results:
        print(f"No rhymes found for '{args.word}'.")
        return 0
    for entry in results:
        print(f"{entry.token} ({entry.rarity.token})")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = _resolve_settings(args)
    configure_logging(settings.log_level)

    try:
        RhymeType.parse(getattr(args, "type", RhymeType.PERFECT.value))
    except ValueError:
        parser.error(f"unknown rhyme type: {args.type}")

    app = RhymeIndexApp(settings)
    try:
        if args.command == "build":
            return _run_build(app)
        return _run_query(app, args)
    finally:
        app.store.close()


if __name__ == "__main__":
    raise SystemExit(main())

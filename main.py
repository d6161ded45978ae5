import argparse
import json
import os
import sys

from bcxliff.context import ElementContext
from bcxliff.corrections import CorrectionRecord, apply_corrections, filter_corrections, write_report
from bcxliff.errors import BcXliffError
from bcxliff.logger import UsageTracker, get_logger, setup_exception_hook
from bcxliff.matcher import find_candidates, format_candidate
from bcxliff.mutator import extract_languages
from bcxliff.parser import XliffParser
from bcxliff.settings_manager import SettingsManager
from bcxliff.store import TranslationMemory
from bcxliff.translation import TranslationPipeline
from ai.client import LLMClient

logger = get_logger("main")


def _read(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _write(path: str, content: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)


def cmd_match(args) -> int:
    document = _read(args.input_file)
    context = ElementContext.from_record(
        {
            "elementType": args.element_type,
            "propertyType": args.property_type,
            "uiArea": args.ui_area,
        },
        source=args.text,
        page_name=args.page_name,
        table_name=args.table_name,
    )
    result = find_candidates(document, args.text, context)
    if not result.candidates:
        print(f"No candidates: {result.diagnostics.filter_reason}")
        return 1
    for candidate in result.candidates:
        print(f"{candidate.unit_id}\t{format_candidate(candidate)}")
    return 0


def cmd_apply_corrections(args) -> int:
    document = _read(args.input_file)
    with open(args.corrections, "r", encoding="utf-8") as f:
        raw = json.load(f)
    records = filter_corrections(
        [CorrectionRecord.from_dict(r) for r in raw],
        since=args.since,
        user_corrections_only=args.user_only,
    )
    print(f"Applying {len(records)} corrections...")

    outcome = apply_corrections(document, records)
    if outcome.changed:
        _write(args.input_file, outcome.document)
    report_path = write_report(args.input_file, outcome)

    s = outcome.stats
    print(f"Applied {s.updated} updates ({s.unchanged} unchanged, {s.unmatched} unmatched, "
          f"{s.conflicts} conflicts, {s.skipped} skipped). Report saved to {report_path}")
    return 0


def cmd_translate(args) -> int:
    settings = SettingsManager()
    document = _read(args.input_file)
    source_lang, target_lang = extract_languages(document)

    usage = UsageTracker()
    if args.provider == "mock":
        client = LLMClient(provider="mock")
    else:
        client = LLMClient(**settings.build_client_config(), usage=usage)
        client.require_configured()

    memory_path = args.memory or settings.get("memory_path")
    store = TranslationMemory(memory_path) if memory_path and os.path.exists(memory_path) else None
    try:
        pipeline = TranslationPipeline(client, store, usage=usage)
        summary = pipeline.translate_document(document, source_lang, target_lang)
    finally:
        if store is not None:
            store.close()

    output_path = args.output or args.input_file
    if summary.translated:
        _write(output_path, summary.document)

    totals = usage.summary()
    print(f"Translated {summary.translated} units ({summary.from_file} from file, {summary.from_memory} from memory, "
          f"{summary.from_ai} from AI), {summary.failed} failed.")
    print(f"Tokens: {totals.total_tokens} (~${totals.estimated_ai_cost})")
    return 0 if summary.failed == 0 else 2


def cmd_export_memory(args) -> int:
    parser = XliffParser(args.input_file)
    parser.load()
    source_lang, target_lang = parser.get_languages()
    units = parser.get_translation_units()

    store = TranslationMemory(args.memory)
    try:
        inserted, skipped = store.import_units(
            units, source_lang or "en-US", target_lang or "cs-CZ",
            translation_type=args.type, source_database=os.path.basename(args.input_file),
        )
    finally:
        store.close()
    print(f"Exported {inserted} translations to {args.memory} ({skipped} already present).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Business Central XLIFF Assistant")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("match", help="Find trans-units for a piece of UI text")
    p.add_argument("input_file", help="Path to .xlf file")
    p.add_argument("--text", required=True, help="UI text as shown to the user")
    p.add_argument("--element-type", default="")
    p.add_argument("--property-type", default="")
    p.add_argument("--ui-area", default="")
    p.add_argument("--page-name", default="")
    p.add_argument("--table-name", default="")
    p.set_defaults(func=cmd_match)

    p = sub.add_parser("apply-corrections", help="Apply stored user corrections to an .xlf file")
    p.add_argument("input_file", help="Path to .xlf file")
    p.add_argument("corrections", help="JSON file with correction records")
    p.add_argument("--since", help="Only corrections newer than this ISO timestamp")
    p.add_argument("--user-only", action="store_true", help="Only UserCorrection records")
    p.set_defaults(func=cmd_apply_corrections)

    p = sub.add_parser("translate", help="Fill every needs-translation target")
    p.add_argument("input_file", help="Path to .xlf file")
    p.add_argument("--provider", default="configured", help="'mock' to skip the backend")
    p.add_argument("--memory", help="Translation memory database")
    p.add_argument("--output", help="Path to output .xlf file")
    p.set_defaults(func=cmd_translate)

    p = sub.add_parser("export-memory", help="Store translated units in the translation memory")
    p.add_argument("input_file", help="Path to .xlf file")
    p.add_argument("--memory", required=True, help="Translation memory database")
    p.add_argument("--type", default="None", help="Microsoft, OurDB, AITranslated or None")
    p.set_defaults(func=cmd_export_memory)

    return parser


def main(argv=None) -> int:
    setup_exception_hook()
    args = build_parser().parse_args(argv)

    if not os.path.exists(args.input_file):
        print(f"Error: File not found: {args.input_file}")
        return 1

    try:
        return args.func(args)
    except BcXliffError as e:
        logger.error(str(e))
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

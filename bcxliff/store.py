"""
Local translation memory used for exact and fuzzy lookups.

The store is a caller-owned object backed by SQLite; nothing is cached at
module level. `reset_cache()` drops the in-memory exact-match cache.
"""
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .logger import get_logger
from .text import extract_words, is_likely_tooltip, is_too_long_for_fuzzy

logger = get_logger(__name__)

# Confidence assigned to imported pairs by translation type
TYPE_CONFIDENCE = {
    "Microsoft": 1.0,
    "OurDB": 0.9,
    "AITranslated": 0.8,
}
DEFAULT_TYPE_CONFIDENCE = 0.7

FUZZY_PER_WORD = 3
FUZZY_MAX_SOURCE_LENGTH = 80

SCHEMA = """
CREATE TABLE IF NOT EXISTS translations (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    target TEXT NOT NULL,
    source_lang TEXT NOT NULL,
    target_lang TEXT NOT NULL,
    confidence REAL NOT NULL DEFAULT 0.9,
    source_database TEXT DEFAULT '',
    translation_type TEXT DEFAULT '',
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_translations_source ON translations (source, source_lang);
"""


@dataclass
class ExactMatch:
    translated: str
    confidence: float


@dataclass
class FuzzyExample:
    source: str
    target: str


class TranslationMemory:
    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self.conn = sqlite3.connect(db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self._exact_cache: Dict[Tuple[str, str], Optional[ExactMatch]] = {}

    def close(self):
        self.conn.close()

    def reset_cache(self):
        self._exact_cache.clear()

    def add(self, unit_id: str, source: str, target: str, source_lang: str, target_lang: str,
            confidence: float = 0.9, translation_type: str = "", source_database: str = "") -> bool:
        """Inserts a pair; returns False when the id is already stored."""
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT INTO translations (id, source, target, source_lang, target_lang, confidence, "
                    "source_database, translation_type, timestamp) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (unit_id, source, target, source_lang, target_lang, confidence, source_database,
                     translation_type, datetime.now(timezone.utc).isoformat()),
                )
        except sqlite3.IntegrityError:
            return False
        self._exact_cache.pop((source, source_lang), None)
        return True

    def import_units(self, units: Iterable, source_lang: str, target_lang: str,
                     translation_type: str = "None", source_database: str = "") -> Tuple[int, int]:
        """
        Stores every translated unit (id, source and target present).
        Returns (inserted, skipped).
        """
        confidence = TYPE_CONFIDENCE.get(translation_type, DEFAULT_TYPE_CONFIDENCE)
        inserted = skipped = 0
        for unit in units:
            source = (unit.source or "").strip()
            target = (unit.target or "").strip()
            if not (unit.id and source and target and unit.state == "translated"):
                continue
            if self.add(unit.id, source, target, source_lang, target_lang, confidence,
                        translation_type, source_database):
                inserted += 1
            else:
                skipped += 1
        logger.info(f"Imported {inserted} translations into memory ({skipped} already present)")
        return inserted, skipped

    def exact_lookup(self, text: str, lang: str) -> Optional[ExactMatch]:
        key = (text, lang)
        if key in self._exact_cache:
            return self._exact_cache[key]

        row = self.conn.execute(
            "SELECT target, confidence FROM translations WHERE source = ? AND source_lang = ? "
            "ORDER BY confidence DESC LIMIT 1",
            (text, lang),
        ).fetchone()
        match = None
        if row is not None:
            match = ExactMatch(translated=row["target"], confidence=round(float(row["confidence"] or 0.9), 2))
            logger.debug(f"Exact match for \"{text}\": \"{match.translated}\"")
        self._exact_cache[key] = match
        return match

    def fuzzy_lookup(self, text: str, lang: str) -> List[FuzzyExample]:
        """Up to three short examples per salient word of `text`, deduplicated by source."""
        examples: List[FuzzyExample] = []
        seen = set()
        for word in extract_words(text):
            rows = self.conn.execute(
                "SELECT source, target, confidence FROM translations "
                "WHERE instr(lower(source), ?) > 0 AND source_lang = ? AND length(source) <= ? "
                "ORDER BY confidence DESC",
                (word.lower(), lang, FUZZY_MAX_SOURCE_LENGTH),
            ).fetchall()
            picked = [
                r for r in rows
                if not is_too_long_for_fuzzy(r["source"]) and not is_likely_tooltip(r["source"])
            ][:FUZZY_PER_WORD]
            for row in picked:
                if row["source"] in seen:
                    continue
                seen.add(row["source"])
                examples.append(FuzzyExample(source=row["source"], target=row["target"]))
        return examples

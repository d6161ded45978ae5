"""
Applies stored user corrections to an XLIFF document.

Each correction is located through the candidate matcher using its captured
UI context; every matching trans-unit receives the corrected text. When two
corrections address the same unit with different text the first one wins
and the later one is reported as a conflict.
"""
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .context import ElementContext, to_int, to_text
from .logger import get_logger
from .matcher import MatchDiagnostics, find_candidates_from_dom
from .mutator import apply_updates, extract_existing_targets
from .policy import DEFAULT_SCORING_POLICY, ScoringPolicy

logger = get_logger(__name__)

USER_CORRECTION = "UserCorrection"

STATUS_APPLIED = "applied"
STATUS_UNCHANGED = "unchanged"
STATUS_UNMATCHED = "unmatched"
STATUS_CONFLICT = "conflict"
STATUS_SKIPPED = "skipped"


@dataclass
class CorrectionRecord:
    id: str
    source: str
    target: str
    element_context: Any = None
    translation_type: str = ""
    area: str = ""
    page_name: str = ""
    page_id: Optional[int] = None
    table_name: str = ""
    source_table_id: Optional[int] = None
    timestamp: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CorrectionRecord":
        """Accepts the stored camelCase record layout."""
        return cls(
            id=to_text(data.get("id")),
            source=to_text(data.get("source")),
            target=to_text(data.get("target")),
            element_context=data.get("elementContext"),
            translation_type=to_text(data.get("translationType")),
            area=to_text(data.get("area")),
            page_name=to_text(data.get("pageName")),
            page_id=to_int(data.get("pageId")),
            table_name=to_text(data.get("tableName")),
            source_table_id=to_int(data.get("sourceTableId")),
            timestamp=to_text(data.get("timestamp")),
        )

    def to_context(self) -> ElementContext:
        return ElementContext.from_record(
            self.element_context,
            source=self.source,
            page_name=self.page_name,
            page_id=self.page_id,
            table_name=self.table_name,
            source_table_id=self.source_table_id,
        )


@dataclass
class MatchedUnit:
    unit_id: str
    note: str
    confidence: float
    previous_target: Optional[str] = None


@dataclass
class CorrectionItem:
    record: CorrectionRecord
    status: str = STATUS_UNMATCHED
    matched_units: List[MatchedUnit] = field(default_factory=list)
    reason: str = ""
    diagnostics: Optional[MatchDiagnostics] = None


@dataclass
class CorrectionStats:
    updated: int = 0
    unchanged: int = 0
    unmatched: int = 0
    conflicts: int = 0
    skipped: int = 0


@dataclass
class CorrectionOutcome:
    document: str
    stats: CorrectionStats
    items: List[CorrectionItem]

    @property
    def changed(self) -> bool:
        return self.stats.updated > 0

    def count(self, status: str) -> int:
        return sum(1 for item in self.items if item.status == status)


def filter_corrections(records: Iterable[CorrectionRecord], since: Optional[str] = None,
                       user_corrections_only: bool = False) -> List[CorrectionRecord]:
    """
    Keeps records with a target, optionally only user corrections and only
    those newer than `since` (ISO timestamps compare as strings), oldest first.
    """
    kept = []
    for record in records:
        if not record.target:
            continue
        if user_corrections_only and record.translation_type != USER_CORRECTION:
            continue
        if since and not record.timestamp > since:
            continue
        kept.append(record)
    kept.sort(key=lambda r: r.timestamp)
    return kept


def apply_corrections(document: str, records: Iterable[CorrectionRecord],
                      policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> CorrectionOutcome:
    stats = CorrectionStats()
    items: List[CorrectionItem] = []
    updates: Dict[str, str] = {}
    existing_targets = extract_existing_targets(document)

    for record in records:
        item = CorrectionItem(record=record)
        items.append(item)

        if not record.source or not record.target:
            stats.skipped += 1
            item.status = STATUS_SKIPPED
            item.reason = "Empty source text" if not record.source else "Empty target text"
            continue

        result = find_candidates_from_dom(document, record.to_context(), policy)
        item.diagnostics = result.diagnostics

        if not result.candidates:
            stats.unmatched += 1
            item.status = STATUS_UNMATCHED
            item.reason = result.diagnostics.filter_reason or "No matching XLIFF trans-units found"
            continue

        has_conflict = False
        for candidate in result.candidates:
            item.matched_units.append(MatchedUnit(
                unit_id=candidate.unit_id,
                note=candidate.note,
                confidence=candidate.confidence,
                previous_target=existing_targets.get(candidate.unit_id),
            ))
            previous = updates.get(candidate.unit_id)
            if previous is not None and previous != record.target:
                stats.conflicts += 1
                has_conflict = True
                continue
            updates[candidate.unit_id] = record.target

        if has_conflict:
            item.status = STATUS_CONFLICT
            item.reason = "Different correction already exists for same trans-unit"
        else:
            item.status = STATUS_APPLIED

    if not updates:
        logger.info("No matching XLIFF units found for the corrections")
        return CorrectionOutcome(document=document, stats=stats, items=items)

    batch = apply_updates(document, updates)
    stats.updated = batch.updated
    stats.unchanged = batch.unchanged

    for item in items:
        if item.status != STATUS_APPLIED:
            continue
        unit_ids = {mu.unit_id for mu in item.matched_units}
        if not unit_ids & batch.updated_units and unit_ids & batch.unchanged_units:
            item.status = STATUS_UNCHANGED
            item.reason = "Target already matches correction"

    logger.info(f"Applied {stats.updated} updates ({stats.unchanged} unchanged, {stats.unmatched} unmatched, "
                f"{stats.conflicts} conflicts, {stats.skipped} skipped)")
    return CorrectionOutcome(document=batch.document, stats=stats, items=items)


def _diagnostics_dict(diag: MatchDiagnostics) -> Dict[str, Any]:
    return {
        "searchedText": diag.searched_text,
        "normalizedSearchText": diag.normalized_search_text,
        "textMatchCount": diag.text_match_count,
        "propertyFilteredCount": diag.property_filtered_count,
        "pageTableFilteredCount": diag.page_table_filtered_count,
        "finalMatchCount": diag.final_match_count,
        "sampleTextMatches": list(diag.sample_text_matches),
        "filterReason": diag.filter_reason,
    }


def build_report(xliff_path: str, outcome: CorrectionOutcome) -> Dict[str, Any]:
    return {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "xliffFile": xliff_path,
        "summary": {
            "totalCorrections": len(outcome.items),
            "applied": outcome.count(STATUS_APPLIED),
            "unchanged": outcome.count(STATUS_UNCHANGED),
            "unmatched": outcome.count(STATUS_UNMATCHED),
            "conflicts": outcome.count(STATUS_CONFLICT),
            "skipped": outcome.count(STATUS_SKIPPED),
            "xliffUpdated": outcome.stats.updated,
            "xliffUnchanged": outcome.stats.unchanged,
        },
        "corrections": [
            {
                "id": item.record.id,
                "status": item.status,
                "source": item.record.source,
                "target": item.record.target,
                "area": item.record.area,
                "pageName": item.record.page_name,
                "pageId": item.record.page_id,
                "tableName": item.record.table_name,
                "sourceTableId": item.record.source_table_id,
                "reason": item.reason,
                "diagnostics": _diagnostics_dict(item.diagnostics) if item.diagnostics else None,
                "matchedUnits": [
                    {
                        "unitId": mu.unit_id,
                        "note": mu.note,
                        "confidence": f"{round(mu.confidence * 100)}%",
                        "previousTarget": mu.previous_target,
                    }
                    for mu in item.matched_units
                ],
            }
            for item in outcome.items
        ],
    }


def report_path_for(xliff_path: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%S")
    directory = os.path.dirname(os.path.abspath(xliff_path))
    name = os.path.splitext(os.path.basename(xliff_path))[0]
    return os.path.join(directory, f"correction-report-{name}-{stamp}.json")


def write_report(xliff_path: str, outcome: CorrectionOutcome, now: Optional[datetime] = None) -> str:
    """Writes the JSON report next to the XLIFF file and returns its path."""
    path = report_path_for(xliff_path, now)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(build_report(xliff_path, outcome), f, indent=2, ensure_ascii=False)
    logger.info(f"Correction report saved to {path}")
    return path

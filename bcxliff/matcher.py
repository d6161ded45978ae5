"""
XLIFF candidate matcher.

Given text captured from a running page and the context it was captured in,
finds the trans-unit records that most likely hold that text and ranks them.
The document is scanned as raw text, block by block, so partial or slightly
malformed files still yield results.
"""
import re
from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .context import (
    CONTENT_AREAS,
    ElementContext,
    expected_property_id,
    matches_any_element_type,
    plausible_element_types,
)
from .logger import get_logger
from .policy import DEFAULT_SCORING_POLICY, ScoringPolicy
from .text import decode_xml_entities, normalize
from .unit_id import TransUnitIdentity, parse_trans_unit_id, property_name

logger = get_logger(__name__)

UNIT_PATTERN = re.compile(r'<trans-unit\b[^>]*\bid="([^"]+)"[^>]*>[\s\S]*?</trans-unit>', re.IGNORECASE)
TARGET_PATTERN = re.compile(r"<target\b[^>]*>([\s\S]*?)</target>", re.IGNORECASE)
SOURCE_PATTERN = re.compile(r"<source\b[^>]*>([\s\S]*?)</source>", re.IGNORECASE)
NOTE_PATTERN = re.compile(r'<note\b[^>]*from="Xliff Generator"[^>]*>([\s\S]*?)</note>', re.IGNORECASE)
NOTE_PREFIX_PATTERN = re.compile(r"^\s*(\w+)\s+(.+?)\s+-\s+")
NON_ALNUM_PATTERN = re.compile(r"[\W_]")

PAGE_OBJECT_TYPES = ("page", "pageextension")
TABLE_OBJECT_TYPES = ("table", "tableextension")

# Raw DOM fields tried in order of trust
DOM_TEXT_FIELDS = (
    ("translated_text", 1.0, "translatedText"),
    ("inner_text", 0.9, "innerText"),
    ("title_attribute", 0.8, "titleAttribute"),
    ("aria_label", 0.8, "ariaLabel"),
    ("placeholder", 0.7, "placeholder"),
)


@dataclass(frozen=True)
class TextCandidate:
    text: str
    normalized: str
    weight: float
    origin: str


@dataclass
class XliffCandidate:
    unit_id: str
    source: str
    target: str
    object_type: str
    object_id: str
    property_id: str
    confidence: float
    matched_via: str
    matched_text: str
    element_type: Optional[str] = None
    element_id: Optional[str] = None
    note: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchDiagnostics:
    searched_text: str = ""
    normalized_search_text: str = ""
    text_match_count: int = 0
    unparsed_id_count: int = 0
    property_filtered_count: int = 0
    page_table_filtered_count: int = 0
    final_match_count: int = 0
    sample_text_matches: List[str] = field(default_factory=list)
    filter_reason: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class MatchResult:
    candidates: List[XliffCandidate]
    diagnostics: MatchDiagnostics


def collect_text_candidates(entries: Iterable[Tuple[Optional[str], float, str]]) -> List[TextCandidate]:
    """
    Turns (raw text, weight, origin) entries into candidates, one per
    normalized key; the higher weight wins when two fields normalize alike.
    """
    by_key: Dict[str, TextCandidate] = {}
    for text, weight, origin in entries:
        raw = str(text or "").strip()
        if not raw:
            continue
        key = normalize(raw)
        if not key:
            continue
        existing = by_key.get(key)
        if existing is None or weight > existing.weight:
            by_key[key] = TextCandidate(text=raw, normalized=key, weight=weight, origin=origin)
    return list(by_key.values())


def dom_text_candidates(context: ElementContext) -> List[TextCandidate]:
    return collect_text_candidates(
        (getattr(context, attr), weight, origin) for attr, weight, origin in DOM_TEXT_FIELDS
    )


def _is_object_kind(object_type: str, kinds: Tuple[str, ...]) -> bool:
    return (object_type or "").lower() in kinds


def _alnum(text: str) -> str:
    return NON_ALNUM_PATTERN.sub("", (text or "").lower())


def derive_table_name(page_name: str, policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> str:
    """"Item List" -> "Item". Only the fixed suffix list is stripped."""
    name = (page_name or "").strip()
    for suffix in policy.table_name_suffixes:
        if len(name) > len(suffix) and name.lower().endswith(suffix.lower()):
            return name[: -len(suffix)].strip()
    return name


def parse_note_prefix(note: str) -> Optional[Tuple[str, str]]:
    """"Table Item - Field No. - Property Caption" -> ("Table", "Item")."""
    match = NOTE_PREFIX_PATTERN.match(note or "")
    if not match:
        return None
    return match.group(1), match.group(2).strip()


def affinity_bonus(note: str, context: ElementContext,
                   policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> Optional[float]:
    """
    Returns the page/table affinity bonus for a unit note, or None when the
    note belongs to neither the captured page nor its table. A page match
    takes precedence; the two bonuses never stack.
    """
    prefix = parse_note_prefix(note)
    if prefix is None:
        return None
    kind, name = prefix

    page_name = (context.page_name or "").strip()
    if page_name and _is_object_kind(kind, PAGE_OBJECT_TYPES) and name.lower() == page_name.lower():
        return policy.page_affinity_bonus

    table_name = (context.table_name or "").strip() or derive_table_name(page_name, policy)
    if table_name and _is_object_kind(kind, TABLE_OBJECT_TYPES):
        if name.lower() == table_name.lower() or (_alnum(name) and _alnum(name) == _alnum(table_name)):
            return policy.table_affinity_bonus

    return None


def score_candidate(identity: TransUnitIdentity, text_candidate: TextCandidate, context: ElementContext,
                    expected_property: Optional[str], element_types: Iterable[str],
                    policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> float:
    """Additive rule set; the result is not clamped."""
    confidence = policy.base_confidence + policy.weight_factor * text_candidate.weight
    xliff_type = identity.element_type

    if expected_property and identity.property_id == expected_property:
        confidence += policy.property_match_bonus

    if xliff_type and matches_any_element_type(xliff_type, element_types):
        confidence += policy.element_type_bonus

    ui_area = context.ui_area
    aria_role = (context.aria_role or "").lower()
    html_tag = (context.html_tag or "").lower()
    is_field_like = xliff_type in ("Field", "Control")

    if ui_area == "ActionBar" and xliff_type == "Action":
        confidence += policy.correlation_bonus
    if ui_area == "List" and xliff_type == "Column":
        confidence += policy.correlation_bonus
    if ui_area in CONTENT_AREAS and is_field_like:
        confidence += policy.correlation_bonus
    if aria_role == "columnheader" and xliff_type == "Column":
        confidence += policy.correlation_bonus
    if html_tag == "button" and xliff_type == "Action":
        confidence += policy.correlation_bonus
    if html_tag == "input" and is_field_like:
        confidence += policy.correlation_bonus

    if (context.element_type or "").lower() == "column":
        if _is_object_kind(identity.object_type, TABLE_OBJECT_TYPES) and xliff_type == "Field":
            confidence += policy.column_table_field_bonus
        elif _is_object_kind(identity.object_type, PAGE_OBJECT_TYPES) and xliff_type == "Control":
            confidence += policy.column_page_control_bonus

    return confidence


def _filter_reason(diag: MatchDiagnostics, context: ElementContext, expected_property: Optional[str]) -> str:
    if diag.text_match_count == 0:
        return f'No trans-unit target matches "{diag.searched_text}"'
    parsed = diag.text_match_count - diag.unparsed_id_count
    if diag.property_filtered_count and diag.property_filtered_count >= parsed:
        return (f"All {diag.property_filtered_count} text matches have a different property "
                f"than the expected {property_name(expected_property or '')}")
    if diag.page_table_filtered_count:
        return (f"All remaining matches were filtered out by page/table affinity "
                f"(page '{context.page_name}', table '{context.table_name}')")
    return "Matching trans-units have unrecognised ids"


def match_candidates(document: str, text_candidates: List[TextCandidate], context: ElementContext,
                     policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> MatchResult:
    diagnostics = MatchDiagnostics()
    if text_candidates:
        diagnostics.searched_text = text_candidates[0].text
        diagnostics.normalized_search_text = text_candidates[0].normalized

    expected_property = expected_property_id(context)
    element_types = plausible_element_types(context)
    lookup = {c.normalized: c for c in text_candidates}
    use_affinity = bool((context.page_name or "").strip() or (context.table_name or "").strip())

    by_unit: Dict[str, XliffCandidate] = {}

    for unit_match in UNIT_PATTERN.finditer(document or ""):
        block = unit_match.group(0)
        unit_id = unit_match.group(1)

        target_match = TARGET_PATTERN.search(block)
        if not target_match:
            continue

        target = normalize(target_match.group(1))
        text_candidate = lookup.get(target)
        if text_candidate is None:
            continue

        note_match = NOTE_PATTERN.search(block)
        note = decode_xml_entities(note_match.group(1)).strip() if note_match else ""

        diagnostics.text_match_count += 1
        if len(diagnostics.sample_text_matches) < policy.sample_note_limit:
            diagnostics.sample_text_matches.append(note or unit_id)

        identity = parse_trans_unit_id(unit_id)
        if identity is None:
            diagnostics.unparsed_id_count += 1
            logger.debug(f"Skipping trans-unit with unrecognised id: {unit_id}")
            continue

        if expected_property and identity.property_id != expected_property:
            diagnostics.property_filtered_count += 1
            continue

        confidence = score_candidate(identity, text_candidate, context, expected_property, element_types, policy)

        if use_affinity and note:
            bonus = affinity_bonus(note, context, policy)
            if bonus is None:
                diagnostics.page_table_filtered_count += 1
                continue
            confidence += bonus

        source_match = SOURCE_PATTERN.search(block)
        candidate = XliffCandidate(
            unit_id=unit_id,
            source=decode_xml_entities(source_match.group(1)) if source_match else "",
            target=target,
            object_type=identity.object_type,
            object_id=identity.object_id,
            element_type=identity.element_type,
            element_id=identity.element_id,
            property_id=identity.property_id,
            note=note,
            confidence=round(max(0.0, min(policy.max_confidence, confidence)), 4),
            matched_via=text_candidate.origin,
            matched_text=text_candidate.text,
        )

        existing = by_unit.get(unit_id)
        if existing is None or existing.confidence < candidate.confidence:
            by_unit[unit_id] = candidate

    candidates = list(by_unit.values())

    # Page captions win over the table field they were inherited from
    if any(_is_object_kind(c.object_type, PAGE_OBJECT_TYPES) for c in candidates):
        candidates = [c for c in candidates if not _is_object_kind(c.object_type, TABLE_OBJECT_TYPES)]

    candidates.sort(key=lambda c: c.confidence, reverse=True)

    diagnostics.final_match_count = len(candidates)
    if not candidates:
        diagnostics.filter_reason = _filter_reason(diagnostics, context, expected_property)

    return MatchResult(candidates=candidates, diagnostics=diagnostics)


def find_candidates(document: str, text: str, context: ElementContext,
                    policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> MatchResult:
    text_candidates = collect_text_candidates([(text, 1.0, "targetText")])
    return match_candidates(document, text_candidates, context, policy)


def find_candidates_from_dom(document: str, context: ElementContext,
                             policy: ScoringPolicy = DEFAULT_SCORING_POLICY) -> MatchResult:
    return match_candidates(document, dom_text_candidates(context), context, policy)


def format_candidate(candidate: XliffCandidate) -> str:
    element = f" - {candidate.element_type} {candidate.element_id}" if candidate.element_type else ""
    return (f"{candidate.object_type} {candidate.object_id}{element} - "
            f"{property_name(candidate.property_id)} ({round(candidate.confidence * 100)}%)")

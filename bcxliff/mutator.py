"""
Non-destructive rewriting of <target> elements in raw XLIFF text.

Only the addressed trans-unit block is touched; everything else, including
whitespace and attribute order, is carried over byte for byte. Writes
compare before replacing, so re-applying the same text is a no-op.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

from .logger import get_logger
from .text import normalize_for_compare, normalize_xml, strip_cdata, xml_escape, xml_unescape

logger = get_logger(__name__)

UNIT_PATTERN = re.compile(r'<trans-unit\b[^>]*\bid="([^"]+)"[^>]*>[\s\S]*?</trans-unit>', re.IGNORECASE)
ANY_UNIT_PATTERN = re.compile(r"<trans-unit\b[^>]*>[\s\S]*?</trans-unit>", re.IGNORECASE)
UNIT_ID_PATTERN = re.compile(r'<trans-unit\b[^>]*\bid="([^"]+)"', re.IGNORECASE)
TARGET_PATTERN = re.compile(r"<target\b([^>]*)>([\s\S]*?)</target>", re.IGNORECASE)
TARGET_SELF_CLOSING_PATTERN = re.compile(r"<target\b([^>]*?)/>", re.IGNORECASE)
ANY_TARGET_PATTERN = re.compile(r"<target\b([^>]*?)/>|<target\b([^>]*)>([\s\S]*?)</target>", re.IGNORECASE)
SOURCE_PATTERN = re.compile(r"<source\b[^>]*>([\s\S]*?)</source>", re.IGNORECASE)
INDENT_SOURCE_PATTERN = re.compile(r"\n([ \t]*)<source\b", re.IGNORECASE)
INDENT_TARGET_PATTERN = re.compile(r"\n([ \t]*)<target\b", re.IGNORECASE)
CONFIDENCE_ATTR_PATTERN = re.compile(r'\bconfidence\s*=\s*"([^"]+)"', re.IGNORECASE)
NEEDS_TRANSLATION_PATTERN = re.compile(r'state\s*=\s*"needs-translation"', re.IGNORECASE)

DEFAULT_INDENT = "    "


@dataclass
class MutationResult:
    document: str
    changed: bool
    unit_id: Optional[str] = None


@dataclass
class BatchMutationResult:
    document: str
    updated_units: Set[str] = field(default_factory=set)
    unchanged_units: Set[str] = field(default_factory=set)

    @property
    def updated(self) -> int:
        return len(self.updated_units)

    @property
    def unchanged(self) -> int:
        return len(self.unchanged_units)


@dataclass
class ExistingTranslation:
    translated: str
    confidence: float
    unit_id: Optional[str] = None


def format_confidence_attr(confidence: float) -> str:
    value = confidence if isinstance(confidence, (int, float)) and math.isfinite(confidence) else 0.0
    return f"{value:.2f}"


def build_target_tag(text: str, confidence: float = 1.0, translation_source: str = "userCorrection") -> str:
    return (f'<target state="translated" confidence="{format_confidence_attr(confidence)}" '
            f'translationSource="{translation_source}">{xml_escape(text)}</target>')


def detect_indent(block: str) -> str:
    match = INDENT_SOURCE_PATTERN.search(block) or INDENT_TARGET_PATTERN.search(block)
    return match.group(1) if match else DEFAULT_INDENT


def update_unit_target(block: str, text: str, confidence: float = 1.0,
                       translation_source: str = "userCorrection") -> str:
    """Returns the block with its target replaced, or the block unchanged when it already holds the text."""
    target_tag = build_target_tag(text, confidence, translation_source)

    existing = TARGET_PATTERN.search(block)
    if existing:
        current = normalize_for_compare(xml_unescape(strip_cdata(existing.group(2))))
        if current == normalize_for_compare(text):
            return block
        return block[:existing.start()] + target_tag + block[existing.end():]

    self_closing = TARGET_SELF_CLOSING_PATTERN.search(block)
    if self_closing:
        return block[:self_closing.start()] + target_tag + block[self_closing.end():]

    source = SOURCE_PATTERN.search(block)
    if source:
        indent = detect_indent(block)
        return block[:source.end()] + f"\n{indent}{target_tag}" + block[source.end():]

    return block


def apply_translation(document: str, unit_id: str, text: str, confidence: float = 1.0,
                      translation_source: str = "userCorrection") -> MutationResult:
    """Rewrites the target of the unit with the given id. Only the first block with that id is touched."""
    for match in UNIT_PATTERN.finditer(document or ""):
        if match.group(1) != unit_id:
            continue
        block = match.group(0)
        replaced = update_unit_target(block, text, confidence, translation_source)
        if replaced == block:
            return MutationResult(document=document, changed=False, unit_id=unit_id)
        logger.debug(f"Updated target of {unit_id}")
        return MutationResult(
            document=document[:match.start()] + replaced + document[match.end():],
            changed=True,
            unit_id=unit_id,
        )

    logger.debug(f"Trans-unit not found: {unit_id}")
    return MutationResult(document=document, changed=False)


def apply_updates(document: str, updates: Mapping[str, str], confidence: float = 1.0,
                  translation_source: str = "userCorrection") -> BatchMutationResult:
    """Applies many unit-id addressed updates in a single pass over the document."""
    result = BatchMutationResult(document=document)

    def replace(match: re.Match) -> str:
        unit_id = match.group(1)
        if unit_id not in updates:
            return match.group(0)
        block = match.group(0)
        replaced = update_unit_target(block, updates[unit_id], confidence, translation_source)
        if replaced == block:
            result.unchanged_units.add(unit_id)
        else:
            result.updated_units.add(unit_id)
        return replaced

    result.document = UNIT_PATTERN.sub(replace, document or "")
    return result


def _upsert_attr(attrs: str, name: str, value: str) -> str:
    pattern = re.compile(rf'\b{name}\s*=\s*"[^"]*"', re.IGNORECASE)
    if pattern.search(attrs):
        return pattern.sub(f'{name}="{value}"', attrs, count=1)
    return f"{attrs} {name}=\"{value}\"" if attrs else f'{name}="{value}"'


def apply_first_translation(document: str, source_text: str, text: str, confidence: float = 0.9,
                            translation_source: str = "aiTranslator") -> MutationResult:
    """
    Fills the first unit whose source matches `source_text` and whose target
    is still marked needs-translation. Existing target attributes are kept.
    """
    needle = normalize_for_compare(xml_unescape(strip_cdata(source_text)))

    for match in ANY_UNIT_PATTERN.finditer(document or ""):
        block = match.group(0)
        source = SOURCE_PATTERN.search(block)
        if not source or normalize_for_compare(xml_unescape(strip_cdata(source.group(1)))) != needle:
            continue

        target = ANY_TARGET_PATTERN.search(block)
        if not target:
            continue
        attrs = (target.group(1) if target.group(1) is not None else target.group(2) or "").strip()
        if not NEEDS_TRANSLATION_PATTERN.search(attrs):
            continue

        new_attrs = _upsert_attr(attrs, "state", "translated")
        new_attrs = _upsert_attr(new_attrs, "confidence", format_confidence_attr(confidence))
        new_attrs = _upsert_attr(new_attrs, "translationSource", translation_source)
        new_target = f"<target {new_attrs}>{xml_escape(text)}</target>"

        replaced = block[:target.start()] + new_target + block[target.end():]
        id_match = UNIT_ID_PATTERN.search(block)
        return MutationResult(
            document=document[:match.start()] + replaced + document[match.end():],
            changed=True,
            unit_id=id_match.group(1) if id_match else None,
        )

    return MutationResult(document=document, changed=False)


def extract_existing_targets(document: str) -> Dict[str, str]:
    targets: Dict[str, str] = {}
    for match in UNIT_PATTERN.finditer(document or ""):
        target = TARGET_PATTERN.search(match.group(0))
        if target:
            targets[match.group(1)] = xml_unescape(target.group(2))
    return targets


def _unit_translation(block: str, default_confidence: float) -> Optional[Tuple[str, ExistingTranslation]]:
    source = SOURCE_PATTERN.search(block)
    if not source:
        return None
    source_text = strip_cdata(source.group(1))
    if not source_text:
        return None

    target = TARGET_PATTERN.search(block)
    if not target:
        return None
    translated = normalize_xml(xml_unescape(strip_cdata(target.group(2))))
    if not translated:
        return None

    confidence = default_confidence
    conf_match = CONFIDENCE_ATTR_PATTERN.search(target.group(1) or "")
    if conf_match:
        try:
            value = float(conf_match.group(1))
            if math.isfinite(value):
                confidence = value
        except ValueError:
            pass

    id_match = UNIT_ID_PATTERN.search(block)
    key = normalize_for_compare(xml_unescape(source_text))
    return key, ExistingTranslation(translated, confidence, id_match.group(1) if id_match else None)


def build_translation_index(document: str, default_confidence: float = 0.9) -> Dict[str, ExistingTranslation]:
    """Normalized source -> best existing translation in the same file."""
    index: Dict[str, ExistingTranslation] = {}
    for match in ANY_UNIT_PATTERN.finditer(document or ""):
        entry = _unit_translation(match.group(0), default_confidence)
        if entry is None:
            continue
        key, found = entry
        previous = index.get(key)
        if previous is None or found.confidence > previous.confidence:
            index[key] = found
    return index


def lookup_in_index(index: Mapping[str, ExistingTranslation], source_text: str) -> Optional[ExistingTranslation]:
    return index.get(normalize_for_compare(xml_unescape(strip_cdata(source_text))))


def existing_translations(document: str, source_text: str,
                          default_confidence: float = 0.9) -> List[ExistingTranslation]:
    """All distinct translations already present for a source text, in document order."""
    needle = normalize_for_compare(xml_unescape(strip_cdata(source_text)))
    results: List[ExistingTranslation] = []
    seen = set()
    for match in ANY_UNIT_PATTERN.finditer(document or ""):
        entry = _unit_translation(match.group(0), default_confidence)
        if entry is None or entry[0] != needle:
            continue
        found = entry[1]
        key = found.translated.lower()
        if key in seen:
            continue
        seen.add(key)
        results.append(found)
    return results


def extract_languages(document: str) -> Tuple[str, str]:
    source = re.search(r'source-language="([^"]+)"', document or "")
    target = re.search(r'target-language="([^"]+)"', document or "")
    return (source.group(1) if source else "en-US", target.group(1) if target else "cs-CZ")


def units_needing_translation(document: str) -> List[Tuple[Optional[str], str]]:
    """(unit id, raw source text) for every unit whose target is marked needs-translation."""
    pending: List[Tuple[Optional[str], str]] = []
    for match in ANY_UNIT_PATTERN.finditer(document or ""):
        block = match.group(0)
        source = SOURCE_PATTERN.search(block)
        target = ANY_TARGET_PATTERN.search(block)
        if not source or not target:
            continue
        attrs = target.group(1) if target.group(1) is not None else target.group(2) or ""
        if not NEEDS_TRANSLATION_PATTERN.search(attrs):
            continue
        source_text = strip_cdata(source.group(1)).strip()
        if not source_text:
            continue
        id_match = UNIT_ID_PATTERN.search(block)
        pending.append((id_match.group(1) if id_match else None, source_text))
    return pending

"""
Context classifier.

Maps where a piece of UI text was captured (element kind, UI area, DOM hints)
onto the XLIFF vocabulary: the expected property id and the set of XLIFF
element types that could plausibly carry that text.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional

from .unit_id import PROPERTY_CAPTION, PROPERTY_TOOLTIP

CONTENT_AREAS = ("ContentArea", "Group", "FieldGroup")


@dataclass(frozen=True)
class ContextFlags:
    in_action_bar: bool = False
    in_grid: bool = False
    in_field_group: bool = False
    in_content_area: bool = False


@dataclass(frozen=True)
class ElementContext:
    element_type: str = ""
    property_type: str = ""
    ui_area: str = ""
    html_tag: str = ""
    aria_role: str = ""
    aria_label: str = ""
    title_attribute: str = ""
    placeholder: str = ""
    inner_text: str = ""
    translated_text: str = ""
    is_tooltip: Optional[bool] = None
    flags: Optional[ContextFlags] = None
    page_name: str = ""
    page_id: Optional[int] = None
    table_name: str = ""
    source_table_id: Optional[int] = None

    @classmethod
    def from_record(cls, element_context: Any, source: str = "", page_name: Any = None,
                    page_id: Any = None, table_name: Any = None,
                    source_table_id: Any = None) -> "ElementContext":
        """
        Builds a context from a stored correction record. The element context
        may arrive as a mapping or as a JSON string; anything else is ignored.
        """
        ctx: Dict[str, Any] = {}
        if isinstance(element_context, Mapping):
            ctx = dict(element_context)
        elif isinstance(element_context, str) and element_context.strip():
            try:
                loaded = json.loads(element_context)
                if isinstance(loaded, dict):
                    ctx = loaded
            except json.JSONDecodeError:
                ctx = {}

        raw_tooltip = ctx.get("isToolTip")
        if isinstance(raw_tooltip, bool):
            is_tooltip = raw_tooltip
        elif to_text(raw_tooltip):
            is_tooltip = to_text(raw_tooltip).lower() == "true"
        else:
            is_tooltip = None

        return cls(
            element_type=to_text(ctx.get("elementType")),
            property_type=to_text(ctx.get("propertyType")),
            ui_area=to_text(ctx.get("uiArea")),
            html_tag=to_text(ctx.get("htmlTag")),
            aria_role=to_text(ctx.get("ariaRole")),
            aria_label=to_text(ctx.get("ariaLabel")),
            title_attribute=to_text(ctx.get("titleAttribute")),
            placeholder=to_text(ctx.get("placeholder")),
            inner_text=to_text(ctx.get("innerText")),
            translated_text=source,
            is_tooltip=is_tooltip,
            flags=parse_context_flags(ctx.get("dataAttributes")),
            page_name=to_text(page_name),
            page_id=to_int(page_id),
            table_name=to_text(table_name),
            source_table_id=to_int(source_table_id),
        )


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_context_flags(data_attributes: Any) -> Optional[ContextFlags]:
    """Reads the `_contextFlags` object from the captured data attributes (JSON text or mapping)."""
    if not data_attributes:
        return None
    parsed = data_attributes
    if isinstance(data_attributes, str):
        try:
            parsed = json.loads(data_attributes)
        except json.JSONDecodeError:
            return None
    if not isinstance(parsed, Mapping):
        return None
    flags = parsed.get("_contextFlags")
    if not isinstance(flags, Mapping):
        return None
    return ContextFlags(
        in_action_bar=bool(flags.get("inActionBar")),
        in_grid=bool(flags.get("inGrid")),
        in_field_group=bool(flags.get("inFieldGroup")),
        in_content_area=bool(flags.get("inContentArea")),
    )


def expected_property_id(context: ElementContext) -> Optional[str]:
    """Explicit tooltip flag wins, then the free-text property type; None means no property filter."""
    if isinstance(context.is_tooltip, bool):
        return PROPERTY_TOOLTIP if context.is_tooltip else PROPERTY_CAPTION

    prop = (context.property_type or "").strip().lower()
    if prop == "tooltip":
        return PROPERTY_TOOLTIP
    if prop == "caption":
        return PROPERTY_CAPTION
    return None


def plausible_element_types(context: ElementContext) -> FrozenSet[str]:
    types = set()

    if context.element_type:
        types.add(context.element_type)
        # List columns inherit captions from the table field or a page control override
        if context.element_type.lower() == "column":
            types.update(("Field", "Control"))

    if context.ui_area == "ActionBar":
        types.add("Action")
    if context.ui_area == "List":
        types.update(("Column", "Field", "Control"))
    if context.ui_area in CONTENT_AREAS:
        types.update(("Field", "Control"))

    tag = (context.html_tag or "").lower()
    if tag == "button":
        types.add("Action")
    if tag in ("input", "select", "textarea"):
        types.update(("Field", "Control"))

    role = (context.aria_role or "").lower()
    if role == "columnheader":
        types.update(("Column", "Field", "Control"))
    if role == "button":
        types.add("Action")

    flags = context.flags
    if flags:
        if flags.in_action_bar:
            types.add("Action")
        if flags.in_grid:
            types.update(("Column", "Field", "Control"))
        if flags.in_field_group or flags.in_content_area:
            types.update(("Field", "Control"))

    return frozenset(types)


# XLIFF element type -> BC element types it satisfies (besides itself)
TYPE_ALIASES: Dict[str, FrozenSet[str]] = {
    "control": frozenset({"field", "column"}),
    "field": frozenset({"column"}),
    "action": frozenset({"action"}),
}


def types_are_compatible(xliff_type: Optional[str], bc_type: str) -> bool:
    if not xliff_type or not bc_type:
        return False
    xliff_lower = xliff_type.lower()
    bc_lower = bc_type.lower()
    if xliff_lower == bc_lower:
        return True
    return bc_lower in TYPE_ALIASES.get(xliff_lower, frozenset())


def matches_any_element_type(xliff_type: Optional[str], bc_types: Iterable[str]) -> bool:
    return any(types_are_compatible(xliff_type, bc_type) for bc_type in bc_types)


def classify_context(context: ElementContext) -> dict:
    return {
        "expected_property_id": expected_property_id(context),
        "element_types": sorted(plausible_element_types(context)),
    }

"""
Trans-unit identifiers.

Ids are produced by the XLIFF generator and only ever take two shapes:
    "Table 2599318640 - Property 2879900210"
    "Page 501793530 - Control 188556375 - Property 1295455071"
"""
import re
from dataclasses import dataclass
from typing import Optional

PROPERTY_CAPTION = "2879900210"
PROPERTY_TOOLTIP = "1295455071"

FULL_ID_PATTERN = re.compile(r"(\w+)\s+(\d+)\s+-\s+(\w+)\s+(\d+)\s+-\s+Property\s+(\d+)")
SIMPLE_ID_PATTERN = re.compile(r"(\w+)\s+(\d+)\s+-\s+Property\s+(\d+)")


@dataclass(frozen=True)
class TransUnitIdentity:
    object_type: str
    object_id: str
    property_id: str
    element_type: Optional[str] = None
    element_id: Optional[str] = None

    def __post_init__(self):
        if (self.element_type is None) != (self.element_id is None):
            raise ValueError("element_type and element_id must be given together")


def parse_trans_unit_id(unit_id: str) -> Optional[TransUnitIdentity]:
    """Returns None for anything that is not one of the two generator shapes."""
    text = unit_id or ""

    match = FULL_ID_PATTERN.fullmatch(text)
    if match:
        return TransUnitIdentity(
            object_type=match.group(1),
            object_id=match.group(2),
            element_type=match.group(3),
            element_id=match.group(4),
            property_id=match.group(5),
        )

    match = SIMPLE_ID_PATTERN.fullmatch(text)
    if match:
        return TransUnitIdentity(
            object_type=match.group(1),
            object_id=match.group(2),
            property_id=match.group(3),
        )

    return None


def format_trans_unit_id(identity: TransUnitIdentity) -> str:
    head = f"{identity.object_type} {identity.object_id}"
    if identity.element_type is not None:
        head += f" - {identity.element_type} {identity.element_id}"
    return f"{head} - Property {identity.property_id}"


def property_name(property_id: str) -> str:
    if property_id == PROPERTY_CAPTION:
        return "Caption"
    if property_id == PROPERTY_TOOLTIP:
        return "ToolTip"
    return f"Property {property_id}"

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TranslationUnit:
    """
    A single trans-unit as read from an XLIFF file.
    """
    id: str
    source: str  # Inner text of <source>, entities decoded
    target: str = ""  # Inner text of <target>, empty when absent
    state: str = "new"  # XLIFF state attribute of <target>

    confidence: Optional[float] = None
    translation_source: str = ""

    # <note> texts keyed by their `from` attribute (e.g. "Xliff Generator")
    notes: dict = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @property
    def generator_note(self) -> str:
        return self.notes.get("Xliff Generator", "")

    @property
    def needs_translation(self) -> bool:
        return self.state == "needs-translation"

    def to_dict(self):
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "state": self.state,
            "confidence": self.confidence,
            "note": self.generator_note,
        }

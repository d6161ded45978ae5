from lxml import etree
from typing import List, Optional, Tuple
import math
import os

from .errors import InvalidInputError
from .xliff_obj import TranslationUnit
from .logger import get_logger

logger = get_logger(__name__)


class XliffParser:
    """
    Read-only structured view of an XLIFF 1.2 document.

    Writes never go through the tree; they are made on the raw text by the
    mutator so that formatting survives untouched.
    """

    def __init__(self, file_path: Optional[str] = None):
        self.file_path = file_path
        self.ns = {'xliff': 'urn:oasis:names:tc:xliff:document:1.2'}
        self.tree = None
        self.root = None

    def load(self):
        """Parses the XLIFF file."""
        if not self.file_path or not os.path.exists(self.file_path):
            raise FileNotFoundError(f"File not found: {self.file_path}")

        parser = etree.XMLParser(remove_blank_text=False)
        try:
            self.tree = etree.parse(self.file_path, parser)
        except etree.XMLSyntaxError as e:
            raise InvalidInputError(f"Invalid XLIFF document {self.file_path}: {e}") from e
        self.root = self.tree.getroot()
        self._detect_namespace()

    def load_string(self, document: str):
        """Parses XLIFF content already held in memory."""
        parser = etree.XMLParser(remove_blank_text=False)
        try:
            self.root = etree.fromstring(document.encode("utf-8"), parser)
        except (etree.XMLSyntaxError, ValueError) as e:
            raise InvalidInputError(f"Invalid XLIFF document: {e}") from e
        self.tree = self.root.getroottree()
        self._detect_namespace()

    def _detect_namespace(self):
        if self.root.nsmap and None in self.root.nsmap:
            self.ns['xliff'] = self.root.nsmap[None]

    def get_languages(self) -> Tuple[str, str]:
        """
        Source and target languages of the first <file> element,
        e.g. ("en-US", "cs-CZ"). Empty strings when absent.
        """
        if self.root is None:
            return ("", "")

        files = self.root.xpath('//*[local-name()="file"]')
        if not files:
            return ("", "")

        file_node = files[0]
        return file_node.get("source-language", ""), file_node.get("target-language", "")

    def get_translation_units(self) -> List[TranslationUnit]:
        """Extracts translation units from the parsed tree."""
        if self.root is None:
            return []

        units = []
        for tu in self.root.xpath('//*[local-name()="trans-unit"]'):
            source_nodes = tu.xpath('*[local-name()="source"]')
            target_nodes = tu.xpath('*[local-name()="target"]')
            target_node = target_nodes[0] if target_nodes else None

            notes = {}
            for note in tu.xpath('*[local-name()="note"]'):
                notes[note.get("from", "")] = self._node_text(note)

            units.append(TranslationUnit(
                id=tu.get('id') or "",
                source=self._node_text(source_nodes[0]) if source_nodes else "",
                target=self._node_text(target_node) if target_node is not None else "",
                state=target_node.get('state', "new") if target_node is not None else "new",
                confidence=self._confidence(target_node),
                translation_source=target_node.get('translationSource', "") if target_node is not None else "",
                notes=notes,
            ))

        logger.debug(f"Read {len(units)} trans-units from {self.file_path or '<string>'}")
        return units

    @staticmethod
    def _confidence(node) -> Optional[float]:
        if node is None or node.get("confidence") is None:
            return None
        try:
            value = float(node.get("confidence"))
        except ValueError:
            return None
        return value if math.isfinite(value) else None

    @staticmethod
    def _node_text(node) -> str:
        """All descendant text of a node, inline tags dropped."""
        if node is None:
            return ""
        return "".join(node.itertext())

"""
Text helpers shared by the matcher, the mutator and the translation pipeline.

`normalize` produces the comparison key used on both sides of every exact
match: the captured UI text and each stored <target>.
"""
import re
from typing import List

CDATA_PATTERN = re.compile(r"<!\[CDATA\[([\s\S]*?)\]\]>")
HEX_REF_PATTERN = re.compile(r"&#x([0-9a-fA-F]+);")
DEC_REF_PATTERN = re.compile(r"&#(\d+);")
TAG_PATTERN = re.compile(r"<[^>]+>")
HOTKEY_PATTERN = re.compile(r"&(?=\w)(?!\w+;)")
WHITESPACE_PATTERN = re.compile(r"\s+")

SURROUNDING_QUOTES_PATTERN = re.compile(r"^['\"“”«»„]|['\"“”«»„]$")
MARKDOWN_EMPHASIS_PATTERN = re.compile(r"[*_]")


def _char_from_code(code: int, fallback: str) -> str:
    try:
        return chr(code)
    except (ValueError, OverflowError):
        return fallback


def strip_cdata(text: str) -> str:
    return CDATA_PATTERN.sub(lambda m: m.group(1), text or "")


def decode_xml_entities(text: str) -> str:
    """Unwraps CDATA, then decodes character references, &nbsp; and the five XML entities."""
    s = strip_cdata(str(text or ""))
    s = HEX_REF_PATTERN.sub(lambda m: _char_from_code(int(m.group(1), 16), m.group(0)), s)
    s = DEC_REF_PATTERN.sub(lambda m: _char_from_code(int(m.group(1)), m.group(0)), s)
    return (
        s.replace("&nbsp;", " ")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&apos;", "'")
        .replace("&amp;", "&")
    )


def _normalize_once(text: str) -> str:
    decoded = decode_xml_entities(text)
    no_tags = TAG_PATTERN.sub(" ", decoded)
    no_hotkeys = HOTKEY_PATTERN.sub("", no_tags)
    return WHITESPACE_PATTERN.sub(" ", no_hotkeys).strip().lower()


def normalize(raw: str) -> str:
    """
    Reduces captured or stored text to its canonical comparison key.

    Runs until the key is stable so that normalize(normalize(s)) == normalize(s),
    even for doubly-escaped input such as "&amp;lt;b&amp;gt;".
    """
    current = str(raw or "")
    # Every changing pass after the first shortens the text, so this terminates
    while True:
        nxt = _normalize_once(current)
        if nxt == current:
            return current
        current = nxt


def xml_escape(text: str) -> str:
    return (
        str(text or "")
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def xml_unescape(text: str) -> str:
    return (
        str(text or "")
        .replace("&apos;", "'")
        .replace("&quot;", '"')
        .replace("&gt;", ">")
        .replace("&lt;", "<")
        .replace("&amp;", "&")
    )


def normalize_xml(text: str) -> str:
    """Collapses whitespace only (case preserved)."""
    return WHITESPACE_PATTERN.sub(" ", str(text or "")).strip()


def normalize_for_compare(text: str) -> str:
    return normalize_xml(text).lower()


def clean_translation(text: str) -> str:
    """Removes surrounding quotes and markdown emphasis the model sometimes adds."""
    cleaned = SURROUNDING_QUOTES_PATTERN.sub("", str(text or ""))
    cleaned = MARKDOWN_EMPHASIS_PATTERN.sub("", cleaned)
    return cleaned.replace("&quot;", '"').strip()


def is_likely_tooltip(text: str, max_length: int = 60) -> bool:
    return bool(re.search(r"[.,;]", text or "")) and len(text or "") > max_length


def is_too_long_for_fuzzy(text: str, max_chars: int = 80, max_words: int = 8) -> bool:
    text = text or ""
    return len(text) > max_chars or len(text.split()) > max_words


def extract_words(text: str, min_length: int = 2) -> List[str]:
    return [w for w in (text or "").split() if len(w) >= min_length]

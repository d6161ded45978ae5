"""
Translation pipeline with a bounded low-confidence retry.

    exact lookup -> (miss) -> backend -> confidence -> (low) -> fuzzy examples
    -> enriched backend call -> final

At most one enrichment round is made per request, and only for short text;
long text is assumed too context-dependent for examples to help.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from .confidence import AITranslationCandidate, score_candidates
from .errors import InvalidInputError, TranslationError
from .logger import UsageTracker, get_logger
from .mutator import (
    ExistingTranslation,
    apply_first_translation,
    build_translation_index,
    lookup_in_index,
    units_needing_translation,
)
from .policy import DEFAULT_CONFIDENCE_POLICY, ConfidencePolicy
from .prompt_builder import PromptBuilder
from .text import normalize_for_compare, xml_unescape

logger = get_logger(__name__)

SOURCE_MEMORY = "memory"
SOURCE_AI = "aiTranslator"
SOURCE_FILE = "file"


class Backend(Protocol):
    def translate(self, text: str, source_lang: str, target_lang: str, num_options: int = 1,
                  prompt_extra: Optional[str] = None) -> List[AITranslationCandidate]:
        ...


class LookupStore(Protocol):
    def exact_lookup(self, text: str, lang: str):
        ...

    def fuzzy_lookup(self, text: str, lang: str) -> list:
        ...


class TranslationState(str, Enum):
    INITIAL = "initial"
    LOW_CONFIDENCE = "low_confidence"
    ENRICHED = "enriched"
    FINAL = "final"


@dataclass
class TranslationOption:
    text: str
    confidence: float


@dataclass
class TranslationResult:
    text: str
    confidence: float
    source_label: str
    state: TranslationState = TranslationState.FINAL
    options: List[TranslationOption] = field(default_factory=list)
    history: List[TranslationState] = field(default_factory=list)
    examples_used: int = 0


@dataclass
class DocumentTranslationSummary:
    document: str
    translated: int = 0
    from_file: int = 0
    from_memory: int = 0
    from_ai: int = 0
    failed: int = 0


class TranslationPipeline:
    def __init__(self, backend: Backend, store: Optional[LookupStore] = None,
                 policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY,
                 usage: Optional[UsageTracker] = None):
        self.backend = backend
        self.store = store
        self.policy = policy
        self.usage = usage

    def _exact_lookup(self, text: str, lang: str):
        if self.store is None:
            return None
        try:
            return self.store.exact_lookup(text, lang)
        except Exception as e:
            logger.warning(f"Exact lookup unavailable, continuing without it: {e}")
            return None

    def _fuzzy_lookup(self, text: str, lang: str) -> list:
        if self.store is None:
            return []
        try:
            return list(self.store.fuzzy_lookup(text, lang) or [])
        except Exception as e:
            logger.warning(f"Fuzzy lookup unavailable, skipping enrichment: {e}")
            return []

    def _call_backend(self, text: str, source_lang: str, target_lang: str, num_options: int,
                      prompt_extra: Optional[str] = None) -> List[TranslationOption]:
        candidates = self.backend.translate(text, source_lang, target_lang, num_options, prompt_extra)
        candidates = [c for c in candidates if c.text]
        scores = score_candidates(text, candidates, self.policy)
        options = [TranslationOption(c.text, s) for c, s in zip(candidates, scores)]
        options.sort(key=lambda o: o.confidence, reverse=True)
        return options

    def translate(self, text: str, source_lang: str, target_lang: str, num_options: int = 1) -> TranslationResult:
        """
        Raises InvalidInputError for empty text and TranslationError when the
        backend fails; store outages only skip the lookup steps.
        """
        text = (text or "").strip()
        if not text:
            raise InvalidInputError("Text must be a non-empty string")

        exact = self._exact_lookup(text, source_lang)
        if exact is not None and exact.translated:
            if self.usage:
                self.usage.log_ai_usage("[CACHE] Found in translation memory", text, exact.translated)
            return TranslationResult(
                text=exact.translated,
                confidence=exact.confidence,
                source_label=SOURCE_MEMORY,
                options=[TranslationOption(exact.translated, exact.confidence)],
                history=[TranslationState.FINAL],
            )

        history = [TranslationState.INITIAL]
        options = self._call_backend(text, source_lang, target_lang, num_options)
        best = options[0].confidence if options else 0.0
        examples_used = 0

        if (best < self.policy.low_confidence_threshold
                and self.policy.enrichment_rounds > 0
                and len(text) <= self.policy.enrichment_max_chars):
            history.append(TranslationState.LOW_CONFIDENCE)
            examples = self._fuzzy_lookup(text, source_lang)
            prompt_extra = PromptBuilder.build_examples_block(examples)
            if prompt_extra:
                logger.info(f"Low confidence ({best:.2f}) for \"{text}\", retrying with {len(examples)} examples")
                history.append(TranslationState.ENRICHED)
                enriched = self._call_backend(text, source_lang, target_lang, num_options, prompt_extra)
                if enriched:
                    options = enriched
                    examples_used = len(examples)

        history.append(TranslationState.FINAL)
        top = options[0] if options else TranslationOption("", 0.0)
        return TranslationResult(
            text=top.text,
            confidence=top.confidence,
            source_label=SOURCE_AI,
            options=options,
            history=history,
            examples_used=examples_used,
        )

    def translate_document(self, document: str, source_lang: str, target_lang: str,
                           num_options: int = 1) -> DocumentTranslationSummary:
        """
        Fills every needs-translation target, reusing translations already in
        the file before asking the memory or the backend.
        """
        summary = DocumentTranslationSummary(document=document)
        index = build_translation_index(document, self.policy.file_hit_confidence)

        for unit_id, source_text in units_needing_translation(document):
            hit = lookup_in_index(index, source_text)
            if hit is not None:
                translated, confidence, label = hit.translated, hit.confidence, SOURCE_FILE
            else:
                try:
                    result = self.translate(xml_unescape(source_text), source_lang, target_lang, num_options)
                except TranslationError as e:
                    logger.error(f"Translation failed for {unit_id}: {e.backend_message}")
                    summary.failed += 1
                    continue
                if not result.text:
                    summary.failed += 1
                    continue
                translated, confidence, label = result.text, result.confidence, result.source_label
                index[normalize_for_compare(xml_unescape(source_text))] = ExistingTranslation(
                    translated, confidence, unit_id)

            mutation = apply_first_translation(summary.document, source_text, translated, confidence, label)
            if not mutation.changed:
                continue
            summary.document = mutation.document
            summary.translated += 1
            if label == SOURCE_FILE:
                summary.from_file += 1
            elif label == SOURCE_MEMORY:
                summary.from_memory += 1
            else:
                summary.from_ai += 1

        logger.info(f"Document translation: {summary.translated} filled "
                    f"({summary.from_file} file, {summary.from_memory} memory, {summary.from_ai} AI), "
                    f"{summary.failed} failed")
        return summary

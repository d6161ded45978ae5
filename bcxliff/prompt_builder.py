from typing import Iterable, Optional

from .prompts import SystemPrompts


class PromptBuilder:
    """
    Constructs the system and user messages sent to the translation backend.
    """

    @staticmethod
    def build_system_message(src_lang: str, tgt_lang: str) -> str:
        return "\n".join([SystemPrompts.TRANSLATION_BASE, SystemPrompts.PLACEHOLDER_RULE])

    @staticmethod
    def build_examples_block(examples: Iterable) -> str:
        """
        Formats fuzzy examples ({source, target}) for the enriched second pass.
        Returns an empty string when there are no examples.
        """
        lines = [f"- {e.source} → {e.target}" for e in examples]
        if not lines:
            return ""
        return "\n".join([SystemPrompts.EXAMPLES_HEADER, *lines, "", SystemPrompts.ENRICHMENT_WARNING])

    @staticmethod
    def build_user_message(text: str, src_lang: str, tgt_lang: str, prompt_extra: Optional[str] = None) -> str:
        request = SystemPrompts.TRANSLATION_TASK.format(src_lang=src_lang, tgt_lang=tgt_lang, text=text)
        if prompt_extra:
            return f"{prompt_extra}\n\n{request}"
        return request

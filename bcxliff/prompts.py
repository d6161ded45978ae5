"""
Centralized prompt definitions for the translation backend.
Includes: base translation, enrichment with stored examples, connection test.
"""


class SystemPrompts:
    # 1. Translation System Prompt
    TRANSLATION_BASE = (
        "You are a professional Business Central translator. "
        "Only return the translated text in plain language. "
        "Do not add quotation marks, markdown, asterisks, or any explanation. "
        "Reply ONLY with the pure translation text."
    )
    TRANSLATION_TASK = 'Translate the following text from {src_lang} to {tgt_lang}:\n\n"{text}"'

    PLACEHOLDER_RULE = "Keep placeholders such as %1, {0}, {name} or [name] exactly as they appear in the source."

    # 2. Enrichment block, used for the second pass on low-confidence results
    EXAMPLES_HEADER = "Here are some previous translations for context:"
    ENRICHMENT_WARNING = (
        "The examples show established terminology only. Do NOT translate word by word "
        "or copy fragments of the examples; translate the whole text naturally as a UI string."
    )

    # 3. Connection test
    PING = "Hi"

import os
import time
from typing import List, Optional, Tuple

try:
    from openai import OpenAI, AzureOpenAI
except ImportError:
    OpenAI = None
    AzureOpenAI = None

from bcxliff.confidence import AITranslationCandidate
from bcxliff.errors import BackendNotConfiguredError, ModelLoadingError, TranslationError
from bcxliff.logger import UsageTracker, get_logger
from bcxliff.policy import DEFAULT_CONFIDENCE_POLICY, ConfidencePolicy
from bcxliff.prompt_builder import PromptBuilder
from bcxliff.prompts import SystemPrompts
from bcxliff.text import clean_translation

logger = get_logger(__name__)

MODEL_LOADING_MARKER = "model loading"


class LLMClient:
    """
    Chat-completions translation backend returning scored-ready candidates.

    provider "azure" uses AzureOpenAI (base_url is the resource endpoint,
    model the deployment name); any other provider uses an OpenAI-compatible
    endpoint. provider "mock" never calls out.
    """

    def __init__(self, api_key: str = None, base_url: str = None, model: str = None,
                 provider: str = "openai", api_version: str = None,
                 policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY,
                 usage: Optional[UsageTracker] = None):
        self.api_key = api_key or os.getenv("LLM_API_KEY")
        self.base_url = base_url or os.getenv("LLM_BASE_URL")
        self.model = model or os.getenv("LLM_MODEL") or "gpt-4o-mini"
        self.provider = provider
        self.api_version = api_version
        self.policy = policy
        self.usage = usage
        self.sleep = time.sleep

        self.client = None
        if self.provider == "mock" or not self.api_key:
            return
        if OpenAI is None:
            logger.warning("OpenAI library not installed.")
            return
        if self.provider == "azure":
            self.client = AzureOpenAI(api_key=self.api_key, azure_endpoint=self.base_url,
                                      api_version=self.api_version or "2024-02-01")
        else:
            self.client = OpenAI(api_key=self.api_key, base_url=self.base_url)

    @property
    def is_mock(self) -> bool:
        return self.client is None

    def translate(self, text: str, source_lang: str, target_lang: str, num_options: int = 1,
                  prompt_extra: Optional[str] = None) -> List[AITranslationCandidate]:
        """
        One candidate per returned choice, each with its own token log-probs.
        Raises ModelLoadingError when the backend keeps warming up and
        TranslationError for any other failure.
        """
        if self.client is None:
            if self.provider != "mock":
                logger.warning("No API Key provided, using Mock mode.")
            return self._mock_translate(text, num_options)

        messages = [
            {"role": "system", "content": PromptBuilder.build_system_message(source_lang, target_lang)},
            {"role": "user", "content": PromptBuilder.build_user_message(text, source_lang, target_lang, prompt_extra)},
        ]

        retries = self.policy.model_loading_retries
        while True:
            try:
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=1000,
                    temperature=0.7,
                    logprobs=True,
                    n=max(1, num_options),
                )
                break
            except Exception as e:
                message = str(e)
                if MODEL_LOADING_MARKER in message.lower():
                    if retries > 0:
                        retries -= 1
                        logger.info(f"Model is loading, retrying in {self.policy.model_loading_delay:g} seconds...")
                        self.sleep(self.policy.model_loading_delay)
                        continue
                    raise ModelLoadingError(f"Translation failed: {message}", message) from e
                logger.error(f"LLM Translation Error: {message}")
                raise TranslationError(f"Translation failed: {message}", message) from e

        candidates = [self._to_candidate(choice) for choice in response.choices or []]
        candidates = [c for c in candidates if c.text]
        if self.usage:
            self.usage.log_ai_usage("AI translation", text, " | ".join(c.text for c in candidates),
                                    self._usage_dict(response))
        return candidates

    @staticmethod
    def _to_candidate(choice) -> AITranslationCandidate:
        content = choice.message.content if choice.message else ""
        token_logprobs: List[float] = []
        tokens: List[str] = []
        logprobs = getattr(choice, "logprobs", None)
        for entry in (getattr(logprobs, "content", None) or []):
            tokens.append(entry.token)
            token_logprobs.append(entry.logprob)
        return AITranslationCandidate(text=clean_translation(content or ""), token_logprobs=token_logprobs,
                                      tokens=tokens)

    @staticmethod
    def _usage_dict(response) -> Optional[dict]:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        return {
            "prompt_tokens": getattr(usage, "prompt_tokens", 0),
            "completion_tokens": getattr(usage, "completion_tokens", 0),
            "total_tokens": getattr(usage, "total_tokens", 0),
        }

    def _mock_translate(self, text: str, num_options: int) -> List[AITranslationCandidate]:
        return [AITranslationCandidate(text=f"[Mock] {text}") for _ in range(max(1, num_options))]

    def require_configured(self):
        if self.client is None and self.provider != "mock":
            raise BackendNotConfiguredError("Translation backend is not configured (API key, endpoint, model)")

    def test_connection(self) -> Tuple[bool, str]:
        """
        Tests the connection to the LLM provider.
        Returns: (success, message)
        """
        if self.provider == "mock":
            return True, "Mock mode is always compliant."

        if not self.client:
            return False, "Client not initialized. Check API Key."

        try:
            self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": SystemPrompts.PING}],
                max_tokens=1
            )
            return True, f"Successfully connected to {self.model}!"
        except Exception as e:
            return False, f"Connection failed: {str(e)}"

"""
Confidence model for machine translations.

The base score blends the mean token probability with the weakest token so a
single uncertain token (a mistranslated proper noun, say) still pulls the
score down. Placeholder preservation and agreement between sampled options
then scale that score.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .policy import DEFAULT_CONFIDENCE_POLICY, ConfidencePolicy

PLACEHOLDER_PATTERN = re.compile(r"%\d+|%[A-Za-z]|\{\d+\}|\{\w+\}|\[\w+\]")
WORD_TOKEN_PATTERN = re.compile(r"[^\W_]+")


@dataclass
class AITranslationCandidate:
    """One option returned by the translation backend."""
    text: str
    token_logprobs: List[float] = field(default_factory=list)
    tokens: List[str] = field(default_factory=list)


@dataclass
class WordConfidence:
    word: str
    confidence: float


def score_probabilities(probabilities: Sequence[float],
                        policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY) -> float:
    if not probabilities:
        return policy.default_confidence
    mean = sum(probabilities) / len(probabilities)
    lowest = min(probabilities)
    return round(policy.mean_weight * mean + policy.min_weight * lowest, 2)


def score_logprobs(token_logprobs: Sequence[float],
                   policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY) -> float:
    """score([ln 0.9, ln 0.5]) == 0.64; an empty list gives the medium prior (0.7)."""
    return score_probabilities([math.exp(lp) for lp in token_logprobs], policy)


def extract_placeholders(text: str) -> List[str]:
    """%1, %s, {0}, {name}, [name] in order of first appearance."""
    seen: List[str] = []
    for token in PLACEHOLDER_PATTERN.findall(text or ""):
        if token not in seen:
            seen.append(token)
    return seen


def placeholder_fraction(source: str, translation: str) -> float:
    tokens = extract_placeholders(source)
    if not tokens:
        return 1.0
    kept = sum(1 for token in tokens if token in (translation or ""))
    return kept / len(tokens)


def _token_bag(text: str) -> Set[str]:
    return set(WORD_TOKEN_PATTERN.findall((text or "").lower()))


def jaccard(a: Set[str], b: Set[str]) -> float:
    if not a and not b:
        return 1.0
    return len(a & b) / len(a | b)


def agreement_scores(texts: Sequence[str]) -> List[float]:
    """Mean Jaccard similarity of each option against every other option."""
    if len(texts) <= 1:
        return [1.0] * len(texts)
    bags = [_token_bag(t) for t in texts]
    scores = []
    for i, bag in enumerate(bags):
        others = [jaccard(bag, other) for j, other in enumerate(bags) if j != i]
        scores.append(sum(others) / len(others))
    return scores


def adjusted_confidence(source: str, translation: str, token_logprobs: Sequence[float],
                        agreement: float = 1.0,
                        policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY) -> float:
    """
    Log-prob score scaled by placeholder preservation and sample agreement,
    clamped to [0, 0.99]; 1.0 stays reserved for exact and manual matches.
    """
    score = score_logprobs(token_logprobs, policy)
    score *= policy.placeholder_floor + policy.placeholder_weight * placeholder_fraction(source, translation)
    score *= policy.agreement_floor + policy.agreement_weight * agreement
    return round(max(0.0, min(policy.ceiling, score)), 2)


def score_candidates(source: str, candidates: Sequence[AITranslationCandidate],
                     policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY) -> List[float]:
    agreements = agreement_scores([c.text for c in candidates])
    return [
        adjusted_confidence(source, c.text, c.token_logprobs, agreement, policy)
        for c, agreement in zip(candidates, agreements)
    ]


def compute_word_confidences(tokens: Iterable[Tuple[str, Optional[float]]],
                             policy: ConfidencePolicy = DEFAULT_CONFIDENCE_POLICY) -> List[WordConfidence]:
    """
    Groups (token, logprob) pairs into words using the leading-space convention
    of BPE tokenizers and averages the token probabilities per word.
    """
    words: List[WordConfidence] = []
    current = ""
    probs: List[float] = []

    def flush():
        if current:
            words.append(WordConfidence(current.strip(), round(sum(probs) / len(probs), 2)))

    for token, logprob in tokens:
        prob = math.exp(logprob) if isinstance(logprob, (int, float)) else policy.default_confidence
        if token.startswith(" ") and current:
            flush()
            current, probs = token, [prob]
        else:
            current += token
            probs.append(prob)
    flush()
    return words


def confidence_level(confidence: float) -> str:
    if confidence >= 0.9:
        return "high"
    if confidence >= 0.7:
        return "medium"
    return "low"


def format_confidence(confidence: float) -> str:
    return f"{round(confidence * 100)}%"

"""
Scoring policy tables.

Every numeric constant used by the candidate matcher and the translation
confidence engine lives here so the policy can be audited and tested apart
from the scanning code.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class ScoringPolicy:
    base_confidence: float = 0.5
    weight_factor: float = 0.1
    property_match_bonus: float = 0.2
    element_type_bonus: float = 0.15
    correlation_bonus: float = 0.05
    column_table_field_bonus: float = 0.15
    column_page_control_bonus: float = 0.10
    page_affinity_bonus: float = 0.35
    table_affinity_bonus: float = 0.15
    max_confidence: float = 1.0
    sample_note_limit: int = 5
    # Known approximation: English naming convention for BC page names.
    table_name_suffixes: Tuple[str, ...] = ("List", "Card", "SubPage", "SubForm", "Part", "FactBox", "Setup")


@dataclass(frozen=True)
class ConfidencePolicy:
    mean_weight: float = 0.7
    min_weight: float = 0.3
    default_confidence: float = 0.7
    placeholder_floor: float = 0.85
    placeholder_weight: float = 0.15
    agreement_floor: float = 0.8
    agreement_weight: float = 0.2
    ceiling: float = 0.99
    low_confidence_threshold: float = 0.70
    enrichment_max_chars: int = 80
    enrichment_rounds: int = 1
    model_loading_retries: int = 3
    model_loading_delay: float = 5.0
    file_hit_confidence: float = 0.9


DEFAULT_SCORING_POLICY = ScoringPolicy()
DEFAULT_CONFIDENCE_POLICY = ConfidencePolicy()

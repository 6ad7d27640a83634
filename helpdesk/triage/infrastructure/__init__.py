"""
Triage Infrastructure Layer
===========================

Scoring-service adapters.
"""

from helpdesk.triage.infrastructure.external import (
    ClassificationPayload,
    KeywordClassificationService,
    LLMClassificationService,
    extract_json,
)

__all__ = [
    "ClassificationPayload",
    "KeywordClassificationService",
    "LLMClassificationService",
    "extract_json",
]

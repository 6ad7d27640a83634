"""
Triage Module
=============

Bounded Context for ticket classification.

Responsibilities:
- Score tickets by category, priority and disposition through an LLM
  or the keyword classifier
- Apply the auto-resolve confidence threshold
- Fall back to a degraded triage when the classifier is unavailable
"""

from helpdesk.triage.application import IClassificationService, TriageAnnotator
from helpdesk.triage.domain import ClassificationOutput

__all__ = [
    "ClassificationOutput",
    "IClassificationService",
    "TriageAnnotator",
]

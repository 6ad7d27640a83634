"""
Triage Application Layer
========================

Triage annotator and the scoring service interface.
"""

from helpdesk.triage.application.services import IClassificationService, TriageAnnotator

__all__ = [
    "IClassificationService",
    "TriageAnnotator",
]

"""
Intake Domain Layer
===================

Language detection and subject derivation for inbound messages.
"""

from helpdesk.intake.domain.text import derive_subject, detect_language, normalize_language

__all__ = [
    "derive_subject",
    "detect_language",
    "normalize_language",
]

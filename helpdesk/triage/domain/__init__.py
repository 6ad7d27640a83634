"""
Triage Domain Layer
===================

Domain layer for ticket triage.

Contains:
- Entities: ClassificationOutput
- Value Objects: ClassificationPromptBuilder

This layer is framework-agnostic and contains pure business logic.
"""

from helpdesk.triage.domain.entities import ClassificationOutput, ClassificationPromptBuilder

__all__ = [
    "ClassificationOutput",
    "ClassificationPromptBuilder",
]

"""
Intake Application Layer
========================

Intake coordinator and the DTOs exchanged with channel adapters.
"""

from helpdesk.intake.application.dto import ExternalUser, InboundMessage, IntakeResponse, TriageInfo
from helpdesk.intake.application.services import IntakeCoordinator

__all__ = [
    "ExternalUser",
    "InboundMessage",
    "IntakeCoordinator",
    "IntakeResponse",
    "TriageInfo",
]

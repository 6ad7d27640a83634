"""
Intake Bounded Context
======================

Orchestrating entry point of the pipeline: every inbound channel
message goes through IntakeCoordinator.ingest.
"""

from helpdesk.intake.application import ExternalUser, InboundMessage, IntakeCoordinator, IntakeResponse

__all__ = [
    "ExternalUser",
    "InboundMessage",
    "IntakeCoordinator",
    "IntakeResponse",
]

"""
Triage External Service Adapters
==================================

Scoring-service implementations used by the triage annotator.

- LLMClassificationService: prompts an LLM and validates its JSON answer
- KeywordClassificationService: catalog keyword matching, no network
"""

import json
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from helpdesk.config import (
    CATEGORIES_BY_CODE,
    ESCALATION_KEYWORDS,
    FALLBACK_CATEGORY,
    TICKET_CATEGORIES,
    CategoryDefinition,
    Disposition,
    Priority,
)
from helpdesk.core import ClassificationUnavailable, LLMException
from helpdesk.infrastructure.llm import ILLMClient
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application import IClassificationService
from helpdesk.triage.domain import ClassificationOutput, ClassificationPromptBuilder

logger = get_logger(__name__)


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["critical", "high", "medium", "low"]
DispositionStr = Literal["auto_resolvable", "needs_operator", "escalate"]


class ClassificationPayload(BaseModel):
    """Expected JSON answer of the classification prompt."""
    category: str = Field(..., min_length=1)
    category_conf: float = Field(..., ge=0.0, le=1.0)
    priority: PriorityStr
    priority_conf: float = Field(..., ge=0.0, le=1.0)
    disposition: DispositionStr
    disposition_conf: float = Field(..., ge=0.0, le=1.0)
    summary: str = ""

    @field_validator("category", "priority", "disposition", mode="before")
    @classmethod
    def normalize_label(cls, v):
        """LLMs are loose with case and padding."""
        return v.strip().lower() if isinstance(v, str) else v


def extract_json(text: str) -> str:
    """Strip markdown code fences around a JSON answer."""
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    if "```" in text:
        return text.split("```")[1].split("```")[0].strip()
    return text.strip()


class LLMClassificationService(IClassificationService):
    """
    Classification through an LLM chat completion.

    Any provider error or malformed answer surfaces as
    ClassificationUnavailable.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        temperature: float = 0.2,
        max_tokens: int = 500
    ):
        self._llm = llm_client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def classify(self, text: str, language: str) -> ClassificationOutput:
        messages = [
            {"role": "system", "content": ClassificationPromptBuilder.get_system_prompt()},
            {"role": "user", "content": ClassificationPromptBuilder.build_prompt(text, language)}
        ]

        try:
            response = await self._llm.chat_completion(
                messages=messages,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                operation="classification"
            )
        except LLMException as e:
            raise ClassificationUnavailable(e.message)

        try:
            payload = ClassificationPayload.model_validate(json.loads(extract_json(response.content)))
        except json.JSONDecodeError as e:
            raise ClassificationUnavailable(f"Failed to parse classification response: {e}")
        except ValidationError as e:
            raise ClassificationUnavailable(
                "Classification response has an unexpected shape",
                {"errors": e.errors(include_url=False)}
            )

        logger.debug(
            "LLM classification parsed",
            extra={"model": response.model, "category": payload.category, "latency_ms": response.latency_ms}
        )
        return ClassificationOutput(**payload.model_dump())


class KeywordClassificationService(IClassificationService):
    """
    Keyword matching against the category catalog.

    Category confidence grows with the number of matched keywords and is
    capped at 0.75. Escalation keywords force critical priority and the
    escalate disposition.
    """

    BASE_CONFIDENCE = 0.4
    PER_MATCH = 0.15
    MAX_CONFIDENCE = 0.75
    NO_MATCH_CONFIDENCE = 0.5

    async def classify(self, text: str, language: str) -> ClassificationOutput:
        lowered = text.lower()
        category, matches = self._best_category(lowered)

        if matches:
            category_conf = min(self.BASE_CONFIDENCE + matches * self.PER_MATCH, self.MAX_CONFIDENCE)
        else:
            category_conf = self.NO_MATCH_CONFIDENCE

        escalation = self._escalation_keyword(lowered)
        if escalation:
            priority, priority_conf = Priority.CRITICAL, 0.95
            disposition, disposition_conf = Disposition.ESCALATE, 0.95
        elif category.escalate:
            priority, priority_conf = Priority.HIGH, category_conf
            disposition, disposition_conf = Disposition.ESCALATE, category_conf
        elif category.auto_resolvable and matches:
            priority, priority_conf = Priority.MEDIUM, 0.5
            disposition, disposition_conf = Disposition.AUTO_RESOLVABLE, category_conf
        else:
            priority, priority_conf = Priority.MEDIUM, 0.5
            disposition, disposition_conf = Disposition.NEEDS_OPERATOR, 0.9

        return ClassificationOutput(
            category=category.code,
            category_conf=category_conf,
            priority=priority,
            priority_conf=priority_conf,
            disposition=disposition,
            disposition_conf=disposition_conf,
            summary=self._summary(text),
        )

    @staticmethod
    def _best_category(lowered: str) -> Tuple[CategoryDefinition, int]:
        best: Optional[CategoryDefinition] = None
        best_matches = 0
        for category in TICKET_CATEGORIES:
            matches = sum(1 for kw in category.keywords if kw in lowered)
            if matches > best_matches:
                best, best_matches = category, matches
        return best or CATEGORIES_BY_CODE[FALLBACK_CATEGORY], best_matches

    @staticmethod
    def _escalation_keyword(lowered: str) -> Optional[str]:
        for keyword in ESCALATION_KEYWORDS:
            if keyword in lowered:
                return keyword
        return None

    @staticmethod
    def _summary(text: str, length: int = 200) -> str:
        lines: List[str] = [line.strip() for line in text.splitlines() if line.strip()]
        first = lines[0] if lines else ""
        return first[:length]

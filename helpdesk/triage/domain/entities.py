"""
Triage Domain Entities
======================

Classification output consumed from the scoring service and the prompt
used to obtain it from an LLM.
"""

from dataclasses import dataclass

from helpdesk.config import TICKET_CATEGORIES, Disposition, Priority


@dataclass
class ClassificationOutput:
    """
    Raw answer of the scoring service.

    Category, priority and disposition carry independent confidences.
    """
    category: str
    category_conf: float
    priority: Priority
    priority_conf: float
    disposition: Disposition
    disposition_conf: float
    summary: str = ""

    def __post_init__(self):
        """Validate classification output."""
        self.priority = Priority(self.priority)
        self.disposition = Disposition(self.disposition)
        for name in ("category_conf", "priority_conf", "disposition_conf"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1")


class ClassificationPromptBuilder:
    """
    Builds prompts for ticket classification.

    All prompt logic in one place; the category list comes from the
    catalog in config.
    """

    SYSTEM_PROMPT_TEMPLATE = """You are the triage system of a corporate IT helpdesk.
Requests arrive in Russian, Kazakh or English.

Analyze the request and return:
1. category: which area the request belongs to
2. priority: how urgent it is
3. disposition: how it should be handled
4. a one-sentence summary in the language of the request

CATEGORIES:
{categories}

PRIORITY LEVELS:
- critical: outage affecting many people, security incident
- high: a person cannot work
- medium: degraded work, workaround available
- low: questions, requests for new equipment or access

DISPOSITIONS:
- auto_resolvable: a knowledge base guide lets the user solve it alone
- needs_operator: an operator has to act
- escalate: must go to the second line immediately

Give a confidence between 0 and 1 for each of category, priority and
disposition independently.

Respond ONLY in JSON format:
{{
    "category": "code",
    "category_conf": 0.9,
    "priority": "medium",
    "priority_conf": 0.8,
    "disposition": "needs_operator",
    "disposition_conf": 0.7,
    "summary": "brief summary"
}}"""

    @classmethod
    def get_system_prompt(cls) -> str:
        """Get the system prompt for classification."""
        categories = "\n".join(
            f"- {c.code}: {c.names['en']} ({c.names['ru']})" for c in TICKET_CATEGORIES
        )
        return cls.SYSTEM_PROMPT_TEMPLATE.format(categories=categories)

    @classmethod
    def build_prompt(cls, text: str, language: str) -> str:
        """Build classification prompt from ticket text."""
        return f"""Language: {language}

Request:
{text}

Classify this request (respond with JSON only):"""

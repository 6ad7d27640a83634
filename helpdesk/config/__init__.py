"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Also holds the helpdesk constants: ticket lifecycle states, triage
dispositions, languages and the ticket category catalog.
"""

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="helpdesk-intake", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Storage ==========
    storage_backend: str = Field(
        default="sql",
        description="Persistence backend: 'sql' (SQLAlchemy) or 'memory'"
    )
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/helpdesk",
        description="Database connection URL (async driver)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)
    create_tables_on_startup: bool = Field(
        default=True,
        description="Create missing tables at startup (use migrations in production)"
    )

    # ========== Classification Service ==========
    classifier_backend: str = Field(
        default="llm",
        description="Scoring service: 'llm' or 'keywords'"
    )
    llm_provider: str = Field(default="zai", description="LLM provider: 'zai' or 'openai'")
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )
    llm_model: str = Field(default="glm-4.7", description="Model used for classification")
    llm_temperature: float = Field(
        default=0.2,
        description="Temperature for classification calls",
        ge=0.0,
        le=1.0
    )
    llm_max_tokens: int = Field(
        default=500,
        description="Max tokens for a classification response",
        ge=1,
        le=8000
    )
    classification_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound on a single classification call",
        gt=0,
        le=120
    )

    # ========== Triage Policy ==========
    auto_resolve_threshold: float = Field(
        default=0.8,
        description="Minimum disposition confidence for auto_resolvable to stand",
        ge=0.0,
        le=1.0
    )
    suppress_duplicate_messages: bool = Field(
        default=True,
        description="Skip appending a message identical to the latest one in the thread"
    )
    default_language: str = Field(default="ru", description="Fallback ticket language")

    # ========== Knowledge Base ==========
    kb_match_limit: int = Field(
        default=3,
        description="Number of KB articles cited in a suggested response",
        ge=1,
        le=20
    )
    kb_cache_ttl_seconds: float = Field(
        default=60.0,
        description="Seconds before the KB snapshot is reloaded from storage",
        ge=0
    )
    seed_knowledge_base: bool = Field(
        default=False,
        description="Load the bundled KB articles at startup"
    )

    # ========== Provisioning ==========
    admin_email: Optional[str] = Field(
        default=None,
        description="Administrator account provisioned at startup"
    )
    admin_name: str = Field(default="Administrator", description="Administrator display name")

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-eu-west-0.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        allowed = {"sql", "memory"}
        if v not in allowed:
            raise ValueError(f"storage_backend must be one of {allowed}")
        return v

    @field_validator("classifier_backend")
    @classmethod
    def validate_classifier_backend(cls, v: str) -> str:
        allowed = {"llm", "keywords"}
        if v not in allowed:
            raise ValueError(f"classifier_backend must be one of {allowed}")
        return v

    @field_validator("default_language")
    @classmethod
    def validate_default_language(cls, v: str) -> str:
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"default_language must be one of {SUPPORTED_LANGUAGES}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# ========== Constants ==========

class UserRole(str, Enum):
    """Role tags carried by users."""
    ADMIN = "admin"
    OPERATOR = "operator"
    USER = "user"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    NEW = "new"
    TRIAGED = "triaged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    ESCALATED = "escalated"


class SenderType(str, Enum):
    """Who wrote a thread message."""
    USER = "user"
    OPERATOR = "operator"
    SYSTEM = "system"


class Priority(str, Enum):
    """Ticket priority levels."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Disposition(str, Enum):
    """Recommended handling path for a triaged ticket."""
    AUTO_RESOLVABLE = "auto_resolvable"
    NEEDS_OPERATOR = "needs_operator"
    ESCALATE = "escalate"


class ArticleType(str, Enum):
    """Knowledge base article types."""
    GUIDE = "guide"
    FAQ = "faq"
    POLICY = "policy"


SUPPORTED_LANGUAGES: Tuple[str, ...] = ("ru", "kz", "en")

# Status -> statuses reachable from it
ALLOWED_TRANSITIONS: Dict[TicketStatus, frozenset] = {
    TicketStatus.NEW: frozenset({TicketStatus.TRIAGED, TicketStatus.ESCALATED}),
    TicketStatus.TRIAGED: frozenset({TicketStatus.IN_PROGRESS, TicketStatus.ESCALATED}),
    TicketStatus.IN_PROGRESS: frozenset({TicketStatus.RESOLVED, TicketStatus.ESCALATED}),
    TicketStatus.ESCALATED: frozenset({TicketStatus.IN_PROGRESS}),
    TicketStatus.RESOLVED: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}


@dataclass(frozen=True)
class CategoryDefinition:
    """A ticket category known to the classifier and the KB."""
    code: str
    names: Dict[str, str]
    keywords: Tuple[str, ...] = ()
    auto_resolvable: bool = False
    escalate: bool = False

    def name_for(self, language: str) -> str:
        return self.names.get(language) or self.names["en"]


FALLBACK_CATEGORY = "other"

TICKET_CATEGORIES: List[CategoryDefinition] = [
    CategoryDefinition(
        code="access_vpn",
        names={"ru": "Доступ / VPN", "kz": "Қол жеткізу / VPN", "en": "Access / VPN"},
        keywords=("vpn", "доступ", "пароль", "логин", "войти", "кіру", "құпиясөз"),
        auto_resolvable=True,
    ),
    CategoryDefinition(
        code="hardware",
        names={"ru": "Оборудование", "kz": "Жабдық", "en": "Hardware"},
        keywords=("компьютер", "принтер", "монитор", "клавиатура", "мышь", "computer", "printer"),
    ),
    CategoryDefinition(
        code="software",
        names={"ru": "Программное обеспечение", "kz": "Бағдарламалық қамтамасыз ету", "en": "Software"},
        keywords=("программа", "установить", "обновить", "ошибка", "бағдарлама", "орнату"),
        auto_resolvable=True,
    ),
    CategoryDefinition(
        code="email",
        names={"ru": "Почта", "kz": "Пошта", "en": "Email"},
        keywords=("почта", "email", "outlook", "письмо", "хат"),
        auto_resolvable=True,
    ),
    CategoryDefinition(
        code="network",
        names={"ru": "Сеть / Интернет", "kz": "Желі / Интернет", "en": "Network / Internet"},
        keywords=("интернет", "сеть", "wifi", "медленно", "желі", "баяу"),
    ),
    CategoryDefinition(
        code="account",
        names={"ru": "Учётная запись", "kz": "Есептік жазба", "en": "Account"},
        keywords=("аккаунт", "учётная запись", "профиль", "есептік жазба"),
        auto_resolvable=True,
    ),
    CategoryDefinition(
        code="request_new",
        names={"ru": "Заявка на новое", "kz": "Жаңа сұрау", "en": "New Request"},
        keywords=("заказать", "новый", "нужен", "жаңа", "қажет"),
    ),
    CategoryDefinition(
        code="incident",
        names={"ru": "Инцидент / Сбой", "kz": "Оқиға / Ақау", "en": "Incident / Outage"},
        keywords=("сбой", "не работает", "упал", "авария", "жұмыс істемейді", "ақау"),
        escalate=True,
    ),
    CategoryDefinition(
        code=FALLBACK_CATEGORY,
        names={"ru": "Другое", "kz": "Басқа", "en": "Other"},
    ),
]

CATEGORIES_BY_CODE: Dict[str, CategoryDefinition] = {c.code: c for c in TICKET_CATEGORIES}

# Words that force immediate escalation regardless of category
ESCALATION_KEYWORDS: Tuple[str, ...] = (
    "outage", "production", "security", "breach", "urgent",
    "авария", "срочно", "безопасность", "взлом",
    "шұғыл", "қауіпсіздік", "өндіріс",
)


# Global settings instance
settings = get_settings()

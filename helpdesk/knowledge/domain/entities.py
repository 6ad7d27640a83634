"""
Knowledge Domain Entities
=========================

Multilingual knowledge base articles.

An article carries a title and a body per language (ru, kz, en); at
least one language must have both.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from helpdesk.config import SUPPORTED_LANGUAGES, ArticleType


@dataclass
class KBArticle:
    """
    Knowledge base article.

    Keywords are stored lower-cased. Only published articles are ever
    offered to operators or users.
    """
    id: str
    category: str
    titles: Dict[str, str]
    bodies: Dict[str, str]
    type: ArticleType = ArticleType.FAQ
    keywords: FrozenSet[str] = field(default_factory=frozenset)
    is_published: bool = True
    owner_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Normalize keywords and validate language content."""
        self.type = ArticleType(self.type)
        self.keywords = normalize_keywords(self.keywords)
        self.titles = {k: v for k, v in self.titles.items() if v}
        self.bodies = {k: v for k, v in self.bodies.items() if v}

        unknown = (set(self.titles) | set(self.bodies)) - set(SUPPORTED_LANGUAGES)
        if unknown:
            raise ValueError(f"Unsupported article languages: {sorted(unknown)}")
        if not self.languages:
            raise ValueError("Article needs a title and a body in at least one language")

    @property
    def languages(self) -> Tuple[str, ...]:
        """Languages with both a title and a body, in catalog order."""
        return tuple(
            lang for lang in SUPPORTED_LANGUAGES
            if lang in self.titles and lang in self.bodies
        )

    def has_language(self, language: str) -> bool:
        return language in self.languages

    def _pick(self, language: str) -> str:
        return language if self.has_language(language) else self.languages[0]

    def title_for(self, language: str) -> str:
        """Title in the requested language, else the first available one."""
        return self.titles[self._pick(language)]

    def body_for(self, language: str) -> str:
        """Body in the requested language, else the first available one."""
        return self.bodies[self._pick(language)]

    def excerpt(self, language: str, length: int = 200) -> str:
        """Plain-text opening of the body, markdown headings removed."""
        lines = [
            line.strip() for line in self.body_for(language).splitlines()
            if line.strip() and not line.lstrip().startswith("#")
        ]
        text = re.sub(r"\s+", " ", " ".join(lines))
        return text[:length].rstrip() + "..." if len(text) > length else text


def normalize_keywords(keywords: Iterable[str]) -> FrozenSet[str]:
    """Lower-case, strip and drop blanks."""
    return frozenset(k.strip().lower() for k in keywords if k and k.strip())

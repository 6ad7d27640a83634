"""
Knowledge Application Services
==============================

KB snapshot cache, article ranking and suggested-response rendering.

Ranking is synchronous and runs against an immutable snapshot; only the
snapshot refresh touches storage.
"""

import asyncio
import heapq
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple

from helpdesk.knowledge.domain import KBArticle, normalize_keywords
from helpdesk.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IKBArticleRepository(ABC):
    """Interface for KB article data access."""

    @abstractmethod
    async def list_published(self) -> List[KBArticle]:
        """All published articles."""

    @abstractmethod
    async def get_by_id(self, article_id: str) -> Optional[KBArticle]:
        """Get article by ID, published or not."""

    @abstractmethod
    async def upsert(self, article: KBArticle) -> KBArticle:
        """Insert or replace an article by ID."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored articles."""


# ========== KB Store ==========

@dataclass(frozen=True)
class KBSnapshot:
    """Immutable view of the published KB with lookup indexes."""
    articles: Tuple[KBArticle, ...] = ()
    by_category: Dict[str, Tuple[KBArticle, ...]] = field(default_factory=dict)
    by_keyword: Dict[str, Tuple[KBArticle, ...]] = field(default_factory=dict)
    loaded_at: float = 0.0

    @classmethod
    def build(cls, articles: Iterable[KBArticle], loaded_at: float) -> "KBSnapshot":
        published = tuple(a for a in articles if a.is_published)
        by_category: Dict[str, List[KBArticle]] = {}
        by_keyword: Dict[str, List[KBArticle]] = {}
        for article in published:
            by_category.setdefault(article.category, []).append(article)
            for keyword in article.keywords:
                by_keyword.setdefault(keyword, []).append(article)
        return cls(
            articles=published,
            by_category={k: tuple(v) for k, v in by_category.items()},
            by_keyword={k: tuple(v) for k, v in by_keyword.items()},
            loaded_at=loaded_at,
        )

    def __len__(self) -> int:
        return len(self.articles)


class KBStore:
    """
    Read-through cache of published KB articles.

    The snapshot is reloaded from the repository once it is older than
    ttl_seconds; concurrent refreshes share one load.
    """

    def __init__(
        self,
        repository: IKBArticleRepository,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._repository = repository
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[KBSnapshot] = None
        self._lock = asyncio.Lock()

    @property
    def snapshot(self) -> KBSnapshot:
        """Current snapshot; empty until the first refresh."""
        return self._snapshot or KBSnapshot()

    def is_stale(self) -> bool:
        if self._snapshot is None:
            return True
        return self._clock() - self._snapshot.loaded_at >= self._ttl

    async def refresh(self, force: bool = False) -> KBSnapshot:
        """Reload the snapshot if it is stale (or when forced)."""
        if not force and not self.is_stale():
            return self._snapshot

        async with self._lock:
            if not force and not self.is_stale():
                return self._snapshot
            articles = await self._repository.list_published()
            self._snapshot = KBSnapshot.build(articles, self._clock())

        logger.info("KB snapshot loaded", extra={"articles": len(self._snapshot)})
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None


# ========== KB Matcher ==========

RankKey = Tuple[int, int, int, str]


class KBMatches:
    """
    Ranked, lazy and restartable sequence of matching articles.

    Candidates are fixed when the match is made. Each iteration heapifies
    them and pops only as many as the caller consumes, up to the limit.
    """

    def __init__(self, candidates: Sequence[Tuple[RankKey, KBArticle]], limit: int):
        self._candidates = tuple(candidates)
        self._limit = max(0, limit)

    def __iter__(self) -> Iterator[KBArticle]:
        heap = list(self._candidates)
        heapq.heapify(heap)
        for _ in range(min(self._limit, len(heap))):
            yield heapq.heappop(heap)[1]

    def __len__(self) -> int:
        return min(self._limit, len(self._candidates))

    def __bool__(self) -> bool:
        return len(self) > 0

    def first(self) -> Optional[KBArticle]:
        return next(iter(self), None)

    def take(self, n: int) -> List[KBArticle]:
        result = []
        for article in self:
            if len(result) >= n:
                break
            result.append(article)
        return result


class KBMatcher:
    """
    Ranks published KB articles for a category, keyword set and language.

    Order: category match, then keyword overlap, then whether the article
    has the requested language, then article id. An article needs a
    category match or at least one shared keyword to be returned.
    """

    def __init__(self, store: KBStore):
        self._store = store

    def match(
        self,
        category: Optional[str],
        keywords: Iterable[str],
        language: str,
        limit: int,
    ) -> KBMatches:
        snapshot = self._store.snapshot
        wanted = normalize_keywords(keywords)

        pool: Dict[str, KBArticle] = {}
        if category:
            for article in snapshot.by_category.get(category, ()):
                pool[article.id] = article
        for keyword in wanted:
            for article in snapshot.by_keyword.get(keyword, ()):
                pool[article.id] = article

        candidates = [
            (self._rank_key(article, category, wanted, language), article)
            for article in pool.values()
        ]
        return KBMatches(candidates, limit)

    @staticmethod
    def _rank_key(
        article: KBArticle,
        category: Optional[str],
        keywords: FrozenSet[str],
        language: str,
    ) -> RankKey:
        return (
            -int(article.category == category),
            -len(article.keywords & keywords),
            -int(article.has_language(language)),
            article.id,
        )


# ========== Suggested Response ==========

_RESPONSE_TEMPLATES = {
    "ru": {
        "greeting": "Здравствуйте! Возможно, вам помогут следующие инструкции:",
        "closing": "Если проблема сохраняется, ответьте на это сообщение, и к обращению подключится оператор.",
    },
    "kz": {
        "greeting": "Сәлеметсіз бе! Келесі нұсқаулықтар көмектесуі мүмкін:",
        "closing": "Мәселе шешілмесе, осы хабарламаға жауап беріңіз, өтінішке оператор қосылады.",
    },
    "en": {
        "greeting": "Hello! The following guides may help:",
        "closing": "If the problem persists, reply to this message and an operator will pick up your request.",
    },
}


def compose_suggested_response(
    articles: Sequence[KBArticle],
    language: str,
    excerpt_length: int = 200,
) -> Optional[str]:
    """
    Render a reply citing each article's title and an excerpt.

    Returns None when there is nothing to cite.
    """
    if not articles:
        return None

    template = _RESPONSE_TEMPLATES.get(language, _RESPONSE_TEMPLATES["en"])
    parts = [template["greeting"]]
    for i, article in enumerate(articles, 1):
        parts.append(f"[{i}] {article.title_for(language)}\n{article.excerpt(language, excerpt_length)}")
    parts.append(template["closing"])
    return "\n\n".join(parts)

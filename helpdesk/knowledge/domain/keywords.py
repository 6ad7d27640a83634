"""
Keyword extraction for KB matching.
"""

import re
from typing import List

from helpdesk.config import TICKET_CATEGORIES

_WORD_RE = re.compile(r"\w+", re.UNICODE)

# Catalog keywords made of several words, e.g. "не работает"
_PHRASES = tuple(sorted({
    kw for category in TICKET_CATEGORIES for kw in category.keywords if " " in kw
}))


def derive_keywords(text: str, min_length: int = 2) -> List[str]:
    """
    Lower-cased word tokens of the text plus catalog phrases found in it.

    Order follows first appearance; duplicates are dropped.
    """
    lowered = (text or "").lower()
    seen = set()
    keywords = []
    for token in _WORD_RE.findall(lowered):
        if len(token) < min_length or token.isdigit() or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
    for phrase in _PHRASES:
        if phrase in lowered and phrase not in seen:
            seen.add(phrase)
            keywords.append(phrase)
    return keywords

"""
Inbound text heuristics: language detection and subject derivation.
"""

from typing import Optional

from helpdesk.config import SUPPORTED_LANGUAGES

# Letters present in Kazakh Cyrillic but not in Russian
KAZAKH_LETTERS = frozenset("әғқңөұүһіӘҒҚҢӨҰҮҺІ")

CYRILLIC_SHARE_FOR_RUSSIAN = 0.3
SUBJECT_MAX_LENGTH = 120


def detect_language(text: str, default: str = "ru") -> str:
    """
    Guess ru, kz or en from the script of the text.

    Any Kazakh-specific letter means kz; a Cyrillic share of letters
    above 30% means ru; text with letters that is neither is en. Empty
    or letterless text gets the default.
    """
    letters = [ch for ch in text or "" if ch.isalpha()]
    if not letters:
        return default
    if any(ch in KAZAKH_LETTERS for ch in letters):
        return "kz"
    cyrillic = sum(1 for ch in letters if "Ѐ" <= ch <= "ӿ")
    if cyrillic / len(letters) > CYRILLIC_SHARE_FOR_RUSSIAN:
        return "ru"
    return "en"


def normalize_language(language: Optional[str], text: str, default: str = "ru") -> str:
    """Use the given language if supported, else detect it."""
    if language:
        language = language.strip().lower()
        if language == "kk":
            language = "kz"
        if language in SUPPORTED_LANGUAGES:
            return language
    return detect_language(text, default)


def derive_subject(subject: Optional[str], body: str) -> str:
    """Given subject, or the first non-empty body line cut to 120 chars."""
    if subject and subject.strip():
        return subject.strip()[:SUBJECT_MAX_LENGTH]
    for line in (body or "").splitlines():
        line = line.strip()
        if line:
            if len(line) > SUBJECT_MAX_LENGTH:
                return line[:SUBJECT_MAX_LENGTH - 3].rstrip() + "..."
            return line
    return ""

"""Keyword and phrase extraction for trend detection."""

import re
from typing import Dict, List, Optional

STOP_WORDS = frozenset({
    'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'from', 'this', 'that', 'these', 'those', 'a', 'an', 'is', 'are', 'was', 'were',
    'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did', 'will', 'would',
    'could', 'should', 'may', 'might', 'must', 'can', 'said', 'says', 'new', 'also',
    'its', 'his', 'her', 'their', 'our', 'your', 'my', 'me', 'him', 'them', 'us',
    'she', 'he', 'it', 'we', 'you', 'they', 'who', 'what', 'when', 'where', 'why', 'how',
    'news', 'report', 'reports', 'story', 'stories', 'article', 'breaking',
})

MIN_WORD_LENGTH = 3
MAX_KEYWORD_LENGTH = 50
PHRASE_WEIGHT = 2

_NON_WORD = re.compile(r"[^\w\s]")
_DIGITS = re.compile(r"^\d+$")


def tokenize(text: str) -> List[str]:
    return _NON_WORD.sub(" ", (text or "").lower()).split()


def is_keyword(word: str) -> bool:
    return (
        MIN_WORD_LENGTH <= len(word) <= MAX_KEYWORD_LENGTH
        and word not in STOP_WORDS
        and not _DIGITS.match(word)
    )


def extract_phrases(tokens: List[str]) -> List[str]:
    """2- and 3-word phrases that contain no stop word."""
    phrases = []
    for size in (2, 3):
        for i in range(len(tokens) - size + 1):
            window = tokens[i:i + size]
            if any(w in STOP_WORDS for w in window):
                continue
            phrase = " ".join(window)
            if len(phrase) <= MAX_KEYWORD_LENGTH:
                phrases.append(phrase)
    return phrases


def keyword_counts(title: str, content: Optional[str] = None) -> Dict[str, int]:
    """Keyword -> weighted count; phrases count double."""
    tokens = tokenize(f"{title} {content or ''}")
    counts: Dict[str, int] = {}
    for word in tokens:
        if is_keyword(word):
            counts[word] = counts.get(word, 0) + 1
    for phrase in extract_phrases(tokens):
        counts[phrase] = counts.get(phrase, 0) + PHRASE_WEIGHT
    return counts


def extract_keywords(title: str, content: Optional[str] = None) -> List[str]:
    """Distinct keywords and phrases in first-seen order."""
    return list(keyword_counts(title, content))


def word_overlap(a: str, b: str) -> float:
    """Share of common words relative to the longer keyword."""
    words_a = a.split()
    words_b = b.split()
    longest = max(len(words_a), len(words_b))
    if longest == 0:
        return 0.0
    common = sum(1 for w in words_a if w in words_b)
    return common / longest

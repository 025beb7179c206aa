from .text_patterns import (
    TEXT_PATTERNS,
    PATTERN_BOOSTS,
    SYNONYMS,
    PROMOTIONAL_KEYWORDS,
    STOPWORDS,
)

__all__ = ['TEXT_PATTERNS', 'PATTERN_BOOSTS', 'SYNONYMS', 'PROMOTIONAL_KEYWORDS', 'STOPWORDS']

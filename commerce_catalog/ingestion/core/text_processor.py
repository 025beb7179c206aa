"""
Text Processing for Search Enrichment

Turns the text-bearing fields of a canonical product into cleaned text and a
weighted keyword profile. The keyword profile feeds sparse vector generation
and search readiness scoring.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List

from nltk.stem import PorterStemmer
from nltk.tokenize import RegexpTokenizer

from configs.settings import Settings
from ...constants import TEXT_PATTERNS, PATTERN_BOOSTS, SYNONYMS, STOPWORDS

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r'<[^>]*>')
_ENTITY_RE = re.compile(r'&[a-zA-Z0-9#]+;')
_DISALLOWED_RE = re.compile(r'[^\w\s\-\.\(\)\[\]/]')
_WHITESPACE_RE = re.compile(r'\s+')
_INTEGER_RE = re.compile(r'^\d+$')

# Numeric tokens are kept only inside this open range (sizes, quantities)
MAX_NUMERIC_TOKEN = 10000


@dataclass
class Keyword:
    term: str
    weight: float
    raw_frequency: float


class TextProcessor:
    """
    Cleans product text and extracts weighted keywords.

    Weighting per token:
    - context boost (title > brand > category > description > default)
    - pattern boosts (commerce terms, sizes, colors, numbers, brand-like words)
    Both compose multiplicatively. Optional Porter stemming canonicalizes
    variants before aggregation; optional synonym expansion injects related
    terms at half weight afterwards.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.tokenizer = RegexpTokenizer(r'\w+')
        self.stemmer = PorterStemmer() if settings.STEMMING_ENABLED else None
        self._stem_cache: Dict[str, str] = {}

        # Synonym table keyed and valued by stemmed forms so lookups line up
        # with aggregated terms
        self.synonyms: Dict[str, List[str]] = {
            self.stem(term): [self.stem(s) for s in synonyms]
            for term, synonyms in SYNONYMS.items()
        }

    def clean_text(self, text) -> str:
        """
        Strip markup and collapse whitespace, keeping product-code punctuation.

        Args:
            text: Raw field value; non-strings yield an empty string

        Returns:
            Cleaned single-line text
        """
        if not text or not isinstance(text, str):
            return ''

        text = _TAG_RE.sub(' ', text)
        text = _ENTITY_RE.sub(' ', text)
        text = _DISALLOWED_RE.sub(' ', text)
        return _WHITESPACE_RE.sub(' ', text).strip()

    def stem(self, token: str) -> str:
        if self.stemmer is None:
            return token
        stemmed = self._stem_cache.get(token)
        if stemmed is None:
            stemmed = self.stemmer.stem(token)
            self._stem_cache[token] = stemmed
        return stemmed

    def _keep_token(self, token: str) -> bool:
        """Filter on the lowercased token"""
        if len(token) < 2 or token in STOPWORDS:
            return False

        if not token[0].isalnum():
            return False

        # Small positive integers survive (sizes, counts); other numbers do not
        if _INTEGER_RE.match(token):
            return 0 < int(token) < MAX_NUMERIC_TOKEN

        return token[0].isalpha()

    def get_pattern_boost(self, token: str) -> float:
        """Multiplicative boost for a token in its source casing"""
        boost = 1.0
        for name, factor in PATTERN_BOOSTS.items():
            if TEXT_PATTERNS[name].search(token):
                boost *= factor
        return boost

    def extract_keywords(self, text: str, max_features: int = None, context: str = 'general') -> List[Keyword]:
        """
        Extract ranked keywords with normalized weights.

        Args:
            text: Text to analyze
            max_features: Maximum keywords returned (defaults to MAX_SPARSE_FEATURES)
            context: Field the text came from, selects the context boost

        Returns:
            Keywords sorted by weighted frequency, weight rounded to 4 places
        """
        if max_features is None:
            max_features = self.settings.MAX_SPARSE_FEATURES

        tokens = self.tokenizer.tokenize(self.clean_text(text))
        if not tokens:
            return []

        context_boost = self.settings.context_boost(context)
        term_freq: Dict[str, float] = {}
        filtered_count = 0

        for raw_token in tokens:
            token = raw_token.lower()
            if not self._keep_token(token):
                continue
            filtered_count += 1

            stemmed = self.stem(token)
            boost = context_boost * self.get_pattern_boost(raw_token)
            term_freq[stemmed] = term_freq.get(stemmed, 0.0) + boost

        if filtered_count == 0:
            return []

        if self.settings.SYNONYM_EXPANSION:
            self.expand_synonyms(term_freq)

        ranked = sorted(term_freq.items(), key=lambda item: item[1], reverse=True)[:max_features]
        return [
            Keyword(term=term, weight=round(freq / filtered_count, 4), raw_frequency=freq)
            for term, freq in ranked
        ]

    def expand_synonyms(self, term_freq: Dict[str, float]) -> None:
        """
        Inject synonyms of present terms at half weight, in place.

        Only terms present before expansion are expanded; a synonym already
        present (or already injected) keeps its weight.
        """
        expansions: Dict[str, float] = {}

        for term, freq in term_freq.items():
            for synonym in self.synonyms.get(term, ()):
                if synonym not in term_freq and synonym not in expansions:
                    expansions[synonym] = freq * 0.5

        term_freq.update(expansions)

    def extract_search_patterns(self, text: str) -> Dict[str, List[str]]:
        """Pull size, color, brand-like and number mentions out of text"""
        patterns = {}

        sizes = [m.group(0) for m in TEXT_PATTERNS['sizes'].finditer(text)]
        if sizes:
            patterns['sizes'] = sizes

        colors = [m.group(0) for m in TEXT_PATTERNS['colors'].finditer(text)]
        if colors:
            patterns['colors'] = colors

        brands = [m.group(0) for m in TEXT_PATTERNS['brands'].finditer(text)]
        if brands:
            patterns['brands'] = brands[:3]

        numbers = [m.group(0) for m in TEXT_PATTERNS['numbers'].finditer(text)]
        if numbers:
            patterns['numbers'] = numbers[:5]

        return patterns

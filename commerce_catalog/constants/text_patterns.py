"""Text patterns, boosts, synonyms and word lists used during keyword extraction."""

import re

# Product-specific patterns, tested against tokens in their source casing
TEXT_PATTERNS = {
    'sizes': re.compile(r'\b(small|medium|large|xl|xxl|\d+\s*(oz|ml|g|kg|lb|lbs|mg|mcg))\b', re.IGNORECASE),
    'colors': re.compile(r'\b(red|blue|green|yellow|black|white|brown|pink|purple|orange|gray|grey)\b', re.IGNORECASE),
    'brands': re.compile(r'\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b'),
    'numbers': re.compile(r'\b\d+(?:\.\d+)?\b'),
    'commerce_terms': re.compile(
        r'\b(organic|natural|premium|professional|clinical|pharmaceutical|supplement|vitamin|'
        r'protein|creatine|amino|bcaa)\b',
        re.IGNORECASE,
    ),
    'action_words': re.compile(r'\b(buy|purchase|order|get|find|search|looking|need|want|best|top|review)\b', re.IGNORECASE),
}

# Multiplicative boosts applied when a token matches a pattern
PATTERN_BOOSTS = {
    'commerce_terms': 1.5,
    'sizes': 1.3,
    'colors': 1.2,
    'numbers': 1.1,
    'brands': 1.4,
}

# Closed synonym table; expansion never recurses into injected terms
SYNONYMS = {
    'supplement': ['vitamin', 'nutrient', 'pill', 'capsule', 'tablet'],
    'protein': ['whey', 'casein', 'isolate', 'concentrate'],
    'muscle': ['strength', 'power', 'building', 'growth'],
    'weight': ['mass', 'bulk', 'size', 'gain', 'loss'],
    'energy': ['boost', 'power', 'stamina', 'endurance'],
    'health': ['wellness', 'fitness', 'nutrition', 'healthy'],
}

# Category entries containing any of these (case-insensitive) are dropped
PROMOTIONAL_KEYWORDS = ('sale', 'new', 'clearance', 'promo', 'deal', 'special', 'limited')

STOPWORDS = frozenset([
    'about', 'above', 'after', 'again', 'all', 'also', 'am', 'an', 'and', 'another',
    'any', 'are', 'as', 'at', 'be', 'because', 'been', 'before', 'being', 'below',
    'between', 'both', 'but', 'by', 'came', 'can', 'cannot', 'come', 'could', 'did',
    'do', 'does', 'doing', 'during', 'each', 'few', 'for', 'from', 'further', 'get',
    'got', 'has', 'had', 'he', 'have', 'her', 'here', 'him', 'himself', 'his', 'how',
    'if', 'in', 'into', 'is', 'it', 'its', 'itself', 'like', 'make', 'many', 'me',
    'might', 'more', 'most', 'much', 'must', 'my', 'myself', 'never', 'now', 'of',
    'on', 'only', 'or', 'other', 'our', 'ours', 'ourselves', 'out', 'over', 'own',
    'said', 'same', 'see', 'should', 'since', 'so', 'some', 'still', 'such', 'take',
    'than', 'that', 'the', 'their', 'theirs', 'them', 'themselves', 'then', 'there',
    'these', 'they', 'this', 'those', 'through', 'to', 'too', 'under', 'until', 'up',
    'very', 'was', 'way', 'we', 'well', 'were', 'what', 'where', 'when', 'which',
    'while', 'who', 'whom', 'with', 'would', 'why', 'you', 'your', 'yours', 'yourself',
])

"""
Search Enrichment: dense, sparse and readiness attributes

Dense vectors here are a deterministic placeholder derived from a hash of the
weighted search text. Production deployments swap in a real model by passing
another DenseEmbeddingProvider to EmbeddingGenerator.
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Union

import numpy as np

from configs.settings import Settings
from ...errors import EnrichmentError
from ...models.product import CanonicalProduct, SEARCH_ATTRIBUTE_KEYS
from .text_processor import TextProcessor

logger = logging.getLogger(__name__)

# (context, max features, combination boost) for each sparse component
SPARSE_COMPONENTS = (
    ('general', None, 1.0),
    ('title', 20, 2.5),
    ('category', 15, 2.0),
    ('brand', 10, 2.0),
    ('attributes', 25, 1.5),
)

# Repetitions of each component in the weighted search text
SEARCH_TEXT_WEIGHTS = (
    ('title', 5),
    ('categories', 3),
    ('brands', 3),
    ('description', 2),
    ('attribute_values', 2),
    ('keywords', 1),
    ('specifications', 1),
)

READINESS_WEIGHTS = {
    'title': 0.30,
    'categories': 0.25,
    'description': 0.20,
    'dense': 0.10,
    'sparse': 0.05,
    'brands': 0.05,
    'attributes': 0.05,
}

EMBEDDING_KEYS = ('dense_embedding', 'title_embedding', 'category_embedding', 'sparse_embedding')


class DenseEmbeddingProvider(ABC):
    """Turns text into a fixed-dimension dense vector"""

    @property
    @abstractmethod
    def dimension(self) -> int:
        pass

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        pass


class DeterministicEmbeddingProvider(DenseEmbeddingProvider):
    """
    Hash-seeded sine vectors, L2-normalized.

    A pure function of the text: the seed is a 31-multiplier string hash over
    UTF-16 code units wrapped to signed 32 bits, then made non-negative.
    """

    def __init__(self, dimension: int = 384):
        self._dimension = dimension
        self._offsets = np.arange(dimension, dtype=np.float64)

    @property
    def dimension(self) -> int:
        return self._dimension

    @staticmethod
    def hash_text(text: str) -> int:
        encoded = text.encode('utf-16-le', errors='surrogatepass')
        h = 0
        for i in range(0, len(encoded), 2):
            code_unit = encoded[i] | (encoded[i + 1] << 8)
            h = (h * 31 + code_unit) & 0xFFFFFFFF
        if h >= 0x80000000:
            h -= 0x100000000
        return abs(h)

    def embed(self, text: str) -> List[float]:
        seed = self.hash_text(text)
        values = np.round(np.fmod(np.sin(seed + self._offsets) * 10000.0, 1.0), 6)

        magnitude = np.sqrt(np.sum(values * values))
        if magnitude == 0:
            return values.tolist()
        return (values / magnitude).tolist()


def _format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class EmbeddingGenerator:
    """
    Adds search attributes to canonical products.

    Generated attributes:
    - dense_embedding / title_embedding / category_embedding (numbers)
    - sparse_embedding (text, "term:weight")
    - search_readiness_score, embedding_count (numbers)
    """

    def __init__(self, settings: Settings, text_processor: TextProcessor,
                 provider: Optional[DenseEmbeddingProvider] = None):
        self.settings = settings
        self.text_processor = text_processor
        self.provider = provider or DeterministicEmbeddingProvider(settings.DENSE_DIM)

    def extract_searchable_components(self, product: CanonicalProduct) -> Dict[str, str]:
        """Cleaned text per component of the product"""
        clean = self.text_processor.clean_text

        # Numbers only feed the search text; scoring and sparse use text attributes
        attribute_values = []
        for name, attr in product.attributes.items():
            if name in SEARCH_ATTRIBUTE_KEYS or not isinstance(attr, dict):
                continue
            if isinstance(attr.get('text'), list):
                attribute_values.extend(str(t) for t in attr['text'])
            elif isinstance(attr.get('numbers'), list):
                attribute_values.extend(_format_number(n) for n in attr['numbers'])

        specifications = ''
        if product.priceInfo is not None and product.priceInfo.price:
            specifications = f"{_format_number(product.priceInfo.price)} {product.priceInfo.currencyCode}"

        return {
            'title': clean(product.title),
            'description': clean(product.description),
            'categories': ' '.join(clean(c) for c in product.categories),
            'brands': ' '.join(clean(b) for b in product.brands),
            'attributes': ' '.join(product.attribute_texts(exclude=SEARCH_ATTRIBUTE_KEYS)),
            'attribute_values': ' '.join(attribute_values),
            'keywords': '',
            'specifications': specifications,
        }

    def build_search_text(self, components: Dict[str, str]) -> str:
        """Weighted concatenation plus extracted size/color/number mentions"""
        parts = []
        for name, repeat in SEARCH_TEXT_WEIGHTS:
            if components.get(name):
                parts.extend([components[name]] * repeat)
        weighted_text = ' '.join(parts)

        patterns = self.text_processor.extract_search_patterns(weighted_text)
        pattern_text = ''
        for name in ('sizes', 'colors', 'numbers'):
            if name in patterns:
                pattern_text += ' ' + ' '.join(patterns[name])

        return (weighted_text + pattern_text)[:self.settings.MAX_DESCRIPTION_LENGTH * 3]

    def generate_dense_embeddings(self, search_text: str, components: Dict[str, str]) -> Dict[str, List[float]]:
        if not self.settings.ENABLE_DENSE:
            return {}

        embeddings = {'dense_embedding': self.provider.embed(search_text)}
        if components['title'].strip():
            embeddings['title_embedding'] = self.provider.embed(components['title'])
        if components['categories'].strip():
            embeddings['category_embedding'] = self.provider.embed(components['categories'])
        return embeddings

    def generate_sparse_embedding(self, search_text: str, components: Dict[str, str]) -> List[str]:
        if not self.settings.ENABLE_SPARSE:
            return []

        sources = {
            'general': search_text,
            'title': components['title'],
            'category': components['categories'],
            'brand': components['brands'],
            'attributes': components['attributes'],
        }

        combined: Dict[str, float] = {}
        for context, max_features, boost in SPARSE_COMPONENTS:
            text = sources[context]
            if not text:
                continue
            for keyword in self.text_processor.extract_keywords(text, max_features, context):
                combined[keyword.term] = combined.get(keyword.term, 0.0) + keyword.weight * boost

        ranked = sorted(combined.items(), key=lambda item: item[1], reverse=True)
        return [f"{term}:{weight:.4f}" for term, weight in ranked[:self.settings.MAX_SPARSE_FEATURES]]

    def calculate_search_readiness_score(self, components: Dict[str, str],
                                         dense: Dict[str, List[float]], sparse: List[str]) -> float:
        score = 0.0
        for name in ('title', 'categories', 'description'):
            if components[name].strip():
                score += READINESS_WEIGHTS[name]
        if dense:
            score += READINESS_WEIGHTS['dense']
        if sparse:
            score += READINESS_WEIGHTS['sparse']
        if components['brands'].strip():
            score += READINESS_WEIGHTS['brands']
        if components['attributes'].strip():
            score += READINESS_WEIGHTS['attributes']
        return round(min(score, 1.0), 2)

    def build_search_attributes(self, product: CanonicalProduct) -> Dict[str, Dict[str, list]]:
        """
        Compute every generated attribute for a product.

        Returns:
            Generated attributes only; empty when the product has no searchable text

        Raises:
            EnrichmentError: generation failed
        """
        try:
            components = self.extract_searchable_components(product)
            search_text = self.build_search_text(components)

            if not search_text.strip():
                logger.warning(f"⚠️ No searchable text found for product: {product.id}")
                return {}

            dense = self.generate_dense_embeddings(search_text, components)
            sparse = self.generate_sparse_embedding(search_text, components)
        except Exception as e:
            raise EnrichmentError(f"Embedding generation failed: {e}", original_error=e, product_id=product.id)

        generated = {name: {'numbers': vector} for name, vector in dense.items()}
        if sparse:
            generated['sparse_embedding'] = {'text': sparse}

        if self.settings.ENABLE_HYBRID:
            score = self.calculate_search_readiness_score(components, dense, sparse)
            generated['search_readiness_score'] = {'numbers': [score]}

        generated['embedding_count'] = {'numbers': [len(dense) + (1 if sparse else 0)]}
        return generated

    def enrich(self, product: CanonicalProduct) -> CanonicalProduct:
        """
        Return a copy of the product with search attributes added.

        Failures are logged and the product comes back unchanged; generated
        keys are either all present or all absent.
        """
        try:
            generated = self.build_search_attributes(product)
        except Exception as e:
            logger.error(f"❌ Error adding embeddings to product {product.id}: {e}")
            return product

        if not generated:
            return product

        attributes = dict(product.attributes)
        attributes.update(generated)
        return dataclasses.replace(product, attributes=attributes)


def has_embeddings(product: Union[CanonicalProduct, dict]) -> bool:
    """True when any dense or sparse vector attribute is non-empty"""
    attributes = product.attributes if isinstance(product, CanonicalProduct) else product.get('attributes') or {}
    for key in EMBEDDING_KEYS:
        attr = attributes.get(key)
        if isinstance(attr, dict) and (attr.get('numbers') or attr.get('text')):
            return True
    return False

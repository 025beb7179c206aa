"""
Tests for dense/sparse vector generation and search readiness scoring.
"""

import re
import dataclasses
from unittest.mock import patch

import numpy as np
import pytest

from configs.settings import create_test_settings
from commerce_catalog.errors import EnrichmentError
from commerce_catalog.models.product import CanonicalProduct, PriceInfo
from commerce_catalog.ingestion.core.embedding_generator import (
    DenseEmbeddingProvider,
    DeterministicEmbeddingProvider,
    EmbeddingGenerator,
    has_embeddings,
)
from commerce_catalog.ingestion.core.text_processor import TextProcessor

SPARSE_ENTRY = re.compile(r"^\w+:\d+\.\d{4}$")


@pytest.fixture
def product():
    return CanonicalProduct(
        id="p1",
        title="Red Shirt Size M",
        categories=["Shirts", "Tops"],
        description="Soft organic cotton shirt for everyday wear",
        uri="/products/red-shirt-size-m-p1",
        priceInfo=PriceInfo(currencyCode="USD", price=19.99),
        brands=["Acme"],
        attributes={"material": {"text": ["cotton"]}, "weight": {"numbers": [0.5]}},
    )


class FailingProvider(DenseEmbeddingProvider):

    @property
    def dimension(self):
        return 8

    def embed(self, text):
        raise EnrichmentError("model offline")


class TestDeterministicEmbeddingProvider:

    @pytest.mark.parametrize("text,expected", [
        ("", 0),
        ("a", 97),
        ("ab", 3105),
        ("hello", 99162322),
        # wraps past 2**31 and is reported as an absolute value
        ("polygenelubricants", 2147483648),
    ])
    def test_hash_text(self, text, expected):
        assert DeterministicEmbeddingProvider.hash_text(text) == expected

    def test_vector_shape_and_norm(self):
        vector = DeterministicEmbeddingProvider(384).embed("red shirt")

        assert len(vector) == 384
        assert np.linalg.norm(vector) == pytest.approx(1.0)

    def test_deterministic(self):
        provider = DeterministicEmbeddingProvider(64)
        assert provider.embed("red shirt") == DeterministicEmbeddingProvider(64).embed("red shirt")
        assert provider.embed("red shirt") != provider.embed("blue shirt")


class TestEnrich:

    def test_adds_all_generated_attributes(self, embedding_generator, product, settings):
        enriched = embedding_generator.enrich(product)
        attributes = enriched.attributes

        assert len(attributes["dense_embedding"]["numbers"]) == settings.DENSE_DIM
        assert len(attributes["title_embedding"]["numbers"]) == settings.DENSE_DIM
        assert len(attributes["category_embedding"]["numbers"]) == settings.DENSE_DIM
        assert 0 < len(attributes["sparse_embedding"]["text"]) <= settings.MAX_SPARSE_FEATURES
        assert all(SPARSE_ENTRY.match(entry) for entry in attributes["sparse_embedding"]["text"])
        assert attributes["search_readiness_score"] == {"numbers": [1.0]}
        assert attributes["embedding_count"] == {"numbers": [4]}

        # source attributes survive
        assert attributes["material"] == {"text": ["cotton"]}
        assert has_embeddings(enriched)

    def test_does_not_mutate_input(self, embedding_generator, product):
        embedding_generator.enrich(product)
        assert set(product.attributes) == {"material", "weight"}

    def test_deterministic(self, embedding_generator, product):
        assert embedding_generator.enrich(product).to_dict() == embedding_generator.enrich(product).to_dict()

    def test_title_terms_boosted_in_sparse(self, embedding_generator, product):
        def sparse_weights(item):
            sparse = embedding_generator.enrich(item).attributes["sparse_embedding"]["text"]
            return {entry.split(":")[0]: float(entry.split(":")[1]) for entry in sparse}

        weights = sparse_weights(product)
        without_title = sparse_weights(dataclasses.replace(product, title="Red Size M"))

        assert "shirt" in weights
        assert weights["shirt"] > without_title["shirt"]
        assert weights["shirt"] > weights["soft"]

    def test_sparse_capped(self, tmp_path, product):
        settings = create_test_settings(tmp_path, MAX_SPARSE_FEATURES=3)
        generator = EmbeddingGenerator(settings, TextProcessor(settings))

        sparse = generator.enrich(product).attributes["sparse_embedding"]["text"]
        assert len(sparse) == 3

    def test_forced_failure_returns_product_unmodified(self, embedding_generator, product):
        with patch.object(embedding_generator, "generate_dense_embeddings", side_effect=RuntimeError("boom")):
            result = embedding_generator.enrich(product)

        assert result is product
        assert "dense_embedding" not in result.attributes
        assert "sparse_embedding" not in result.attributes
        assert not has_embeddings(result)

    def test_provider_failure_returns_product_unmodified(self, settings, text_processor, product):
        generator = EmbeddingGenerator(settings, text_processor, provider=FailingProvider())
        assert generator.enrich(product) is product

    def test_build_search_attributes_raises_enrichment_error(self, settings, text_processor, product):
        generator = EmbeddingGenerator(settings, text_processor, provider=FailingProvider())
        with pytest.raises(EnrichmentError) as exc_info:
            generator.build_search_attributes(product)
        assert exc_info.value.product_id == "p1"

    def test_no_searchable_text(self, embedding_generator):
        empty = CanonicalProduct(id="e1", title="", categories=[], description="", uri="/products/-e1")
        assert embedding_generator.enrich(empty) is empty

    def test_title_and_category_vectors_omitted_when_empty(self, embedding_generator):
        product = CanonicalProduct(id="d1", title="", categories=[], description="Plain description", uri="/x")
        attributes = embedding_generator.enrich(product).attributes

        assert "dense_embedding" in attributes
        assert "title_embedding" not in attributes
        assert "category_embedding" not in attributes
        assert attributes["embedding_count"] == {"numbers": [2]}

    def test_dense_disabled(self, tmp_path, product):
        settings = create_test_settings(tmp_path, ENABLE_DENSE=False)
        generator = EmbeddingGenerator(settings, TextProcessor(settings))
        attributes = generator.enrich(product).attributes

        assert "dense_embedding" not in attributes
        assert "title_embedding" not in attributes
        assert attributes["embedding_count"] == {"numbers": [1]}
        assert attributes["search_readiness_score"] == {"numbers": [0.9]}

    def test_hybrid_disabled(self, tmp_path, product):
        settings = create_test_settings(tmp_path, ENABLE_HYBRID=False)
        generator = EmbeddingGenerator(settings, TextProcessor(settings))
        assert "search_readiness_score" not in generator.enrich(product).attributes


class TestSearchText:

    def test_weighted_repetition(self, embedding_generator, product):
        components = embedding_generator.extract_searchable_components(product)
        text = embedding_generator.build_search_text(components)

        assert text.count("Red Shirt Size M") == 5
        assert text.count("Acme") == 3
        assert "19.99 USD" in text
        assert "0.5" in text
        assert components["attribute_values"] == "cotton 0.5"
        assert components["attributes"] == "cotton"

    def test_truncated(self, tmp_path, product):
        settings = create_test_settings(tmp_path, MAX_DESCRIPTION_LENGTH=10)
        generator = EmbeddingGenerator(settings, TextProcessor(settings))
        components = generator.extract_searchable_components(product)

        assert len(generator.build_search_text(components)) == 30

    def test_generated_keys_excluded_from_components(self, embedding_generator, product):
        enriched = embedding_generator.enrich(product)
        components = embedding_generator.extract_searchable_components(enriched)
        assert components == embedding_generator.extract_searchable_components(product)


class TestReadinessScore:

    def components(self, **present):
        base = {name: "" for name in ("title", "description", "categories", "brands", "attributes")}
        base.update(present)
        return base

    def test_full_score(self, embedding_generator):
        components = self.components(title="t", description="d", categories="c", brands="b", attributes="a")
        assert embedding_generator.calculate_search_readiness_score(components, {"dense": [1.0]}, ["t:1.0000"]) == 1.0

    def test_partial_scores(self, embedding_generator):
        score = embedding_generator.calculate_search_readiness_score
        assert score(self.components(title="t"), {}, []) == 0.3
        assert score(self.components(title="t", categories="c"), {}, []) == 0.55
        assert score(self.components(), {"dense": [1.0]}, ["t:1.0000"]) == 0.15
        assert score(self.components(), {}, []) == 0.0

    def test_numeric_attributes_do_not_count_as_attribute_text(self, embedding_generator):
        base = CanonicalProduct(id="n1", title="Steel Kettle", categories=["Kitchen"], description="", uri="/x")
        with_weight = dataclasses.replace(base, attributes={"weight": {"numbers": [2.0]}})

        def score(item):
            return embedding_generator.enrich(item).attributes["search_readiness_score"]["numbers"][0]

        assert score(with_weight) == score(base) == 0.7
        components = embedding_generator.extract_searchable_components(with_weight)
        assert components["attributes"] == ""
        assert "2" in embedding_generator.build_search_text(components)


def test_has_embeddings_accepts_dicts():
    assert has_embeddings({"attributes": {"sparse_embedding": {"text": ["a:1.0000"]}}})
    assert not has_embeddings({"attributes": {"sparse_embedding": {"text": []}}})
    assert not has_embeddings({"id": "x"})

"""
Product Normalization

Maps raw catalog records of unknown shape into CanonicalProduct values. Each
source variant carries its own alias table; the variant is chosen once per
file, never per field.
"""

import re
import json
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set, Tuple

from configs.settings import Settings
from ...constants import PROMOTIONAL_KEYWORDS
from ...errors import NormalizationError
from ...models.product import Availability, CanonicalProduct, PriceInfo, SEARCH_ATTRIBUTE_KEYS
from .format_detector import CatalogFormat
from .text_processor import TextProcessor

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Product"

STATUS_FIELDS = ('availability', 'status', 'stock_status', 'in_stock', 'available')
QUANTITY_FIELDS = ('quantity', 'stock', 'inventory', 'qty')

# Out-of-stock markers are checked first: "unavailable" contains "available"
OUT_OF_STOCK_MARKERS = ('out', 'unavailable', 'sold')
OUT_OF_STOCK_VALUES = ('false', '0', 'no')
IN_STOCK_MARKERS = ('stock', 'available', 'preorder', 'backorder')
IN_STOCK_VALUES = ('true', '1', 'yes')

_SLUG_INVALID_RE = re.compile(r'[^a-z0-9\s-]')
_SLUG_SPACE_RE = re.compile(r'\s+')


class ProductNormalizer(ABC):
    """
    Base normalizer: shared field processing plus an alias table per variant.

    FIELD_MAPPINGS maps a canonical field to source aliases tried in order;
    the first alias with a non-empty value wins.
    """

    FORMAT: CatalogFormat = None
    FIELD_MAPPINGS: Dict[str, Tuple[str, ...]] = {}

    def __init__(self, settings: Settings, text_processor: TextProcessor):
        self.settings = settings
        self.text_processor = text_processor

    def normalize(self, raw: Any, source_name: str = '', ordinal: int = 0) -> CanonicalProduct:
        """
        Convert one raw record.

        Args:
            raw: Parsed JSON value for the record
            source_name: Input file name, used for synthesized ids
            ordinal: Position of the record in its file

        Returns:
            CanonicalProduct

        Raises:
            NormalizationError: record cannot be mapped
        """
        if not isinstance(raw, dict):
            raise NormalizationError(
                f"Expected a JSON object, got {type(raw).__name__}",
                source=source_name,
            )

        product_id = None
        try:
            consumed: Set[str] = set()
            product_id = self._resolve_id(raw, source_name, ordinal, consumed)
            return self._build(raw, product_id, consumed)
        except NormalizationError:
            raise
        except Exception as e:
            raise NormalizationError(
                f"Failed to normalize product: {e}",
                original_error=e,
                source=source_name,
                product_id=product_id or raw.get('id'),
            )

    def _build(self, raw: Dict[str, Any], product_id: str, consumed: Set[str]) -> CanonicalProduct:
        title = self.process_title(self._first_value(raw, 'title', consumed))
        categories = self.process_categories(self._first_value(raw, 'categories', consumed))
        description = self.process_description(self._first_value(raw, 'description', consumed))
        price_info = self.extract_price_info(raw, consumed)
        brands = self.extract_brands(self._first_value(raw, 'brands', consumed))

        product = CanonicalProduct(
            id=product_id,
            title=title,
            categories=categories,
            description=description,
            uri=self.resolve_uri(raw, product_id, title),
            availability=determine_availability(raw),
            languageCode=self._language_code(raw),
            priceInfo=price_info,
            brands=brands,
            attributes=self.build_attributes(raw, consumed),
            images=self.extract_images(raw),
        )

        # Search attributes are generated during enrichment, never taken from the source
        if product.has_search_attributes():
            logger.debug(f"Dropping source search attributes from product {product_id}")
            product.attributes = {
                name: value for name, value in product.attributes.items() if name not in SEARCH_ATTRIBUTE_KEYS
            }

        return product

    @abstractmethod
    def build_attributes(self, raw: Dict[str, Any], consumed: Set[str]) -> Dict[str, Dict[str, list]]:
        """Typed attribute map for the variant"""
        pass

    def resolve_uri(self, raw: Dict[str, Any], product_id: str, title: str) -> str:
        return generate_product_uri(product_id, title)

    def extract_images(self, raw: Dict[str, Any]) -> Optional[List[Any]]:
        return None

    # Field lookup

    def _first_value(self, raw: Dict[str, Any], field: str, consumed: Set[str]) -> Any:
        for alias in self.FIELD_MAPPINGS.get(field, ()):
            value = raw.get(alias)
            if value is None or value == '' or value == [] or value == {}:
                continue
            consumed.add(alias)
            return value
        return None

    def _resolve_id(self, raw: Dict[str, Any], source_name: str, ordinal: int, consumed: Set[str]) -> str:
        value = self._first_value(raw, 'id', consumed)
        if value is not None and not isinstance(value, (dict, list)):
            product_id = str(value).strip()
            if product_id:
                return product_id
        return synthesize_product_id(self.FORMAT, source_name, ordinal, raw)

    def _language_code(self, raw: Dict[str, Any]) -> str:
        language = raw.get('languageCode')
        if isinstance(language, str) and language.strip():
            return language.strip()
        return self.settings.DEFAULT_LANGUAGE_CODE

    # Field processing

    def process_title(self, value: Any) -> str:
        title = self.text_processor.clean_text(str(value)) if value is not None else ''
        return (title or DEFAULT_TITLE)[:self.settings.MAX_TITLE_LENGTH]

    def process_categories(self, value: Any) -> List[str]:
        """Clean, drop promotional and duplicate entries, cap the count"""
        if isinstance(value, str):
            value = [value]
        elif not isinstance(value, list):
            value = []

        categories = []
        for item in value:
            if item is None or isinstance(item, (dict, list)):
                continue
            category = self.text_processor.clean_text(str(item))
            if not category or category in categories:
                continue
            lowered = category.lower()
            if any(keyword in lowered for keyword in PROMOTIONAL_KEYWORDS):
                continue
            categories.append(category)

        categories = categories[:self.settings.MAX_CATEGORIES]
        return categories or [self.settings.DEFAULT_CATEGORY]

    def process_description(self, value: Any) -> str:
        if value is None or isinstance(value, (dict, list)):
            return ''
        return self.text_processor.clean_text(str(value))[:self.settings.MAX_DESCRIPTION_LENGTH]

    def extract_price_info(self, raw: Dict[str, Any], consumed: Set[str]) -> Optional[PriceInfo]:
        for alias in self.FIELD_MAPPINGS.get('price', ()):
            value = raw.get(alias)
            price = extract_price(value)
            if price is None:
                continue
            consumed.add(alias)
            currency = self.settings.DEFAULT_CURRENCY_CODE
            if isinstance(value, dict):
                source_currency = value.get('currencyCode') or value.get('currency')
                if isinstance(source_currency, str) and source_currency.strip():
                    currency = source_currency.strip()
            return PriceInfo(currencyCode=currency, price=price)
        return None

    def extract_brands(self, value: Any) -> List[str]:
        if value is None:
            return []
        values = value if isinstance(value, list) else [value]
        brands = []
        for item in values:
            if item is None or isinstance(item, (dict, list)):
                continue
            brand = self.text_processor.clean_text(str(item))
            if brand and brand not in brands:
                brands.append(brand)
        return brands

    def to_text_values(self, value: Any) -> List[str]:
        """Render a source value as attribute text; nested objects become compact JSON"""
        values = value if isinstance(value, list) else [value]
        texts = []
        for item in values:
            if item is None:
                continue
            if isinstance(item, (dict, list)):
                texts.append(compact_json(item))
            else:
                text = self.text_processor.clean_text(str(item))
                if text:
                    texts.append(text)
        return texts


class VertexProductNormalizer(ProductNormalizer):
    """Records already close to the commerce import schema"""

    FORMAT = CatalogFormat.VERTEX
    FIELD_MAPPINGS = {
        'id': ('id',),
        'title': ('title', 'name'),
        'categories': ('categories',),
        'description': ('description',),
        'price': ('priceInfo', 'price'),
        'brands': ('brands',),
    }

    def resolve_uri(self, raw: Dict[str, Any], product_id: str, title: str) -> str:
        uri = raw.get('uri')
        if isinstance(uri, str) and uri.strip():
            return uri.strip()
        return super().resolve_uri(raw, product_id, title)

    def extract_images(self, raw: Dict[str, Any]) -> Optional[List[Any]]:
        images = raw.get('images')
        if not images:
            return None
        return images if isinstance(images, list) else [images]

    def build_attributes(self, raw: Dict[str, Any], consumed: Set[str]) -> Dict[str, Dict[str, list]]:
        attributes = {}
        source = raw.get('attributes')
        if isinstance(source, dict):
            for name, value in source.items():
                typed = self._typed_attribute(value)
                if typed is not None:
                    attributes[str(name)] = typed

        audience = raw.get('audience')
        genders = audience.get('genders') if isinstance(audience, dict) else None
        if genders:
            genders = [str(g) for g in (genders if isinstance(genders, list) else [genders])]
            attributes['gender_esai'] = {'text': genders}

            filter_fields = attributes.get('filter_fields')
            if filter_fields and isinstance(filter_fields.get('text'), list):
                merged = list(filter_fields['text'])
                for gender in genders:
                    if gender not in merged:
                        merged.append(gender)
                attributes['filter_fields'] = {'text': merged}

        return attributes

    def _typed_attribute(self, value: Any) -> Optional[Dict[str, list]]:
        """Coerce a source attribute into the text/numbers union"""
        if value is None:
            return None

        if isinstance(value, dict):
            if isinstance(value.get('numbers'), list):
                return {'numbers': [float(n) for n in value['numbers']]}
            if isinstance(value.get('text'), list):
                return {'text': [str(t) for t in value['text']]}
            return {'text': self.to_text_values(value)}

        values = value if isinstance(value, list) else [value]
        if values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
            return {'numbers': [float(v) for v in values]}

        texts = []
        for item in values:
            if isinstance(item, (dict, list)):
                texts.append(compact_json(item))
            elif item is not None:
                texts.append(str(item))
        return {'text': texts}


class GenericProductNormalizer(ProductNormalizer):
    """Arbitrary vendor schemas mapped through common field aliases"""

    FORMAT = CatalogFormat.GENERIC
    FIELD_MAPPINGS = {
        'id': ('id', 'product_id', 'sku'),
        'title': ('title', 'name', 'product_name', 'display_name'),
        'categories': ('categories', 'category', 'product_categories', 'tags', 'types'),
        'description': ('description', 'details', 'summary', 'content'),
        'price': ('price', 'cost', 'amount', 'value'),
        'brands': ('brand', 'manufacturer', 'company', 'vendor'),
    }

    # Copied into text attributes of the same name
    ATTRIBUTE_FIELDS = (
        'sku', 'model', 'color', 'size', 'weight', 'dimensions',
        'material', 'features', 'specifications', 'keywords', 'tags',
    )

    SYSTEM_FIELDS = frozenset([
        'id', 'title', 'name', 'description', 'price', 'categories', 'brand', 'availability',
    ])

    def build_attributes(self, raw: Dict[str, Any], consumed: Set[str]) -> Dict[str, Dict[str, list]]:
        attributes = {}

        for field in self.ATTRIBUTE_FIELDS:
            if raw.get(field) in (None, '', [], {}):
                continue
            texts = self.to_text_values(raw[field])
            if texts:
                attributes[field] = {'text': texts}

        denylist = self.SYSTEM_FIELDS | consumed
        for key, value in raw.items():
            if key in denylist or key in self.ATTRIBUTE_FIELDS or value is None:
                continue
            texts = self.to_text_values(value)
            if texts:
                attributes[f'custom_{key}'] = {'text': texts}

        return attributes


NORMALIZERS = {
    CatalogFormat.VERTEX: VertexProductNormalizer,
    CatalogFormat.GENERIC: GenericProductNormalizer,
}


def get_normalizer(catalog_format: CatalogFormat, settings: Settings,
                   text_processor: TextProcessor) -> ProductNormalizer:
    """Resolve the normalizer for a file's detected format"""
    return NORMALIZERS[CatalogFormat(catalog_format)](settings, text_processor)


def compact_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(',', ':'), sort_keys=True)


def extract_price(price_value: Any) -> Optional[float]:
    """Extract numeric price from various formats."""

    if isinstance(price_value, bool):
        return None

    if isinstance(price_value, (int, float)):
        return float(price_value)

    if isinstance(price_value, str):
        # Remove currency symbols and extract number
        price_str = re.sub(r'[^\d.,]', '', price_value).replace(',', '')
        if not price_str:
            return None
        try:
            return float(price_str)
        except ValueError:
            return None

    if isinstance(price_value, dict):
        for key in ('amount', 'value', 'price'):
            if key in price_value:
                return extract_price(price_value[key])

    return None


def classify_status(value: Any) -> Optional[Availability]:
    """Map a status-like value to availability, None if it does not classify"""
    text = str(value).strip().lower()
    if not text:
        return None

    if any(marker in text for marker in OUT_OF_STOCK_MARKERS) or text in OUT_OF_STOCK_VALUES:
        return Availability.OUT_OF_STOCK
    if any(marker in text for marker in IN_STOCK_MARKERS) or text in IN_STOCK_VALUES:
        return Availability.IN_STOCK
    return None


def determine_availability(raw: Dict[str, Any]) -> Availability:
    """
    Status fields first, then inventory counts, then IN_STOCK.
    """
    for field in STATUS_FIELDS:
        if raw.get(field) is None:
            continue
        status = classify_status(raw[field])
        if status is not None:
            return status

    for field in QUANTITY_FIELDS:
        value = raw.get(field)
        if value is None or isinstance(value, bool):
            continue
        try:
            quantity = float(value)
        except (TypeError, ValueError):
            continue
        return Availability.IN_STOCK if quantity > 0 else Availability.OUT_OF_STOCK

    return Availability.IN_STOCK


def generate_product_uri(product_id: str, title: str) -> str:
    slug = _SLUG_INVALID_RE.sub('', title.lower())
    slug = _SLUG_SPACE_RE.sub('-', slug)[:50]
    return f"/products/{slug}-{product_id}"


def synthesize_product_id(catalog_format: CatalogFormat, source_name: str, ordinal: int, raw: Dict[str, Any]) -> str:
    """Stable id for records without one: same file, position and content give the same id"""
    content = json.dumps(raw, sort_keys=True, ensure_ascii=False, default=str)
    digest = hashlib.sha256(f"{source_name}\x00{ordinal}\x00{content}".encode('utf-8')).hexdigest()
    return f"{CatalogFormat(catalog_format).value}-product-{digest[:12]}"

import copy
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


SEARCH_ATTRIBUTE_KEYS = (
    'dense_embedding',
    'title_embedding',
    'category_embedding',
    'sparse_embedding',
    'search_readiness_score',
    'embedding_count',
)


class Availability(str, Enum):
    """Stock state accepted by the commerce index"""
    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


@dataclass
class PriceInfo:
    currencyCode: str
    price: float

    def to_dict(self) -> dict:
        return {"currencyCode": self.currencyCode, "price": self.price}


@dataclass
class CanonicalProduct:
    """
    Normalized, schema-fixed product record written one per output line.

    Attribute values are typed unions: {"text": [str, ...]} or
    {"numbers": [float, ...]}.
    """
    id: str
    title: str
    categories: List[str]
    description: str
    uri: str
    availability: Availability = Availability.IN_STOCK
    languageCode: str = "en"
    priceInfo: Optional[PriceInfo] = None
    brands: List[str] = field(default_factory=list)
    attributes: Dict[str, Dict[str, list]] = field(default_factory=dict)
    images: Optional[List[Any]] = None

    def to_dict(self) -> dict:
        # Key order mirrors the import schema
        data = {
            "id": self.id,
            "title": self.title,
            "categories": list(self.categories),
            "description": self.description,
            "uri": self.uri,
            "availability": Availability(self.availability).value,
            "languageCode": self.languageCode,
        }
        if self.priceInfo is not None:
            data["priceInfo"] = self.priceInfo.to_dict()
        if self.brands:
            data["brands"] = list(self.brands)
        data["attributes"] = copy.deepcopy(self.attributes)
        if self.images:
            data["images"] = copy.deepcopy(self.images)
        return data

    def to_json(self) -> str:
        """Serialize as one compact JSON line (no trailing newline)"""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(',', ':'))

    @classmethod
    def from_dict(cls, data: dict) -> "CanonicalProduct":
        price = data.get("priceInfo")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            categories=list(data.get("categories") or []),
            description=data.get("description", ""),
            uri=data.get("uri", ""),
            availability=Availability(data.get("availability", Availability.IN_STOCK.value)),
            languageCode=data.get("languageCode", "en"),
            priceInfo=PriceInfo(**price) if price else None,
            brands=list(data.get("brands") or []),
            attributes=copy.deepcopy(data.get("attributes") or {}),
            images=copy.deepcopy(data.get("images")),
        )

    def attribute_texts(self, exclude: Iterable[str] = ()) -> List[str]:
        """All text attribute values, in attribute order"""
        texts = []
        for name, attr in self.attributes.items():
            if name in exclude:
                continue
            if isinstance(attr, dict) and isinstance(attr.get("text"), list):
                texts.extend(str(t) for t in attr["text"])
        return texts

    def has_search_attributes(self) -> bool:
        return any(key in self.attributes for key in SEARCH_ATTRIBUTE_KEYS)

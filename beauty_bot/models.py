"""
Dataclass models for the chat pipeline.

Intent and MatchCandidate sets live for one request only; CatalogRecord mirrors
the metadata stored in the catalog index and is never mutated here.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from .enums import ASSISTANT_WIRE_ROLES, ChatRole, SearchStage

DEFAULT_UNDERSTANDING = "Unable to interpret query intent."
DEFAULT_ADVICE = "Sorry, I had trouble understanding your request."


def normalize_type(product_type: Optional[str]) -> str:
    """'Health > Skincare > Cleanser' -> 'cleanser'."""
    if not product_type:
        return ""
    return product_type.split(">")[-1].strip().lower()


@dataclass(frozen=True)
class Intent:
    understanding: str = DEFAULT_UNDERSTANDING
    search_keywords: str = ""
    advice: str = DEFAULT_ADVICE
    requested_count: int = 1
    product_types: Tuple[str, ...] = ()
    usage_instructions: Optional[str] = None
    price_ceiling: Optional[float] = None
    sort_by_price: bool = False
    vendor: Optional[str] = None
    attributes: Tuple[str, ...] = ()
    # False for the default intent used when the model could not be read
    interpreted: bool = False

    @classmethod
    def default(cls) -> "Intent":
        return cls()

    @property
    def has_product_signal(self) -> bool:
        return bool(self.search_keywords.strip() or self.product_types)

    def with_changes(self, **changes: Any) -> "Intent":
        return replace(self, **changes)


def is_valid_metadata(metadata: Any) -> bool:
    """Structural check on index metadata before it is trusted."""
    if not isinstance(metadata, dict):
        return False
    image_url = metadata.get("imageUrl")
    return (
        all(isinstance(metadata.get(k), str) for k in ("id", "handle", "title", "price", "productUrl"))
        and (image_url is None or isinstance(image_url, str))
    )


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


@dataclass(frozen=True)
class CatalogRecord:
    id: str
    handle: str
    title: str
    price: str
    product_url: str
    image_url: Optional[str] = None
    variant_id: Optional[str] = None
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    tags: str = ""
    usage_instructions: Optional[str] = None

    @classmethod
    def from_metadata(cls, metadata: Any) -> Optional["CatalogRecord"]:
        if not is_valid_metadata(metadata):
            return None
        tags = metadata.get("tags")
        return cls(
            id=metadata["id"],
            handle=metadata["handle"],
            title=metadata["title"],
            price=metadata["price"],
            product_url=metadata["productUrl"],
            image_url=metadata.get("imageUrl"),
            variant_id=_opt_str(metadata.get("variantId")),
            vendor=_opt_str(metadata.get("vendor")),
            product_type=_opt_str(metadata.get("productType")),
            tags=tags if isinstance(tags, str) else "",
            usage_instructions=_opt_str(metadata.get("usageInstructions")),
        )

    def to_metadata(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "handle": self.handle,
            "title": self.title,
            "price": self.price,
            "imageUrl": self.image_url,
            "productUrl": self.product_url,
            "tags": self.tags,
        }
        for key, value in (
            ("variantId", self.variant_id),
            ("vendor", self.vendor),
            ("productType", self.product_type),
            ("usageInstructions", self.usage_instructions),
        ):
            if value is not None:
                data[key] = value
        return data

    @property
    def normalized_type(self) -> str:
        return normalize_type(self.product_type)

    @property
    def tag_list(self) -> List[str]:
        return [t.strip().lower() for t in self.tags.split(",") if t.strip()]


@dataclass(frozen=True)
class IndexHit:
    """One raw result from the catalog index."""
    id: str
    score: float
    record: CatalogRecord


@dataclass
class MatchCandidate:
    record: CatalogRecord
    score: float
    stage: SearchStage = SearchStage.NONE
    passed_filters: bool = True

    @property
    def id(self) -> str:
        return self.record.id


@dataclass
class MatchResult:
    candidates: List[MatchCandidate] = field(default_factory=list)
    note: Optional[str] = None
    stage: SearchStage = SearchStage.NONE
    # True when every candidate cleared the similarity threshold
    strict: bool = False


@dataclass(frozen=True)
class ProductCard:
    title: str
    description: str
    price: str
    image: Optional[str]
    landing_page: str
    variant_id: str

    @classmethod
    def from_record(cls, record: CatalogRecord, description: str) -> "ProductCard":
        return cls(
            title=record.title,
            description=description,
            price=record.price,
            image=record.image_url,
            landing_page=record.product_url,
            variant_id=record.variant_id or record.id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "image": self.image,
            "landing_page": self.landing_page,
            "variantId": self.variant_id,
        }


@dataclass(frozen=True)
class ConversationTurn:
    role: ChatRole
    text: str

    @classmethod
    def from_wire(cls, item: Any) -> Optional["ConversationTurn"]:
        """Parse a widget/stored turn; blank or malformed turns give None."""
        if not isinstance(item, dict):
            return None
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            return None
        role = ChatRole.ASSISTANT if str(item.get("role", "")).lower() in ASSISTANT_WIRE_ROLES else ChatRole.USER
        return cls(role=role, text=text)

    def to_wire(self) -> Dict[str, str]:
        return {"role": "bot" if self.role == ChatRole.ASSISTANT else "user", "text": self.text}


def turns_from_wire(items: Any) -> List[ConversationTurn]:
    if not isinstance(items, list):
        return []
    turns = (ConversationTurn.from_wire(item) for item in items)
    return [t for t in turns if t is not None]

"""
Product catalog models.

Contains the product record stored in the catalog and its JSON mapping.
Derived price fields are carried on the record but only ever written by
the pricing engine.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

MAX_IMAGES = 10
MAX_VIDEOS = 1


class ProductStatus(str, Enum):
    """Stock status shown on the storefront."""

    IN_STOCK = "in_stock"
    ON_ORDER = "on_order"
    SOLD = "sold"

    @classmethod
    def parse(cls, value: Any) -> "ProductStatus":
        """Parse a status value, accepting the legacy browser-app spellings."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        legacy = {
            "onhand": cls.IN_STOCK,
            "on_hand": cls.IN_STOCK,
            "byorder": cls.ON_ORDER,
            "by_order": cls.ON_ORDER,
        }
        if text in legacy:
            return legacy[text]
        return cls(text)


def new_product_id() -> str:
    """Generate an opaque unique product id."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Product:
    """
    A product record in the catalog.

    Attributes:
        id: Opaque unique token.
        name: Display name (non-empty).
        source_cost_usd: Supplier cost in USD.
        converted_cost_local: source_cost_usd at the current rate, whole birr.
        agent_fee_local: Agent fee in birr.
        margin_local: Shop margin in birr.
        final_price_local: agent_fee_local + margin_local.
        status: Stock status.
        created_at: Creation timestamp, never changed after creation.
    """

    id: str
    name: str
    source_cost_usd: float = 0.0
    converted_cost_local: int = 0
    agent_fee_local: float = 0.0
    margin_local: float = 0.0
    final_price_local: float = 0.0
    status: ProductStatus = ProductStatus.IN_STOCK
    category: str = ""
    size: str = ""
    color: str = ""
    description: str = ""
    images: tuple[str, ...] = field(default_factory=tuple)
    videos: tuple[str, ...] = field(default_factory=tuple)
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def media(self) -> tuple[str, ...]:
        return self.images + self.videos

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "sourceCostUsd": self.source_cost_usd,
            "convertedCostLocal": self.converted_cost_local,
            "agentFeeLocal": self.agent_fee_local,
            "marginLocal": self.margin_local,
            "finalPriceLocal": self.final_price_local,
            "status": self.status.value,
            "category": self.category,
            "size": self.size,
            "color": self.color,
            "description": self.description,
            "images": list(self.images),
            "videos": list(self.videos),
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Product":
        """
        Create from dictionary.

        Accepts both the current keys and the legacy keys written by the
        original browser app (sheinPrice, birrPrice, agentPrice, profit,
        finalPrice).

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed.
        """

        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data and data[key] is not None and data[key] != "":
                    return data[key]
            return default

        created_raw = pick("createdAt", "created_at")
        if created_raw:
            created_at = datetime.fromisoformat(str(created_raw).replace("Z", "+00:00"))
            # Catalog timestamps are naive local time
            if created_at.tzinfo is not None:
                created_at = created_at.astimezone().replace(tzinfo=None)
        else:
            created_at = datetime.now()

        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            source_cost_usd=float(pick("sourceCostUsd", "sheinPrice", default=0)),
            converted_cost_local=int(round(float(pick("convertedCostLocal", "birrPrice", default=0)))),
            agent_fee_local=float(pick("agentFeeLocal", "agentPrice", default=0)),
            margin_local=float(pick("marginLocal", "profit", default=0)),
            final_price_local=float(pick("finalPriceLocal", "finalPrice", default=0)),
            status=ProductStatus.parse(pick("status", default=ProductStatus.IN_STOCK.value)),
            category=str(pick("category", default="")),
            size=str(pick("size", default="")),
            color=str(pick("color", default="")),
            description=str(pick("description", default="")),
            images=tuple(data.get("images") or ()),
            videos=tuple(data.get("videos") or ()),
            created_at=created_at,
        )

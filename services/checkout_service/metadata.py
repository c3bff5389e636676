"""
Session metadata codec.

The payment processor stores only flat string-to-string metadata (at most 50
keys, 500 characters per value), so the checkout intent travels to the
completion handlers as a versioned, flat payload. Line items are serialized
as JSON and split across ``items``, ``items_1``, ``items_2``... when they do
not fit in a single value.

Sessions created before versioning carry no ``metadata_version`` key and are
read as version "1", which has the same shape.
"""
import json
from typing import Dict, List, Mapping, Optional

import pydantic
from pydantic import BaseModel, Field, TypeAdapter, field_validator

from shared.errors import InvalidSessionMetadata, ValidationError

from .pricing import calculate_unit_price
from .schemas import CheckoutIntent

METADATA_VERSION = "1"
SUPPORTED_VERSIONS = frozenset({METADATA_VERSION})
MAX_VALUE_LENGTH = 500
MAX_KEYS = 50
ITEMS_KEY = "items"


class MetadataLineItem(BaseModel):
    product_id: str
    name: Optional[str] = None
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    product_discount_percentage: float = 0
    event_discount_percentage: float = 0

    @field_validator("product_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) else value


_LINE_ITEMS = TypeAdapter(List[MetadataLineItem])


class SessionMetadata(BaseModel):
    metadata_version: str = METADATA_VERSION
    shipping_name: str = ""
    shipping_email: str = ""
    shipping_phone: str = ""
    shipping_address: str = ""
    shipping_city: str = ""
    shipping_postal_code: str = ""
    shipping_country: str = ""
    discount_code: Optional[str] = None
    discount_amount: float = 0
    subtotal: Optional[float] = None
    shipping_cost: Optional[float] = None
    total: float = Field(..., ge=0)
    currency: str = "SEK"
    items_json: str = "[]"

    @field_validator("metadata_version")
    @classmethod
    def _known_version(cls, value):
        if value not in SUPPORTED_VERSIONS:
            raise ValueError(f"unsupported metadata version {value!r}")
        return value

    @field_validator("discount_code", "subtotal", "shipping_cost", mode="before")
    @classmethod
    def _blank_as_none(cls, value):
        return None if value == "" else value

    @field_validator("discount_amount", mode="before")
    @classmethod
    def _blank_as_zero(cls, value):
        return 0 if value in ("", None) else value

    @field_validator("currency", mode="before")
    @classmethod
    def _blank_currency(cls, value):
        return value or "SEK"

    @classmethod
    def decode(cls, raw: Optional[Mapping[str, str]]) -> "SessionMetadata":
        if not raw:
            raise InvalidSessionMetadata("Missing order data in session")

        payload = {key: value for key, value in raw.items() if not key.startswith(ITEMS_KEY)}
        payload["items_json"] = _join_items(raw)
        try:
            return cls.model_validate(payload)
        except pydantic.ValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise InvalidSessionMetadata(
                "Session metadata does not match a known order payload",
                fields=fields,
            ) from exc

    def line_items(self) -> List[MetadataLineItem]:
        try:
            return _LINE_ITEMS.validate_json(self.items_json or "[]")
        except pydantic.ValidationError as exc:
            raise InvalidSessionMetadata(f"Malformed line items in session metadata: {exc.error_count()} error(s)") from exc

    def shipping(self, fallback_email: Optional[str] = None) -> Dict[str, str]:
        """Shipping record as stored on the order (camelCase, as the dashboard reads it)."""
        return {
            "fullName": self.shipping_name,
            "email": self.shipping_email or fallback_email or "",
            "phone": self.shipping_phone,
            "address": self.shipping_address,
            "city": self.shipping_city,
            "postalCode": self.shipping_postal_code,
            "country": self.shipping_country,
        }


def encode_metadata(intent: CheckoutIntent) -> Dict[str, str]:
    shipping = intent.shipping_info
    metadata = {
        "metadata_version": METADATA_VERSION,
        "shipping_name": shipping.full_name,
        "shipping_email": shipping.email,
        "shipping_phone": shipping.phone or "",
        "shipping_address": shipping.address,
        "shipping_city": shipping.city,
        "shipping_postal_code": shipping.postal_code,
        "shipping_country": shipping.country,
        "discount_code": intent.discount_code or "",
        "discount_amount": _number(intent.discount_amount),
        "subtotal": _number(intent.subtotal),
        "shipping_cost": _number(intent.shipping),
        "total": _number(intent.total),
        "currency": intent.currency,
    }

    line_items = [
        {
            "product_id": item.product.id,
            "name": item.product.title.en,
            "quantity": item.quantity,
            "unit_price": calculate_unit_price(item),
            "product_discount_percentage": item.product.discount_percentage or 0,
            "event_discount_percentage": (item.active_event.discount_percentage or 0) if item.active_event else 0,
        }
        for item in intent.items
    ]
    metadata.update(_split_items(json.dumps(line_items, separators=(",", ":"))))

    if len(metadata) > MAX_KEYS:
        raise ValidationError("Cart is too large to check out in a single payment session")
    for key, value in metadata.items():
        if len(value) > MAX_VALUE_LENGTH:
            raise ValidationError(f"Checkout field '{key}' exceeds {MAX_VALUE_LENGTH} characters")

    return metadata


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _split_items(payload: str) -> Dict[str, str]:
    chunks = [payload[i:i + MAX_VALUE_LENGTH] for i in range(0, len(payload), MAX_VALUE_LENGTH)]
    keys = [ITEMS_KEY] + [f"{ITEMS_KEY}_{n}" for n in range(1, len(chunks))]
    return dict(zip(keys, chunks))


def _join_items(raw: Mapping[str, str]) -> str:
    parts = [raw.get(ITEMS_KEY) or ""]
    n = 1
    while f"{ITEMS_KEY}_{n}" in raw:
        parts.append(raw[f"{ITEMS_KEY}_{n}"])
        n += 1
    return "".join(parts) or "[]"

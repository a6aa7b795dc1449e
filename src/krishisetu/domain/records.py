"""Pydantic v2 records for the four marketplace collections.

Each record knows how to turn itself into a document (camelCase field
names, optional fields omitted when unset) and how to read one back.
Reading is deliberately forgiving: older clients wrote timestamps as
native timestamps, epoch milliseconds or ISO strings, and numbers as
ints, floats or strings, and all of those still have to load.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from krishisetu.domain.enums import ListingStatus, OfferStatus, TransactionStatus, UserRole


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _from_epoch_ms(millis) -> datetime:
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        # Out of range for the platform clock
        return utcnow()


def parse_timestamp(value: Any) -> datetime:
    """Coerce a stored timestamp into an aware UTC datetime.

    Accepts a datetime, integer milliseconds since the epoch, or an
    ISO-8601 string. Anything missing or unreadable becomes "now".
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, bool) or value is None:
        return utcnow()
    if isinstance(value, (int, float)):
        return _from_epoch_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return _from_epoch_ms(int(text))
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return utcnow()
        return parse_timestamp(parsed)
    return utcnow()


def parse_number(value: Any) -> float:
    """Coerce a stored number (int, float or numeric string) into a float."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def _optional_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    return parse_number(value)


class DocumentRecord(BaseModel):
    """Base class: id is the document key and never part of the document body."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""

    def to_document(self, exclude_unset: bool = False) -> dict:
        data = self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True, exclude_unset=exclude_unset)
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}

    @classmethod
    def from_document(cls, doc_id: str, data: dict):
        return cls.model_validate({**data, "id": doc_id})

    @field_validator("created_at", mode="before", check_fields=False)
    @classmethod
    def _coerce_created_at(cls, value):
        return parse_timestamp(value)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class Listing(DocumentRecord):
    """A farmer's produce offering."""

    owner_id: str = Field("", alias="userId")
    crop: str = ""
    quantity: float = 0.0
    unit: str = "kg"
    price_per_unit: float = Field(0.0, alias="pricePerUnit")
    image_url: Optional[str] = Field(None, alias="imageUrl")
    location: str = ""
    status: ListingStatus = ListingStatus.OPEN
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @field_validator("quantity", "price_per_unit", mode="before")
    @classmethod
    def _coerce_numbers(cls, value):
        return parse_number(value)

    @field_validator("image_url", mode="before")
    @classmethod
    def _blank_image_is_none(cls, value):
        # Older listings stored "" when no photo was uploaded
        return value or None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or ListingStatus.OPEN


# ---------------------------------------------------------------------------
# Offer
# ---------------------------------------------------------------------------


class Offer(DocumentRecord):
    """A buyer's proposed price and quantity against a listing."""

    listing_id: str = Field("", alias="listingId")
    buyer_id: str = Field("", alias="buyerId")
    offer_price: float = Field(0.0, alias="offerPrice")
    quantity: float = 0.0
    status: OfferStatus = OfferStatus.PENDING
    counter_price: Optional[float] = Field(None, alias="counterPrice")
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @field_validator("offer_price", "quantity", mode="before")
    @classmethod
    def _coerce_numbers(cls, value):
        return parse_number(value)

    @field_validator("counter_price", mode="before")
    @classmethod
    def _coerce_counter(cls, value):
        return _optional_number(value)

    @field_validator("message", mode="before")
    @classmethod
    def _blank_message_is_none(cls, value):
        return value or None

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value):
        return value or OfferStatus.PENDING


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


class Transaction(DocumentRecord):
    """Settlement record created when an offer is accepted."""

    offer_id: str = Field("", alias="offerId")
    listing_id: str = Field("", alias="listingId")
    buyer_id: str = Field("", alias="buyerId")
    farmer_id: str = Field("", alias="farmerId")
    final_price: float = Field(0.0, alias="finalPrice")
    quantity: float = 0.0
    total_amount: float = Field(0.0, alias="totalAmount")
    status: TransactionStatus = TransactionStatus.CONFIRMED
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # First releases wrote the farmer as sellerId
        if not data.get("farmerId") and not data.get("farmer_id") and data.get("sellerId"):
            data["farmerId"] = data["sellerId"]
        if data.get("status") in (None, "", "success"):
            data["status"] = TransactionStatus.CONFIRMED
        if data.get("totalAmount") is None and data.get("total_amount") is None:
            price = parse_number(data.get("finalPrice", data.get("final_price")))
            qty = parse_number(data.get("quantity"))
            data["totalAmount"] = price * qty
        return data

    @field_validator("final_price", "quantity", "total_amount", mode="before")
    @classmethod
    def _coerce_numbers(cls, value):
        return parse_number(value)


# ---------------------------------------------------------------------------
# User profile
# ---------------------------------------------------------------------------


class UserProfile(DocumentRecord):
    """Identity record for a farmer or a buyer; id is the auth uid."""

    name: str = ""
    phone: str = ""
    email: Optional[str] = None
    role: UserRole = UserRole.BUYER
    location: Optional[str] = None
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")

    @field_validator("location", mode="before")
    @classmethod
    def _location_label(cls, value):
        # Onboarding used to store {"place": "...", "lat": ..., "lng": ...}
        if isinstance(value, dict):
            return value.get("place") or None
        return value or None

    @field_validator("role", mode="before")
    @classmethod
    def _default_role(cls, value):
        return value or UserRole.BUYER

    @property
    def is_farmer(self) -> bool:
        return self.role == UserRole.FARMER

    @property
    def is_buyer(self) -> bool:
        return self.role == UserRole.BUYER

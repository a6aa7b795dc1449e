"""Pydantic v2 schemas for API request/response validation.

Responses reuse the document records in ``records.py`` (serialized by
alias, so the wire format matches the stored camelCase documents).
"""

from typing import Optional

from pydantic import BaseModel

from krishisetu.domain.enums import ListingStatus, OfferActor, OfferStatus, TransactionStatus, UserRole
from krishisetu.domain.records import UserProfile


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    """Schema for JWT token responses."""

    access_token: str
    token_type: str = "bearer"
    uid: str


class MeResponse(BaseModel):
    uid: str
    profile: Optional[UserProfile] = None


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class ProfileUpdate(BaseModel):
    """Onboarding / edit-profile form."""

    name: str
    phone: str
    role: UserRole
    email: Optional[str] = None
    location: Optional[str] = None


class ContactResponse(BaseModel):
    uid: str
    phone: Optional[str] = None


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class ListingCreate(BaseModel):
    crop: str
    quantity: float
    price_per_unit: float
    unit: str = "kg"
    location: str = ""


class ListingUpdate(BaseModel):
    """Partial listing edit; only fields that are set are written."""

    crop: Optional[str] = None
    quantity: Optional[float] = None
    price_per_unit: Optional[float] = None
    unit: Optional[str] = None
    location: Optional[str] = None
    status: Optional[ListingStatus] = None

    def to_fields(self) -> dict:
        names = {"price_per_unit": "pricePerUnit"}
        return {
            names.get(key, key): value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class CreatedResponse(BaseModel):
    id: str


class ImageResponse(BaseModel):
    url: str


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


class OfferCreate(BaseModel):
    offer_price: float
    quantity: float
    message: Optional[str] = None


class OfferRespond(BaseModel):
    """Answer to an offer: accepted, rejected or countered."""

    action: OfferStatus
    counter_price: Optional[float] = None
    actor: OfferActor = OfferActor.FARMER


class RespondResponse(BaseModel):
    offer_id: str
    status: OfferStatus
    transaction_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


class TransactionStatusUpdate(BaseModel):
    status: TransactionStatus

"""Listing Store - CRUD, feeds and photos for produce listings.

Listings are created open, edited by their owner, flipped to sold by the
negotiation flow when an offer is accepted, and never deleted except by
the owner. Deleting a listing also removes its photo, best effort.
"""

import logging
import math
from typing import AsyncIterator, Optional

from krishisetu.app.config import get_settings
from krishisetu.domain.enums import Collection, ListingStatus
from krishisetu.domain.records import Listing, parse_number, utcnow
from krishisetu.infra.backend import Backend
from krishisetu.infra.document_store import Query
from krishisetu.infra.object_storage import object_path
from krishisetu.services.exceptions import BackendError, NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

LISTINGS = Collection.LISTINGS.value

# Document fields an owner may change through update()
EDITABLE_FIELDS = {
    "crop", "quantity", "unit", "pricePerUnit", "imageUrl", "location", "status",
}


def require_positive(value, label: str) -> float:
    """Return value as a float, raising ValidationFailedError unless it is finite and > 0."""
    if value is None or isinstance(value, bool):
        raise ValidationFailedError(f"{label} is required")
    number = parse_number(value) if isinstance(value, str) else value
    if not isinstance(number, (int, float)) or not math.isfinite(number) or number <= 0:
        raise ValidationFailedError(f"{label} must be greater than 0")
    return float(number)


def validate_listing_fields(fields: dict) -> dict:
    """Check a (partial) listing document before it is written.

    Returns a cleaned copy; raises ValidationFailedError on the first problem.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Unknown listing fields: {', '.join(sorted(unknown))}")

    cleaned = dict(fields)
    if "crop" in cleaned:
        crop = (cleaned["crop"] or "").strip()
        if not crop:
            raise ValidationFailedError("Enter crop name")
        cleaned["crop"] = crop
    if "quantity" in cleaned:
        cleaned["quantity"] = require_positive(cleaned["quantity"], "quantity")
    if "pricePerUnit" in cleaned:
        cleaned["pricePerUnit"] = require_positive(cleaned["pricePerUnit"], "pricePerUnit")
    if "unit" in cleaned:
        cleaned["unit"] = (cleaned["unit"] or "").strip() or "kg"
    if "location" in cleaned:
        cleaned["location"] = (cleaned["location"] or "").strip()
    if "status" in cleaned:
        try:
            cleaned["status"] = ListingStatus(cleaned["status"]).value
        except ValueError:
            raise ValidationFailedError(f"Invalid listing status: {cleaned['status']}")
    return cleaned


def filter_listings(
    listings: list[Listing],
    text: str = "",
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> list[Listing]:
    """Buyer-feed filter: case-insensitive crop substring plus inclusive price range."""
    needle = (text or "").strip().lower()
    out = []
    for listing in listings:
        if needle and needle not in listing.crop.lower():
            continue
        if min_price is not None and listing.price_per_unit < min_price:
            continue
        if max_price is not None and listing.price_per_unit > max_price:
            continue
        out.append(listing)
    return out


class ListingStore:
    """Reads and writes ``listings/{id}`` documents."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self.documents = backend.documents

    async def create(
        self,
        owner_id: str,
        crop: str,
        quantity: float,
        price_per_unit: float,
        unit: str = "kg",
        location: str = "",
        image_url: Optional[str] = None,
    ) -> str:
        """Validate and store a new open listing. Returns the listing id."""
        if not owner_id:
            raise ValidationFailedError("owner is required")
        fields = validate_listing_fields({
            "crop": crop,
            "quantity": quantity,
            "pricePerUnit": price_per_unit,
            "unit": unit,
            "location": location,
        })
        listing = Listing(
            owner_id=owner_id,
            crop=fields["crop"],
            quantity=fields["quantity"],
            unit=fields["unit"],
            price_per_unit=fields["pricePerUnit"],
            location=fields["location"],
            image_url=image_url,
            status=ListingStatus.OPEN,
            created_at=utcnow(),
        )
        listing_id = await self.documents.add(LISTINGS, listing.to_document())
        logger.info("Listing %s created by %s: %s %s %s", listing_id, owner_id, fields["quantity"], fields["unit"], fields["crop"])
        return listing_id

    async def update(self, listing_id: str, fields: dict) -> None:
        """Partial update of a listing's fields."""
        cleaned = validate_listing_fields(fields)
        if not cleaned:
            return
        await self.documents.update(LISTINGS, listing_id, cleaned)
        logger.info("Listing %s updated: %s", listing_id, ", ".join(sorted(cleaned)))

    async def mark_sold(self, listing_id: str) -> None:
        await self.documents.update(LISTINGS, listing_id, {"status": ListingStatus.SOLD.value})
        logger.info("Listing %s marked sold", listing_id)

    async def delete(self, listing_id: str) -> None:
        """Delete a listing and, best effort, its photo."""
        listing = await self.get(listing_id)
        if listing is None:
            return
        if listing.image_url:
            try:
                await self.backend.storage.delete_by_url(listing.image_url)
            except BackendError as e:
                logger.warning("Ignoring image deletion failure for listing %s: %s", listing_id, e)
        await self.documents.delete(LISTINGS, listing_id)
        logger.info("Listing %s deleted", listing_id)

    async def get(self, listing_id: str) -> Optional[Listing]:
        data = await self.documents.get(LISTINGS, listing_id)
        if data is None:
            return None
        return Listing.from_document(listing_id, data)

    async def require(self, listing_id: str) -> Listing:
        listing = await self.get(listing_id)
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        return listing

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def owner_query(owner_id: str) -> Query:
        return Query(LISTINGS).where("userId", "==", owner_id).order("createdAt", descending=True)

    @staticmethod
    def open_query(
        crop: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> Query:
        query = Query(LISTINGS).where("status", "==", ListingStatus.OPEN)
        if crop and crop.strip():
            query = query.where("crop", "==", crop.strip())
        if min_price is not None:
            query = query.where("pricePerUnit", ">=", min_price)
        if max_price is not None:
            query = query.where("pricePerUnit", "<=", max_price)
        query = query.order("createdAt", descending=True)
        if limit is not None:
            query = query.take(limit)
        return query

    async def list_for_owner(self, owner_id: str) -> list[Listing]:
        snaps = await self.documents.query(self.owner_query(owner_id))
        return [Listing.from_document(s.id, s.data) for s in snaps]

    async def list_open(
        self,
        crop: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> list[Listing]:
        """Open listings, newest first, capped at the configured result limit."""
        if limit is None:
            limit = get_settings().listing_result_cap
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationFailedError("min_price must not exceed max_price")
        snaps = await self.documents.query(self.open_query(crop, min_price, max_price, limit))
        return [Listing.from_document(s.id, s.data) for s in snaps]

    async def watch_for_owner(self, owner_id: str) -> AsyncIterator[list[Listing]]:
        async for snaps in self.documents.watch(self.owner_query(owner_id)):
            yield [Listing.from_document(s.id, s.data) for s in snaps]

    async def watch_open(self) -> AsyncIterator[list[Listing]]:
        async for snaps in self.documents.watch(self.open_query()):
            yield [Listing.from_document(s.id, s.data) for s in snaps]

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    async def attach_image(
        self,
        listing_id: str,
        content: bytes,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload a listing photo to ``listings/{id}.{ext}`` and store its URL."""
        await self.require(listing_id)
        if not content:
            raise ValidationFailedError("Image is empty")
        url = await self.backend.storage.put(object_path(LISTINGS, listing_id, filename), content, content_type)
        await self.documents.update(LISTINGS, listing_id, {"imageUrl": url})
        return url

"""Offer Store - buyer offers against listings.

The farmer-facing "pending offers" view is the one derived query: it
first resolves every listing the farmer owns, then asks for pending
offers on those listings in batches of IN_QUERY_LIMIT ids. As a live
view it is a two-stage pipeline that re-runs the batched offer query
every time the farmer's listings change and emits a replacement list.
"""

import logging
from typing import AsyncIterator, Iterable, Optional

from krishisetu.domain.enums import Collection, OfferStatus
from krishisetu.domain.records import Offer, utcnow
from krishisetu.infra.backend import Backend
from krishisetu.infra.document_store import IN_QUERY_LIMIT, Query
from krishisetu.services.exceptions import NotFoundError, ValidationFailedError
from krishisetu.services.listing_store import ListingStore, require_positive

logger = logging.getLogger(__name__)

OFFERS = Collection.OFFERS.value


def chunked(items: list, size: int = IN_QUERY_LIMIT) -> list[list]:
    """Split items into consecutive lists of at most ``size`` elements."""
    return [items[i:i + size] for i in range(0, len(items), size)]


class OfferStore:
    """Reads and writes ``offers/{id}`` documents."""

    def __init__(self, backend: Backend):
        self.backend = backend
        self.documents = backend.documents
        self.listings = ListingStore(backend)

    async def create(
        self,
        listing_id: str,
        buyer_id: str,
        offer_price: float,
        quantity: float,
        message: Optional[str] = None,
        status: Optional[str] = None,
    ) -> str:
        """Store a new offer. Returns the offer id.

        Whatever ``status`` the caller passes, the stored offer starts
        pending. The requested quantity must fit the listing's quantity
        as it stands now; it is not re-checked when the farmer responds.
        """
        if not buyer_id:
            raise ValidationFailedError("buyer is required")
        price = require_positive(offer_price, "offerPrice")
        qty = require_positive(quantity, "quantity")

        listing = await self.listings.require(listing_id)
        if qty > listing.quantity:
            raise ValidationFailedError(f"Only {listing.quantity:g} {listing.unit} available")

        if status is not None and status != OfferStatus.PENDING.value:
            logger.info("Ignoring requested status %r on new offer for listing %s", status, listing_id)

        offer = Offer(
            listing_id=listing_id,
            buyer_id=buyer_id,
            offer_price=price,
            quantity=qty,
            status=OfferStatus.PENDING,
            message=(message or "").strip() or None,
            created_at=utcnow(),
        )
        offer_id = await self.documents.add(OFFERS, offer.to_document())
        logger.info("Offer %s by %s on listing %s: %s x %s", offer_id, buyer_id, listing_id, price, qty)
        return offer_id

    async def get(self, offer_id: str) -> Optional[Offer]:
        data = await self.documents.get(OFFERS, offer_id)
        if data is None:
            return None
        return Offer.from_document(offer_id, data)

    async def require(self, offer_id: str) -> Offer:
        offer = await self.get(offer_id)
        if offer is None:
            raise NotFoundError(f"Offer {offer_id} not found")
        return offer

    async def update_status(
        self,
        offer_id: str,
        status: OfferStatus,
        counter_price: Optional[float] = None,
    ) -> None:
        """Write a new status (and counter price, when given) onto an offer."""
        updates: dict = {"status": OfferStatus(status).value}
        if counter_price is not None:
            updates["counterPrice"] = counter_price
        await self.documents.update(OFFERS, offer_id, updates)
        logger.info("Offer %s -> %s", offer_id, updates["status"])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def listing_query(listing_id: str) -> Query:
        return Query(OFFERS).where("listingId", "==", listing_id).order("createdAt", descending=True)

    @staticmethod
    def buyer_query(buyer_id: str) -> Query:
        return Query(OFFERS).where("buyerId", "==", buyer_id).order("createdAt", descending=True)

    async def list_for_listing(self, listing_id: str) -> list[Offer]:
        snaps = await self.documents.query(self.listing_query(listing_id))
        return [Offer.from_document(s.id, s.data) for s in snaps]

    async def list_for_buyer(self, buyer_id: str) -> list[Offer]:
        snaps = await self.documents.query(self.buyer_query(buyer_id))
        return [Offer.from_document(s.id, s.data) for s in snaps]

    async def pending_for_listings(self, listing_ids: Iterable[str]) -> list[Offer]:
        """Pending offers on any of the given listings, queried in IN-sized batches.

        Results are concatenated batch by batch; within a batch they are
        newest first.
        """
        ids = list(dict.fromkeys(listing_ids))
        if not ids:
            return []
        offers: list[Offer] = []
        for batch in chunked(ids):
            query = (
                Query(OFFERS)
                .where("listingId", "in", batch)
                .where("status", "==", OfferStatus.PENDING)
                .order("createdAt", descending=True)
            )
            snaps = await self.documents.query(query)
            offers.extend(Offer.from_document(s.id, s.data) for s in snaps)
        return offers

    async def pending_for_farmer(self, farmer_id: str) -> list[Offer]:
        """One-shot version of the farmer's pending-offers view."""
        listings = await self.listings.list_for_owner(farmer_id)
        return await self.pending_for_listings(l.id for l in listings)

    # ------------------------------------------------------------------
    # Live views
    # ------------------------------------------------------------------

    async def watch_for_listing(self, listing_id: str) -> AsyncIterator[list[Offer]]:
        async for snaps in self.documents.watch(self.listing_query(listing_id)):
            yield [Offer.from_document(s.id, s.data) for s in snaps]

    async def watch_for_buyer(self, buyer_id: str) -> AsyncIterator[list[Offer]]:
        async for snaps in self.documents.watch(self.buyer_query(buyer_id)):
            yield [Offer.from_document(s.id, s.data) for s in snaps]

    async def watch_pending_for_farmer(self, farmer_id: str) -> AsyncIterator[list[Offer]]:
        """Reactive pipeline: farmer's listing ids upstream, batched offer query downstream.

        Each upstream delivery (any write to the listings collection)
        recomputes the full pending set; nothing is diffed.
        """
        upstream = self.documents.watch(ListingStore.owner_query(farmer_id))
        try:
            async for snaps in upstream:
                yield await self.pending_for_listings(s.id for s in snaps)
        finally:
            await upstream.aclose()

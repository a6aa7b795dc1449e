"""Offer routes: placing offers and negotiating them."""

import logging

from fastapi import APIRouter, Depends

from krishisetu.app.routes.auth import get_current_uid
from krishisetu.domain.records import Offer
from krishisetu.domain.schemas import CreatedResponse, OfferCreate, OfferRespond, RespondResponse
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.exceptions import PermissionDeniedError, ValidationFailedError
from krishisetu.services.negotiation import NegotiationService
from krishisetu.services.offer_store import OfferStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["offers"])


@router.post("/api/listings/{listing_id}/offers", response_model=CreatedResponse, status_code=201)
async def make_offer(
    listing_id: str,
    body: OfferCreate,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    store = OfferStore(backend)
    listing = await store.listings.require(listing_id)
    if listing.owner_id == uid:
        raise ValidationFailedError("You cannot make an offer on your own listing")
    offer_id = await store.create(
        listing_id=listing_id,
        buyer_id=uid,
        offer_price=body.offer_price,
        quantity=body.quantity,
        message=body.message,
    )
    return CreatedResponse(id=offer_id)


@router.get("/api/listings/{listing_id}/offers", response_model=list[Offer])
async def listing_offers(
    listing_id: str,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    """All offers on a listing (owner only)."""
    store = OfferStore(backend)
    listing = await store.listings.require(listing_id)
    if listing.owner_id != uid:
        raise PermissionDeniedError("Only the listing owner can see its offers")
    return await store.list_for_listing(listing_id)


@router.get("/api/offers/mine", response_model=list[Offer])
async def my_offers(
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    return await OfferStore(backend).list_for_buyer(uid)


@router.get("/api/offers/pending", response_model=list[Offer])
async def pending_offers(
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    """Pending offers across every listing the caller owns."""
    return await OfferStore(backend).pending_for_farmer(uid)


@router.post("/api/offers/{offer_id}/respond", response_model=RespondResponse)
async def respond_to_offer(
    offer_id: str,
    body: OfferRespond,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    tx_id = await NegotiationService(backend).respond(
        offer_id,
        body.action,
        counter_price=body.counter_price,
        actor=body.actor,
        actor_id=uid,
    )
    return RespondResponse(offer_id=offer_id, status=body.action, transaction_id=tx_id)

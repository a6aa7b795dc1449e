"""Listing routes: farmer CRUD and the buyer feed."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile

from krishisetu.app.routes.auth import get_current_uid
from krishisetu.domain.records import Listing
from krishisetu.domain.schemas import CreatedResponse, ImageResponse, ListingCreate, ListingUpdate
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.exceptions import PermissionDeniedError
from krishisetu.services.listing_store import ListingStore, filter_listings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/listings", tags=["listings"])


async def _require_owned(store: ListingStore, listing_id: str, uid: str) -> Listing:
    listing = await store.require(listing_id)
    if listing.owner_id != uid:
        raise PermissionDeniedError("Only the farmer who posted this listing can change it")
    return listing


@router.post("", response_model=CreatedResponse, status_code=201)
async def create_listing(
    body: ListingCreate,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    listing_id = await ListingStore(backend).create(
        owner_id=uid,
        crop=body.crop,
        quantity=body.quantity,
        price_per_unit=body.price_per_unit,
        unit=body.unit,
        location=body.location,
    )
    return CreatedResponse(id=listing_id)


@router.get("", response_model=list[Listing])
async def browse_listings(
    crop: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    q: str = "",
    limit: Optional[int] = Query(None, ge=1),
    backend: Backend = Depends(get_backend),
):
    """Open listings, newest first.

    ``crop`` is an exact match done by the store; ``q`` is a
    case-insensitive substring match applied to the returned page.
    """
    listings = await ListingStore(backend).list_open(crop, min_price, max_price, limit)
    return filter_listings(listings, q)


@router.get("/mine", response_model=list[Listing])
async def my_listings(
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    return await ListingStore(backend).list_for_owner(uid)


@router.get("/{listing_id}", response_model=Listing)
async def get_listing(listing_id: str, backend: Backend = Depends(get_backend)):
    return await ListingStore(backend).require(listing_id)


@router.patch("/{listing_id}", response_model=Listing)
async def update_listing(
    listing_id: str,
    body: ListingUpdate,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    store = ListingStore(backend)
    await _require_owned(store, listing_id, uid)
    await store.update(listing_id, body.to_fields())
    return await store.require(listing_id)


@router.delete("/{listing_id}", status_code=204)
async def delete_listing(
    listing_id: str,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    store = ListingStore(backend)
    await _require_owned(store, listing_id, uid)
    await store.delete(listing_id)


@router.post("/{listing_id}/image", response_model=ImageResponse)
async def upload_listing_image(
    listing_id: str,
    file: UploadFile = File(...),
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    store = ListingStore(backend)
    await _require_owned(store, listing_id, uid)
    content = await file.read()
    url = await store.attach_image(listing_id, content, file.filename, file.content_type)
    return ImageResponse(url=url)

"""Tests for the ListingStore: validation, feeds, photos."""

import asyncio

import pytest

from krishisetu.domain.enums import ListingStatus
from krishisetu.domain.records import Listing
from krishisetu.services.exceptions import DocumentNotFoundError, NotFoundError, ValidationFailedError
from krishisetu.services.listing_store import ListingStore, filter_listings, validate_listing_fields


class TestValidation:

    @pytest.mark.parametrize(
        "fields,message",
        [
            ({"crop": "  "}, "crop"),
            ({"quantity": 0}, "quantity"),
            ({"quantity": -3}, "quantity"),
            ({"pricePerUnit": "abc"}, "pricePerUnit"),
            ({"status": "archived"}, "status"),
            ({"sellerId": "x"}, "Unknown"),
        ],
    )
    def test_rejects_bad_fields(self, fields, message):
        with pytest.raises(ValidationFailedError, match=message):
            validate_listing_fields(fields)

    def test_cleans_values(self):
        cleaned = validate_listing_fields({"crop": " Tomato ", "quantity": "12", "unit": " ", "location": " Nashik "})
        assert cleaned == {"crop": "Tomato", "quantity": 12.0, "unit": "kg", "location": "Nashik"}


class TestCreate:

    async def test_create_stores_open_listing(self, any_backend):
        store = ListingStore(any_backend)
        listing_id = await store.create("farmer-1", "Tomato", 100, 20, location="Nashik")
        listing = await store.get(listing_id)
        assert listing.owner_id == "farmer-1"
        assert listing.status == ListingStatus.OPEN
        assert listing.quantity == 100.0
        assert listing.price_per_unit == 20.0
        assert listing.unit == "kg"

    async def test_create_validates_before_writing(self, backend):
        store = ListingStore(backend)
        with pytest.raises(ValidationFailedError):
            await store.create("farmer-1", "Tomato", 0, 20)
        assert await store.list_for_owner("farmer-1") == []

    @pytest.mark.parametrize("price", [float("nan"), float("inf"), float("-inf"), "nan", "inf"])
    async def test_non_finite_price_rejected(self, backend, price):
        store = ListingStore(backend)
        with pytest.raises(ValidationFailedError, match="pricePerUnit"):
            await store.create("farmer-1", "Tomato", 10, price)
        assert await store.list_for_owner("farmer-1") == []

    async def test_non_finite_quantity_rejected(self, backend):
        with pytest.raises(ValidationFailedError, match="quantity"):
            await ListingStore(backend).create("farmer-1", "Tomato", float("nan"), 20)

    async def test_create_requires_owner(self, backend):
        with pytest.raises(ValidationFailedError, match="owner"):
            await ListingStore(backend).create("", "Tomato", 1, 1)


class TestUpdateAndDelete:

    async def test_update_partial(self, any_backend, make_listing):
        store = ListingStore(any_backend)
        listing_id = await make_listing(any_backend)
        await store.update(listing_id, {"pricePerUnit": 22})
        listing = await store.get(listing_id)
        assert listing.price_per_unit == 22.0
        assert listing.crop == "Tomato"

    async def test_update_missing_listing(self, any_backend):
        with pytest.raises(DocumentNotFoundError):
            await ListingStore(any_backend).update("missing", {"crop": "Onion"})

    async def test_mark_sold(self, any_backend, make_listing):
        store = ListingStore(any_backend)
        listing_id = await make_listing(any_backend)
        await store.mark_sold(listing_id)
        assert (await store.get(listing_id)).status == ListingStatus.SOLD

    async def test_delete_removes_photo(self, backend, make_listing):
        store = ListingStore(backend)
        listing_id = await make_listing(backend)
        await store.attach_image(listing_id, b"jpeg-bytes", "photo.JPG")
        assert f"listings/{listing_id}.jpg" in backend.storage.objects

        await store.delete(listing_id)
        assert await store.get(listing_id) is None
        assert backend.storage.objects == {}

    async def test_delete_ignores_photo_failure(self, backend, make_listing):
        store = ListingStore(backend)
        listing_id = await make_listing(backend, image_url="memory://listings/gone.jpg")
        await store.delete(listing_id)
        assert await store.get(listing_id) is None

    async def test_require_missing(self, backend):
        with pytest.raises(NotFoundError):
            await ListingStore(backend).require("missing")


class TestFeeds:

    async def test_list_for_owner_newest_first(self, any_backend, make_listing):
        first = await make_listing(any_backend, crop="Tomato")
        second = await make_listing(any_backend, crop="Onion")
        await make_listing(any_backend, owner_id="farmer-2")
        listings = await ListingStore(any_backend).list_for_owner("farmer-1")
        assert [l.id for l in listings] == [second, first]

    async def test_list_open_excludes_sold(self, any_backend, make_listing):
        store = ListingStore(any_backend)
        open_id = await make_listing(any_backend)
        sold_id = await make_listing(any_backend)
        await store.mark_sold(sold_id)
        assert [l.id for l in await store.list_open()] == [open_id]

    async def test_list_open_crop_and_price_range(self, any_backend, make_listing):
        await make_listing(any_backend, crop="Tomato", price_per_unit=20)
        await make_listing(any_backend, crop="Tomato", price_per_unit=35)
        await make_listing(any_backend, crop="Onion", price_per_unit=18)
        listings = await ListingStore(any_backend).list_open(crop="Tomato", min_price=10, max_price=30)
        assert [(l.crop, l.price_per_unit) for l in listings] == [("Tomato", 20.0)]

    async def test_list_open_respects_cap(self, backend, make_listing):
        for _ in range(5):
            await make_listing(backend)
        assert len(await ListingStore(backend).list_open(limit=3)) == 3

    async def test_inverted_price_range_rejected(self, backend):
        with pytest.raises(ValidationFailedError):
            await ListingStore(backend).list_open(min_price=50, max_price=10)

    async def test_watch_open_sees_new_listing(self, any_backend, make_listing):
        stream = ListingStore(any_backend).watch_open()
        assert await anext(stream) == []
        listing_id = await make_listing(any_backend)
        listings = await asyncio.wait_for(anext(stream), timeout=1)
        assert [l.id for l in listings] == [listing_id]
        await stream.aclose()


class TestFilterListings:

    def _listing(self, crop, price):
        return Listing(owner_id="f", crop=crop, quantity=1, price_per_unit=price)

    def test_text_is_case_insensitive_substring(self):
        listings = [self._listing("Red Tomato", 20), self._listing("Onion", 18)]
        assert [l.crop for l in filter_listings(listings, "tom")] == ["Red Tomato"]

    def test_price_bounds_are_inclusive(self):
        listings = [self._listing("A", 10), self._listing("B", 20), self._listing("C", 30)]
        assert [l.crop for l in filter_listings(listings, min_price=10, max_price=20)] == ["A", "B"]


class TestPhotos:

    async def test_attach_image_sets_url(self, backend, make_listing):
        store = ListingStore(backend)
        listing_id = await make_listing(backend)
        url = await store.attach_image(listing_id, b"png", "p.png", "image/png")
        assert url == f"memory://listings/{listing_id}.png"
        assert (await store.get(listing_id)).image_url == url

    async def test_attach_image_to_missing_listing(self, backend):
        with pytest.raises(NotFoundError):
            await ListingStore(backend).attach_image("missing", b"x")

    async def test_attach_empty_image(self, backend, make_listing):
        listing_id = await make_listing(backend)
        with pytest.raises(ValidationFailedError):
            await ListingStore(backend).attach_image(listing_id, b"")

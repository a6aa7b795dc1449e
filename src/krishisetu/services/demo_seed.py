"""Demo data - a farmer, a buyer and a handful of open listings.

Idempotent: listings are only created the first time the demo farmer
profile is written.
"""

import logging

from krishisetu.domain.enums import UserRole
from krishisetu.domain.records import UserProfile
from krishisetu.infra.backend import Backend
from krishisetu.services.listing_store import ListingStore
from krishisetu.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

DEMO_FARMER_ID = "demo-farmer"
DEMO_BUYER_ID = "demo-buyer"

DEMO_LISTINGS = [
    {"crop": "Tomato", "quantity": 100, "price_per_unit": 20, "location": "Nashik"},
    {"crop": "Onion", "quantity": 250, "price_per_unit": 18, "location": "Lasalgaon"},
    {"crop": "Wheat", "quantity": 40, "unit": "quintal", "price_per_unit": 2275, "location": "Indore"},
    {"crop": "Potato", "quantity": 300, "price_per_unit": 15, "location": "Agra"},
]


async def seed_demo(backend: Backend) -> dict:
    """Create the demo accounts and listings. Returns the ids involved."""
    profiles = ProfileStore(backend)
    listings = ListingStore(backend)

    created_listings: list[str] = []
    is_new = await profiles.get(DEMO_FARMER_ID) is None

    await profiles.upsert(UserProfile(
        id=DEMO_FARMER_ID,
        name="Ramesh Patil",
        phone="+919800000001",
        role=UserRole.FARMER,
        location="Nashik",
    ))
    await profiles.upsert(UserProfile(
        id=DEMO_BUYER_ID,
        name="Anita Traders",
        phone="+919800000002",
        role=UserRole.BUYER,
        location="Pune",
    ))

    if is_new:
        for item in DEMO_LISTINGS:
            created_listings.append(await listings.create(owner_id=DEMO_FARMER_ID, **item))
        logger.info("Demo seed: created %d listings", len(created_listings))
    else:
        logger.info("Demo seed: demo accounts already present, listings left as they are")

    return {
        "farmer_id": DEMO_FARMER_ID,
        "buyer_id": DEMO_BUYER_ID,
        "listing_ids": created_listings,
    }

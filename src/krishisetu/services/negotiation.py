"""Negotiation - the farmer's (or buyer's) answer to an offer.

Accepting an offer writes three independent documents in order: the
offer status, the transaction, then the listing status. Nothing checks
that the listing is still open or that stock remains, so two offers on
one listing can both be accepted.
"""

import logging
from typing import Optional

from krishisetu.domain.enums import OfferActor, OfferStatus
from krishisetu.infra.backend import Backend
from krishisetu.services.exceptions import PermissionDeniedError, ValidationFailedError
from krishisetu.services.listing_store import ListingStore, require_positive
from krishisetu.services.offer_state_machine import OfferStateMachine
from krishisetu.services.offer_store import OfferStore
from krishisetu.services.transaction_recorder import TransactionRecorder

logger = logging.getLogger(__name__)


def resolve_final_price(offer, counter_price: Optional[float]) -> float:
    """The counter price given with the acceptance, else the offer price."""
    return counter_price if counter_price is not None else offer.offer_price


class NegotiationService:
    """Applies a response to an offer and settles accepted ones."""

    def __init__(self, backend: Backend):
        self.offers = OfferStore(backend)
        self.listings = ListingStore(backend)
        self.transactions = TransactionRecorder(backend)
        self.state_machine = OfferStateMachine()

    async def respond(
        self,
        offer_id: str,
        action: OfferStatus,
        counter_price: Optional[float] = None,
        actor: OfferActor = OfferActor.FARMER,
        actor_id: Optional[str] = None,
    ) -> Optional[str]:
        """Move an offer to ``action``. Returns the transaction id on acceptance.

        When ``actor_id`` is given it must be the listing owner (farmer)
        or the offer's buyer (buyer).
        """
        try:
            target = OfferStatus(action)
        except ValueError:
            raise ValidationFailedError(f"Invalid action: {action}")
        actor = OfferActor(actor)

        if counter_price is not None:
            counter_price = require_positive(counter_price, "counterPrice")
        elif target == OfferStatus.COUNTERED:
            raise ValidationFailedError("counterPrice is required to counter an offer")

        offer = await self.offers.require(offer_id)

        listing = None
        if actor_id is not None:
            if actor == OfferActor.BUYER:
                if offer.buyer_id != actor_id:
                    raise PermissionDeniedError("Only the buyer who made this offer can respond as buyer")
            else:
                listing = await self.listings.require(offer.listing_id)
                if listing.owner_id != actor_id:
                    raise PermissionDeniedError("Only the listing owner can respond to this offer")

        self.state_machine.validate_transition(offer.status, target, actor)

        await self.offers.update_status(offer_id, target, counter_price)

        if target != OfferStatus.ACCEPTED:
            return None

        if listing is None:
            listing = await self.listings.require(offer.listing_id)
        if counter_price is None and actor == OfferActor.BUYER:
            # A buyer can only accept a counter, and settles at it
            counter_price = offer.counter_price
        final_price = resolve_final_price(offer, counter_price)
        tx_id = await self.transactions.record_acceptance(offer, listing, final_price)
        await self.listings.mark_sold(listing.id)
        logger.info("Offer %s accepted by %s at %s; listing %s sold", offer_id, actor.value, final_price, listing.id)
        return tx_id

"""Transaction Recorder - settlement records for accepted offers.

A transaction is written exactly once, when an offer is accepted, and
afterwards only its status moves (confirmed -> completed or cancelled,
by the farmer). There is no rollback: if marking the listing sold fails
after the transaction is written, the two stay inconsistent.
"""

import logging
from typing import AsyncIterator, Optional

from krishisetu.domain.enums import Collection, TransactionStatus
from krishisetu.domain.records import Listing, Offer, Transaction, utcnow
from krishisetu.infra.backend import Backend
from krishisetu.infra.document_store import Query
from krishisetu.services.exceptions import NotFoundError, PermissionDeniedError
from krishisetu.services.offer_state_machine import OfferStateMachine

logger = logging.getLogger(__name__)

TRANSACTIONS = Collection.TRANSACTIONS.value


def build_transaction(offer: Offer, listing: Listing, final_price: float) -> Transaction:
    """Derive the settlement record for an accepted offer (no rounding)."""
    return Transaction(
        offer_id=offer.id,
        listing_id=listing.id,
        buyer_id=offer.buyer_id,
        farmer_id=listing.owner_id,
        final_price=final_price,
        quantity=offer.quantity,
        total_amount=final_price * offer.quantity,
        status=TransactionStatus.CONFIRMED,
        created_at=utcnow(),
    )


class TransactionRecorder:
    """Reads and writes ``transactions/{id}`` documents."""

    def __init__(self, backend: Backend):
        self.documents = backend.documents
        self.state_machine = OfferStateMachine()

    async def record_acceptance(self, offer: Offer, listing: Listing, final_price: float) -> str:
        tx = build_transaction(offer, listing, final_price)
        tx_id = await self.documents.add(TRANSACTIONS, tx.to_document())
        logger.info(
            "Transaction %s recorded for offer %s: %s x %s = %s",
            tx_id, offer.id, final_price, offer.quantity, tx.total_amount,
        )
        return tx_id

    async def get(self, transaction_id: str) -> Optional[Transaction]:
        data = await self.documents.get(TRANSACTIONS, transaction_id)
        if data is None:
            return None
        return Transaction.from_document(transaction_id, data)

    async def update_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        actor_id: str,
    ) -> Transaction:
        """Move a confirmed transaction to completed or cancelled (farmer only)."""
        tx = await self.get(transaction_id)
        if tx is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if tx.farmer_id != actor_id:
            raise PermissionDeniedError("Only the farmer on this transaction can update it")
        target = TransactionStatus(status)
        self.state_machine.validate_transaction_transition(tx.status, target)
        await self.documents.update(TRANSACTIONS, transaction_id, {"status": target.value})
        logger.info("Transaction %s -> %s", transaction_id, target.value)
        return tx.model_copy(update={"status": target})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def buyer_query(buyer_id: str) -> Query:
        return Query(TRANSACTIONS).where("buyerId", "==", buyer_id).order("createdAt", descending=True)

    @staticmethod
    def farmer_query(farmer_id: str) -> Query:
        return Query(TRANSACTIONS).where("farmerId", "==", farmer_id).order("createdAt", descending=True)

    async def list_for_buyer(self, buyer_id: str) -> list[Transaction]:
        snaps = await self.documents.query(self.buyer_query(buyer_id))
        return [Transaction.from_document(s.id, s.data) for s in snaps]

    async def list_for_farmer(self, farmer_id: str) -> list[Transaction]:
        snaps = await self.documents.query(self.farmer_query(farmer_id))
        return [Transaction.from_document(s.id, s.data) for s in snaps]

    async def list_for_offer(self, offer_id: str) -> list[Transaction]:
        snaps = await self.documents.query(Query(TRANSACTIONS).where("offerId", "==", offer_id))
        return [Transaction.from_document(s.id, s.data) for s in snaps]

    async def watch_for_buyer(self, buyer_id: str) -> AsyncIterator[list[Transaction]]:
        async for snaps in self.documents.watch(self.buyer_query(buyer_id)):
            yield [Transaction.from_document(s.id, s.data) for s in snaps]

    async def watch_for_farmer(self, farmer_id: str) -> AsyncIterator[list[Transaction]]:
        async for snaps in self.documents.watch(self.farmer_query(farmer_id)):
            yield [Transaction.from_document(s.id, s.data) for s in snaps]

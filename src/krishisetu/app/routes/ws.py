"""WebSocket live views: each socket streams one live query as snapshots.

Protocol:
- Client connects with ``?token=<jwt>`` (not needed for the open feed).
- Server sends ``{"type": "snapshot", "data": [...]}`` with the full result
  set on connect and again after every relevant write.
- Client may send ``{"type": "ping"}``; server replies ``{"type": "pong"}``.
"""

import asyncio
import json
import logging
import uuid as uuid_mod
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from krishisetu.domain.records import DocumentRecord
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.auth_service import uid_from_token
from krishisetu.services.listing_store import ListingStore
from krishisetu.services.offer_store import OfferStore
from krishisetu.services.profile_store import ProfileStore
from krishisetu.services.transaction_recorder import TransactionRecorder

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/ws", tags=["websocket"])


def snapshot_message(records) -> dict:
    if records is None:
        data = None
    elif isinstance(records, DocumentRecord):
        data = records.model_dump(mode="json", by_alias=True)
    else:
        data = [r.model_dump(mode="json", by_alias=True) for r in records]
    return {"type": "snapshot", "data": data}


class ConnectionManager:
    """Tracks open live-view sockets by client id."""

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, prefix: str) -> str:
        """Accept a WebSocket and return its client id."""
        await websocket.accept()
        client_id = f"{prefix}_{uuid_mod.uuid4().hex[:8]}"
        self.active_connections[client_id] = websocket
        logger.info("Live view connected: %s", client_id)
        return client_id

    def disconnect(self, client_id: str):
        if self.active_connections.pop(client_id, None) is not None:
            logger.info("Live view disconnected: %s", client_id)

    async def stream(self, websocket: WebSocket, prefix: str, updates: AsyncIterator):
        """Forward every delivery of ``updates`` until either side goes away."""
        client_id = await self.connect(websocket, prefix)

        async def pump():
            async for records in updates:
                await websocket.send_json(snapshot_message(records))

        async def listen():
            while True:
                raw = await websocket.receive_text()
                try:
                    msg = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

        tasks = [asyncio.create_task(pump()), asyncio.create_task(listen())]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.error("Live view %s failed: %s", client_id, exc)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await updates.aclose()
            self.disconnect(client_id)


manager = ConnectionManager()


async def _authenticate(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    uid = uid_from_token(token)
    if uid is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
    return uid


@router.websocket("/listings")
async def open_listings_feed(websocket: WebSocket, backend: Backend = Depends(get_backend)):
    await manager.stream(websocket, "listings", ListingStore(backend).watch_open())


@router.websocket("/listings/mine")
async def my_listings_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    await manager.stream(websocket, "my_listings", ListingStore(backend).watch_for_owner(uid))


@router.websocket("/listings/{listing_id}/offers")
async def listing_offers_feed(
    websocket: WebSocket,
    listing_id: str,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    listing = await ListingStore(backend).get(listing_id)
    if listing is None or listing.owner_id != uid:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await manager.stream(websocket, "listing_offers", OfferStore(backend).watch_for_listing(listing_id))


@router.websocket("/offers/mine")
async def my_offers_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    await manager.stream(websocket, "my_offers", OfferStore(backend).watch_for_buyer(uid))


@router.websocket("/offers/pending")
async def pending_offers_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    await manager.stream(websocket, "pending_offers", OfferStore(backend).watch_pending_for_farmer(uid))


@router.websocket("/transactions/mine")
async def my_transactions_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    as_role: str = "buyer",
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    recorder = TransactionRecorder(backend)
    updates = recorder.watch_for_farmer(uid) if as_role == "farmer" else recorder.watch_for_buyer(uid)
    await manager.stream(websocket, "my_transactions", updates)


@router.websocket("/users/me")
async def my_profile_feed(
    websocket: WebSocket,
    token: Optional[str] = None,
    backend: Backend = Depends(get_backend),
):
    uid = await _authenticate(websocket, token)
    if uid is None:
        return
    await manager.stream(websocket, "my_profile", ProfileStore(backend).watch(uid))

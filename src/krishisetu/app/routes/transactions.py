"""Transaction routes: deal history and settlement status."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from krishisetu.app.routes.auth import get_current_uid
from krishisetu.domain.records import Transaction
from krishisetu.domain.schemas import TransactionStatusUpdate
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.transaction_recorder import TransactionRecorder

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("/mine", response_model=list[Transaction])
async def my_transactions(
    as_role: Literal["buyer", "farmer"] = Query("buyer", alias="as"),
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    recorder = TransactionRecorder(backend)
    if as_role == "farmer":
        return await recorder.list_for_farmer(uid)
    return await recorder.list_for_buyer(uid)


@router.post("/{transaction_id}/status", response_model=Transaction)
async def update_transaction_status(
    transaction_id: str,
    body: TransactionStatusUpdate,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    return await TransactionRecorder(backend).update_status(transaction_id, body.status, uid)

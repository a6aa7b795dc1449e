"""Seed endpoint - demo farmer, buyer and listings for walkthroughs.

POST /api/demo/seed
Returns tokens for both demo accounts so a client can switch between them.

WARNING: Debug-only. Returns 404 when debug is off.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from krishisetu.app.config import get_settings
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.auth_service import create_access_token
from krishisetu.services.demo_seed import seed_demo

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/demo", tags=["demo"])


@router.post("/seed")
async def seed(backend: Backend = Depends(get_backend)):
    if not get_settings().debug:
        raise HTTPException(status_code=404, detail="Not found")
    result = await seed_demo(backend)
    return {
        **result,
        "farmer_token": create_access_token(result["farmer_id"]),
        "buyer_token": create_access_token(result["buyer_id"]),
    }

"""Authentication routes: anonymous demo sign-in and me."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from krishisetu.domain.schemas import MeResponse, TokenResponse
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.auth_service import create_access_token, new_uid, uid_from_token
from krishisetu.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


async def get_current_uid(request: Request) -> str:
    """Dependency: extract the caller's uid from the Bearer token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid token",
        )
    uid = uid_from_token(auth_header.removeprefix("Bearer "))
    if uid is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return uid


@router.post("/anonymous", response_model=TokenResponse)
async def sign_in_anonymously():
    """Issue a token for a fresh uid; the client onboards with PUT /api/users/me."""
    uid = new_uid()
    logger.info("Anonymous sign-in: %s", uid)
    return TokenResponse(access_token=create_access_token(uid), uid=uid)


@router.get("/me", response_model=MeResponse)
async def me(
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    profile = await ProfileStore(backend).get(uid)
    return MeResponse(uid=uid, profile=profile)

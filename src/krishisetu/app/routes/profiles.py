"""User profile routes."""

from fastapi import APIRouter, Depends, File, UploadFile

from krishisetu.app.routes.auth import get_current_uid
from krishisetu.domain.records import UserProfile
from krishisetu.domain.schemas import ContactResponse, ImageResponse, ProfileUpdate
from krishisetu.infra.backend import Backend, get_backend
from krishisetu.services.profile_store import ProfileStore

router = APIRouter(prefix="/api/users", tags=["users"])


@router.put("/me", response_model=UserProfile)
async def save_my_profile(
    body: ProfileUpdate,
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    profile = UserProfile(id=uid, **body.model_dump())
    return await ProfileStore(backend).upsert(profile)


@router.get("/me", response_model=UserProfile)
async def get_my_profile(
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    return await ProfileStore(backend).require(uid)


@router.post("/me/avatar", response_model=ImageResponse)
async def upload_avatar(
    file: UploadFile = File(...),
    uid: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    content = await file.read()
    url = await ProfileStore(backend).attach_avatar(uid, content, file.filename, file.content_type)
    return ImageResponse(url=url)


@router.get("/{user_id}", response_model=UserProfile)
async def get_profile(
    user_id: str,
    _: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    return await ProfileStore(backend).require(user_id)


@router.get("/{user_id}/phone", response_model=ContactResponse)
async def get_phone(
    user_id: str,
    _: str = Depends(get_current_uid),
    backend: Backend = Depends(get_backend),
):
    """Contact number of the other party once a deal is agreed."""
    return ContactResponse(uid=user_id, phone=await ProfileStore(backend).get_phone(user_id))

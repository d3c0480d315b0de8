from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_staff
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import AnnouncementCreate, AnnouncementUpdate

router = APIRouter(prefix="/api/announcements", tags=["announcements"])


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_announcement(
    payload: AnnouncementCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
):
    try:
        announcement = await service.create_announcement(db, current_user, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"announcement": announcement}


@router.get("")
async def list_announcements(
    target_role: Optional[str] = Query(None),
    class_id: Optional[int] = Query(None),
    limit: int = Query(service.DEFAULT_LIMIT, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    announcements = await service.list_announcements(db, current_user, target_role, class_id, limit)
    return {"announcements": announcements}


@router.get("/my")
async def list_my_announcements(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"announcements": await service.list_my_announcements(db, current_user)}


@router.get("/class/{class_id}")
async def list_class_announcements(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return {"announcements": await service.list_class_announcements(db, current_user, class_id)}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        announcement = await service.get_announcement(db, current_user, announcement_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"announcement": announcement}


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: int,
    payload: AnnouncementUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
):
    try:
        announcement = await service.update_announcement(db, current_user, announcement_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"announcement": announcement}


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
):
    try:
        await service.delete_announcement(db, current_user, announcement_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Announcement deleted successfully"}

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import services as auth_services
from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin
from app.auth.schemas import ChangePasswordRequest, CurrentUser, RegisterRequest, UserResponse
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import UserUpdate

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_user(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        user = await auth_services.create_user(db, payload, current_user)
        await db.commit()
        await db.refresh(user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"user": UserResponse.model_validate(user)}


@router.get("")
async def list_users(
    role: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    users = await service.list_users(db, current_user, role)
    return {"users": users}


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        user = await service.get_user(db, current_user, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"user": user}


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        user = await service.update_user(db, current_user, user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"user": user}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        await service.delete_user(db, current_user, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "User deleted successfully"}


@router.put("/{user_id}/password")
async def change_password(
    user_id: int,
    payload: ChangePasswordRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        await auth_services.change_password(db, current_user, user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Password changed successfully"}

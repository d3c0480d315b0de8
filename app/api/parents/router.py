from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import LinkRequest

router = APIRouter(prefix="/api/parents", tags=["parents"])


@router.post("/link", status_code=http_status.HTTP_201_CREATED)
async def link_parent(
    payload: LinkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        link = await service.create_link(db, current_user, payload.parent_id, payload.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Parent linked to student successfully", "link": link}


@router.delete("/{parent_id}/students/{student_id}")
async def unlink_parent(
    parent_id: int,
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        await service.unlink(db, current_user, parent_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Parent unlinked from student successfully"}


@router.get("/children")
async def my_children(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"children": await service.children_of(db, current_user, current_user.id)}


@router.get("/{parent_id}/children")
async def parent_children(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    return {"children": await service.children_of(db, current_user, parent_id)}


@router.get("/students/{student_id}/parents")
async def student_parents(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"parents": await service.parents_of(db, current_user, student_id)}


@router.get("/child/{child_id}/grades")
async def child_grades(
    child_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.child_grades(db, current_user, child_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/child/{child_id}/attendance")
async def child_attendance(
    child_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.child_attendance(db, current_user, child_id, date_from, date_to)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/child/{child_id}/homework")
async def child_homework(
    child_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.child_homework(db, current_user, child_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

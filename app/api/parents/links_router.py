from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import LinkRequest

router = APIRouter(prefix="/api/parent-student-links", tags=["parents"])


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def create_link(
    payload: LinkRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        link = await service.create_link(db, current_user, payload.parent_id, payload.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"link": link}


@router.get("")
async def list_links(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"links": await service.list_links(db, current_user)}


@router.get("/parent/{parent_id}/students")
async def links_of_parent(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"links": await service.list_links(db, current_user, parent_id=parent_id)}


@router.get("/student/{student_id}/parents")
async def links_of_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return {"links": await service.list_links(db, current_user, student_id=student_id)}


@router.delete("/{link_id}")
async def delete_link(
    link_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        await service.delete_link(db, current_user, link_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Link deleted successfully"}

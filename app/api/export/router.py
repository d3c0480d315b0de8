from datetime import date
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service

router = APIRouter(prefix="/api/export", tags=["export"])

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"


def content_disposition(filename: str) -> str:
    """Attachment header with a latin-1 safe fallback and the UTF-8 name in ``filename*``."""
    fallback = "".join(c if c.isascii() else "_" for c in filename)
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


def _csv_response(filename: str, body: str) -> StreamingResponse:
    return StreamingResponse(
        iter([body]),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.get("/class/{class_id}/grades")
async def export_class_grades(
    class_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        filename, body = await service.class_grades_csv(db, current_user, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _csv_response(filename, body)


@router.get("/class/{class_id}/attendance")
async def export_class_attendance(
    class_id: int,
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        filename, body = await service.class_attendance_csv(db, current_user, class_id, date_from, date_to)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _csv_response(filename, body)


@router.get("/student/{student_id}/report")
async def export_student_report(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        filename, body = await service.student_report_csv(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _csv_response(filename, body)


@router.get("/school/report")
async def export_school_report(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        filename, body = await service.school_report_csv(db, current_user)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _csv_response(filename, body)

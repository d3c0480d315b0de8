from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi import status as http_status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import require_admin, require_attendance_marker
from app.auth.schemas import CurrentUser
from app.core.enums import AttendanceStatus
from app.core.exceptions import ServiceError
from app.db.session import get_db

from . import service
from .schemas import AttendanceRecord, BulkAttendanceRequest

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


@router.post("", status_code=http_status.HTTP_201_CREATED)
async def mark_attendance(
    payload: AttendanceRecord,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_attendance_marker),
):
    try:
        saved = await service.bulk_mark_attendance(db, current_user, [payload])
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Attendance marked successfully", "attendance": saved[0]}


@router.post("/bulk", status_code=http_status.HTTP_201_CREATED)
async def bulk_mark_attendance(
    payload: BulkAttendanceRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_attendance_marker),
):
    try:
        saved = await service.bulk_mark_attendance(db, current_user, payload.records)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Attendance marked successfully", "attendance": saved}


@router.get("")
async def list_attendance(
    class_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    date: Optional[date] = Query(None, description="YYYY-MM-DD"),
    status: Optional[AttendanceStatus] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    records = await service.list_attendance(
        db, current_user, class_id, subject_id, student_id, date, status
    )
    return {"attendance": records}


@router.get("/student/{student_id}/stats")
async def get_student_stats(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_student_stats(db, current_user, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{attendance_id}")
async def delete_attendance(
    attendance_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        await service.delete_attendance(db, current_user, attendance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"message": "Attendance deleted successfully"}

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base


class Attendance(Base):
    """One mark per (student, class, date, lesson_number, subject); repeat marks update in place."""

    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)
    date = Column(Date, nullable=False)
    lesson_number = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False)  # present, absent, late, sick, excused
    comment = Column(Text, nullable=True)
    marked_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    student = relationship("User", foreign_keys=[student_id], lazy="joined")
    subject = relationship("Subject", lazy="joined")


# NULL lesson and NULL subject are part of the key, so they collapse to 0.
# Soft-deleted marks are outside the index.
Index(
    "uq_attendance_mark",
    Attendance.student_id,
    Attendance.class_id,
    Attendance.date,
    func.coalesce(Attendance.lesson_number, 0),
    func.coalesce(Attendance.subject_id, 0),
    unique=True,
    postgresql_where=Attendance.deleted_at.is_(None),
    sqlite_where=Attendance.deleted_at.is_(None),
)

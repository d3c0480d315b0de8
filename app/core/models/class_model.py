"""School classes and their student roster. Model named SchoolClass to avoid Python 'class' keyword."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Table
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.db.session import Base

class_students = Table(
    "class_students",
    Base.metadata,
    Column("class_id", Integer, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    # Academic year, e.g. 2024
    year = Column(Integer, nullable=False)
    homeroom_teacher_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    starosta_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    homeroom_teacher = relationship("User", foreign_keys=[homeroom_teacher_id], lazy="joined")
    starosta = relationship("User", foreign_keys=[starosta_id], lazy="joined")

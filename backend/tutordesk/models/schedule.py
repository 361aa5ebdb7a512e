from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutordesk.db.base import Base


class CourseArrangement(Base):
    __tablename__ = "course_arrangement"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_course_arrangement_status",
        ),
        CheckConstraint("transport_fee >= 0 AND other_fee >= 0", name="ck_course_arrangement_fees"),
        Index("ix_course_arrangement_teacher_date", "teacher_id", "arr_date"),
        Index("ix_course_arrangement_student_date", "student_id", "arr_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    arr_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(8), nullable=False)
    end_time: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    transport_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    other_fee: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

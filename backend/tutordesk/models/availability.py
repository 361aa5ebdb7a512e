import datetime as dt

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from tutordesk.db.base import Base


class TeacherDailyAvailability(Base):
    __tablename__ = "teacher_daily_availability"
    __table_args__ = (UniqueConstraint("teacher_id", "date", name="uq_teacher_daily_availability"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    morning_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    afternoon_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    evening_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def subject_id(self) -> int:
        return self.teacher_id


class StudentDailyAvailability(Base):
    __tablename__ = "student_daily_availability"
    __table_args__ = (UniqueConstraint("student_id", "date", name="uq_student_daily_availability"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    morning_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    afternoon_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    evening_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    @property
    def subject_id(self) -> int:
        return self.student_id

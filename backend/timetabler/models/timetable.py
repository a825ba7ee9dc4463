import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from timetabler.db.base import Base
from timetabler.models.batch import Batch
from timetabler.models.classroom import Classroom
from timetabler.models.faculty import Faculty
from timetabler.models.subject import Subject


class TimetableStatus(str, Enum):
    draft = "draft"
    under_review = "under_review"
    approved = "approved"
    published = "published"


class SlotType(str, Enum):
    lecture = "lecture"
    lab = "lab"
    tutorial = "tutorial"
    break_ = "break"


class Timetable(Base):
    __tablename__ = "timetables"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    batch_id: Mapped[str] = mapped_column(String(36), ForeignKey("batches.id"), index=True, nullable=False)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    semester: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[TimetableStatus] = mapped_column(
        SAEnum(TimetableStatus, name="timetable_status"),
        nullable=False,
        default=TimetableStatus.draft,
    )
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False)
    approved_by: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    batch: Mapped[Batch] = relationship(lazy="joined")
    slots: Mapped[list["TimetableSlot"]] = relationship(
        back_populates="timetable",
        cascade="all, delete-orphan",
    )


class TimetableSlot(Base):
    __tablename__ = "timetable_slots"
    __table_args__ = (
        # One batch per timetable, so this is the batch double-booking guard.
        UniqueConstraint("timetable_id", "day_of_week", "start_time", name="uq_timetable_slot_cell"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_timetable_slot_day"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    timetable_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("timetables.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.id"), nullable=False)
    faculty_id: Mapped[str] = mapped_column(String(36), ForeignKey("faculty.id"), index=True, nullable=False)
    classroom_id: Mapped[str] = mapped_column(String(36), ForeignKey("classrooms.id"), index=True, nullable=False)
    type: Mapped[SlotType] = mapped_column(
        SAEnum(SlotType, name="slot_type", values_callable=lambda kinds: [kind.value for kind in kinds]),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    timetable: Mapped[Timetable] = relationship(back_populates="slots")
    subject: Mapped[Subject] = relationship(lazy="joined")
    faculty: Mapped[Faculty] = relationship(lazy="joined")
    classroom: Mapped[Classroom] = relationship(lazy="joined")

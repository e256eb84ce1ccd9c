"""
Class catalogue, course scheduling, registration and check-in models for Wild Energy
"""
from datetime import datetime, date, time, timezone
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Date, Time, ForeignKey, Integer, BigInteger, String, Text,
    Boolean, CheckConstraint, UniqueConstraint, Index, text
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from wildenergy.core.ledger_rules import course_bounds
from wildenergy.db.postgresql import Base, BigIntPK

if TYPE_CHECKING:
    from wildenergy.models.memberModel import Member
    from wildenergy.models.membershipsModel import Subscription, GroupSessionBalance


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Group(Base):
    """Families of categories sharing one session pool"""

    __tablename__ = "groups"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20))

    # Relationships
    categories: Mapped[List["Category"]] = relationship(back_populates="group")


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    group_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("groups.id"), nullable=False)

    # Relationships
    group: Mapped["Group"] = relationship(back_populates="categories")
    classes: Mapped[List["GymClass"]] = relationship(back_populates="category")


class GymClass(Base):
    """Kinds of classes offered (yoga, boxing...)"""

    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("categories.id"), nullable=False)

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="classes")
    courses: Mapped[List["Course"]] = relationship(back_populates="gym_class")


class Course(Base):
    """A single dated occurrence of a class"""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    class_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("classes.id"), nullable=False)
    trainer_name: Mapped[Optional[str]] = mapped_column(String(200))
    course_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="scheduled")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)

    # Relationships
    gym_class: Mapped["GymClass"] = relationship(back_populates="courses")
    registrations: Mapped[List["Registration"]] = relationship(back_populates="course")

    __table_args__ = (
        CheckConstraint("max_participants > 0", name="ck_course_capacity"),
        CheckConstraint(
            "current_participants >= 0 AND current_participants <= max_participants",
            name="ck_course_participants",
        ),
        CheckConstraint(
            "status IN ('scheduled','in_progress','completed','cancelled')",
            name="ck_course_status",
        ),
        Index("idx_courses_date", "course_date", "start_time"),
    )

    @property
    def start_at(self) -> datetime:
        return course_bounds(self.course_date, self.start_time, self.end_time)[0]

    @property
    def end_at(self) -> datetime:
        return course_bounds(self.course_date, self.start_time, self.end_time)[1]


class Registration(Base):
    """A member's booking of a course"""

    __tablename__ = "class_registrations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    member_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("members.id"), nullable=False)
    course_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    subscription_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("subscriptions.id"))
    balance_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("subscription_group_sessions.id"))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="registered")
    qr_code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    registration_date: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))
    session_refunded: Mapped[Optional[bool]] = mapped_column(Boolean)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    member: Mapped["Member"] = relationship(back_populates="registrations")
    course: Mapped["Course"] = relationship(back_populates="registrations")
    subscription: Mapped[Optional["Subscription"]] = relationship()
    balance: Mapped[Optional["GroupSessionBalance"]] = relationship()
    checkin: Mapped[Optional["CheckIn"]] = relationship(back_populates="registration", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('registered','attended','cancelled','absent')",
            name="ck_registration_status",
        ),
        Index(
            "uq_registration_member_course_live",
            "member_id", "course_id",
            unique=True,
            postgresql_where=text("status = 'registered'"),
            sqlite_where=text("status = 'registered'"),
        ),
        Index("idx_registrations_course", "course_id", "status"),
        Index("idx_registrations_member", "member_id", "registration_date"),
    )


class CheckIn(Base):
    """Attendance record; at most one per registration"""

    __tablename__ = "checkins"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    registration_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("class_registrations.id", ondelete="CASCADE"), nullable=False
    )
    member_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("members.id"), nullable=False)
    checkin_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)
    session_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    registration: Mapped["Registration"] = relationship(back_populates="checkin")

    __table_args__ = (
        UniqueConstraint("registration_id", name="uq_checkin_registration"),
    )

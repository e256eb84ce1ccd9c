"""
Plan, subscription and session balance models for Wild Energy
"""
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import (
    Date, ForeignKey, Integer, BigInteger, Numeric, String, Text, Boolean,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from wildenergy.db.postgresql import Base, BigIntPK

if TYPE_CHECKING:
    from wildenergy.models.memberModel import Member
    from wildenergy.models.classModel import Group


class Plan(Base):
    """Subscription templates; session counts are copied into balances at purchase"""

    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    plan_groups: Mapped[List["PlanGroup"]] = relationship(back_populates="plan")
    subscriptions: Mapped[List["Subscription"]] = relationship(back_populates="plan")

    __table_args__ = (
        CheckConstraint("duration_months > 0", name="ck_plan_duration"),
    )


class PlanGroup(Base):
    """Number of sessions a plan grants for one group"""

    __tablename__ = "plan_groups"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    plan_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("plans.id", ondelete="CASCADE"), nullable=False)
    group_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("groups.id"), nullable=False)
    session_count: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    plan: Mapped["Plan"] = relationship(back_populates="plan_groups")
    group: Mapped["Group"] = relationship()

    __table_args__ = (
        UniqueConstraint("plan_id", "group_id", name="uq_plan_group"),
        CheckConstraint("session_count >= 0", name="ck_plan_group_sessions"),
    )


class Subscription(Base):
    """A member's purchase of a plan"""

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    member_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("members.id"), nullable=False)
    plan_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("plans.id"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    member: Mapped["Member"] = relationship(back_populates="subscriptions")
    plan: Mapped["Plan"] = relationship(back_populates="subscriptions")
    balances: Mapped[List["GroupSessionBalance"]] = relationship(back_populates="subscription")

    __table_args__ = (
        CheckConstraint("status IN ('active','expired','cancelled')", name="ck_subscription_status"),
        CheckConstraint("end_date >= start_date", name="ck_subscription_dates"),
        Index("idx_subscriptions_member", "member_id", "status", "end_date"),
    )


class GroupSessionBalance(Base):
    """Remaining sessions of one subscription for one group"""

    __tablename__ = "subscription_group_sessions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    subscription_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
    group_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("groups.id"), nullable=False)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    sessions_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True))

    # Relationships
    subscription: Mapped["Subscription"] = relationship(back_populates="balances")
    group: Mapped["Group"] = relationship()

    __table_args__ = (
        UniqueConstraint("subscription_id", "group_id", name="uq_subscription_group"),
        CheckConstraint(
            "sessions_remaining >= 0 AND sessions_remaining <= total_sessions",
            name="ck_sessions_remaining_range",
        ),
    )

"""
Member identity model for Wild Energy
"""
from datetime import datetime, timezone
from typing import Optional, List, TYPE_CHECKING
from sqlalchemy import String, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import TIMESTAMP

from wildenergy.db.postgresql import Base, BigIntPK

if TYPE_CHECKING:
    from wildenergy.models.membershipsModel import Subscription
    from wildenergy.models.classModel import Registration


class Member(Base):
    """Gym members who hold subscriptions and book courses"""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(200))
    phone: Mapped[Optional[str]] = mapped_column(String(32))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    subscriptions: Mapped[List["Subscription"]] = relationship(back_populates="member")
    registrations: Mapped[List["Registration"]] = relationship(back_populates="member")

    __table_args__ = (
        CheckConstraint("status IN ('active','inactive','suspended')", name="ck_member_status"),
        Index("idx_members_email", "email"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

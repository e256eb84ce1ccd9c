"""
Subscription and group session balance operations.

Balance changes always go through ``debit_balance`` / ``credit_balance``,
which are single conditional UPDATE statements so concurrent bookings can
never push ``sessions_remaining`` outside ``[0, total_sessions]``.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, and_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, joinedload

from wildenergy.core.errors import (
    BalanceNotFound,
    CourseNotFound,
    MemberNotFound,
    NoSessionsRemaining,
    PlanNotFound,
    SubscriptionInactive,
    SubscriptionNotFound,
)
from wildenergy.core.ledger_rules import GYM_TIMEZONE, ensure_aware, order_balances, utc_now
from wildenergy.core.logging_config import get_logger
from wildenergy.models import (
    Category, Course, Group, GroupSessionBalance, GymClass, Member, Plan, Subscription
)

logger = get_logger("crud.subscriptions")


@dataclass
class BalanceData:
    id: int
    subscription_id: int
    group_id: int
    group_name: Optional[str]
    total_sessions: int
    sessions_remaining: int


@dataclass
class SubscriptionData:
    id: int
    member_id: int
    plan_id: int
    plan_name: Optional[str]
    start_date: date
    end_date: date
    status: str
    balances: List[BalanceData] = field(default_factory=list)
    plan_price: Optional[Decimal] = None


@dataclass
class SessionCheckData:
    """Answer to "can this member book this course?" """
    can_register: bool
    remaining_sessions: int
    total_sessions: int
    group_id: Optional[int]
    group_name: Optional[str]
    balance_id: Optional[int] = None
    error: Optional[str] = None


def _balance_to_data(balance: GroupSessionBalance) -> BalanceData:
    return BalanceData(
        id=balance.id,
        subscription_id=balance.subscription_id,
        group_id=balance.group_id,
        group_name=balance.group.name if balance.group else None,
        total_sessions=balance.total_sessions,
        sessions_remaining=balance.sessions_remaining,
    )


def _subscription_to_data(subscription: Subscription) -> SubscriptionData:
    return SubscriptionData(
        id=subscription.id,
        member_id=subscription.member_id,
        plan_id=subscription.plan_id,
        plan_name=subscription.plan.name if subscription.plan else None,
        start_date=subscription.start_date,
        end_date=subscription.end_date,
        status=subscription.status,
        balances=[_balance_to_data(b) for b in sorted(subscription.balances, key=lambda b: b.id)],
        plan_price=subscription.plan.price if subscription.plan else None,
    )


def local_today(now: Optional[datetime] = None) -> date:
    return ensure_aware(now or utc_now()).astimezone(GYM_TIMEZONE).date()


# ------------------------------
# Balance primitives
# ------------------------------
async def get_balance(db: AsyncSession, balance_id: int) -> Optional[GroupSessionBalance]:
    """Load a balance with fresh counters, bypassing the identity map."""
    result = await db.execute(
        select(GroupSessionBalance)
        .options(joinedload(GroupSessionBalance.group))
        .where(GroupSessionBalance.id == balance_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def debit_balance(db: AsyncSession, balance_id: int, now: Optional[datetime] = None) -> bool:
    """Take one session; False when the balance is already empty."""
    result = await db.execute(
        update(GroupSessionBalance)
        .where(
            and_(
                GroupSessionBalance.id == balance_id,
                GroupSessionBalance.sessions_remaining > 0,
            )
        )
        .values(
            sessions_remaining=GroupSessionBalance.sessions_remaining - 1,
            updated_at=now or utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def credit_balance(db: AsyncSession, balance_id: int, now: Optional[datetime] = None) -> bool:
    """Give back one session; False when the balance is already full."""
    result = await db.execute(
        update(GroupSessionBalance)
        .where(
            and_(
                GroupSessionBalance.id == balance_id,
                GroupSessionBalance.sessions_remaining < GroupSessionBalance.total_sessions,
            )
        )
        .values(
            sessions_remaining=GroupSessionBalance.sessions_remaining + 1,
            updated_at=now or utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def get_eligible_balances(
    db: AsyncSession,
    *,
    member_id: int,
    group_id: int,
    on_date: date,
) -> List[GroupSessionBalance]:
    """Balances that can pay for a course of ``group_id`` held on ``on_date``, in debit order."""
    result = await db.execute(
        select(GroupSessionBalance, Subscription.end_date)
        .join(Subscription, GroupSessionBalance.subscription_id == Subscription.id)
        .options(joinedload(GroupSessionBalance.group))
        .where(
            and_(
                Subscription.member_id == member_id,
                Subscription.status == "active",
                Subscription.start_date <= on_date,
                Subscription.end_date >= on_date,
                GroupSessionBalance.group_id == group_id,
            )
        )
        .execution_options(populate_existing=True)
    )
    rows = result.all()
    by_id = {balance.id: balance for balance, _ in rows}
    ordered_ids = order_balances(
        [(balance.id, end_date, balance.sessions_remaining) for balance, end_date in rows]
    )
    return [by_id[balance_id] for balance_id in ordered_ids]


async def get_course_group(db: AsyncSession, course_id: int) -> Optional[tuple]:
    """Return ``(course, group)`` for a course, or None."""
    result = await db.execute(
        select(Course, Group)
        .join(GymClass, Course.class_id == GymClass.id)
        .join(Category, GymClass.category_id == Category.id)
        .join(Group, Category.group_id == Group.id)
        .options(joinedload(Course.gym_class))
        .where(Course.id == course_id)
        .execution_options(populate_existing=True)
    )
    row = result.first()
    return (row[0], row[1]) if row else None


# ------------------------------
# Subscriptions
# ------------------------------
async def create_subscription(
    db: AsyncSession,
    *,
    member_id: int,
    plan_id: int,
    start_date: Optional[date] = None,
    notes: Optional[str] = None,
    commit: bool = True
) -> SubscriptionData:
    """Subscribe a member to a plan and open one balance per plan group."""
    member = await db.get(Member, member_id)
    if not member:
        raise MemberNotFound(f"Member {member_id} not found")

    plan_result = await db.execute(
        select(Plan)
        .options(selectinload(Plan.plan_groups))
        .where(Plan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    plan = plan_result.scalar_one_or_none()
    if not plan or not plan.is_active:
        raise PlanNotFound(f"Plan {plan_id} not found or inactive")

    start = start_date or local_today()
    subscription = Subscription(
        member_id=member_id,
        plan_id=plan_id,
        start_date=start,
        end_date=start + relativedelta(months=plan.duration_months),
        status="active",
        notes=notes,
    )
    db.add(subscription)
    await db.flush()

    for plan_group in plan.plan_groups:
        db.add(GroupSessionBalance(
            subscription_id=subscription.id,
            group_id=plan_group.group_id,
            total_sessions=plan_group.session_count,
            sessions_remaining=plan_group.session_count,
        ))

    if commit:
        await db.commit()
    else:
        await db.flush()

    logger.info(
        f"Subscription {subscription.id} created for member {member_id} "
        f"plan={plan_id} groups={len(plan.plan_groups)}"
    )
    return await get_subscription_by_id(db, subscription.id)


async def get_subscription_by_id(db: AsyncSession, subscription_id: int) -> Optional[SubscriptionData]:
    result = await db.execute(
        select(Subscription)
        .options(
            joinedload(Subscription.plan),
            selectinload(Subscription.balances).joinedload(GroupSessionBalance.group),
        )
        .where(Subscription.id == subscription_id)
        .execution_options(populate_existing=True)
    )
    subscription = result.scalar_one_or_none()
    return _subscription_to_data(subscription) if subscription else None


async def get_member_subscriptions(
    db: AsyncSession,
    member_id: int,
    include_inactive: bool = False
) -> List[SubscriptionData]:
    query = (
        select(Subscription)
        .options(
            joinedload(Subscription.plan),
            selectinload(Subscription.balances).joinedload(GroupSessionBalance.group),
        )
        .where(Subscription.member_id == member_id)
        .order_by(Subscription.end_date.desc())
        .execution_options(populate_existing=True)
    )
    if not include_inactive:
        query = query.where(Subscription.status == "active")

    result = await db.execute(query)
    return [_subscription_to_data(s) for s in result.scalars().all()]


async def consume_session(
    db: AsyncSession,
    *,
    subscription_id: int,
    group_id: int,
    commit: bool = True
) -> BalanceData:
    """Admin debit of one session outside of any booking."""
    subscription = await db.get(Subscription, subscription_id, populate_existing=True)
    if not subscription:
        raise SubscriptionNotFound(f"Subscription {subscription_id} not found")
    if subscription.status != "active":
        raise SubscriptionInactive()

    result = await db.execute(
        select(GroupSessionBalance.id).where(
            and_(
                GroupSessionBalance.subscription_id == subscription_id,
                GroupSessionBalance.group_id == group_id,
            )
        )
    )
    balance_id = result.scalar_one_or_none()
    if balance_id is None:
        raise BalanceNotFound()

    if not await debit_balance(db, balance_id):
        raise NoSessionsRemaining("No sessions remaining for this group")

    if commit:
        await db.commit()

    balance = await get_balance(db, balance_id)
    logger.info(
        f"Session consumed manually on subscription {subscription_id} group {group_id}, "
        f"remaining={balance.sessions_remaining}"
    )
    return _balance_to_data(balance)


async def check_member_sessions(
    db: AsyncSession,
    *,
    member_id: int,
    course_id: int
) -> SessionCheckData:
    """Report whether the member has a balance able to pay for the course."""
    found = await get_course_group(db, course_id)
    if not found:
        raise CourseNotFound(f"Course {course_id} not found")
    course, group = found

    balances = await get_eligible_balances(
        db, member_id=member_id, group_id=group.id, on_date=course.course_date
    )
    if balances:
        first = balances[0]
        return SessionCheckData(
            can_register=True,
            remaining_sessions=first.sessions_remaining,
            total_sessions=first.total_sessions,
            group_id=group.id,
            group_name=group.name,
            balance_id=first.id,
        )

    # Report the empty balance when the member has one, for display
    result = await db.execute(
        select(GroupSessionBalance)
        .join(Subscription, GroupSessionBalance.subscription_id == Subscription.id)
        .where(
            and_(
                Subscription.member_id == member_id,
                Subscription.status == "active",
                Subscription.start_date <= course.course_date,
                Subscription.end_date >= course.course_date,
                GroupSessionBalance.group_id == group.id,
            )
        )
        .order_by(Subscription.end_date, GroupSessionBalance.id)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    empty = result.scalar_one_or_none()
    return SessionCheckData(
        can_register=False,
        remaining_sessions=0,
        total_sessions=empty.total_sessions if empty else 0,
        group_id=group.id,
        group_name=group.name,
        balance_id=empty.id if empty else None,
        error=(
            "No remaining sessions for this group" if empty
            else "No group sessions allocated for this course type"
        ),
    )

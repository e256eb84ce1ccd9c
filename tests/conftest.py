"""Shared fixtures: one SQLite database file per test and a small gym catalogue."""
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wildenergy.core.ledger_rules import GYM_TIMEZONE
from wildenergy.crud.subscriptionsCrud import create_subscription
from wildenergy.db.postgresql import Base, DB_SCHEMA
from wildenergy.models import (
    Category,
    Course,
    Group,
    GymClass,
    Member,
    Plan,
    PlanGroup,
)

# Reference instant used across the tests
NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


def local_slot(start: datetime, minutes: int = 60) -> dict[str, Any]:
    """Course date/time columns for an aware start instant."""
    local_start = start.astimezone(GYM_TIMEZONE)
    local_end = local_start + timedelta(minutes=minutes)
    return {
        "course_date": local_start.date(),
        "start_time": local_start.time().replace(tzinfo=None),
        "end_time": local_end.time().replace(tzinfo=None),
    }


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    raw_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'wildenergy.db'}",
        connect_args={"timeout": 15},
    )
    test_engine = raw_engine.execution_options(schema_translate_map={DB_SCHEMA: None})
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await raw_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# =============================================================================
# Catalogue
# =============================================================================


@pytest.fixture
async def group(db_session: AsyncSession) -> Group:
    """Create the group whose sessions pay for the test courses."""
    group = Group(name="Cardio", color="#ff6600")
    db_session.add(group)
    await db_session.commit()
    return group


@pytest.fixture
async def other_group(db_session: AsyncSession) -> Group:
    group = Group(name="Strength", color="#0066ff")
    db_session.add(group)
    await db_session.commit()
    return group


@pytest.fixture
async def gym_class(db_session: AsyncSession, group: Group) -> GymClass:
    category = Category(name="Dance", group_id=group.id)
    db_session.add(category)
    await db_session.flush()
    gym_class = GymClass(name="Zumba", description="Dance workout", category_id=category.id)
    db_session.add(gym_class)
    await db_session.commit()
    return gym_class


@pytest.fixture
def make_course(db_session: AsyncSession, gym_class: GymClass) -> Callable:
    """Factory for courses starting at an aware instant."""

    async def _make(start: datetime, max_participants: int = 10, minutes: int = 60, **extra) -> Course:
        course = Course(
            class_id=gym_class.id,
            trainer_name="Sonia",
            max_participants=max_participants,
            **local_slot(start, minutes),
            **extra,
        )
        db_session.add(course)
        await db_session.commit()
        return course

    return _make


@pytest.fixture
async def course(make_course) -> Course:
    """A course two days after NOW."""
    return await make_course(NOW + timedelta(days=2))


@pytest.fixture
def make_member(db_session: AsyncSession) -> Callable:
    counter = {"n": 0}

    async def _make(first_name: str = "Amira", last_name: str = "Ben Salah") -> Member:
        counter["n"] += 1
        member = Member(
            first_name=first_name,
            last_name=f"{last_name} {counter['n']}",
            email=f"member{counter['n']}@example.com",
            phone="+216 20 000 000",
        )
        db_session.add(member)
        await db_session.commit()
        return member

    return _make


@pytest.fixture
async def member(make_member) -> Member:
    return await make_member()


@pytest.fixture
def make_plan(db_session: AsyncSession, group: Group) -> Callable:
    async def _make(sessions: int = 8, duration_months: int = 1, group_id: int | None = None) -> Plan:
        plan = Plan(name=f"{sessions} sessions", price=Decimal("80.00"), duration_months=duration_months)
        db_session.add(plan)
        await db_session.flush()
        db_session.add(PlanGroup(plan_id=plan.id, group_id=group_id or group.id, session_count=sessions))
        await db_session.commit()
        return plan

    return _make


@pytest.fixture
def subscribe(db_session: AsyncSession, make_plan) -> Callable:
    """Give a member an active subscription covering NOW with ``sessions`` sessions."""

    async def _subscribe(member: Member, sessions: int = 8, start_date: date | None = None, **plan_kwargs):
        plan = await make_plan(sessions=sessions, **plan_kwargs)
        return await create_subscription(
            db_session,
            member_id=member.id,
            plan_id=plan.id,
            start_date=start_date or date(2026, 3, 1),
        )

    return _subscribe


@pytest.fixture
async def subscription(member: Member, subscribe):
    """An 8 session subscription for ``member``"""
    return await subscribe(member)

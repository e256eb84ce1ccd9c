"""Integration tests for subscriptions and group session balances."""
from datetime import date, timedelta

import pytest

from wildenergy.core.errors import (
    BalanceNotFound,
    CourseNotFound,
    MemberNotFound,
    NoSessionsRemaining,
    PlanNotFound,
    SubscriptionInactive,
)
from wildenergy.crud.registrationsCrud import register_for_course
from wildenergy.crud.subscriptionsCrud import (
    check_member_sessions,
    consume_session,
    create_subscription,
    get_member_subscriptions,
)
from wildenergy.models import Subscription

from tests.conftest import NOW


class TestCreateSubscription:
    async def test_balances_copied_from_plan(self, db_session, member, make_plan, group):
        plan = await make_plan(sessions=12, duration_months=3)

        data = await create_subscription(
            db_session, member_id=member.id, plan_id=plan.id, start_date=date(2026, 1, 31)
        )

        assert data.start_date == date(2026, 1, 31)
        assert data.end_date == date(2026, 4, 30)
        assert data.status == "active"
        assert len(data.balances) == 1
        assert data.balances[0].group_id == group.id
        assert data.balances[0].group_name == "Cardio"
        assert data.balances[0].total_sessions == 12
        assert data.balances[0].sessions_remaining == 12

    async def test_unknown_member_or_plan(self, db_session, member, make_plan):
        plan = await make_plan()

        with pytest.raises(MemberNotFound):
            await create_subscription(db_session, member_id=999, plan_id=plan.id)
        with pytest.raises(PlanNotFound):
            await create_subscription(db_session, member_id=member.id, plan_id=999)

    async def test_listing_hides_inactive_by_default(self, db_session, member, subscribe):
        active = await subscribe(member)
        expired = await subscribe(member)
        row = await db_session.get(Subscription, expired.id)
        row.status = "expired"
        await db_session.commit()

        listed = await get_member_subscriptions(db_session, member.id)
        everything = await get_member_subscriptions(db_session, member.id, include_inactive=True)

        assert [s.id for s in listed] == [active.id]
        assert {s.id for s in everything} == {active.id, expired.id}


class TestConsumeSession:
    async def test_manual_debit(self, db_session, subscription, group):
        balance = await consume_session(db_session, subscription_id=subscription.id, group_id=group.id)

        assert balance.sessions_remaining == 7

    async def test_cannot_go_below_zero(self, db_session, member, subscribe, group):
        subscription = await subscribe(member, sessions=1)
        await consume_session(db_session, subscription_id=subscription.id, group_id=group.id)

        with pytest.raises(NoSessionsRemaining):
            await consume_session(db_session, subscription_id=subscription.id, group_id=group.id)

    async def test_group_not_in_subscription(self, db_session, subscription, other_group):
        with pytest.raises(BalanceNotFound):
            await consume_session(db_session, subscription_id=subscription.id, group_id=other_group.id)

    async def test_inactive_subscription(self, db_session, subscription, group):
        row = await db_session.get(Subscription, subscription.id)
        row.status = "cancelled"
        await db_session.commit()

        with pytest.raises(SubscriptionInactive):
            await consume_session(db_session, subscription_id=subscription.id, group_id=group.id)


class TestCheckMemberSessions:
    async def test_member_with_sessions_can_register(self, db_session, member, course, subscription):
        check = await check_member_sessions(db_session, member_id=member.id, course_id=course.id)

        assert check.can_register is True
        assert check.remaining_sessions == 8
        assert check.total_sessions == 8
        assert check.group_name == "Cardio"

    async def test_empty_balance_is_reported(self, db_session, member, make_course, subscribe):
        subscription = await subscribe(member, sessions=1)
        first = await make_course(NOW + timedelta(days=1))
        second = await make_course(NOW + timedelta(days=2))
        await register_for_course(db_session, member_id=member.id, course_id=first.id, now=NOW)

        check = await check_member_sessions(db_session, member_id=member.id, course_id=second.id)

        assert check.can_register is False
        assert check.total_sessions == 1
        assert check.balance_id == subscription.balances[0].id
        assert check.error == "No remaining sessions for this group"

    async def test_no_allocation_for_group(self, db_session, member, course):
        check = await check_member_sessions(db_session, member_id=member.id, course_id=course.id)

        assert check.can_register is False
        assert check.error == "No group sessions allocated for this course type"

    async def test_course_outside_subscription_dates(self, db_session, member, make_course, subscription):
        late = await make_course(NOW + timedelta(days=60))

        check = await check_member_sessions(db_session, member_id=member.id, course_id=late.id)

        assert check.can_register is False

    async def test_unknown_course(self, db_session, member):
        with pytest.raises(CourseNotFound):
            await check_member_sessions(db_session, member_id=member.id, course_id=404)

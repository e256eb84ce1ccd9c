"""Integration tests for QR check-in, check-out and QR resolution."""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from wildenergy.core.errors import (
    CheckInNotFound,
    QrCodeNotFound,
    RegistrationCancelled,
    RegistrationNotFound,
)
from wildenergy.crud.checkinsCrud import check_in, check_out, resolve_qr_code
from wildenergy.crud.registrationsCrud import (
    cancel_registration,
    get_registration_by_id,
    register_for_course,
)
from wildenergy.crud.subscriptionsCrud import get_balance
from wildenergy.models import CheckIn

from tests.conftest import NOW


@pytest.fixture
async def booking(db_session, member, course, subscription):
    """A live registration of ``member`` for ``course``"""
    return await register_for_course(db_session, member_id=member.id, course_id=course.id, now=NOW)


async def checkin_count(db) -> int:
    result = await db.execute(select(func.count(CheckIn.id)))
    return result.scalar()


class TestCheckIn:
    async def test_two_scans_create_one_checkin(self, db_session, booking):
        scan_time = NOW + timedelta(days=2)

        first = await check_in(db_session, qr_code=booking.qr_code, now=scan_time)
        second = await check_in(db_session, qr_code=booking.qr_code, now=scan_time + timedelta(seconds=5))

        assert first.already_checked_in is False
        assert second.already_checked_in is True
        assert second.registration_id == booking.registration_id
        assert await checkin_count(db_session) == 1

    async def test_checkin_never_touches_the_balance(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)

        balance = await get_balance(db_session, booking.balance_id)
        assert balance.sessions_remaining == 7

    async def test_checkin_marks_registration_attended(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)

        data = await get_registration_by_id(db_session, booking.registration_id, now=NOW)
        assert data.status == "attended"
        assert data.stored_status == "attended"
        assert data.checkin_time is not None

    async def test_unknown_registration(self, db_session):
        with pytest.raises(RegistrationNotFound):
            await check_in(db_session, qr_code="reg-does-not-exist", now=NOW)
        with pytest.raises(RegistrationNotFound):
            await check_in(db_session, qr_code="   ", now=NOW)

    async def test_cancelled_registration_cannot_check_in(self, db_session, booking):
        await cancel_registration(db_session, booking.registration_id, now=NOW)

        with pytest.raises(RegistrationCancelled):
            await check_in(db_session, qr_code=booking.qr_code, now=NOW)
        assert await checkin_count(db_session) == 0

    async def test_concurrent_scans(self, session_factory, booking):
        async def scan():
            async with session_factory() as db:
                return await check_in(db, qr_code=booking.qr_code, now=NOW)

        results = await asyncio.gather(scan(), scan())

        assert sorted(r.already_checked_in for r in results) == [False, True]
        async with session_factory() as db:
            assert await checkin_count(db) == 1


class TestCheckOut:
    async def test_checkout_reverts_to_registered(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)

        await check_out(db_session, booking.registration_id)

        data = await get_registration_by_id(db_session, booking.registration_id, now=NOW)
        assert data.status == "registered"
        assert data.checkin_time is None
        assert await checkin_count(db_session) == 0

    async def test_checkout_does_not_credit_the_session(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)
        await check_out(db_session, booking.registration_id)

        balance = await get_balance(db_session, booking.balance_id)
        assert balance.sessions_remaining == 7

    async def test_checkout_without_checkin(self, db_session, booking):
        with pytest.raises(CheckInNotFound):
            await check_out(db_session, booking.registration_id)

    async def test_checkin_again_after_checkout(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)
        await check_out(db_session, booking.registration_id)

        again = await check_in(db_session, registration_id=booking.registration_id, now=NOW)

        assert again.already_checked_in is False
        assert await checkin_count(db_session) == 1


class TestResolveQrCode:
    async def test_resolve_reports_summaries_and_counts(
        self, db_session, booking, make_member, subscribe, course
    ):
        other = await make_member(first_name="Youssef")
        await subscribe(other)
        other_booking = await register_for_course(db_session, member_id=other.id, course_id=course.id, now=NOW)
        await check_in(db_session, registration_id=other_booking.registration_id, now=NOW)

        info = await resolve_qr_code(db_session, f"  {booking.qr_code} ", now=NOW)

        assert info.registration.id == booking.registration_id
        assert info.registration.status == "registered"
        assert info.member.first_name == "Amira"
        assert info.course.class_name == "Zumba"
        assert info.course.group_name == "Cardio"
        assert info.course.trainer_name == "Sonia"
        assert info.registered_count == 1
        assert info.checked_in_count == 1
        assert info.already_checked_in is False

    async def test_resolve_lists_roster_and_active_subscription(
        self, db_session, booking, make_member, subscribe, course
    ):
        other = await make_member(first_name="Youssef")
        await subscribe(other)
        other_booking = await register_for_course(db_session, member_id=other.id, course_id=course.id, now=NOW)
        await check_in(db_session, registration_id=other_booking.registration_id, now=NOW)
        dropped = await make_member(first_name="Ines")
        await subscribe(dropped)
        dropped_booking = await register_for_course(db_session, member_id=dropped.id, course_id=course.id, now=NOW)
        await cancel_registration(db_session, dropped_booking.registration_id, now=NOW)

        info = await resolve_qr_code(db_session, booking.qr_code, now=NOW)

        statuses = {r.id: r.status for r in info.attendees}
        assert statuses == {
            booking.registration_id: "registered",
            other_booking.registration_id: "attended",
        }

        active = info.active_subscription
        assert active is not None
        assert active.member_id == booking.member_id
        assert active.plan_name == "8 sessions"
        assert active.plan_price == Decimal("80.00")
        assert [(b.group_name, b.total_sessions, b.sessions_remaining) for b in active.balances] == [
            ("Cardio", 8, 7)
        ]

    async def test_checked_in_member_leaves_registered_count(self, db_session, booking):
        await check_in(db_session, registration_id=booking.registration_id, now=NOW)

        info = await resolve_qr_code(db_session, booking.qr_code, now=NOW)

        assert info.registered_count == 0
        assert info.checked_in_count == 1
        assert info.already_checked_in is True
        assert [r.status for r in info.attendees] == ["attended"]

    async def test_cancelled_bookings_are_not_counted(self, db_session, booking, make_member, subscribe, course):
        other = await make_member()
        await subscribe(other)
        other_booking = await register_for_course(db_session, member_id=other.id, course_id=course.id, now=NOW)
        await cancel_registration(db_session, other_booking.registration_id, now=NOW)

        info = await resolve_qr_code(db_session, booking.qr_code, now=NOW)

        assert info.registered_count == 1

    async def test_unknown_qr_code(self, db_session):
        with pytest.raises(QrCodeNotFound):
            await resolve_qr_code(db_session, "reg-unknown")
        with pytest.raises(QrCodeNotFound):
            await resolve_qr_code(db_session, "")

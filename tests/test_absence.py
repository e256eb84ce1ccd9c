"""Tests for the absent sweep."""
from datetime import timedelta

from wildenergy.crud.checkinsCrud import check_in
from wildenergy.crud.registrationsCrud import (
    cancel_registration,
    find_absent_registrations,
    get_registration_by_id,
    register_for_course,
)
from wildenergy.services.absence_sweeper import AbsenceSweepService

from tests.conftest import NOW


async def test_sweep_marks_only_unchecked_ended_bookings(db_session, make_member, subscribe, make_course):
    ended_course = await make_course(NOW + timedelta(hours=3))
    later_course = await make_course(NOW + timedelta(days=3))
    after_end = ended_course.end_at + timedelta(minutes=1)

    no_show, present, cancelled, future = [await make_member() for _ in range(4)]
    for m in (no_show, present, cancelled, future):
        await subscribe(m)

    missed = await register_for_course(db_session, member_id=no_show.id, course_id=ended_course.id, now=NOW)
    attended = await register_for_course(db_session, member_id=present.id, course_id=ended_course.id, now=NOW)
    dropped = await register_for_course(db_session, member_id=cancelled.id, course_id=ended_course.id, now=NOW)
    upcoming = await register_for_course(db_session, member_id=future.id, course_id=later_course.id, now=NOW)
    await check_in(db_session, registration_id=attended.registration_id, now=NOW + timedelta(hours=3))
    await cancel_registration(db_session, dropped.registration_id, now=NOW)

    dry_run = await AbsenceSweepService(db_session).run(now=after_end)
    assert dry_run["registration_ids"] == [missed.registration_id]
    assert dry_run["applied"] is False
    stored = await get_registration_by_id(db_session, missed.registration_id, now=after_end)
    assert stored.stored_status == "registered"
    assert stored.status == "absent"

    applied = await AbsenceSweepService(db_session).run(now=after_end, apply=True)
    assert applied["absent_count"] == 1

    stored = await get_registration_by_id(db_session, missed.registration_id, now=after_end)
    assert stored.stored_status == "absent"
    upcoming_data = await get_registration_by_id(db_session, upcoming.registration_id, now=after_end)
    assert upcoming_data.status == "registered"
    assert await find_absent_registrations(db_session, after_end) == []


async def test_nothing_to_sweep_before_course_end(db_session, member, course, subscription):
    await register_for_course(db_session, member_id=member.id, course_id=course.id, now=NOW)

    stats = await AbsenceSweepService(db_session).run(now=course.end_at - timedelta(seconds=1), apply=True)

    assert stats["absent_count"] == 0


async def test_absent_booking_can_still_be_checked_in_late(db_session, member, course, subscription):
    booked = await register_for_course(db_session, member_id=member.id, course_id=course.id, now=NOW)
    after_end = course.end_at + timedelta(hours=1)
    await AbsenceSweepService(db_session).run(now=after_end, apply=True)

    result = await check_in(db_session, registration_id=booked.registration_id, now=after_end)

    assert result.already_checked_in is False
    data = await get_registration_by_id(db_session, booked.registration_id, now=after_end)
    assert data.status == "attended"

"""
Registration ledger: booking, cancellation and the absent sweep.

Every operation is one transaction. Seats and sessions are taken with
conditional UPDATEs, and any rejection after a write rolls the whole
transaction back.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, List

from sqlalchemy import select, and_, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from wildenergy.core.errors import (
    CONFLICT,
    AlreadyRegistered,
    CourseFull,
    CourseInPast,
    CourseNotFound,
    InvalidState,
    LedgerError,
    MemberNotFound,
    NoSessionsRemaining,
    NotAllowed,
    RegistrationNotFound,
    ScheduleConflict,
)
from wildenergy.core.ledger_rules import (
    ABSENT,
    CANCELLED,
    REGISTERED,
    SEAT_HOLDING_STATUSES,
    course_bounds,
    derive_status,
    ensure_aware,
    find_overlap,
    has_started,
    is_within_cancellation_window,
    utc_now,
)
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.subscriptionsCrud import (
    credit_balance,
    debit_balance,
    get_balance,
    get_course_group,
    get_eligible_balances,
    local_today,
)
from wildenergy.models import CheckIn, Course, Member, Registration

logger = get_logger("crud.registrations")


@dataclass
class RegistrationData:
    """Registration as shown to callers, with its derived status"""
    id: int
    member_id: int
    course_id: int
    status: str
    stored_status: str
    qr_code: str
    registration_date: datetime
    subscription_id: Optional[int]
    balance_id: Optional[int]
    checkin_time: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    session_refunded: Optional[bool] = None

    # Related data
    member_name: Optional[str] = None
    class_name: Optional[str] = None
    course_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


@dataclass
class RegistrationResult:
    registration_id: int
    qr_code: str
    course_id: int
    member_id: int
    balance_id: int
    sessions_remaining: int


@dataclass
class CancellationResult:
    registration_id: int
    is_within_24_hours: bool
    session_refunded: bool

    @property
    def message(self) -> str:
        if self.session_refunded:
            return "Registration cancelled. Session refunded to your account."
        return "Registration cancelled. Session forfeited due to late cancellation."


@dataclass
class BulkRegistrationItem:
    member_id: int
    success: bool
    registration_id: Optional[int] = None
    qr_code: Optional[str] = None
    error_code: Optional[str] = None
    message: Optional[str] = None


def mint_qr_code() -> str:
    return f"reg-{uuid.uuid4().hex}"


def registration_to_data(registration: Registration, now: Optional[datetime] = None) -> RegistrationData:
    """Map a Registration (with course, member and checkin loaded) to RegistrationData."""
    course = registration.course
    checkin = registration.checkin
    return RegistrationData(
        id=registration.id,
        member_id=registration.member_id,
        course_id=registration.course_id,
        status=derive_status(
            registration.status,
            checkin is not None,
            course.end_at,
            now or utc_now(),
        ),
        stored_status=registration.status,
        qr_code=registration.qr_code,
        registration_date=registration.registration_date,
        subscription_id=registration.subscription_id,
        balance_id=registration.balance_id,
        checkin_time=checkin.checkin_time if checkin else None,
        cancelled_at=registration.cancelled_at,
        session_refunded=registration.session_refunded,
        member_name=registration.member.full_name if registration.member else None,
        class_name=course.gym_class.name if course.gym_class else None,
        course_date=course.course_date,
        start_time=course.start_time,
        end_time=course.end_time,
    )


def _registration_query():
    return select(Registration).options(
        joinedload(Registration.member),
        joinedload(Registration.course).joinedload(Course.gym_class),
        selectinload(Registration.checkin),
    ).execution_options(populate_existing=True)


async def _take_seat(db: AsyncSession, course_id: int) -> bool:
    result = await db.execute(
        update(Course)
        .where(
            and_(
                Course.id == course_id,
                Course.current_participants < Course.max_participants,
            )
        )
        .values(current_participants=Course.current_participants + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _release_seat(db: AsyncSession, course_id: int) -> bool:
    result = await db.execute(
        update(Course)
        .where(
            and_(
                Course.id == course_id,
                Course.current_participants > 0,
            )
        )
        .values(current_participants=Course.current_participants - 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _find_conflicting_course(db: AsyncSession, member_id: int, course: Course) -> Optional[int]:
    """Id of another live booking of the member overlapping ``course``."""
    result = await db.execute(
        select(Course)
        .join(Registration, Registration.course_id == Course.id)
        .where(
            and_(
                Registration.member_id == member_id,
                Registration.status.in_(SEAT_HOLDING_STATUSES),
                Course.id != course.id,
                Course.course_date.between(
                    course.course_date - timedelta(days=1),
                    course.course_date + timedelta(days=1),
                ),
            )
        )
    )
    booked = [
        (other.id, course_bounds(other.course_date, other.start_time, other.end_time))
        for other in result.scalars().all()
    ]
    return find_overlap((course.start_at, course.end_at), booked)


async def register_for_course(
    db: AsyncSession,
    *,
    member_id: int,
    course_id: int,
    force: bool = False,
    now: Optional[datetime] = None,
    commit: bool = True
) -> RegistrationResult:
    """Book a course for a member and debit one session of the matching group.

    ``force`` skips the schedule overlap check only; capacity and session
    rules always apply.
    """
    now = ensure_aware(now or utc_now())

    member = await db.get(Member, member_id)
    if not member:
        raise MemberNotFound(f"Member {member_id} not found")

    found = await get_course_group(db, course_id)
    if not found:
        raise CourseNotFound(f"Course {course_id} not found")
    course, group = found
    if not course.is_active or course.status != "scheduled":
        raise CourseNotFound()

    if has_started(course.start_at, now):
        raise CourseInPast("Cannot register for a course that has already started")

    existing = await db.execute(
        select(Registration.id).where(
            and_(
                Registration.member_id == member_id,
                Registration.course_id == course_id,
                Registration.status.in_(SEAT_HOLDING_STATUSES),
            )
        )
    )
    if existing.first() is not None:
        raise AlreadyRegistered()

    if not force:
        conflicting_id = await _find_conflicting_course(db, member_id, course)
        if conflicting_id is not None:
            raise ScheduleConflict(
                f"You have a conflicting course registration at this time (course {conflicting_id})"
            )

    if course.current_participants >= course.max_participants:
        raise CourseFull()

    balances = await get_eligible_balances(
        db, member_id=member_id, group_id=group.id, on_date=course.course_date
    )
    if not balances:
        raise NoSessionsRemaining(f"No remaining sessions for group {group.name}")

    try:
        if not await _take_seat(db, course_id):
            raise CourseFull("Course filled up while registering", category=CONFLICT)

        debited = None
        for balance in balances:
            if await debit_balance(db, balance.id, now):
                debited = balance
                break
        if debited is None:
            raise NoSessionsRemaining(
                f"No remaining sessions for group {group.name}", category=CONFLICT
            )

        registration = Registration(
            member_id=member_id,
            course_id=course_id,
            subscription_id=debited.subscription_id,
            balance_id=debited.id,
            status=REGISTERED,
            qr_code=mint_qr_code(),
            registration_date=now,
        )
        db.add(registration)
        await db.flush()
    except IntegrityError:
        await db.rollback()
        logger.warning(
            f"Registration race lost for member {member_id} course {course_id}"
        )
        raise AlreadyRegistered(category=CONFLICT)
    except (LedgerError, SQLAlchemyError):
        await db.rollback()
        raise

    refreshed = await get_balance(db, debited.id)

    if commit:
        await db.commit()

    logger.info(
        f"Member {member_id} registered for course {course_id} "
        f"(registration {registration.id}, balance {debited.id} -> {refreshed.sessions_remaining})"
    )

    return RegistrationResult(
        registration_id=registration.id,
        qr_code=registration.qr_code,
        course_id=course_id,
        member_id=member_id,
        balance_id=debited.id,
        sessions_remaining=refreshed.sessions_remaining,
    )


async def bulk_register(
    db: AsyncSession,
    *,
    course_id: int,
    member_ids: List[int],
    force: bool = False,
    now: Optional[datetime] = None
) -> List[BulkRegistrationItem]:
    """Register several members; each one commits or fails on its own."""
    items: List[BulkRegistrationItem] = []
    for member_id in member_ids:
        try:
            result = await register_for_course(
                db, member_id=member_id, course_id=course_id, force=force, now=now
            )
        except LedgerError as e:
            await db.rollback()
            items.append(BulkRegistrationItem(
                member_id=member_id,
                success=False,
                error_code=e.code,
                message=e.message,
            ))
            continue
        items.append(BulkRegistrationItem(
            member_id=member_id,
            success=True,
            registration_id=result.registration_id,
            qr_code=result.qr_code,
        ))

    logger.info(
        f"Bulk registration on course {course_id}: "
        f"{sum(1 for i in items if i.success)}/{len(items)} succeeded"
    )
    return items


async def cancel_registration(
    db: AsyncSession,
    registration_id: int,
    *,
    now: Optional[datetime] = None,
    member_id: Optional[int] = None,
    force_refund: Optional[bool] = None,
    commit: bool = True
) -> CancellationResult:
    """Cancel a booking, refunding the session unless inside the forfeiture window.

    ``member_id`` restricts the cancellation to the owner's bookings.
    ``force_refund`` lets an admin override the window decision.
    """
    now = ensure_aware(now or utc_now())

    result = await db.execute(
        select(Registration)
        .options(joinedload(Registration.course))
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if not registration:
        raise RegistrationNotFound(f"Registration {registration_id} not found")

    if member_id is not None and registration.member_id != member_id:
        raise NotAllowed()

    if registration.status != REGISTERED:
        raise InvalidState(f"Cannot cancel registration with status {registration.status}")

    start_at = registration.course.start_at
    if has_started(start_at, now):
        raise InvalidState("Cannot cancel registration for a course that has already started")

    within_window = is_within_cancellation_window(start_at, now)
    should_refund = (not within_window) if force_refund is None else force_refund

    try:
        refunded = False
        if should_refund and registration.balance_id is not None:
            refunded = await credit_balance(db, registration.balance_id, now)

        transition = await db.execute(
            update(Registration)
            .where(
                and_(
                    Registration.id == registration_id,
                    Registration.status == REGISTERED,
                )
            )
            .values(status=CANCELLED, cancelled_at=now, session_refunded=refunded)
            .execution_options(synchronize_session=False)
        )
        if transition.rowcount != 1:
            raise InvalidState("Registration was changed by another request")

        await _release_seat(db, registration.course_id)
    except (LedgerError, SQLAlchemyError):
        await db.rollback()
        raise

    if commit:
        await db.commit()

    logger.info(
        f"Registration {registration_id} cancelled "
        f"(within_window={within_window}, refunded={refunded})"
    )

    return CancellationResult(
        registration_id=registration_id,
        is_within_24_hours=within_window,
        session_refunded=refunded,
    )


async def get_registration_by_id(
    db: AsyncSession,
    registration_id: int,
    now: Optional[datetime] = None
) -> Optional[RegistrationData]:
    result = await db.execute(_registration_query().where(Registration.id == registration_id))
    registration = result.scalar_one_or_none()
    return registration_to_data(registration, now) if registration else None


async def get_member_registrations(
    db: AsyncSession,
    member_id: int,
    include_cancelled: bool = False,
    limit: int = 100,
    now: Optional[datetime] = None
) -> List[RegistrationData]:
    """Registrations for a member, newest first"""
    query = _registration_query().where(Registration.member_id == member_id)
    if not include_cancelled:
        query = query.where(Registration.status != CANCELLED)
    query = query.order_by(Registration.registration_date.desc()).limit(limit)

    result = await db.execute(query)
    return [registration_to_data(r, now) for r in result.scalars().all()]


async def get_course_registrations(
    db: AsyncSession,
    course_id: int,
    include_cancelled: bool = False,
    now: Optional[datetime] = None
) -> List[RegistrationData]:
    query = _registration_query().where(Registration.course_id == course_id)
    if not include_cancelled:
        query = query.where(Registration.status != CANCELLED)
    query = query.order_by(Registration.registration_date)

    result = await db.execute(query)
    return [registration_to_data(r, now) for r in result.scalars().all()]


async def count_awaiting_checkin(db: AsyncSession, course_id: int) -> int:
    """``registered`` bookings of a course that have not checked in yet"""
    result = await db.execute(
        select(func.count(Registration.id))
        .select_from(Registration)
        .outerjoin(CheckIn, CheckIn.registration_id == Registration.id)
        .where(
            and_(
                Registration.course_id == course_id,
                Registration.status == REGISTERED,
                CheckIn.id.is_(None),
            )
        )
    )
    return result.scalar() or 0


async def find_absent_registrations(
    db: AsyncSession,
    now: Optional[datetime] = None
) -> List[int]:
    """Ids of ``registered`` bookings without check-in whose course has ended."""
    now = ensure_aware(now or utc_now())
    result = await db.execute(
        select(Registration)
        .join(Course, Registration.course_id == Course.id)
        .outerjoin(CheckIn, CheckIn.registration_id == Registration.id)
        .options(joinedload(Registration.course))
        .where(
            and_(
                Registration.status == REGISTERED,
                CheckIn.id.is_(None),
                Course.course_date <= local_today(now),
            )
        )
        .order_by(Registration.id)
        .execution_options(populate_existing=True)
    )
    return [
        r.id for r in result.scalars().all()
        if derive_status(r.status, False, r.course.end_at, now) == ABSENT
    ]


async def mark_absent_registrations(
    db: AsyncSession,
    now: Optional[datetime] = None,
    commit: bool = True
) -> List[int]:
    """Persist the ``absent`` status for every ended booking without check-in."""
    registration_ids = await find_absent_registrations(db, now)
    if not registration_ids:
        return []

    try:
        await db.execute(
            update(Registration)
            .where(
                and_(
                    Registration.id.in_(registration_ids),
                    Registration.status == REGISTERED,
                )
            )
            .values(status=ABSENT)
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError:
        await db.rollback()
        raise

    if commit:
        await db.commit()

    return registration_ids

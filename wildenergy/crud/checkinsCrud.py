"""
Check-in ledger: QR resolution, idempotent check-in and reversible check-out.

A CheckIn row is the attendance record. Neither checking in nor checking
out touches session balances; the session was debited at booking time.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Optional, List

from sqlalchemy import select, and_, delete, func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from wildenergy.core.conversions import normalize_qr_code
from wildenergy.core.errors import (
    CheckInNotFound,
    LedgerError,
    QrCodeNotFound,
    RegistrationCancelled,
    RegistrationNotFound,
)
from wildenergy.core.ledger_rules import ATTENDED, CANCELLED, REGISTERED, ensure_aware, utc_now
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.registrationsCrud import (
    RegistrationData,
    count_awaiting_checkin,
    get_course_registrations,
    registration_to_data,
)
from wildenergy.crud.subscriptionsCrud import SubscriptionData, get_member_subscriptions
from wildenergy.models import Category, CheckIn, Course, GymClass, Registration

logger = get_logger("crud.checkins")


@dataclass
class CheckInResult:
    registration_id: int
    already_checked_in: bool
    checkin_time: datetime

    @property
    def message(self) -> str:
        if self.already_checked_in:
            return "Member is already checked in"
        return "Member checked in successfully"


@dataclass
class MemberSummary:
    id: int
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]


@dataclass
class CourseSummary:
    id: int
    class_name: Optional[str]
    group_name: Optional[str]
    trainer_name: Optional[str]
    course_date: date
    start_time: time
    end_time: time
    max_participants: int


@dataclass
class QrCheckinInfo:
    registration: RegistrationData
    member: MemberSummary
    course: CourseSummary
    registered_count: int
    checked_in_count: int
    already_checked_in: bool
    active_subscription: Optional[SubscriptionData] = None
    attendees: List[RegistrationData] = field(default_factory=list)


async def _get_registration(
    db: AsyncSession,
    *,
    registration_id: Optional[int] = None,
    qr_code: Optional[str] = None
) -> Optional[Registration]:
    query = select(Registration).execution_options(populate_existing=True)
    if registration_id is not None:
        query = query.where(Registration.id == registration_id)
    else:
        query = query.where(Registration.qr_code == qr_code)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def _get_checkin(db: AsyncSession, registration_id: int) -> Optional[CheckIn]:
    result = await db.execute(
        select(CheckIn)
        .where(CheckIn.registration_id == registration_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def check_in(
    db: AsyncSession,
    *,
    registration_id: Optional[int] = None,
    qr_code: Optional[str] = None,
    now: Optional[datetime] = None,
    notes: Optional[str] = None,
    commit: bool = True
) -> CheckInResult:
    """Record attendance for a registration, resolved by id or QR token.

    A second call for the same registration reports ``already_checked_in``
    and changes nothing.
    """
    qr_code = normalize_qr_code(qr_code)
    if registration_id is None and qr_code is None:
        raise RegistrationNotFound("A registration id or QR code is required")

    now = ensure_aware(now or utc_now())

    registration = await _get_registration(db, registration_id=registration_id, qr_code=qr_code)
    if not registration:
        raise RegistrationNotFound()

    if registration.status == CANCELLED:
        raise RegistrationCancelled()
    registration_id = registration.id

    existing = await _get_checkin(db, registration_id)
    if existing:
        logger.info(f"Registration {registration_id} already checked in")
        return CheckInResult(
            registration_id=registration_id,
            already_checked_in=True,
            checkin_time=existing.checkin_time,
        )

    checkin = CheckIn(
        registration_id=registration_id,
        member_id=registration.member_id,
        checkin_time=now,
        session_consumed=True,
        notes=notes or "Validated by admin",
    )
    db.add(checkin)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent scan created the row first
        await db.rollback()
        existing = await _get_checkin(db, registration_id)
        if existing is None:
            raise
        logger.info(f"Registration {registration_id} checked in by a concurrent request")
        return CheckInResult(
            registration_id=registration_id,
            already_checked_in=True,
            checkin_time=existing.checkin_time,
        )

    try:
        await db.execute(
            update(Registration)
            .where(Registration.id == registration_id)
            .values(status=ATTENDED)
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError:
        await db.rollback()
        raise

    if commit:
        await db.commit()

    logger.info(f"Registration {registration_id} checked in at {now.isoformat()}")
    return CheckInResult(
        registration_id=registration_id,
        already_checked_in=False,
        checkin_time=now,
    )


async def check_out(
    db: AsyncSession,
    registration_id: int,
    commit: bool = True
) -> int:
    """Remove the check-in of a registration and return the removed check-in id."""
    existing = await _get_checkin(db, registration_id)
    if not existing:
        raise CheckInNotFound()
    checkin_id = existing.id

    try:
        removed = await db.execute(
            delete(CheckIn)
            .where(CheckIn.id == checkin_id)
            .execution_options(synchronize_session=False)
        )
        if removed.rowcount != 1:
            raise CheckInNotFound()

        await db.execute(
            update(Registration)
            .where(
                and_(
                    Registration.id == registration_id,
                    Registration.status == ATTENDED,
                )
            )
            .values(status=REGISTERED)
            .execution_options(synchronize_session=False)
        )
    except (LedgerError, SQLAlchemyError):
        await db.rollback()
        raise

    if commit:
        await db.commit()

    db.expunge(existing)
    logger.info(f"Check-in {checkin_id} of registration {registration_id} removed")
    return checkin_id


async def count_course_checkins(db: AsyncSession, course_id: int) -> int:
    result = await db.execute(
        select(func.count(CheckIn.id))
        .join(Registration, CheckIn.registration_id == Registration.id)
        .where(Registration.course_id == course_id)
    )
    return result.scalar() or 0


async def resolve_qr_code(
    db: AsyncSession,
    qr_code: str,
    now: Optional[datetime] = None
) -> QrCheckinInfo:
    """Everything the scanning screen shows for a QR token"""
    token = normalize_qr_code(qr_code)
    if token is None:
        raise QrCodeNotFound()

    result = await db.execute(
        select(Registration)
        .options(
            joinedload(Registration.member),
            joinedload(Registration.course)
            .joinedload(Course.gym_class)
            .joinedload(GymClass.category)
            .joinedload(Category.group),
            selectinload(Registration.checkin),
        )
        .where(Registration.qr_code == token)
        .execution_options(populate_existing=True)
    )
    registration = result.scalar_one_or_none()
    if not registration:
        logger.warning("QR code lookup failed")
        raise QrCodeNotFound()

    member = registration.member
    course = registration.course
    gym_class = course.gym_class

    # Latest-ending active subscription, if any
    subscriptions = await get_member_subscriptions(db, member.id)

    return QrCheckinInfo(
        registration=registration_to_data(registration, now),
        member=MemberSummary(
            id=member.id,
            first_name=member.first_name,
            last_name=member.last_name,
            email=member.email,
            phone=member.phone,
        ),
        course=CourseSummary(
            id=course.id,
            class_name=gym_class.name if gym_class else None,
            group_name=gym_class.category.group.name if gym_class and gym_class.category else None,
            trainer_name=course.trainer_name,
            course_date=course.course_date,
            start_time=course.start_time,
            end_time=course.end_time,
            max_participants=course.max_participants,
        ),
        registered_count=await count_awaiting_checkin(db, course.id),
        checked_in_count=await count_course_checkins(db, course.id),
        already_checked_in=registration.checkin is not None,
        active_subscription=subscriptions[0] if subscriptions else None,
        attendees=await get_course_registrations(db, course.id, now=now),
    )


async def get_course_checkins(db: AsyncSession, course_id: int) -> List[CheckIn]:
    result = await db.execute(
        select(CheckIn)
        .join(Registration, CheckIn.registration_id == Registration.id)
        .where(Registration.course_id == course_id)
        .order_by(CheckIn.checkin_time)
    )
    return list(result.scalars().all())

"""
GraphQL types for QR check-in.
"""
from datetime import date, datetime, time
from typing import Optional, List
import strawberry

from wildenergy.crud.checkinsCrud import CourseSummary, MemberSummary, QrCheckinInfo
from wildenergy.graphql.registrations.types import Registration
from wildenergy.graphql.subscriptions.types import MemberSubscription


@strawberry.type
class QrMember:
    id: int
    first_name: str
    last_name: str
    email: Optional[str]
    phone: Optional[str]

    @classmethod
    def from_data(cls, data: MemberSummary) -> "QrMember":
        return cls(
            id=data.id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            phone=data.phone
        )


@strawberry.type
class QrCourse:
    id: int
    class_name: Optional[str]
    group_name: Optional[str]
    trainer_name: Optional[str]
    course_date: date
    start_time: time
    end_time: time
    max_participants: int

    @classmethod
    def from_data(cls, data: CourseSummary) -> "QrCourse":
        return cls(
            id=data.id,
            class_name=data.class_name,
            group_name=data.group_name,
            trainer_name=data.trainer_name,
            course_date=data.course_date,
            start_time=data.start_time,
            end_time=data.end_time,
            max_participants=data.max_participants
        )


@strawberry.type
class QrCheckin:
    """What the scanning screen shows for a QR code"""
    registration: Registration
    member: QrMember
    course: QrCourse
    registered_count: int
    checked_in_count: int
    already_checked_in: bool
    active_subscription: Optional[MemberSubscription]
    attendees: List[Registration]

    @classmethod
    def from_data(cls, data: QrCheckinInfo) -> "QrCheckin":
        return cls(
            registration=Registration.from_data(data.registration),
            member=QrMember.from_data(data.member),
            course=QrCourse.from_data(data.course),
            registered_count=data.registered_count,
            checked_in_count=data.checked_in_count,
            already_checked_in=data.already_checked_in,
            active_subscription=(
                MemberSubscription.from_data(data.active_subscription) if data.active_subscription else None
            ),
            attendees=[Registration.from_data(r) for r in data.attendees]
        )


@strawberry.input
class CheckInInput:
    """Either the registration id or its QR code"""
    registration_id: Optional[int] = None
    qr_code: Optional[str] = None
    notes: Optional[str] = None


# Response types
@strawberry.type
class CheckInResponse:
    """Response for check-in operations"""
    success: bool
    message: str
    error_code: Optional[str] = None
    registration_id: Optional[int] = None
    already_checked_in: Optional[bool] = None
    checkin_time: Optional[datetime] = None


@strawberry.type
class CheckOutResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    registration_id: Optional[int] = None


@strawberry.type
class QrCheckinResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    checkin: Optional[QrCheckin] = None

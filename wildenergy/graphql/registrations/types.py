"""
GraphQL types for course registrations.
"""
from datetime import date, datetime, time
from typing import Optional, List
import strawberry

from wildenergy.crud.registrationsCrud import BulkRegistrationItem, RegistrationData


@strawberry.type
class Registration:
    """Registration GraphQL type; ``status`` is the derived status"""
    id: int
    member_id: int
    course_id: int
    status: str
    qr_code: str
    registration_date: datetime
    subscription_id: Optional[int]
    balance_id: Optional[int]
    checkin_time: Optional[datetime]
    cancelled_at: Optional[datetime]
    session_refunded: Optional[bool]

    # Related data
    member_name: Optional[str]
    class_name: Optional[str]
    course_date: Optional[date]
    start_time: Optional[time]
    end_time: Optional[time]

    @classmethod
    def from_data(cls, data: RegistrationData) -> "Registration":
        return cls(
            id=data.id,
            member_id=data.member_id,
            course_id=data.course_id,
            status=data.status,
            qr_code=data.qr_code,
            registration_date=data.registration_date,
            subscription_id=data.subscription_id,
            balance_id=data.balance_id,
            checkin_time=data.checkin_time,
            cancelled_at=data.cancelled_at,
            session_refunded=data.session_refunded,
            member_name=data.member_name,
            class_name=data.class_name,
            course_date=data.course_date,
            start_time=data.start_time,
            end_time=data.end_time
        )


@strawberry.type
class BulkRegistrationResult:
    member_id: int
    success: bool
    registration_id: Optional[int]
    qr_code: Optional[str]
    error_code: Optional[str]
    message: Optional[str]

    @classmethod
    def from_data(cls, data: BulkRegistrationItem) -> "BulkRegistrationResult":
        return cls(
            member_id=data.member_id,
            success=data.success,
            registration_id=data.registration_id,
            qr_code=data.qr_code,
            error_code=data.error_code,
            message=data.message
        )


# Input types for mutations
@strawberry.input
class RegisterInput:
    """Input for booking a course. ``member_id`` and ``force`` are admin only."""
    course_id: int
    member_id: Optional[int] = None
    force: bool = False


@strawberry.input
class BulkRegisterInput:
    course_id: int
    member_ids: List[int]
    force: bool = False


@strawberry.input
class CancelRegistrationInput:
    registration_id: int
    force_refund: Optional[bool] = None


@strawberry.input
class GetRegistrationsInput:
    """Input for filtering registrations"""
    member_id: Optional[int] = None
    course_id: Optional[int] = None
    include_cancelled: bool = False
    limit: int = 100


# Response types
@strawberry.type
class RegistrationResponse:
    """Response for booking operations"""
    success: bool
    message: str
    error_code: Optional[str] = None
    registration: Optional[Registration] = None
    sessions_remaining: Optional[int] = None


@strawberry.type
class CancellationResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    registration_id: Optional[int] = None
    is_within_24_hours: Optional[bool] = None
    session_refunded: Optional[bool] = None


@strawberry.type
class BulkRegistrationResponse:
    success: bool
    message: str
    succeeded_count: int = 0
    results: List[BulkRegistrationResult] = strawberry.field(default_factory=list)


@strawberry.type
class RegistrationsResponse:
    """Response for registrations query"""
    registrations: List[Registration]
    total_count: int


@strawberry.type
class MarkAbsentResponse:
    success: bool
    message: str
    absent_count: int = 0
    registration_ids: List[int] = strawberry.field(default_factory=list)

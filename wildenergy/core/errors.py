"""
Domain errors raised by the session ledger.

Every error is a ValueError so callers that only know the generic
"bad input" contract keep working; the GraphQL layer reads ``code`` and
``category`` to build its response envelope.
"""
from typing import Optional

CLIENT = "client"
CONFLICT = "conflict"


class LedgerError(ValueError):
    """Base class for all ledger rejections"""

    code = "LEDGER_ERROR"
    category = CLIENT
    default_message = "Operation rejected"

    def __init__(self, message: Optional[str] = None, *, category: Optional[str] = None):
        self.message = message or self.default_message
        if category is not None:
            self.category = category
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.category == CONFLICT


class AlreadyRegistered(LedgerError):
    code = "ALREADY_REGISTERED"
    default_message = "Already registered for this course"


class CourseFull(LedgerError):
    code = "COURSE_FULL"
    default_message = "Course is at full capacity"


class NoSessionsRemaining(LedgerError):
    code = "NO_SESSIONS_REMAINING"
    default_message = "No remaining sessions for this course group"


class CourseInPast(LedgerError):
    code = "COURSE_IN_PAST"
    default_message = "Course has already started"


class CourseNotFound(LedgerError):
    code = "COURSE_NOT_FOUND"
    default_message = "Course not found or not available for registration"


class ScheduleConflict(LedgerError):
    code = "SCHEDULE_CONFLICT"
    default_message = "You have a conflicting course registration at this time"


class CheckInNotFound(LedgerError):
    code = "CHECKIN_NOT_FOUND"
    default_message = "No check-in found to unvalidate"


class QrCodeNotFound(LedgerError):
    code = "QR_CODE_NOT_FOUND"
    default_message = "QR code not found or invalid"


class RegistrationNotFound(LedgerError):
    code = "REGISTRATION_NOT_FOUND"
    default_message = "Registration not found"


class MemberNotFound(LedgerError):
    code = "MEMBER_NOT_FOUND"
    default_message = "Member not found"


class PlanNotFound(LedgerError):
    code = "PLAN_NOT_FOUND"
    default_message = "Plan not found"


class SubscriptionNotFound(LedgerError):
    code = "SUBSCRIPTION_NOT_FOUND"
    default_message = "Subscription not found"


class SubscriptionInactive(LedgerError):
    code = "SUBSCRIPTION_INACTIVE"
    default_message = "Subscription is not active"


class BalanceNotFound(LedgerError):
    code = "BALANCE_NOT_FOUND"
    default_message = "Group session not found for this subscription"


class InvalidState(LedgerError):
    code = "INVALID_STATE"
    category = CONFLICT
    default_message = "Registration cannot be changed in its current state"


class RegistrationCancelled(LedgerError):
    code = "REGISTRATION_CANCELLED"
    category = CONFLICT
    default_message = "Cannot check in a cancelled registration"


class NotAllowed(LedgerError):
    code = "NOT_ALLOWED"
    category = CONFLICT
    default_message = "You can only change your own registrations"

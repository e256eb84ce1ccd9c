"""
GraphQL mutations for course registrations.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.errors import LedgerError
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.registrationsCrud import (
    bulk_register,
    cancel_registration,
    get_registration_by_id,
    register_for_course,
)
from wildenergy.graphql.auth.permissions import IsAdmin, IsAuthenticated, resolve_member_id
from wildenergy.graphql.registrations.types import (
    BulkRegisterInput,
    BulkRegistrationResponse,
    BulkRegistrationResult,
    CancelRegistrationInput,
    CancellationResponse,
    MarkAbsentResponse,
    RegisterInput,
    Registration,
    RegistrationResponse,
)
from wildenergy.services.absence_sweeper import AbsenceSweepService

logger = get_logger("graphql.registrations")


@strawberry.type
class RegistrationMutation:
    """Registration mutations"""

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def register_for_course(
        self,
        info: Info,
        input: RegisterInput
    ) -> RegistrationResponse:
        """Book a course and debit one session of its group"""
        db: AsyncSession = info.context.db
        caller = info.context.caller

        member_id = resolve_member_id(info, input.member_id)
        if member_id is None and caller.is_admin:
            return RegistrationResponse(
                success=False,
                message="memberId is required",
                error_code="MEMBER_ID_REQUIRED"
            )
        if member_id is None:
            return RegistrationResponse(
                success=False,
                message="You can only register yourself",
                error_code="NOT_ALLOWED"
            )
        force = input.force and caller.is_admin

        try:
            result = await register_for_course(
                db, member_id=member_id, course_id=input.course_id, force=force, commit=False
            )
            await db.commit()

            registration_data = await get_registration_by_id(db, result.registration_id)
            return RegistrationResponse(
                success=True,
                message="Successfully registered for course",
                registration=Registration.from_data(registration_data) if registration_data else None,
                sessions_remaining=result.sessions_remaining
            )

        except LedgerError as e:
            await db.rollback()
            logger.warning(f"Registration rejected for member {member_id}: {e.code}")
            return RegistrationResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error registering member {member_id} to course {input.course_id}")
            return RegistrationResponse(
                success=False,
                message="Unexpected error while registering",
                error_code="INTERNAL_ERROR"
            )

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def bulk_register(
        self,
        info: Info,
        input: BulkRegisterInput
    ) -> BulkRegistrationResponse:
        """Register several members to a course, each on its own"""
        db: AsyncSession = info.context.db

        try:
            items = await bulk_register(
                db, course_id=input.course_id, member_ids=input.member_ids, force=input.force
            )
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error in bulk registration for course {input.course_id}")
            return BulkRegistrationResponse(
                success=False,
                message="Unexpected error during bulk registration"
            )

        succeeded = sum(1 for item in items if item.success)
        return BulkRegistrationResponse(
            success=succeeded == len(items),
            message=f"{succeeded} of {len(items)} member(s) registered",
            succeeded_count=succeeded,
            results=[BulkRegistrationResult.from_data(item) for item in items]
        )

    @strawberry.mutation(permission_classes=[IsAuthenticated])
    async def cancel_registration(
        self,
        info: Info,
        input: CancelRegistrationInput
    ) -> CancellationResponse:
        """Cancel a booking; the session is refunded outside the 24 hour window"""
        db: AsyncSession = info.context.db
        caller = info.context.caller

        owner_id = None if caller.is_admin else caller.member_id
        force_refund = input.force_refund if caller.is_admin else None

        try:
            result = await cancel_registration(
                db,
                input.registration_id,
                member_id=owner_id,
                force_refund=force_refund,
                commit=False
            )
            await db.commit()

            return CancellationResponse(
                success=True,
                message=result.message,
                registration_id=result.registration_id,
                is_within_24_hours=result.is_within_24_hours,
                session_refunded=result.session_refunded
            )

        except LedgerError as e:
            await db.rollback()
            logger.warning(f"Cancellation of registration {input.registration_id} rejected: {e.code}")
            return CancellationResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error cancelling registration {input.registration_id}")
            return CancellationResponse(
                success=False,
                message="Unexpected error while cancelling",
                error_code="INTERNAL_ERROR"
            )

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def mark_absent_registrations(self, info: Info) -> MarkAbsentResponse:
        """Persist ``absent`` for ended bookings without check-in"""
        db: AsyncSession = info.context.db

        try:
            stats = await AbsenceSweepService(db).run(apply=True)
        except Exception:
            await db.rollback()
            logger.exception("Unexpected error while marking absent registrations")
            return MarkAbsentResponse(
                success=False,
                message="Unexpected error while marking absences"
            )

        return MarkAbsentResponse(
            success=True,
            message=f"Marked {stats['absent_count']} registration(s) as absent",
            absent_count=stats["absent_count"],
            registration_ids=stats["registration_ids"]
        )

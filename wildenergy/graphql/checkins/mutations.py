"""
GraphQL mutations for QR check-in and check-out.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.errors import LedgerError
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.checkinsCrud import check_in, check_out
from wildenergy.graphql.auth.permissions import IsAdmin
from wildenergy.graphql.checkins.types import CheckInInput, CheckInResponse, CheckOutResponse

logger = get_logger("graphql.checkins")


@strawberry.type
class CheckInMutation:
    """Check-in mutations"""

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def check_in(
        self,
        info: Info,
        input: CheckInInput
    ) -> CheckInResponse:
        """Validate attendance; repeated scans report ``already_checked_in``"""
        db: AsyncSession = info.context.db

        try:
            result = await check_in(
                db,
                registration_id=input.registration_id,
                qr_code=input.qr_code,
                notes=input.notes,
                commit=False
            )
            await db.commit()

            return CheckInResponse(
                success=True,
                message=result.message,
                registration_id=result.registration_id,
                already_checked_in=result.already_checked_in,
                checkin_time=result.checkin_time
            )

        except LedgerError as e:
            await db.rollback()
            logger.warning(f"Check-in rejected: {e.code}")
            return CheckInResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception("Unexpected error during check-in")
            return CheckInResponse(
                success=False,
                message="Unexpected error during check-in",
                error_code="INTERNAL_ERROR"
            )

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def unvalidate_check_in(
        self,
        info: Info,
        registration_id: int
    ) -> CheckOutResponse:
        """Remove a check-in; the session balance is left untouched"""
        db: AsyncSession = info.context.db

        try:
            await check_out(db, registration_id, commit=False)
            await db.commit()

            return CheckOutResponse(
                success=True,
                message="Check-in removed",
                registration_id=registration_id
            )

        except LedgerError as e:
            await db.rollback()
            logger.warning(f"Check-out of registration {registration_id} rejected: {e.code}")
            return CheckOutResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error removing check-in of registration {registration_id}")
            return CheckOutResponse(
                success=False,
                message="Unexpected error while removing check-in",
                error_code="INTERNAL_ERROR"
            )

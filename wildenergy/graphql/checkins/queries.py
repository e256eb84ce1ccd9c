"""
GraphQL queries for QR check-in.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.errors import LedgerError
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.checkinsCrud import resolve_qr_code
from wildenergy.graphql.auth.permissions import IsAdmin
from wildenergy.graphql.checkins.types import QrCheckin, QrCheckinResponse

logger = get_logger("graphql.checkins")


@strawberry.type
class CheckInQuery:
    """Check-in queries"""

    @strawberry.field(permission_classes=[IsAdmin])
    async def resolve_qr_code(
        self,
        info: Info,
        qr_code: str
    ) -> QrCheckinResponse:
        """Look up the registration behind a scanned QR code"""
        db: AsyncSession = info.context.db

        try:
            data = await resolve_qr_code(db, qr_code)
        except LedgerError as e:
            return QrCheckinResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            logger.exception("Unexpected error resolving QR code")
            return QrCheckinResponse(
                success=False,
                message="Unexpected error while resolving QR code",
                error_code="INTERNAL_ERROR"
            )

        return QrCheckinResponse(
            success=True,
            message="QR code resolved",
            checkin=QrCheckin.from_data(data)
        )

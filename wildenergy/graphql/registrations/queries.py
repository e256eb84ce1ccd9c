"""
GraphQL queries for course registrations.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from wildenergy.core.logging_config import get_logger
from wildenergy.crud.registrationsCrud import (
    get_course_registrations,
    get_member_registrations,
    get_registration_by_id,
)
from wildenergy.graphql.auth.permissions import IsAuthenticated, resolve_member_id
from wildenergy.graphql.registrations.types import (
    GetRegistrationsInput,
    Registration,
    RegistrationsResponse,
)

logger = get_logger("graphql.registrations")


@strawberry.type
class RegistrationQuery:
    """Registration queries"""

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def registration(
        self,
        info: Info,
        id: int
    ) -> Optional[Registration]:
        """Get a registration by ID"""
        db: AsyncSession = info.context.db
        caller = info.context.caller

        try:
            registration_data = await get_registration_by_id(db, id)
        except Exception:
            logger.exception(f"Error loading registration {id}")
            return None

        if not registration_data:
            return None
        if not caller.is_admin and registration_data.member_id != caller.member_id:
            return None
        return Registration.from_data(registration_data)

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def registrations(
        self,
        info: Info,
        input: Optional[GetRegistrationsInput] = None
    ) -> RegistrationsResponse:
        """Registrations of a member, or of a course for admins, with derived statuses"""
        db: AsyncSession = info.context.db
        caller = info.context.caller

        if not input:
            input = GetRegistrationsInput()

        try:
            if input.course_id is not None and caller.is_admin:
                registrations_data = await get_course_registrations(
                    db,
                    input.course_id,
                    include_cancelled=input.include_cancelled
                )
            else:
                member_id = resolve_member_id(info, input.member_id)
                if member_id is None:
                    return RegistrationsResponse(registrations=[], total_count=0)
                registrations_data = await get_member_registrations(
                    db,
                    member_id,
                    include_cancelled=input.include_cancelled,
                    limit=input.limit
                )
        except Exception:
            logger.exception("Error listing registrations")
            return RegistrationsResponse(registrations=[], total_count=0)

        registrations = [Registration.from_data(data) for data in registrations_data]
        return RegistrationsResponse(
            registrations=registrations,
            total_count=len(registrations)
        )

"""
GraphQL queries for subscriptions and session balances.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

from wildenergy.core.errors import LedgerError
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.subscriptionsCrud import check_member_sessions, get_member_subscriptions
from wildenergy.graphql.auth.permissions import IsAuthenticated, resolve_member_id
from wildenergy.graphql.subscriptions.types import (
    SessionCheck,
    SessionCheckResponse,
    MemberSubscription,
)

logger = get_logger("graphql.subscriptions")


@strawberry.type
class SubscriptionQuery:
    """Subscription queries"""

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def member_subscriptions(
        self,
        info: Info,
        member_id: Optional[int] = None,
        include_inactive: bool = False
    ) -> List[MemberSubscription]:
        db: AsyncSession = info.context.db

        member_id = resolve_member_id(info, member_id)
        if member_id is None:
            return []

        try:
            subscriptions = await get_member_subscriptions(db, member_id, include_inactive)
        except Exception:
            logger.exception(f"Error listing subscriptions of member {member_id}")
            return []
        return [MemberSubscription.from_data(s) for s in subscriptions]

    @strawberry.field(permission_classes=[IsAuthenticated])
    async def check_member_sessions(
        self,
        info: Info,
        course_id: int,
        member_id: Optional[int] = None
    ) -> SessionCheckResponse:
        """Can the member book this course with their remaining sessions"""
        db: AsyncSession = info.context.db

        member_id = resolve_member_id(info, member_id)
        if member_id is None:
            return SessionCheckResponse(
                success=False,
                message="You can only check your own sessions",
                error_code="NOT_ALLOWED"
            )

        try:
            data = await check_member_sessions(db, member_id=member_id, course_id=course_id)
        except LedgerError as e:
            return SessionCheckResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            logger.exception(f"Error checking sessions of member {member_id} for course {course_id}")
            return SessionCheckResponse(
                success=False,
                message="Unexpected error while checking sessions",
                error_code="INTERNAL_ERROR"
            )

        return SessionCheckResponse(
            success=True,
            message=data.error or "Member can register",
            check=SessionCheck.from_data(data)
        )

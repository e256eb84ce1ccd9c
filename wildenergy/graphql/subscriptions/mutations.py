"""
GraphQL mutations for subscriptions.
"""
import strawberry
from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.errors import LedgerError
from wildenergy.core.logging_config import get_logger
from wildenergy.crud.subscriptionsCrud import consume_session, create_subscription
from wildenergy.graphql.auth.permissions import IsAdmin
from wildenergy.graphql.subscriptions.types import (
    BalanceResponse,
    ConsumeSessionInput,
    CreateSubscriptionInput,
    SessionBalance,
    MemberSubscription,
    SubscriptionResponse,
)

logger = get_logger("graphql.subscriptions")


@strawberry.type
class SubscriptionMutation:
    """Subscription mutations"""

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def create_subscription(
        self,
        info: Info,
        input: CreateSubscriptionInput
    ) -> SubscriptionResponse:
        """Subscribe a member to a plan, opening one balance per plan group"""
        db: AsyncSession = info.context.db

        try:
            subscription_data = await create_subscription(
                db,
                member_id=input.member_id,
                plan_id=input.plan_id,
                start_date=input.start_date,
                notes=input.notes
            )

            return SubscriptionResponse(
                success=True,
                message="Subscription created successfully",
                subscription=MemberSubscription.from_data(subscription_data)
            )

        except LedgerError as e:
            await db.rollback()
            return SubscriptionResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error creating subscription for member {input.member_id}")
            return SubscriptionResponse(
                success=False,
                message="Unexpected error while creating subscription",
                error_code="INTERNAL_ERROR"
            )

    @strawberry.mutation(permission_classes=[IsAdmin])
    async def consume_session(
        self,
        info: Info,
        input: ConsumeSessionInput
    ) -> BalanceResponse:
        """Debit one session by hand, outside of any booking"""
        db: AsyncSession = info.context.db

        try:
            balance_data = await consume_session(
                db,
                subscription_id=input.subscription_id,
                group_id=input.group_id
            )

            return BalanceResponse(
                success=True,
                message="Session consumed successfully",
                balance=SessionBalance.from_data(balance_data)
            )

        except LedgerError as e:
            await db.rollback()
            return BalanceResponse(success=False, message=e.message, error_code=e.code)
        except Exception:
            await db.rollback()
            logger.exception(f"Unexpected error consuming a session of subscription {input.subscription_id}")
            return BalanceResponse(
                success=False,
                message="Unexpected error while consuming session",
                error_code="INTERNAL_ERROR"
            )

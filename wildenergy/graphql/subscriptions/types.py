"""
GraphQL types for subscriptions and group session balances.
"""
from datetime import date
from decimal import Decimal
from typing import Optional, List
import strawberry

from wildenergy.crud.subscriptionsCrud import BalanceData, SessionCheckData, SubscriptionData


@strawberry.type
class SessionBalance:
    id: int
    subscription_id: int
    group_id: int
    group_name: Optional[str]
    total_sessions: int
    sessions_remaining: int

    @classmethod
    def from_data(cls, data: BalanceData) -> "SessionBalance":
        return cls(
            id=data.id,
            subscription_id=data.subscription_id,
            group_id=data.group_id,
            group_name=data.group_name,
            total_sessions=data.total_sessions,
            sessions_remaining=data.sessions_remaining
        )


@strawberry.type
class MemberSubscription:
    """Subscription with its per-group balances"""
    id: int
    member_id: int
    plan_id: int
    plan_name: Optional[str]
    plan_price: Optional[Decimal]
    start_date: date
    end_date: date
    status: str
    balances: List[SessionBalance]

    @classmethod
    def from_data(cls, data: SubscriptionData) -> "MemberSubscription":
        return cls(
            id=data.id,
            member_id=data.member_id,
            plan_id=data.plan_id,
            plan_name=data.plan_name,
            plan_price=data.plan_price,
            start_date=data.start_date,
            end_date=data.end_date,
            status=data.status,
            balances=[SessionBalance.from_data(b) for b in data.balances]
        )


@strawberry.type
class SessionCheck:
    can_register: bool
    remaining_sessions: int
    total_sessions: int
    group_id: Optional[int]
    group_name: Optional[str]
    error: Optional[str]

    @classmethod
    def from_data(cls, data: SessionCheckData) -> "SessionCheck":
        return cls(
            can_register=data.can_register,
            remaining_sessions=data.remaining_sessions,
            total_sessions=data.total_sessions,
            group_id=data.group_id,
            group_name=data.group_name,
            error=data.error
        )


@strawberry.input
class CreateSubscriptionInput:
    member_id: int
    plan_id: int
    start_date: Optional[date] = None
    notes: Optional[str] = None


@strawberry.input
class ConsumeSessionInput:
    subscription_id: int
    group_id: int


@strawberry.type
class SubscriptionResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    subscription: Optional[MemberSubscription] = None


@strawberry.type
class BalanceResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    balance: Optional[SessionBalance] = None


@strawberry.type
class SessionCheckResponse:
    success: bool
    message: str
    error_code: Optional[str] = None
    check: Optional[SessionCheck] = None

from dataclasses import dataclass
from typing import Optional

from strawberry.fastapi import BaseContext
from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from wildenergy.core.conversions import coerce_int
from wildenergy.core.logging_config import get_logger
from wildenergy.db.postgresql import get_db
from wildenergy.security.jwt import verify_token

logger = get_logger("graphql.context")


@dataclass
class Caller:
    """Identity carried by the access token"""
    member_id: Optional[int]
    is_admin: bool = False


@dataclass
class Context(BaseContext):
    db: AsyncSession
    request: Optional[Request] = None
    response: Optional[Response] = None
    caller: Optional[Caller] = None


def _read_token(request: Request) -> Optional[str]:
    access_token = request.headers.get("x-access-token")
    if access_token:
        return access_token

    authorization = request.headers.get("Authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def caller_from_payload(payload: Optional[dict]) -> Optional[Caller]:
    if not payload:
        return None
    member_id = coerce_int(payload.get("member_id"))
    is_admin = bool(payload.get("is_admin", False))
    if member_id is None and not is_admin:
        return None
    return Caller(member_id=member_id, is_admin=is_admin)


async def build_context(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> Context:
    caller = None
    access_token = _read_token(request)
    if access_token:
        caller = caller_from_payload(verify_token(access_token))
        if caller is None:
            logger.info("Request carried an invalid access token")

    return Context(db=db, request=request, response=response, caller=caller)

from strawberry.types import Info
from strawberry.permission import BasePermission


class IsAuthenticated(BasePermission):
    message = "Authentication required."

    def has_permission(self, source, info: Info, **kwargs):
        return bool(info.context.caller)


class IsAdmin(BasePermission):
    message = "Admin access required."

    def has_permission(self, source, info: Info, **kwargs):
        caller = info.context.caller
        return bool(caller and caller.is_admin)


def resolve_member_id(info: Info, member_id=None):
    """Members act on themselves; admins may act on any member."""
    caller = info.context.caller
    if caller.is_admin:
        return member_id if member_id is not None else caller.member_id
    if member_id is not None and member_id != caller.member_id:
        return None
    return caller.member_id

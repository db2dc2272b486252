from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from fieldguard.security.context import CallerContext, RoleContext
from fieldguard.service import FieldGuard


def get_guard(request: Request) -> FieldGuard:
    guard = getattr(request.app.state, "guard", None)
    if guard is None:
        raise RuntimeError("FieldGuard not initialized. Did app startup run?")
    return guard


def get_caller_context(request: Request) -> CallerContext:
    """
    Build the resolver input from the request.

    An upstream authentication layer may already have placed ``user_id`` on
    ``request.state``; otherwise the Authorization header is used.
    """

    return CallerContext(
        authorization=request.headers.get("Authorization"),
        user_id=getattr(request.state, "user_id", None),
    )


async def get_caller_role(
    ctx: CallerContext = Depends(get_caller_context),
    guard: FieldGuard = Depends(get_guard),
) -> RoleContext:
    # InvalidCredential propagates to the 401 exception handler in main.py.
    return await guard.roles.resolve_caller_role(ctx)


async def require_admin_role(request: Request, role: RoleContext = Depends(get_caller_role)) -> RoleContext:
    """Only roles whose type is listed in ``Settings.admin_role_types`` may manage permissions."""

    admin_role_types = request.app.state.settings.admin_role_types
    if role.type not in admin_role_types:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return role

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from fieldguard.db.session import translate_db_errors
from fieldguard.errors import InvalidCredential, RoleNotFound
from fieldguard.models.security import Role, User
from fieldguard.security.context import PUBLIC_ROLE_TYPE, CallerContext, RoleContext
from fieldguard.security.tokens import decode_token

logger = logging.getLogger(__name__)


def extract_bearer_token(authorization: str | None, bearer_prefix: str = "Bearer") -> str | None:
    """
    Return the token from an ``Authorization: Bearer <token>`` header value.

    - Missing header -> None (anonymous caller)
    - Malformed header -> InvalidCredential
    """

    if not authorization:
        return None

    prefix = f"{bearer_prefix} "
    if not authorization.startswith(prefix):
        logger.warning("Invalid Authorization header format")
        raise InvalidCredential(f"Invalid Authorization header. Expected '{bearer_prefix} <token>'.")

    token = authorization[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token")
        raise InvalidCredential(f"Invalid Authorization header. Missing token after '{bearer_prefix}'.")
    return token


def _to_context(role: Role) -> RoleContext:
    return RoleContext(id=role.id, name=role.name, type=role.type)


class RoleResolver:
    """
    Resolve the caller's role from a ``CallerContext``.

    Anonymous callers, unknown users and users without a role resolve to the
    public role. A malformed or unverifiable credential raises
    ``InvalidCredential``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        bearer_prefix: str = "Bearer",
    ) -> None:
        self._session_factory = session_factory
        self._jwt_secret = jwt_secret
        self._jwt_algorithm = jwt_algorithm
        self._bearer_prefix = bearer_prefix

    async def resolve_caller_role(self, ctx: CallerContext) -> RoleContext:
        user_id = ctx.user_id
        if user_id is None:
            token = extract_bearer_token(ctx.authorization, self._bearer_prefix)
            if token is not None:
                user_id = decode_token(token, secret=self._jwt_secret, algorithm=self._jwt_algorithm)

        if user_id is not None:
            user = await self._load_user(user_id)
            if user is not None:
                if not user.is_active:
                    raise InvalidCredential("Invalid or inactive user")
                if user.role is not None:
                    return _to_context(user.role)

        return await self.public_role()

    async def public_role(self) -> RoleContext:
        async with translate_db_errors("public_role"), self._session_factory() as db:
            role = (await db.execute(select(Role).where(Role.type == PUBLIC_ROLE_TYPE))).scalar_one_or_none()
        if role is None:
            raise RoleNotFound("Public role not found. Did init_db run?")
        return _to_context(role)

    async def list_roles(self) -> list[RoleContext]:
        async with translate_db_errors("list_roles"), self._session_factory() as db:
            roles = (await db.scalars(select(Role).order_by(Role.id))).all()
        return [_to_context(role) for role in roles]

    async def _load_user(self, user_id: int) -> User | None:
        async with translate_db_errors("load_user"), self._session_factory() as db:
            return (
                await db.execute(select(User).where(User.id == user_id).options(selectinload(User.role)))
            ).scalar_one_or_none()

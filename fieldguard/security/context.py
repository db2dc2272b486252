from __future__ import annotations

from dataclasses import dataclass

PUBLIC_ROLE_TYPE = "public"


@dataclass(frozen=True)
class RoleContext:
    """
    Resolved caller role.

    Small and detached from the ORM session so it can be passed between
    asyncio tasks and cached on ``request.state``.
    """

    id: int
    name: str
    type: str

    @property
    def is_public(self) -> bool:
        return self.type == PUBLIC_ROLE_TYPE


@dataclass(frozen=True)
class CallerContext:
    """
    What the role resolver needs to know about a request.

    ``user_id`` is set when an upstream layer already authenticated the
    caller; otherwise ``authorization`` carries the raw header value (or None
    for anonymous callers).
    """

    authorization: str | None = None
    user_id: int | None = None

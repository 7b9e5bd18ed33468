# backend/studysphere/api/dependencies/authz.py
"""Role gates built on the authenticated actor."""

from typing import Awaitable, Callable

from fastapi import Depends, HTTPException, status

from ...auth import get_current_actor
from ...principal import Actor

ActorDependency = Callable[..., Awaitable[Actor]]


def require_roles(*roles: str) -> ActorDependency:
    """Ensure the current actor has one of the provided roles."""

    required = {role.lower() for role in roles}

    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in required:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User lacks required role(s): {', '.join(sorted(required))}",
            )
        return actor

    return checker


require_student = require_roles("student")
require_tutor = require_roles("tutor")

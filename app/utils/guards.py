# app/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask_login import login_required, current_user

from app.errors import ForbiddenError
from app.models import Role


def roles_required(*allowed_roles: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Capability gate over the closed role set:
        @roles_required(Role.SERVICE_PROVIDER, Role.TRACTOR_OWNER)
        def view(): ...
    Unauthenticated callers get 401 (via login_required), others outside the
    set get 403.
    """
    allowed = frozenset(allowed_roles)

    def decorator(view: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view)
        @login_required
        def wrapped(*args, **kwargs):
            role = getattr(current_user, "role", None)
            if role not in allowed:
                shown = getattr(current_user, "role_name", "") or "none"
                raise ForbiddenError(f"Role '{shown}' is not authorized to access this route.")
            return view(*args, **kwargs)
        return wrapped
    return decorator


ANY_ROLE = tuple(Role)

from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from inventario.deps import session_dep
from inventario.models import User

SESSION_USER_KEY = "user_id"


def get_current_user_from_session(db: Session, request: Request) -> Optional[User]:
    session = getattr(request, "session", None) or {}
    try:
        user_id = int(session.get(SESSION_USER_KEY) or 0)
    except (TypeError, ValueError):
        return None
    if not user_id:
        return None
    user = db.get(User, user_id)
    return user if user is not None and user.is_active else None


def require_user_api(
    request: Request,
    db: Session = Depends(session_dep),
) -> User:
    user = get_current_user_from_session(db, request)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_roles(*roles: str) -> Callable[..., User]:
    """Dependencia que exige sesión y uno de los roles dados."""
    allowed = {r.lower() for r in roles}

    def dependency(user: User = Depends(require_user_api)) -> User:
        if (user.role or "").lower() not in allowed:
            raise HTTPException(status_code=403, detail="Role not allowed")
        return user

    return dependency

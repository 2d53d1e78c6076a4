from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from inventario.audit import log_event
from inventario.auth import authenticate
from inventario.deps import session_dep
from inventario.models import User
from inventario.schemas import LoginRequest, UserRead
from inventario.security import SESSION_USER_KEY, get_current_user_from_session, require_user_api

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=UserRead)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(session_dep),
) -> UserRead:
    user = authenticate(db, username=payload.username, password=payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Usuario o contraseña inválidos")

    request.session[SESSION_USER_KEY] = user.id
    log_event(db, user, action="login", entity_type="auth", entity_id=user.username, detail={})
    return UserRead.model_validate(user)


@router.post("/logout")
def logout(request: Request, db: Session = Depends(session_dep)) -> dict:
    user = get_current_user_from_session(db, request)
    if user is not None:
        log_event(db, user, action="logout", entity_type="auth", entity_id=user.username, detail={})
    request.session.clear()
    return {"ok": True}


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(require_user_api)) -> UserRead:
    return UserRead.model_validate(user)

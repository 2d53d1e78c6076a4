from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import os
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventario.models import ROLE_BODEGA, User

logger = logging.getLogger(__name__)

_SCHEME = "pbkdf2_sha256"
_PBKDF2_ITERATIONS = 200_000


def _derive(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


def hash_password(password: str, iterations: int = _PBKDF2_ITERATIONS) -> str:
    """``pbkdf2_sha256$<iteraciones>$<salt b64>$<hash b64>``."""
    salt = os.urandom(16)
    parts = (
        _SCHEME,
        str(iterations),
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(_derive(password, salt, iterations)).decode("ascii"),
    )
    return "$".join(parts)


def _parse_hash(password_hash: str) -> Optional[tuple[int, bytes, bytes]]:
    scheme, _, rest = (password_hash or "").partition("$")
    if scheme != _SCHEME:
        return None
    try:
        iters_s, salt_b64, hash_b64 = rest.split("$", 2)
        return (
            int(iters_s),
            base64.b64decode(salt_b64.encode("ascii")),
            base64.b64decode(hash_b64.encode("ascii")),
        )
    except ValueError:
        return None


def verify_password(password: str, password_hash: str) -> bool:
    parsed = _parse_hash(password_hash)
    if parsed is None:
        return False
    iterations, salt, expected = parsed
    return hmac.compare_digest(_derive(password, salt, iterations), expected)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    name = (username or "").strip()
    if not name:
        return None
    return db.scalar(select(User).where(User.username == name))


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    user = get_user_by_username(db, username)
    if user is None or not user.is_active or not verify_password(password or "", user.password_hash):
        logger.info("login failed username=%s", (username or "").strip())
        return None
    return user


def ensure_user(db: Session, username: str, password: str, role: str) -> Optional[User]:
    """Crea el usuario si no existe; si existe solo fija rol y lo reactiva."""
    user = get_user_by_username(db, username)
    if user is None:
        name = (username or "").strip()
        if not name:
            return None
        user = User(
            username=name,
            password_hash=hash_password(password or ""),
            role=(role or ROLE_BODEGA).strip().lower(),
            is_active=True,
        )
        db.add(user)
        logger.info("seeded user %s role=%s", name, user.role)
    else:
        user.role = (role or user.role).strip().lower()
        user.is_active = True
    db.commit()
    return user

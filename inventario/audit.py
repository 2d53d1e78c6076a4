from __future__ import annotations

import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventario.models import AuditLog, User

logger = logging.getLogger(__name__)


def _serialize_detail(detail: Optional[dict[str, Any]]) -> Optional[str]:
    if detail is None:
        return None
    # datetimes y Decimals de los resultados se guardan como texto
    return json.dumps(detail, ensure_ascii=False, default=str, sort_keys=True)


def log_event(
    db: Session,
    user: Optional[User],
    action: str,
    entity_type: str,
    entity_id: Optional[Any] = None,
    detail: Optional[dict[str, Any]] = None,
) -> None:
    """Deja constancia de una acción ya confirmada; un fallo aquí no la deshace."""
    db.add(
        AuditLog(
            user_id=getattr(user, "id", None),
            username=getattr(user, "username", None),
            action=action,
            entity_type=entity_type,
            entity_id=None if entity_id is None else str(entity_id),
            detail=_serialize_detail(detail),
        )
    )
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("audit log failed action=%s entity=%s:%s", action, entity_type, entity_id)

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from models.tracker_models import AuditLog
from services.errors import Conflict


def log_audit(db: Session, entity_type: str, entity_id: int, action: str, details: str | None = None, user_id: int | None = None) -> None:
    db.add(
        AuditLog(
            EntityType=entity_type,
            EntityID=entity_id,
            Action=action,
            Details=details,
            UserID=user_id,
            CreatedAt=datetime.now(),
        )
    )


def commit_or_conflict(db: Session, message: str) -> None:
    try:
        db.commit()
    except (IntegrityError, OperationalError) as exc:
        db.rollback()
        raise Conflict(message) from exc

from __future__ import annotations

import logging
import re
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.enums import ROLE_ALIASES, UserRole
from models.tracker_models import User
from services.audit_service import log_audit
from services.errors import NotFound, Unauthorized, ValidationError
from services.validation import parse_id


USERS_LOGGER = logging.getLogger("tool_tracker.users")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_role(raw_role: str | UserRole | None) -> UserRole:
    if isinstance(raw_role, UserRole):
        return raw_role
    role = (raw_role or "").strip().lower()
    if not role:
        return UserRole.EMPLOYEE
    if role in ROLE_ALIASES:
        return ROLE_ALIASES[role]
    try:
        return UserRole(role)
    except ValueError as exc:
        raise ValidationError(
            f"role must be one of: {', '.join(item.value for item in UserRole)}.",
            details={"role": raw_role},
        ) from exc


def resolve_user_id(raw_value: int | str | None, field: str = "user_id") -> int:
    return parse_id(raw_value, field)


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found.", details={"userID": user_id})
    return user


def user_role(user: User) -> UserRole:
    return normalize_role(user.Role)


def require_admin(db: Session, user_id: int | str | None, action: str) -> User:
    try:
        user = get_user(db, resolve_user_id(user_id))
    except (NotFound, ValidationError) as exc:
        USERS_LOGGER.warning("Refused %s for unknown actor %r", action, user_id)
        raise Unauthorized(f"Admin role required to {action}.", details={"userID": user_id}) from exc
    if user_role(user) is not UserRole.ADMIN:
        USERS_LOGGER.warning("Refused %s for non-admin user %s", action, user.UserID)
        raise Unauthorized(f"Admin role required to {action}.", details={"userID": user.UserID})
    return user


def list_users(db: Session) -> list[User]:
    return list(db.execute(select(User).order_by(User.UserID)).scalars().all())


def register_user(
    db: Session,
    *,
    employee_number: str,
    name: str,
    department: str | None = None,
    email: str | None = None,
    role: str | None = None,
) -> User:
    number = (employee_number or "").strip()
    display_name = (name or "").strip()
    if not number:
        raise ValidationError("employee_id is required.")
    if not display_name:
        raise ValidationError("name is required.")
    clean_email = (email or "").strip() or None
    if clean_email and not _EMAIL_PATTERN.match(clean_email):
        raise ValidationError("email is not a valid address.", details={"email": email})

    existing = db.execute(select(User).where(User.EmployeeNumber == number)).scalars().first()
    if existing:
        raise ValidationError(f"Employee {number} is already registered.", details={"employee_id": number})

    user = User(
        EmployeeNumber=number,
        Name=display_name,
        Department=(department or "").strip() or None,
        Email=clean_email,
        Role=normalize_role(role).value,
        CreatedDate=datetime.now(),
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(f"Employee {number} is already registered.", details={"employee_id": number}) from exc
    log_audit(db, "User", user.UserID, "Register", f"Registered with role {user.Role}", user_id=user.UserID)
    db.commit()
    USERS_LOGGER.info("Registered user %s (%s) as %s", user.UserID, number, user.Role)
    return user


def serialize_user(user: User) -> dict:
    return {
        "id": user.UserID,
        "employee_id": user.EmployeeNumber,
        "name": user.Name,
        "department": user.Department,
        "email": user.Email,
        "role": user.Role,
        "created_at": user.CreatedDate,
    }

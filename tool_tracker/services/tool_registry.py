from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.enums import LOANABLE_TOOL_STATUSES, LoanStatus, ToolLocation, ToolStatus
from models.tracker_models import Loan, Tool
from services.audit_service import log_audit
from services.errors import InvalidTransition, NotFound, ValidationError
from services.locking import tool_lock
from services.user_service import require_admin


TOOLS_LOGGER = logging.getLogger("tool_tracker.tools")


def list_tools(db: Session, include_retired: bool = False) -> list[Tool]:
    stmt = select(Tool).order_by(Tool.ToolID)
    if not include_retired:
        stmt = stmt.where(Tool.IsRetired.is_(False))
    return list(db.execute(stmt).scalars().all())


def get_tool(db: Session, tool_id: int, for_update: bool = False) -> Tool:
    stmt = select(Tool).where(Tool.ToolID == tool_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    tool = db.execute(stmt).scalars().first()
    if not tool:
        raise NotFound(f"Tool {tool_id} not found.", details={"toolID": tool_id})
    return tool


def set_borrowed(db: Session, tool_id: int, borrower_id: int) -> Tool:
    tool = get_tool(db, tool_id, for_update=True)
    if tool.IsRetired:
        raise InvalidTransition(f"Tool {tool_id} is retired.", details={"toolID": tool_id})
    if tool.Status not in LOANABLE_TOOL_STATUSES:
        raise InvalidTransition(
            f"Tool {tool_id} cannot be borrowed while {tool.Status}.",
            details={"toolID": tool_id, "status": tool.Status},
        )

    # The WHERE clause re-checks status so a writer in another process cannot slip in between.
    result = db.execute(
        update(Tool)
        .where(Tool.ToolID == tool_id)
        .where(Tool.Status.in_(LOANABLE_TOOL_STATUSES))
        .where(Tool.IsRetired.is_(False))
        .values(
            Status=ToolStatus.BORROWED.value,
            LastBorrowerID=borrower_id,
            UpdatedDate=datetime.now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InvalidTransition(f"Tool {tool_id} is already borrowed.", details={"toolID": tool_id})
    db.refresh(tool)
    return tool


def set_returned(db: Session, tool_id: int) -> Tool:
    tool = get_tool(db, tool_id, for_update=True)
    if tool.Status != ToolStatus.BORROWED.value:
        raise InvalidTransition(
            f"Tool {tool_id} is not borrowed.",
            details={"toolID": tool_id, "status": tool.Status},
        )
    tool.Status = ToolStatus.AVAILABLE.value
    tool.UpdatedDate = datetime.now()
    db.flush()
    return tool


def _parse_enum(enum_cls, raw_value, field: str, default):
    if raw_value is None or str(raw_value).strip() == "":
        return default
    value = str(raw_value.value if hasattr(raw_value, "value") else raw_value).strip().lower()
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise ValidationError(f"{field} must be one of: {allowed}.", details={field: raw_value}) from exc


def register_tool(
    db: Session,
    actor_id: int | str | None,
    *,
    name: str,
    serial_number: str,
    brand: str | None = None,
    current_location: str | None = None,
    status: str | None = None,
) -> Tool:
    actor = require_admin(db, actor_id, "register tools")
    tool_name = (name or "").strip()
    serial = (serial_number or "").strip()
    if not tool_name:
        raise ValidationError("tool_name is required.")
    if not serial:
        raise ValidationError("serial_number is required.")
    location = _parse_enum(ToolLocation, current_location, "current_location", ToolLocation.WAREHOUSE)
    initial_status = _parse_enum(ToolStatus, status, "status", ToolStatus.AVAILABLE)
    if initial_status is ToolStatus.BORROWED:
        raise ValidationError("A new tool cannot start as borrowed.", details={"status": initial_status.value})

    duplicate = db.execute(select(Tool.ToolID).where(Tool.SerialNumber == serial)).first()
    if duplicate:
        raise ValidationError(f"Serial number {serial} is already registered.", details={"serial_number": serial})

    tool = Tool(
        ToolName=tool_name,
        Brand=(brand or "").strip() or None,
        SerialNumber=serial,
        CurrentLocation=location.value,
        Status=initial_status.value,
        IsRetired=False,
        CreatedDate=datetime.now(),
        UpdatedDate=datetime.now(),
    )
    db.add(tool)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError(f"Serial number {serial} is already registered.", details={"serial_number": serial}) from exc
    log_audit(db, "Tool", tool.ToolID, "Register", f"{tool_name} ({serial}) at {location.value}", user_id=actor.UserID)
    db.commit()
    TOOLS_LOGGER.info("Registered tool %s (%s) by %s", tool.ToolID, serial, actor.UserID)
    return tool


def retire_tool(db: Session, tool_id: int, actor_id: int | str | None) -> Tool:
    actor = require_admin(db, actor_id, "retire tools")
    get_tool(db, tool_id)
    with tool_lock(tool_id):
        try:
            tool = get_tool(db, tool_id, for_update=True)
            if tool.IsRetired:
                return tool
            if tool.Status == ToolStatus.BORROWED.value:
                raise InvalidTransition(f"Tool {tool_id} is borrowed and cannot be retired.", details={"toolID": tool_id})
            pending = db.execute(
                select(Loan.LoanID)
                .where(Loan.ToolID == tool_id)
                .where(Loan.Status == LoanStatus.PENDING.value)
            ).first()
            if pending:
                raise InvalidTransition(
                    f"Tool {tool_id} has a pending loan request and cannot be retired.",
                    details={"toolID": tool_id, "loanID": pending[0]},
                )
            tool.IsRetired = True
            tool.UpdatedDate = datetime.now()
            log_audit(db, "Tool", tool_id, "Retire", None, user_id=actor.UserID)
            db.commit()
        except Exception:
            db.rollback()
            raise
    TOOLS_LOGGER.info("Retired tool %s by %s", tool_id, actor.UserID)
    return tool


def serialize_tool(tool: Tool) -> dict:
    return {
        "id": tool.ToolID,
        "tool_name": tool.ToolName,
        "brand": tool.Brand,
        "serial_number": tool.SerialNumber,
        "current_location": tool.CurrentLocation,
        "status": tool.Status,
        "last_borrower": tool.LastBorrowerID,
        "last_borrower_name": tool.LastBorrower.Name if tool.LastBorrower else None,
        "is_retired": bool(tool.IsRetired),
        "created_at": tool.CreatedDate,
        "updated_at": tool.UpdatedDate,
    }

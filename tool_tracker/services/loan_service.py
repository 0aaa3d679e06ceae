from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from models.enums import LoanStatus, ToolStatus
from models.tracker_models import Loan
from services.audit_service import commit_or_conflict, log_audit
from services.errors import Conflict, InvalidTransition, NotFound, ToolUnavailable, ValidationError
from services.locking import tool_lock
from services.tool_registry import get_tool, set_borrowed, set_returned
from services.user_service import get_user, require_admin, resolve_user_id
from services.validation import parse_id


LOANS_LOGGER = logging.getLogger("tool_tracker.loans")


def _parse_expected_return(raw_value: date | str | None, today: date) -> date:
    if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
        raise ValidationError("expected_return is required.")
    if isinstance(raw_value, datetime):
        value = raw_value.date()
    elif isinstance(raw_value, date):
        value = raw_value
    else:
        raw = str(raw_value).strip()
        try:
            value = date.fromisoformat(raw)
        except ValueError:
            # Full ISO timestamps from datetime pickers are accepted as their date.
            try:
                value = datetime.fromisoformat(raw).date()
            except ValueError as exc:
                raise ValidationError(
                    "expected_return must be a valid date (YYYY-MM-DD).",
                    details={"expected_return": raw_value},
                ) from exc
    if value < today:
        raise ValidationError(
            "Expected return date cannot be in the past.",
            details={"expected_return": value.isoformat(), "today": today.isoformat()},
        )
    return value


def _load_loan(db: Session, loan_id: int, for_update: bool = False) -> Loan:
    stmt = (
        select(Loan)
        .options(selectinload(Loan.Tool), selectinload(Loan.Requester))
        .where(Loan.LoanID == loan_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    loan = db.execute(stmt).scalars().first()
    if not loan:
        raise NotFound(f"Loan {loan_id} not found.", details={"loanID": loan_id})
    return loan


def _require_status(loan: Loan, expected: LoanStatus, action: str) -> None:
    if loan.Status != expected.value:
        raise InvalidTransition(
            f"Cannot {action} loan {loan.LoanID}: it is {loan.Status}, not {expected.value}.",
            details={"loanID": loan.LoanID, "status": loan.Status},
        )


def _pending_loan_for_tool(db: Session, tool_id: int) -> Loan | None:
    return db.execute(
        select(Loan)
        .where(Loan.ToolID == tool_id)
        .where(Loan.Status == LoanStatus.PENDING.value)
        .order_by(Loan.LoanID)
    ).scalars().first()


def get_loan(db: Session, loan_id: int) -> Loan:
    return _load_loan(db, loan_id)


def list_loans(
    db: Session,
    status: str | None = None,
    tool_id: int | None = None,
    requester_id: int | None = None,
) -> list[Loan]:
    stmt = select(Loan).options(selectinload(Loan.Tool), selectinload(Loan.Requester)).order_by(Loan.LoanID)
    if status:
        try:
            stmt = stmt.where(Loan.Status == LoanStatus(status.strip().lower()).value)
        except ValueError as exc:
            raise ValidationError(
                f"status must be one of: {', '.join(item.value for item in LoanStatus)}.",
                details={"status": status},
            ) from exc
    if tool_id is not None:
        stmt = stmt.where(Loan.ToolID == tool_id)
    if requester_id is not None:
        stmt = stmt.where(Loan.RequesterID == requester_id)
    return list(db.execute(stmt).scalars().all())


def list_pending(db: Session, limit: int | None = None, offset: int = 0) -> list[Loan]:
    stmt = (
        select(Loan)
        .options(selectinload(Loan.Tool), selectinload(Loan.Requester))
        .where(Loan.Status == LoanStatus.PENDING.value)
        .order_by(Loan.LoanID)
        .offset(max(offset, 0))
    )
    if limit is not None:
        stmt = stmt.limit(max(limit, 0))
    return list(db.execute(stmt).scalars().all())


def request_loan(
    db: Session,
    tool_id: int | str | None,
    requester_id: int | str | None,
    purpose: str | None,
    expected_return: date | str | None,
    notes: str | None = None,
) -> Loan:
    clean_purpose = (purpose or "").strip()
    if not clean_purpose:
        raise ValidationError("purpose is required.")
    today = date.today()
    return_date = _parse_expected_return(expected_return, today)
    tool_id = parse_id(tool_id, "tool_id")
    requester = get_user(db, resolve_user_id(requester_id))
    get_tool(db, tool_id)

    with tool_lock(tool_id):
        try:
            tool = get_tool(db, tool_id, for_update=True)
            if tool.IsRetired:
                raise ToolUnavailable(f"Tool {tool_id} has been retired.", details={"toolID": tool_id})
            if tool.Status == ToolStatus.BORROWED.value:
                raise ToolUnavailable(
                    f"{tool.ToolName} is currently borrowed.",
                    details={"toolID": tool_id, "status": tool.Status},
                )
            pending = _pending_loan_for_tool(db, tool_id)
            if pending:
                raise ToolUnavailable(
                    f"{tool.ToolName} already has a pending loan request.",
                    details={"toolID": tool_id, "loanID": pending.LoanID},
                )

            now = datetime.now()
            loan = Loan(
                ToolID=tool_id,
                RequesterID=requester.UserID,
                Purpose=clean_purpose,
                LoanDate=now,
                ExpectedReturn=return_date,
                Notes=(notes or "").strip() or None,
                Status=LoanStatus.PENDING.value,
                CreatedDate=now,
                UpdatedDate=now,
            )
            db.add(loan)
            db.flush()
            log_audit(db, "Loan", loan.LoanID, "Request", f"Tool {tool_id} until {return_date.isoformat()}", user_id=requester.UserID)
            commit_or_conflict(db, f"Could not record loan request for tool {tool_id}.")
        except Exception:
            db.rollback()
            raise

    LOANS_LOGGER.info("Loan %s requested for tool %s by user %s", loan.LoanID, tool_id, requester.UserID)
    return _load_loan(db, loan.LoanID)


def approve_loan(db: Session, loan_id: int, approver_id: int | str | None) -> Loan:
    approver = require_admin(db, approver_id, "approve loans")
    tool_id = _load_loan(db, loan_id).ToolID

    with tool_lock(tool_id):
        try:
            loan = _load_loan(db, loan_id, for_update=True)
            _require_status(loan, LoanStatus.PENDING, "approve")
            try:
                set_borrowed(db, loan.ToolID, loan.RequesterID)
            except InvalidTransition as exc:
                raise Conflict(
                    f"Tool {loan.ToolID} was borrowed by another request; loan {loan_id} stays pending.",
                    details={"loanID": loan_id, "toolID": loan.ToolID},
                ) from exc

            now = datetime.now()
            loan.Status = LoanStatus.APPROVED.value
            loan.ApprovedBy = approver.UserID
            loan.DecisionDate = now
            loan.UpdatedDate = now
            log_audit(db, "Loan", loan_id, "Approve", f"Approved by {approver.UserID}; tool {loan.ToolID} borrowed", user_id=approver.UserID)
            commit_or_conflict(db, f"Loan {loan_id} could not be approved; another request changed it first.")
        except Conflict:
            db.rollback()
            LOANS_LOGGER.warning("Approval of loan %s lost the race for tool %s", loan_id, tool_id)
            raise
        except Exception:
            db.rollback()
            raise

    LOANS_LOGGER.info("Loan %s approved by %s", loan_id, approver.UserID)
    return _load_loan(db, loan_id)


def reject_loan(db: Session, loan_id: int, rejecter_id: int | str | None, reason: str | None = None) -> Loan:
    rejecter = require_admin(db, rejecter_id, "reject loans")
    tool_id = _load_loan(db, loan_id).ToolID

    # Same key as approve so a decision cannot interleave with another on this tool.
    with tool_lock(tool_id):
        try:
            loan = _load_loan(db, loan_id, for_update=True)
            _require_status(loan, LoanStatus.PENDING, "reject")
            now = datetime.now()
            loan.Status = LoanStatus.REJECTED.value
            loan.RejectedBy = rejecter.UserID
            loan.RejectReason = (reason or "").strip() or None
            loan.DecisionDate = now
            loan.UpdatedDate = now
            details = f"Rejected by {rejecter.UserID}"
            if loan.RejectReason:
                details += f": {loan.RejectReason}"
            log_audit(db, "Loan", loan_id, "Reject", details, user_id=rejecter.UserID)
            commit_or_conflict(db, f"Loan {loan_id} could not be rejected; another request changed it first.")
        except Exception:
            db.rollback()
            raise

    LOANS_LOGGER.info("Loan %s rejected by %s", loan_id, rejecter.UserID)
    return _load_loan(db, loan_id)


def return_loan(db: Session, loan_id: int, actor_id: int | str | None = None) -> Loan:
    actor = get_user(db, resolve_user_id(actor_id, "returned_by")) if actor_id is not None else None
    tool_id = _load_loan(db, loan_id).ToolID

    with tool_lock(tool_id):
        try:
            loan = _load_loan(db, loan_id, for_update=True)
            _require_status(loan, LoanStatus.APPROVED, "return")
            set_returned(db, loan.ToolID)
            now = datetime.now()
            loan.Status = LoanStatus.RETURNED.value
            loan.ReturnedDate = now
            loan.ReturnedBy = actor.UserID if actor else None
            loan.UpdatedDate = now
            log_audit(db, "Loan", loan_id, "Return", f"Tool {loan.ToolID} returned", user_id=actor.UserID if actor else None)
            commit_or_conflict(db, f"Loan {loan_id} could not be returned; another request changed it first.")
        except Exception:
            db.rollback()
            raise

    LOANS_LOGGER.info("Loan %s returned; tool %s available", loan_id, tool_id)
    return _load_loan(db, loan_id)


def serialize_loan(loan: Loan) -> dict:
    tool = loan.Tool
    requester = loan.Requester
    return {
        "id": loan.LoanID,
        "tool_id": loan.ToolID,
        "tool_name": tool.ToolName if tool else None,
        "serial_number": tool.SerialNumber if tool else None,
        "user_id": loan.RequesterID,
        "borrower_name": requester.Name if requester else None,
        "department": requester.Department if requester else None,
        "purpose": loan.Purpose,
        "loan_date": loan.LoanDate,
        "expected_return": loan.ExpectedReturn,
        "notes": loan.Notes,
        "status": loan.Status,
        "approved_by": loan.ApprovedBy,
        "rejected_by": loan.RejectedBy,
        "decision_date": loan.DecisionDate,
        "reject_reason": loan.RejectReason,
        "returned_date": loan.ReturnedDate,
        "returned_by": loan.ReturnedBy,
    }

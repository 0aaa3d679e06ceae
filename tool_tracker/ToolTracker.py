import os
import logging

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from dotenv import load_dotenv

load_dotenv()

from db.base import Base
from db.deps import get_db
from db.session import engine_tracker
from schemas.loans import ApproveLoanRequest, CreateLoanDto, RejectLoanRequest, ReturnLoanRequest
from schemas.supplies import CreateSupplyDto, RestockRequest, SupplyQuantityRequest
from schemas.tools import RegisterToolDto
from schemas.users import RegisterUserDto
from services.errors import ToolTrackerError
from services.loan_service import (
    approve_loan,
    get_loan,
    list_loans,
    list_pending,
    reject_loan,
    request_loan,
    return_loan,
    serialize_loan,
)
from services.reporting_service import dashboard_summary
from services.supplies_service import (
    add_item,
    list_supplies,
    request_quantity,
    restock_item,
    serialize_supply,
    serialize_supply_request,
)
from services.tool_registry import get_tool, list_tools, register_tool, retire_tool, serialize_tool
from services.user_service import get_user, list_users, register_user, serialize_user

API_LOGGER = logging.getLogger("tool_tracker.api")

app = FastAPI(title="Tool Tracker")


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


def _env_flag(name: str, default: str) -> bool:
    return str(os.environ.get(name, default)).strip().lower() in {"1", "true", "yes", "on"}


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://127.0.0.1,http://localhost,http://127.0.0.1:3000,http://localhost:3000",
)
_CORS_ALLOW_CREDENTIALS = _env_flag("CORS_ALLOW_CREDENTIALS", "true")
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"]
)

if _env_flag("TOOL_TRACKER_CREATE_SCHEMA", "true"):
    Base.metadata.create_all(bind=engine_tracker)


@app.exception_handler(ToolTrackerError)
def handle_tool_tracker_error(request: Request, exc: ToolTrackerError):
    if exc.status_code >= 403:
        API_LOGGER.warning("%s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_payload()))


@app.get("/healthz")
def healthcheck():
    return {"ok": True}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc
    return {"ok": True, "db": "up"}


@app.get("/api/users")
def get_users(db: Session = Depends(get_db)):
    return [serialize_user(user) for user in list_users(db)]


@app.get("/api/users/{user_id}")
def get_user_item(user_id: int, db: Session = Depends(get_db)):
    return serialize_user(get_user(db, user_id))


@app.post("/api/users", status_code=201)
def create_user(payload: RegisterUserDto, db: Session = Depends(get_db)):
    user = register_user(
        db,
        employee_number=str(payload.employee_id or ""),
        name=payload.name,
        department=payload.department,
        email=payload.email,
        role=payload.role,
    )
    return {"success": True, "message": "Registration successful", "user": serialize_user(user)}


@app.get("/api/tools")
def get_tools(
    include_retired: bool = Query(False, alias="includeRetired"),
    db: Session = Depends(get_db),
):
    return [serialize_tool(tool) for tool in list_tools(db, include_retired=include_retired)]


@app.get("/api/tools/{tool_id}")
def get_tool_item(tool_id: int, db: Session = Depends(get_db)):
    return serialize_tool(get_tool(db, tool_id))


@app.post("/api/tools", status_code=201)
def create_tool(payload: RegisterToolDto, db: Session = Depends(get_db)):
    tool = register_tool(
        db,
        payload.created_by,
        name=payload.tool_name,
        serial_number=payload.serial_number,
        brand=payload.brand,
        current_location=payload.current_location,
        status=payload.status,
    )
    return serialize_tool(tool)


@app.delete("/api/tools/{tool_id}")
def delete_tool(tool_id: int, actor_id: int | None = Query(None), db: Session = Depends(get_db)):
    tool = retire_tool(db, tool_id, actor_id)
    return {"success": True, "message": "Tool retired", "tool": serialize_tool(tool)}


@app.get("/api/loans")
def get_loans(
    status: str | None = Query(None),
    tool_id: int | None = Query(None),
    user_id: int | None = Query(None),
    db: Session = Depends(get_db),
):
    loans = list_loans(db, status=status, tool_id=tool_id, requester_id=user_id)
    return [serialize_loan(loan) for loan in loans]


@app.get("/api/loans/pending")
def get_pending_loans(
    limit: int | None = Query(None, ge=0),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return [serialize_loan(loan) for loan in list_pending(db, limit=limit, offset=offset)]


@app.get("/api/loans/{loan_id}")
def get_loan_item(loan_id: int, db: Session = Depends(get_db)):
    return serialize_loan(get_loan(db, loan_id))


@app.post("/api/loans", status_code=201)
def create_loan(payload: CreateLoanDto, db: Session = Depends(get_db)):
    loan = request_loan(
        db,
        payload.tool_id,
        payload.user_id,
        payload.purpose,
        payload.expected_return,
        payload.notes,
    )
    return {"success": True, "message": "Loan request submitted. Waiting for approval.", "loan": serialize_loan(loan)}


@app.put("/api/loans/{loan_id}/approve")
def approve_loan_route(loan_id: int, payload: ApproveLoanRequest, db: Session = Depends(get_db)):
    loan = approve_loan(db, loan_id, payload.approved_by)
    return {"success": True, "message": "Loan approved", "loan": serialize_loan(loan)}


@app.put("/api/loans/{loan_id}/reject")
def reject_loan_route(loan_id: int, payload: RejectLoanRequest, db: Session = Depends(get_db)):
    loan = reject_loan(db, loan_id, payload.rejected_by, payload.reason)
    return {"success": True, "message": "Loan rejected", "loan": serialize_loan(loan)}


@app.put("/api/loans/{loan_id}/return")
def return_loan_route(loan_id: int, payload: ReturnLoanRequest | None = None, db: Session = Depends(get_db)):
    loan = return_loan(db, loan_id, payload.returned_by if payload else None)
    return {"success": True, "message": "Loan returned", "loan": serialize_loan(loan)}


@app.get("/api/supplies")
def get_supplies(
    category: str | None = Query(None),
    low_stock: bool | None = Query(None, alias="lowStock"),
    db: Session = Depends(get_db),
):
    return [serialize_supply(item) for item in list_supplies(db, category=category, low_stock=low_stock)]


@app.post("/api/supplies", status_code=201)
def create_supply(payload: CreateSupplyDto, db: Session = Depends(get_db)):
    item = add_item(
        db,
        payload.item_name,
        payload.category,
        payload.quantity,
        payload.min_threshold,
        payload.location,
        actor_id=payload.created_by,
    )
    return serialize_supply(item)


@app.post("/api/supplies/{item_id}/request", status_code=201)
def request_supply(item_id: int, payload: SupplyQuantityRequest, db: Session = Depends(get_db)):
    request = request_quantity(db, item_id, payload.user_id, payload.quantity)
    return serialize_supply_request(request)


@app.put("/api/supplies/{item_id}/restock")
def restock_supply(item_id: int, payload: RestockRequest, db: Session = Depends(get_db)):
    item = restock_item(db, item_id, payload.quantity, payload.restocked_by)
    return serialize_supply(item)


@app.get("/api/reports/summary")
def get_summary(db: Session = Depends(get_db)):
    return dashboard_summary(db)

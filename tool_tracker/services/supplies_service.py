from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.enums import SupplyRequestStatus
from models.tracker_models import SupplyItem, SupplyRequest
from services.audit_service import commit_or_conflict, log_audit
from services.errors import NotFound, ValidationError
from services.locking import supply_lock
from services.user_service import get_user, require_admin, resolve_user_id
from services.validation import parse_int


SUPPLIES_LOGGER = logging.getLogger("tool_tracker.supplies")


def low_stock_status(item: SupplyItem) -> bool:
    return int(item.Quantity or 0) <= int(item.MinThreshold or 0)


def get_item(db: Session, item_id: int, for_update: bool = False) -> SupplyItem:
    stmt = select(SupplyItem).where(SupplyItem.SupplyID == item_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    item = db.execute(stmt).scalars().first()
    if not item:
        raise NotFound(f"Supply item {item_id} not found.", details={"supplyID": item_id})
    return item


def list_supplies(db: Session, category: str | None = None, low_stock: bool | None = None) -> list[SupplyItem]:
    stmt = select(SupplyItem).order_by(SupplyItem.SupplyID)
    if category:
        stmt = stmt.where(SupplyItem.Category == category.strip())
    if low_stock is True:
        stmt = stmt.where(SupplyItem.Quantity <= SupplyItem.MinThreshold)
    elif low_stock is False:
        stmt = stmt.where(SupplyItem.Quantity > SupplyItem.MinThreshold)
    return list(db.execute(stmt).scalars().all())


def add_item(
    db: Session,
    name: str | None,
    category: str | None,
    quantity: int | str | None,
    min_threshold: int | str | None,
    location: str | None,
    actor_id: int | str | None = None,
) -> SupplyItem:
    actor = require_admin(db, actor_id, "add supply items") if actor_id is not None else None
    item_name = (name or "").strip()
    item_category = (category or "").strip()
    if not item_name:
        raise ValidationError("item_name is required.")
    if not item_category:
        raise ValidationError("category is required.")
    clean_quantity = parse_int(quantity, "quantity", 0)
    clean_threshold = parse_int(min_threshold, "min_threshold", 0)

    now = datetime.now()
    item = SupplyItem(
        ItemName=item_name,
        Category=item_category,
        Location=(location or "").strip() or None,
        Quantity=clean_quantity,
        MinThreshold=clean_threshold,
        CreatedDate=now,
        UpdatedDate=now,
    )
    try:
        db.add(item)
        db.flush()
        log_audit(
            db,
            "SupplyItem",
            item.SupplyID,
            "Add",
            f"{item_name} qty={clean_quantity} min={clean_threshold}",
            user_id=actor.UserID if actor else None,
        )
        commit_or_conflict(db, f"Could not add supply item {item_name}.")
    except Exception:
        db.rollback()
        raise
    SUPPLIES_LOGGER.info("Added supply item %s (%s)", item.SupplyID, item_name)
    return item


def request_quantity(db: Session, item_id: int, requester_id: int | str | None, amount: int | str | None) -> SupplyRequest:
    clean_amount = parse_int(amount, "quantity", 1)
    requester = get_user(db, resolve_user_id(requester_id))
    item = get_item(db, item_id)

    request = SupplyRequest(
        SupplyID=item.SupplyID,
        RequesterID=requester.UserID,
        Quantity=clean_amount,
        Status=SupplyRequestStatus.PENDING.value,
        CreatedDate=datetime.now(),
    )
    try:
        db.add(request)
        db.flush()
        log_audit(db, "SupplyRequest", request.RequestID, "Request", f"{item.ItemName} x{clean_amount}", user_id=requester.UserID)
        commit_or_conflict(db, f"Could not record request for supply item {item_id}.")
    except Exception:
        db.rollback()
        raise
    SUPPLIES_LOGGER.info("User %s requested %s x %s", requester.UserID, clean_amount, item.ItemName)
    return request


def restock_item(db: Session, item_id: int, amount: int | str | None, actor_id: int | str | None) -> SupplyItem:
    actor = require_admin(db, actor_id, "restock supplies")
    clean_amount = parse_int(amount, "quantity", 1)
    get_item(db, item_id)

    with supply_lock(item_id):
        try:
            item = get_item(db, item_id, for_update=True)
            item.Quantity = int(item.Quantity or 0) + clean_amount
            item.UpdatedDate = datetime.now()
            log_audit(db, "SupplyItem", item_id, "Restock", f"+{clean_amount} -> {item.Quantity}", user_id=actor.UserID)
            commit_or_conflict(db, f"Could not restock supply item {item_id}.")
        except Exception:
            db.rollback()
            raise
    SUPPLIES_LOGGER.info("Restocked supply item %s by %s to %s", item_id, clean_amount, item.Quantity)
    return item


def serialize_supply(item: SupplyItem) -> dict:
    low_stock = low_stock_status(item)
    return {
        "id": item.SupplyID,
        "item_name": item.ItemName,
        "category": item.Category,
        "location": item.Location,
        "quantity": item.Quantity,
        "min_threshold": item.MinThreshold,
        "low_stock": low_stock,
        "status": "low_stock" if low_stock else "adequate",
        "created_at": item.CreatedDate,
        "updated_at": item.UpdatedDate,
    }


def serialize_supply_request(request: SupplyRequest) -> dict:
    return {
        "id": request.RequestID,
        "supply_id": request.SupplyID,
        "user_id": request.RequesterID,
        "quantity": request.Quantity,
        "status": request.Status,
        "created_at": request.CreatedDate,
    }

from __future__ import annotations

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from models.enums import LoanStatus, ToolLocation, ToolStatus
from models.tracker_models import Loan, SupplyItem, Tool


def _grouped_counts(db: Session, column, members) -> dict[str, int]:
    counts = {member.value: 0 for member in members}
    rows = db.execute(
        select(column, func.count(Tool.ToolID))
        .where(Tool.IsRetired.is_(False))
        .group_by(column)
    ).all()
    for key, count in rows:
        counts[str(key)] = int(count or 0)
    return counts


def dashboard_summary(db: Session) -> dict:
    by_location = _grouped_counts(db, Tool.CurrentLocation, ToolLocation)
    by_status = _grouped_counts(db, Tool.Status, ToolStatus)

    pending = db.execute(
        select(func.count(Loan.LoanID)).where(Loan.Status == LoanStatus.PENDING.value)
    ).scalar()

    total_supplies, low_stock = db.execute(
        select(
            func.count(SupplyItem.SupplyID),
            func.coalesce(func.sum(case((SupplyItem.Quantity <= SupplyItem.MinThreshold, 1), else_=0)), 0),
        )
    ).one()
    total_supplies = int(total_supplies or 0)
    low_stock = int(low_stock or 0)

    return {
        "tools": {
            "total": sum(by_status.values()),
            "byLocation": by_location,
            "byStatus": by_status,
        },
        "loans": {
            "pending": int(pending or 0),
        },
        "supplies": {
            "total": total_supplies,
            "adequate": total_supplies - low_stock,
            "lowStock": low_stock,
        },
    }

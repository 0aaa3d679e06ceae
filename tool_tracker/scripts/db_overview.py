#!/usr/bin/env python3
"""Database overview and loan/tool integrity checks for Tool Tracker."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.base import Base
from db.engine import build_engine
import models.tracker_models  # noqa: F401  (registers tables on Base.metadata)


EXPECTED_TABLES = ["Users", "Tools", "Loans", "SupplyItems", "SupplyRequests", "AuditLogs"]


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _scalar(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def _rows(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).all()


def run_existence_checks(engine: Engine) -> list[CheckResult]:
    present = set(inspect(engine).get_table_names())
    return [
        CheckResult(f"table:{table}", table in present, "present" if table in present else "missing")
        for table in EXPECTED_TABLES
    ]


def run_column_checks(engine: Engine) -> list[CheckResult]:
    inspector = inspect(engine)
    present = set(inspector.get_table_names())
    results: list[CheckResult] = []
    for table in EXPECTED_TABLES:
        if table not in present:
            results.append(CheckResult(f"columns:{table}", False, "table missing"))
            continue
        expected = [column.name for column in Base.metadata.tables[table].columns]
        actual = {column["name"] for column in inspector.get_columns(table)}
        missing = [name for name in expected if name not in actual]
        results.append(
            CheckResult(
                f"columns:{table}",
                not missing,
                "ok" if not missing else f"missing={','.join(missing)}",
            )
        )
    return results


def run_integrity_checks(engine: Engine) -> list[CheckResult]:
    present = set(inspect(engine).get_table_names())
    checks: list[CheckResult] = []
    if not {"Tools", "Loans"} <= present:
        return checks

    # A borrowed tool needs exactly one approved loan, and vice versa.
    borrowed_without_loan = _scalar(
        engine,
        """
        SELECT COUNT(*)
        FROM Tools t
        WHERE t.Status = 'borrowed'
          AND (SELECT COUNT(*) FROM Loans l WHERE l.ToolID = t.ToolID AND l.Status = 'approved') <> 1
        """,
    )
    checks.append(
        CheckResult(
            "tools:borrowed_without_single_approved_loan",
            int(borrowed_without_loan or 0) == 0,
            f"count={int(borrowed_without_loan or 0)}",
        )
    )

    approved_on_free_tool = _scalar(
        engine,
        """
        SELECT COUNT(*)
        FROM Loans l
        JOIN Tools t ON t.ToolID = l.ToolID
        WHERE l.Status = 'approved' AND t.Status <> 'borrowed'
        """,
    )
    checks.append(
        CheckResult(
            "loans:approved_on_unborrowed_tool",
            int(approved_on_free_tool or 0) == 0,
            f"count={int(approved_on_free_tool or 0)}",
        )
    )

    duplicate_pending = _scalar(
        engine,
        """
        SELECT COUNT(*)
        FROM (
            SELECT ToolID
            FROM Loans
            WHERE Status = 'pending'
            GROUP BY ToolID
            HAVING COUNT(*) > 1
        ) d
        """,
    )
    checks.append(
        CheckResult(
            "loans:multiple_pending_per_tool",
            int(duplicate_pending or 0) == 0,
            f"count={int(duplicate_pending or 0)}",
        )
    )

    if "SupplyItems" in present:
        negative_stock = _scalar(
            engine,
            "SELECT COUNT(*) FROM SupplyItems WHERE Quantity < 0 OR MinThreshold < 0",
        )
        checks.append(
            CheckResult(
                "supplies:negative_quantity_or_threshold",
                int(negative_stock or 0) == 0,
                f"count={int(negative_stock or 0)}",
            )
        )
    return checks


def _print_results(title: str, rows: Iterable[CheckResult]) -> None:
    _print_section(title)
    for row in rows:
        status = "OK" if row.ok else "FAIL"
        print(f"[{status}] {row.name} :: {row.detail}")


def _print_row_counts(engine: Engine) -> None:
    _print_section("Row Counts")
    present = set(inspect(engine).get_table_names())
    for table in EXPECTED_TABLES:
        if table not in present:
            print(f"{table}: missing")
            continue
        count = _scalar(engine, f"SELECT COUNT(*) FROM {table}")
        print(f"{table}: {int(count or 0)}")


def _print_samples(engine: Engine, sample_size: int) -> None:
    _print_section("Sample Values")
    sample_size = max(1, sample_size)
    present = set(inspect(engine).get_table_names())

    if "Loans" in present:
        rows = _rows(
            engine,
            """
            SELECT LoanID, ToolID, RequesterID, Status, DecisionDate
            FROM Loans
            ORDER BY LoanID DESC
            LIMIT :n
            """,
            {"n": sample_size},
        )
        print("Loans (recent):")
        for row in rows:
            print(f"  - {tuple(row)}")

    if "AuditLogs" in present:
        rows = _rows(
            engine,
            """
            SELECT AuditID, EntityType, Action, UserID, CreatedAt
            FROM AuditLogs
            ORDER BY AuditID DESC
            LIMIT :n
            """,
            {"n": sample_size},
        )
        print("AuditLogs (recent):")
        for row in rows:
            print(f"  - {tuple(row)}")


def main() -> int:
    parser = argparse.ArgumentParser(description="Tool Tracker DB overview")
    parser.add_argument("--db-url", default=os.environ.get("TOOL_TRACKER_DB_URL", ""))
    parser.add_argument("--samples", type=int, default=5)
    parser.add_argument("--create-schema", action="store_true", help="create missing tables before checking")
    args = parser.parse_args()

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("TOOL_TRACKER_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = build_engine(db_url)
        _scalar(engine, "SELECT 1")
    except Exception as exc:
        print(f"Could not connect to DB: {exc}")
        return 3

    if args.create_schema:
        Base.metadata.create_all(bind=engine)

    integrity = run_integrity_checks(engine)
    _print_results("Table Existence", run_existence_checks(engine))
    _print_results("Column Checks", run_column_checks(engine))
    _print_results("Integrity Checks", integrity)
    _print_row_counts(engine)
    _print_samples(engine, args.samples)
    return 0 if all(check.ok for check in integrity) else 1


if __name__ == "__main__":
    sys.exit(main())

import os
import shutil
import sys
import tempfile
import unittest
from datetime import date, datetime, timedelta
from pathlib import Path


os.environ.setdefault("TOOL_TRACKER_DB_URL", "sqlite+pysqlite:///:memory:")

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from db.base import Base
from db.engine import build_engine, build_session_factory
from models.enums import LoanStatus, ToolLocation, ToolStatus, UserRole
from models.tracker_models import Loan, SupplyItem, Tool, User


def tomorrow() -> date:
    return date.today() + timedelta(days=1)


class TrackerDbTestCase(unittest.TestCase):
    """Fresh file-backed SQLite database per test so threads get their own connections."""

    def setUp(self):
        self.tmp_dir = tempfile.mkdtemp(prefix="tool-tracker-")
        self.engine = build_engine(f"sqlite+pysqlite:///{Path(self.tmp_dir) / 'tracker.db'}")
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = build_session_factory(self.engine)
        self.db = self.SessionLocal()

        self.admin = self.add_user("ADM-01", "Ayu Admin", UserRole.ADMIN)
        self.employee = self.add_user("EMP-01", "Budi Employee")
        self.other_employee = self.add_user("EMP-02", "Citra Employee")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def add_user(self, number: str, name: str, role: UserRole = UserRole.EMPLOYEE) -> User:
        user = User(EmployeeNumber=number, Name=name, Department="Operations", Role=role.value)
        self.db.add(user)
        self.db.commit()
        return user

    def add_tool(
        self,
        name: str = "Hilti Rotary Hammer",
        serial: str | None = None,
        location: ToolLocation = ToolLocation.WAREHOUSE,
        status: ToolStatus = ToolStatus.AVAILABLE,
    ) -> Tool:
        self._serial_seq = getattr(self, "_serial_seq", 0) + 1
        serial = serial or f"SN-{name[:3].upper()}-{self._serial_seq:04d}"
        tool = Tool(
            ToolName=name,
            Brand="Hilti",
            SerialNumber=serial,
            CurrentLocation=location.value,
            Status=status.value,
            IsRetired=False,
            CreatedDate=datetime.now(),
            UpdatedDate=datetime.now(),
        )
        self.db.add(tool)
        self.db.commit()
        return tool

    def add_pending_loan_row(self, tool: Tool, requester: User, purpose: str = "legacy import") -> Loan:
        # Bypasses the workflow to reproduce rows written by older clients.
        loan = Loan(
            ToolID=tool.ToolID,
            RequesterID=requester.UserID,
            Purpose=purpose,
            LoanDate=datetime.now(),
            ExpectedReturn=tomorrow(),
            Status=LoanStatus.PENDING.value,
        )
        self.db.add(loan)
        self.db.commit()
        return loan

    def add_supply(self, name: str = "A4 Paper", quantity: int = 5, min_threshold: int = 10) -> SupplyItem:
        item = SupplyItem(ItemName=name, Category="Paper", Location="Warehouse", Quantity=quantity, MinThreshold=min_threshold)
        self.db.add(item)
        self.db.commit()
        return item

    def fresh_tool(self, tool_id: int) -> Tool:
        with self.SessionLocal() as session:
            tool = session.get(Tool, tool_id)
            session.expunge(tool)
            return tool

import enum


class UserRole(str, enum.Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


class ToolLocation(str, enum.Enum):
    SITE = "site"
    WORKSHOP = "workshop"
    WAREHOUSE = "warehouse"
    OFFICE = "office"


class ToolStatus(str, enum.Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"
    MAINTENANCE = "maintenance"


class LoanStatus(str, enum.Enum):
    """
    Loan lifecycle:
        PENDING -> APPROVED -> RETURNED
        PENDING -> REJECTED
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RETURNED = "returned"


class SupplyRequestStatus(str, enum.Enum):
    PENDING = "pending"


ROLE_ALIASES = {
    "karyawan": UserRole.EMPLOYEE,
}

# Tools in the workshop for maintenance can still be lent out.
LOANABLE_TOOL_STATUSES = {ToolStatus.AVAILABLE.value, ToolStatus.MAINTENANCE.value}

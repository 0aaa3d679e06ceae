from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.base import Base
from models.enums import LoanStatus, SupplyRequestStatus, ToolLocation, ToolStatus, UserRole


class User(Base):
    __tablename__ = "Users"

    UserID = Column(Integer, primary_key=True)
    EmployeeNumber = Column(String(50), nullable=False, unique=True)
    Name = Column(String(255), nullable=False)
    Department = Column(String(100))
    Email = Column(String(255))
    Role = Column(String(20), nullable=False, default=UserRole.EMPLOYEE.value)
    CreatedDate = Column(DateTime, server_default=func.now())

    Loans = relationship("Loan", back_populates="Requester", foreign_keys="Loan.RequesterID")


class Tool(Base):
    __tablename__ = "Tools"

    ToolID = Column(Integer, primary_key=True)
    ToolName = Column(String(255), nullable=False)
    Brand = Column(String(255))
    SerialNumber = Column(String(255), nullable=False, unique=True)
    CurrentLocation = Column(String(20), nullable=False, default=ToolLocation.WAREHOUSE.value)
    Status = Column(String(20), nullable=False, default=ToolStatus.AVAILABLE.value)
    LastBorrowerID = Column(Integer, ForeignKey("Users.UserID"))
    IsRetired = Column(Boolean, nullable=False, default=False)
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    LastBorrower = relationship("User", foreign_keys=[LastBorrowerID])
    Loans = relationship("Loan", back_populates="Tool")


class Loan(Base):
    __tablename__ = "Loans"

    LoanID = Column(Integer, primary_key=True)
    ToolID = Column(Integer, ForeignKey("Tools.ToolID"), nullable=False, index=True)
    RequesterID = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    Purpose = Column(String(1000), nullable=False)
    LoanDate = Column(DateTime, nullable=False)
    ExpectedReturn = Column(Date, nullable=False)
    Notes = Column(String(1000))
    Status = Column(String(20), nullable=False, default=LoanStatus.PENDING.value, index=True)
    ApprovedBy = Column(Integer, ForeignKey("Users.UserID"))
    RejectedBy = Column(Integer, ForeignKey("Users.UserID"))
    DecisionDate = Column(DateTime)
    RejectReason = Column(String(500))
    ReturnedDate = Column(DateTime)
    ReturnedBy = Column(Integer, ForeignKey("Users.UserID"))
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Tool = relationship("Tool", back_populates="Loans")
    Requester = relationship("User", back_populates="Loans", foreign_keys=[RequesterID])


class SupplyItem(Base):
    __tablename__ = "SupplyItems"

    SupplyID = Column(Integer, primary_key=True)
    ItemName = Column(String(255), nullable=False)
    Category = Column(String(100), nullable=False)
    Location = Column(String(100))
    Quantity = Column(Integer, nullable=False, default=0)
    MinThreshold = Column(Integer, nullable=False, default=0)
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())

    Requests = relationship("SupplyRequest", back_populates="Item")


class SupplyRequest(Base):
    __tablename__ = "SupplyRequests"

    RequestID = Column(Integer, primary_key=True)
    SupplyID = Column(Integer, ForeignKey("SupplyItems.SupplyID"), nullable=False)
    RequesterID = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    Quantity = Column(Integer, nullable=False)
    Status = Column(String(20), nullable=False, default=SupplyRequestStatus.PENDING.value)
    CreatedDate = Column(DateTime, server_default=func.now())

    Item = relationship("SupplyItem", back_populates="Requests")


class AuditLog(Base):
    __tablename__ = "AuditLogs"

    AuditID = Column(Integer, primary_key=True)
    EntityType = Column(String(50), nullable=False)
    EntityID = Column(Integer, nullable=False)
    Action = Column(String(100), nullable=False)
    Details = Column(String(2000))
    UserID = Column(Integer)
    CreatedAt = Column(DateTime, server_default=func.now())

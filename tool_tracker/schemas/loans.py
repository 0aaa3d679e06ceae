from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class CreateLoanDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tool_id: Union[int, str, None] = None
    user_id: Union[int, str, None] = None
    purpose: Optional[str] = None
    expected_return: Optional[str] = None
    notes: Optional[str] = None


class ApproveLoanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    approved_by: Union[int, str, None] = None


class RejectLoanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rejected_by: Union[int, str, None] = None
    reason: Optional[str] = None


class ReturnLoanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    returned_by: Union[int, str, None] = None

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class RegisterUserDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employee_id: Union[int, str, None] = None
    name: Optional[str] = None
    department: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None

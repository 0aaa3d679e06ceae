from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class RegisterToolDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tool_name: Optional[str] = None
    brand: Optional[str] = None
    serial_number: Optional[str] = None
    current_location: Optional[str] = None
    status: Optional[str] = None
    created_by: Union[int, str, None] = None

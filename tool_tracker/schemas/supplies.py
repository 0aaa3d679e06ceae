from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class CreateSupplyDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_name: Optional[str] = None
    category: Optional[str] = None
    quantity: Union[int, str, None] = None
    min_threshold: Union[int, str, None] = None
    location: Optional[str] = None
    created_by: Union[int, str, None] = None


class SupplyQuantityRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quantity: Union[int, str, None] = None
    user_id: Union[int, str, None] = None


class RestockRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quantity: Union[int, str, None] = None
    restocked_by: Union[int, str, None] = None

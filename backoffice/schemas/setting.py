"""
Apartment Settings Schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SettingUpsert(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=100)
    setting_value: str = Field(..., max_length=255)
    description: Optional[str] = None


class SettingValue(BaseModel):
    setting_value: str = Field(..., max_length=255)


class SettingResponse(BaseModel):
    id: int
    setting_key: str
    setting_value: str
    description: Optional[str] = None
    updated_by_user_id: Optional[int] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class UtilityRates(BaseModel):
    electricity_rate: Decimal
    water_rate: Decimal

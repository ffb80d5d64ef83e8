from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    default_price: Decimal = Field(Decimal("0"), ge=0)
    estimated_duration: Optional[int] = Field(None, gt=0, description="Duração estimada em minutos.")
    is_active: bool = True
    is_recurring: bool = False
    interval_months: Optional[int] = Field(None, gt=0)
    loyalty_points: int = Field(0, ge=0)


class ServiceTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_price: Optional[Decimal] = Field(None, ge=0)
    estimated_duration: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None
    is_recurring: Optional[bool] = None
    interval_months: Optional[int] = Field(None, gt=0)
    loyalty_points: Optional[int] = Field(None, ge=0)


class ServiceType(ServiceTypeCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int

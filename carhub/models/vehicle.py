import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_PLATE_SEPARATORS = re.compile(r"[^A-Z0-9]")


def normalize_plate(value):
    """Placa sempre em caixa alta e sem hífen/espaços (ABC-1234 -> ABC1234)."""
    if isinstance(value, str):
        return _PLATE_SEPARATORS.sub("", value.upper())
    return value


class VehicleBase(BaseModel):
    customer_id: int = Field(..., gt=0, description="Cliente dono do veículo.")
    license_plate: str = Field(..., min_length=1, max_length=10)
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: int = Field(..., ge=1900, le=2100)
    color: Optional[str] = None
    chassis: Optional[str] = None
    engine: Optional[str] = None
    fuel_type: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("license_plate", mode="before")
    @classmethod
    def clean_plate(cls, value):
        return normalize_plate(value)


class VehicleCreate(VehicleBase):
    pass


class VehicleUpdate(BaseModel):
    customer_id: Optional[int] = Field(None, gt=0)
    license_plate: Optional[str] = Field(None, min_length=1, max_length=10)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    color: Optional[str] = None
    chassis: Optional[str] = None
    engine: Optional[str] = None
    fuel_type: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("license_plate", mode="before")
    @classmethod
    def clean_plate(cls, value):
        return normalize_plate(value)


class Vehicle(VehicleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VehicleWithOwner(Vehicle):
    customer_name: Optional[str] = None

    @classmethod
    def from_vehicle(cls, vehicle) -> "VehicleWithOwner":
        out = cls.model_validate(vehicle)
        out.customer_name = vehicle.owner.name if vehicle.owner else None
        return out

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    PIX = "pix"
    TRANSFER = "transfer"
    CHECK = "check"


class PaymentCreate(BaseModel):
    service_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    payment_date: Optional[date] = Field(None, description="Padrão: hoje no horário de Brasília.")
    notes: Optional[str] = None


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: date
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

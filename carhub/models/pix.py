from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PixCreate(BaseModel):
    service_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    customer_document: Optional[str] = None


class PixPayment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_id: int
    mercadopago_id: str
    amount: Decimal
    status: str
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    pix_copy_paste: Optional[str] = None
    expiration_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    external_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WebhookData(BaseModel):
    id: Union[int, str]


class WebhookNotification(BaseModel):
    type: Optional[str] = None
    action: Optional[str] = None
    data: Optional[WebhookData] = None

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DocumentType(str, Enum):
    CPF = "cpf"
    CNPJ = "cnpj"


def _blank_to_none(value):
    # Documento em branco não entra na checagem de duplicidade
    if isinstance(value, str):
        return value.strip() or None
    return value


class CustomerBase(BaseModel):
    document: Optional[str] = Field(None, max_length=20, description="CPF ou CNPJ.")
    document_type: Optional[DocumentType] = None
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    zip_code: Optional[str] = Field(None, max_length=10)
    observations: Optional[str] = None

    @field_validator("document", mode="before")
    @classmethod
    def blank_document(cls, value):
        return _blank_to_none(value)


class CustomerCreate(CustomerBase):
    code: Optional[str] = Field(None, max_length=30, description="Gerado automaticamente quando omitido.")


class CustomerUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    document: Optional[str] = Field(None, max_length=20)
    document_type: Optional[DocumentType] = None
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    zip_code: Optional[str] = Field(None, max_length=10)
    observations: Optional[str] = None
    loyalty_points: Optional[int] = Field(None, ge=0)

    @field_validator("document", mode="before")
    @classmethod
    def blank_document(cls, value):
        return _blank_to_none(value)


class Customer(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    loyalty_points: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

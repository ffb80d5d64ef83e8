from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from carhub.services.payments import payment_summary


class ServiceStatus(str, Enum):
    """Status possíveis para um serviço na oficina."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class ServiceItemIn(BaseModel):
    service_type_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)
    unit_price: Optional[Decimal] = Field(
        None, ge=0, description="Padrão: preço do tipo de serviço."
    )
    # Aceito por compatibilidade, mas sempre recalculado no servidor
    total_price: Optional[Decimal] = None
    notes: Optional[str] = None

    @field_validator("unit_price", "total_price", mode="before")
    @classmethod
    def blank_price(cls, value):
        return _blank_to_none(value)


class ServiceExtraIn(BaseModel):
    """Formato antigo de item enviado pelo app: {service_extra_id, valor, observacao}."""

    service_extra_id: int = Field(..., gt=0)
    valor: Optional[Decimal] = Field(None, ge=0)
    observacao: Optional[str] = None

    @field_validator("valor", mode="before")
    @classmethod
    def blank_valor(cls, value):
        return _blank_to_none(value)

    def as_item(self) -> ServiceItemIn:
        return ServiceItemIn(
            service_type_id=self.service_extra_id,
            quantity=1,
            unit_price=self.valor,
            notes=self.observacao,
        )


class _ServiceFields(BaseModel):
    technician_id: Optional[int] = Field(None, gt=0)
    service_type_id: Optional[int] = Field(None, gt=0)
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    # Ignorado: o valor estimado é sempre a soma dos itens
    estimated_value: Optional[Decimal] = None
    final_value: Optional[Decimal] = Field(None, ge=0)
    pix_pago: Optional[Decimal] = Field(None, ge=0)
    dinheiro_pago: Optional[Decimal] = Field(None, ge=0)
    cheque_pago: Optional[Decimal] = Field(None, ge=0)
    cartao_pago: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None
    service_items: Optional[List[ServiceItemIn]] = None
    service_extras: Optional[List[ServiceExtraIn]] = None
    reminder_minutes: int = Field(30, gt=0)

    @field_validator(
        "technician_id",
        "service_type_id",
        "scheduled_date",
        "scheduled_time",
        "estimated_value",
        "final_value",
        "pix_pago",
        "dinheiro_pago",
        "cheque_pago",
        "cartao_pago",
        mode="before",
    )
    @classmethod
    def blank_is_missing(cls, value):
        return _blank_to_none(value)

    def items(self) -> List[ServiceItemIn]:
        """Itens no formato novo, convertendo os 'service_extras' antigos."""
        if self.service_items:
            return list(self.service_items)
        # Extras com valor zerado são ignorados
        return [extra.as_item() for extra in self.service_extras or [] if extra.valor is None or extra.valor > 0]

    def subtotals(self) -> dict:
        return {
            column: getattr(self, column)
            for column in ("pix_pago", "dinheiro_pago", "cheque_pago", "cartao_pago")
            if getattr(self, column) is not None
        }


class ServiceCreate(_ServiceFields):
    customer_id: int = Field(..., gt=0)
    vehicle_id: int = Field(..., gt=0)
    status: ServiceStatus = ServiceStatus.SCHEDULED
    reminder_enabled: bool = False


class ServiceUpdate(_ServiceFields):
    customer_id: Optional[int] = Field(None, gt=0)
    vehicle_id: Optional[int] = Field(None, gt=0)
    status: Optional[ServiceStatus] = None
    reminder_enabled: Optional[bool] = None


class ServiceItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    service_id: int
    service_type_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    notes: Optional[str] = None
    service_type_name: Optional[str] = None
    service_type_description: Optional[str] = None
    default_price: Optional[Decimal] = None

    @classmethod
    def from_item(cls, item) -> "ServiceItemOut":
        service_type = item.service_type
        return cls(
            id=item.id,
            service_id=item.service_id,
            service_type_id=item.service_type_id,
            quantity=item.quantity,
            unit_price=item.unit_price,
            total_price=item.total_price,
            notes=item.notes,
            service_type_name=service_type.name if service_type else None,
            service_type_description=service_type.description if service_type else None,
            default_price=service_type.default_price if service_type else None,
        )


class Service(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    vehicle_id: int
    technician_id: Optional[int] = None
    service_type_id: Optional[int] = None
    status: ServiceStatus
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[time] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_value: Optional[Decimal] = None
    final_value: Optional[Decimal] = None
    valor_pago: Decimal = Decimal("0")
    pix_pago: Decimal = Decimal("0")
    dinheiro_pago: Decimal = Decimal("0")
    cheque_pago: Decimal = Decimal("0")
    cartao_pago: Decimal = Decimal("0")
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Campos derivados (não gravados no banco)
    customer_name: Optional[str] = None
    vehicle_plate: Optional[str] = None
    vehicle_brand: Optional[str] = None
    vehicle_model: Optional[str] = None
    technician_name: Optional[str] = None
    service_type_name: Optional[str] = None
    payment_status: str = "pending"
    saldo: Decimal = Decimal("0")
    items: List[ServiceItemOut] = []

    @classmethod
    def from_service(cls, service) -> "Service":
        out = cls.model_validate(service, from_attributes=True)
        extra = {
            "customer_name": service.customer.name if service.customer else None,
            "vehicle_plate": service.vehicle.license_plate if service.vehicle else None,
            "vehicle_brand": service.vehicle.brand if service.vehicle else None,
            "vehicle_model": service.vehicle.model if service.vehicle else None,
            "technician_name": service.technician.full_name or service.technician.username
            if service.technician
            else None,
            "service_type_name": service.service_type.name if service.service_type else None,
            "items": [ServiceItemOut.from_item(item) for item in service.items],
        }
        extra.update(payment_summary(service))
        return out.model_copy(update=extra)

"""Ordens de serviço: criação, edição, status e itens.

O valor estimado é sempre recalculado a partir dos itens (quantidade x preço
unitário) e o valor pago a partir dos subtotais por forma de pagamento; os
totais enviados pelo cliente são ignorados.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Query, Session, joinedload, selectinload

from carhub.database_models import Customer, Service, ServiceItem, ServiceType, User, Vehicle, utcnow
from carhub.errors import DomainError, InvalidStatusTransition, NotFound
from carhub.models.service import ServiceCreate, ServiceItemIn, ServiceUpdate
from carhub.services import reminders
from carhub.services.brazil_time import apply_schedule_defaults
from carhub.services.photos import OwnerKind, PhotoOwner, delete_owner_photos, remove_files
from carhub.services.payments import CENTS, SUBTOTAL_COLUMNS, ZERO, apply_payment_breakdown, to_decimal

logger = logging.getLogger(__name__)

OPEN_STATUSES = ("scheduled", "in_progress")
TERMINAL_STATUSES = ("completed", "cancelled")

ALLOWED_TRANSITIONS = {
    "scheduled": {"in_progress", "completed", "cancelled"},
    "in_progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}


def _service_query(db: Session) -> Query:
    return db.query(Service).options(
        joinedload(Service.customer),
        joinedload(Service.vehicle),
        joinedload(Service.technician),
        joinedload(Service.service_type),
        selectinload(Service.items).joinedload(ServiceItem.service_type),
    )


def list_services(
    db: Session,
    technician_id: Optional[int] = None,
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
) -> List[Service]:
    query = _service_query(db)
    if technician_id is not None:
        query = query.filter(Service.technician_id == technician_id)
    if status:
        query = query.filter(Service.status == status)
    if customer_id is not None:
        query = query.filter(Service.customer_id == customer_id)
    if vehicle_id is not None:
        query = query.filter(Service.vehicle_id == vehicle_id)
    return query.order_by(Service.created_at.desc(), Service.id.desc()).all()


def get_service(db: Session, service_id: int, technician_id: Optional[int] = None) -> Service:
    """Busca um serviço. Técnicos só enxergam os serviços atribuídos a eles."""
    query = _service_query(db).filter(Service.id == service_id)
    if technician_id is not None:
        query = query.filter(Service.technician_id == technician_id)
    service = query.first()
    if service is None:
        raise NotFound("Serviço não encontrado.")
    return service


def list_items(db: Session, service_id: int, technician_id: Optional[int] = None) -> List[ServiceItem]:
    return list(get_service(db, service_id, technician_id).items)


def _check_references(db: Session, customer_id: int, vehicle_id: int, technician_id: Optional[int]) -> None:
    if db.get(Customer, customer_id) is None:
        raise DomainError("Cliente informado não existe.")
    vehicle = db.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise DomainError("Veículo informado não existe.")
    if vehicle.customer_id != customer_id:
        raise DomainError("O veículo informado não pertence ao cliente.")
    if technician_id is not None and db.get(User, technician_id) is None:
        raise DomainError("Técnico informado não existe.")


def _check_service_type(db: Session, service_type_id: Optional[int]) -> None:
    if service_type_id is not None and db.get(ServiceType, service_type_id) is None:
        raise DomainError("Tipo de serviço informado não existe.")


def build_items(db: Session, items_in: Sequence[ServiceItemIn]) -> List[ServiceItem]:
    """Monta as linhas do serviço com o total de cada uma calculado aqui."""
    type_ids = {item.service_type_id for item in items_in}
    types: Dict[int, ServiceType] = {
        st.id: st for st in db.query(ServiceType).filter(ServiceType.id.in_(type_ids)).all()
    }
    missing = type_ids - types.keys()
    if missing:
        raise DomainError(f"Tipo de serviço não encontrado: {sorted(missing)[0]}")

    items = []
    for item in items_in:
        service_type = types[item.service_type_id]
        if item.unit_price is None:
            unit_price = to_decimal(service_type.default_price)
        else:
            unit_price = to_decimal(item.unit_price)
        items.append(
            ServiceItem(
                service_type=service_type,
                quantity=item.quantity,
                unit_price=unit_price,
                total_price=(unit_price * item.quantity).quantize(CENTS),
                notes=item.notes,
            )
        )
    return items


def items_total(items: Sequence[ServiceItem]) -> Decimal:
    return sum((to_decimal(item.total_price) for item in items), ZERO)


def loyalty_points_for(service: Service) -> int:
    return sum(
        (item.service_type.loyalty_points or 0) * item.quantity
        for item in service.items
        if item.service_type is not None
    )


def _enter_status(service: Service, status: str, now: datetime) -> None:
    if status == "in_progress" and service.started_at is None:
        service.started_at = now
    elif status == "completed":
        service.completed_at = now
        points = loyalty_points_for(service)
        if points and service.customer is not None:
            service.customer.loyalty_points = (service.customer.loyalty_points or 0) + points
            logger.info("Cliente %s ganhou %d pontos (serviço %s)", service.customer.id, points, service.id)


def check_transition(current: str, target: str) -> None:
    if target != current and target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransition(current, target)


def change_status(service: Service, target: str, now: Optional[datetime] = None) -> bool:
    """Aplica a transição de status. Retorna False quando o status não muda."""
    current = service.status
    if target == current:
        return False
    check_transition(current, target)
    service.status = target
    _enter_status(service, target, now or utcnow())
    return True


def create_service(db: Session, data: ServiceCreate, now: Optional[datetime] = None) -> Service:
    """Cria o serviço com seus itens num único commit.

    `now` é o instante usado para completar data/hora de agendamento ausentes
    (horário de Brasília).
    """
    items_in = data.items()
    if not items_in:
        raise DomainError("É necessário selecionar pelo menos um serviço.")
    _check_references(db, data.customer_id, data.vehicle_id, data.technician_id)
    _check_service_type(db, data.service_type_id)
    items = build_items(db, items_in)

    scheduled_date, scheduled_time = apply_schedule_defaults(data.scheduled_date, data.scheduled_time, now)
    service = Service(
        customer_id=data.customer_id,
        vehicle_id=data.vehicle_id,
        technician_id=data.technician_id,
        service_type_id=data.service_type_id or items[0].service_type.id,
        status="scheduled",
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        estimated_value=items_total(items),
        final_value=data.final_value,
        notes=data.notes,
    )
    service.items = items
    apply_payment_breakdown(service, **{column: to_decimal(getattr(data, column)) for column in SUBTOTAL_COLUMNS})
    db.add(service)
    db.flush()

    service.customer = db.get(Customer, data.customer_id)
    change_status(service, data.status.value)
    if data.reminder_enabled:
        reminders.create_service_reminder(db, service, data.reminder_minutes)

    db.commit()
    logger.info(
        "Serviço %s criado para o cliente %s com %d item(ns), total estimado %s",
        service.id, service.customer_id, len(items), service.estimated_value,
    )
    return get_service(db, service.id)


def update_service(
    db: Session,
    service_id: int,
    data: ServiceUpdate,
    technician_id: Optional[int] = None,
) -> Service:
    """Atualização parcial. Tudo é validado antes de alterar a linha."""
    service = get_service(db, service_id, technician_id)
    fields = data.model_dump(exclude_unset=True)
    if technician_id is not None:
        # Técnico não reatribui o serviço
        fields.pop("technician_id", None)

    if {"customer_id", "vehicle_id", "technician_id"} & fields.keys():
        _check_references(
            db,
            fields.get("customer_id") or service.customer_id,
            fields.get("vehicle_id") or service.vehicle_id,
            fields.get("technician_id"),
        )
    if "service_type_id" in fields:
        _check_service_type(db, fields["service_type_id"])
    new_items = None
    if fields.get("service_items") or fields.get("service_extras"):
        items_in = data.items()
        if items_in:
            new_items = build_items(db, items_in)
    if data.status is not None:
        check_transition(service.status, data.status.value)

    for column in (
        "customer_id",
        "vehicle_id",
        "technician_id",
        "service_type_id",
        "scheduled_date",
        "scheduled_time",
        "final_value",
        "notes",
    ):
        if column in fields:
            setattr(service, column, fields[column])

    if new_items is not None:
        service.items = new_items
        service.estimated_value = items_total(new_items)
    subtotals = data.subtotals()
    if subtotals:
        apply_payment_breakdown(service, **subtotals)
    db.flush()
    db.expire(service, ["customer", "vehicle"])

    if data.status is not None:
        change_status(service, data.status.value)

    if fields.get("reminder_enabled") is True:
        reminders.create_service_reminder(db, service, data.reminder_minutes)
    elif fields.get("reminder_enabled") is False:
        reminders.remove_service_reminders(db, service)
    elif {"scheduled_date", "scheduled_time"} & fields.keys():
        pending = reminders.get_pending_reminder(db, service.id)
        if pending is not None:
            reminders.create_service_reminder(db, service, pending.reminder_minutes)

    db.commit()
    logger.info("Serviço %s atualizado (%s)", service.id, ", ".join(sorted(fields)) or "sem alterações")
    return get_service(db, service.id)


def delete_service(db: Session, service_id: int, technician_id: Optional[int] = None) -> None:
    service = get_service(db, service_id, technician_id)
    file_names = delete_owner_photos(db, PhotoOwner(OwnerKind.SERVICE, service_id))
    db.delete(service)
    db.commit()
    remove_files(file_names)
    logger.info("Serviço %s excluído", service_id)

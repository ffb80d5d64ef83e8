import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user, technician_scope
from carhub.database import get_db
from carhub.database_models import Payment as PaymentRow, User
from carhub.models.payment import Payment
from carhub.models.service import Service, ServiceCreate, ServiceItemOut, ServiceStatus, ServiceUpdate
from carhub.services import reminders, service_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/services", tags=["services"])


@router.get("", response_model=List[Service])
def list_services(
    status: Optional[ServiceStatus] = None,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Técnicos veem apenas os serviços atribuídos a eles."""
    services = service_repository.list_services(
        db,
        technician_id=technician_scope(user),
        status=status.value if status else None,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
    )
    return [Service.from_service(s) for s in services]


@router.post("", response_model=Service, status_code=status.HTTP_201_CREATED)
def create_service(data: ServiceCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    # Serviço aberto por técnico fica com ele
    scope = technician_scope(user)
    if scope is not None:
        data = data.model_copy(update={"technician_id": scope})
    try:
        return Service.from_service(service_repository.create_service(db, data))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao criar serviço: %s", e)
        raise HTTPException(status_code=500, detail="Falha ao criar serviço")


@router.get("/{service_id}", response_model=Service)
def get_service(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return Service.from_service(service_repository.get_service(db, service_id, technician_scope(user)))


@router.put("/{service_id}", response_model=Service)
def update_service(
    service_id: int,
    data: ServiceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        service = service_repository.update_service(db, service_id, data, technician_scope(user))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar serviço %s: %s", service_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar serviço")
    return Service.from_service(service)


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_service(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        service_repository.delete_service(db, service_id, technician_scope(user))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao excluir serviço %s: %s", service_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir serviço")


@router.get("/{service_id}/items", response_model=List[ServiceItemOut])
def service_items(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    items = service_repository.list_items(db, service_id, technician_scope(user))
    return [ServiceItemOut.from_item(item) for item in items]


@router.get("/{service_id}/reminders")
def service_reminder(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service_repository.get_service(db, service_id, technician_scope(user))
    return reminders.reminder_info(db, service_id)


@router.get("/{service_id}/payments", response_model=List[Payment])
def service_payments(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service_repository.get_service(db, service_id, technician_scope(user))
    return (
        db.query(PaymentRow)
        .filter(PaymentRow.service_id == service_id)
        .order_by(PaymentRow.payment_date.desc(), PaymentRow.id.desc())
        .all()
    )

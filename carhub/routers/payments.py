import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user, technician_scope
from carhub.database import get_db
from carhub.database_models import User
from carhub.errors import DomainError, NotFound
from carhub.models.payment import Payment, PaymentCreate
from carhub.services import service_repository
from carhub.services.payments import register_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("", response_model=Payment, status_code=status.HTTP_201_CREATED)
def create_payment(data: PaymentCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Registra um pagamento e soma no subtotal da forma usada."""
    try:
        service = service_repository.get_service(db, data.service_id, technician_scope(user))
    except NotFound:
        raise DomainError("Serviço informado não existe.")
    if service.status == "cancelled":
        raise DomainError("Não é possível registrar pagamento em serviço cancelado.")

    try:
        return register_payment(
            db,
            service,
            data.amount,
            data.payment_method.value,
            payment_date=data.payment_date,
            notes=data.notes,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao registrar pagamento do serviço %s: %s", data.service_id, e)
        raise HTTPException(status_code=500, detail="Falha ao registrar pagamento")

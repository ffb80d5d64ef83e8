import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from carhub.auth_utils import get_current_user, technician_scope
from carhub.database import get_db
from carhub.database_models import User
from carhub.errors import GatewayError, NotFound
from carhub.models.pix import PixCreate, PixPayment, WebhookNotification
from carhub.services import pix_payments, service_repository
from carhub.services.mercadopago import mercadopago_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mercadopago", tags=["mercadopago"])


@router.post("/create-pix", response_model=PixPayment)
def create_pix(data: PixCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Gera a cobrança PIX do serviço. Uma nova cobrança substitui a anterior."""
    service = service_repository.get_service(db, data.service_id, technician_scope(user))
    reference = pix_payments.external_reference(service.id)
    charge = mercadopago_service.create_pix_payment(
        data.amount,
        data.description or f"Pagamento - Ordem de Serviço #{service.id}",
        reference,
        customer_email=data.customer_email,
        customer_name=data.customer_name,
        customer_document=data.customer_document,
    )
    try:
        return pix_payments.save_pix_charge(
            db,
            service,
            charge,
            reference,
            customer_email=data.customer_email,
            customer_name=data.customer_name,
            customer_document=data.customer_document,
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao gravar PIX %s do serviço %s: %s", charge.id, service.id, e)
        raise HTTPException(status_code=500, detail="Falha ao gravar o pagamento PIX")


@router.get("/payment/{payment_id}")
def payment_status(payment_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Consulta o gateway e atualiza o registro local."""
    status_info = mercadopago_service.get_payment_status(payment_id)
    try:
        pix_payments.apply_gateway_status(db, payment_id, status_info)
    except NotFound:
        logger.warning("Pagamento %s consultado mas sem registro local", payment_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar PIX %s: %s", payment_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar o pagamento PIX")
    return status_info


@router.get("/service/{service_id}/pix", response_model=List[PixPayment])
def service_pix(service_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    service_repository.get_service(db, service_id, technician_scope(user))
    return pix_payments.pix_for_service(db, service_id)


def _notified_payment_id(payload, query) -> Optional[str]:
    """Id do pagamento notificado, no corpo JSON ou no formato antigo (?topic=payment&id=...)."""
    if query.get("topic") == "payment" and query.get("id"):
        return query["id"]
    if query.get("type") == "payment" and query.get("data.id"):
        return query["data.id"]
    try:
        notification = WebhookNotification.model_validate(payload)
    except ValidationError as e:
        logger.warning("Webhook com corpo inválido: %s", e)
        return None
    if notification.type != "payment" or notification.data is None:
        return None
    return str(notification.data.id)


@router.post("/webhook")
async def webhook(request: Request, db: Session = Depends(get_db)):
    """Notificações do MercadoPago. Sempre responde 200 para o gateway não reenviar."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    payment_id = _notified_payment_id(payload, request.query_params)
    if payment_id is None:
        return {"status": "ignored"}

    await run_in_threadpool(_process_notification, db, payment_id)
    return {"status": "ok"}


def _process_notification(db: Session, payment_id: str) -> None:
    try:
        status_info = mercadopago_service.get_payment_status(payment_id)
        pix = pix_payments.apply_gateway_status(db, payment_id, status_info)
        logger.info("Webhook: pagamento %s agora está %s", payment_id, pix.status)
    except NotFound:
        logger.warning("Webhook para pagamento desconhecido: %s", payment_id)
    except GatewayError as e:
        logger.error("Webhook: falha ao consultar pagamento %s: %s", payment_id, e)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Webhook: erro ao atualizar pagamento %s: %s", payment_id, e)
    except Exception:
        db.rollback()
        logger.exception("Webhook: falha inesperada no pagamento %s", payment_id)


@router.get("/config")
def config(user: User = Depends(get_current_user)):
    return {"public_key": mercadopago_service.public_key, "is_configured": mercadopago_service.is_configured()}

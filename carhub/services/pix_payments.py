"""Registro local das cobranças PIX (uma por serviço) e conciliação com o gateway."""
import logging
import time
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from carhub.database_models import PixPayment, Service, utcnow
from carhub.errors import NotFound
from carhub.services.mercadopago import PixCharge, parse_gateway_datetime
from carhub.services.payments import credit_payment, to_decimal

logger = logging.getLogger(__name__)

APPROVED = "approved"


def external_reference(service_id: int) -> str:
    return f"SERVICE_{service_id}_{int(time.time() * 1000)}"


def save_pix_charge(
    db: Session,
    service: Service,
    charge: PixCharge,
    reference: str,
    customer_email: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_document: Optional[str] = None,
) -> PixPayment:
    """Grava a cobrança do serviço, substituindo a anterior se houver."""
    values = {
        "mercadopago_id": charge.id,
        "amount": charge.amount,
        "status": charge.status or "pending",
        "qr_code": charge.qr_code,
        "qr_code_base64": charge.qr_code_base64,
        "pix_copy_paste": charge.pix_copy_paste,
        "expiration_date": charge.expiration_date,
        "approved_date": None,
        "external_reference": reference,
        "customer_email": customer_email,
        "customer_name": customer_name,
        "customer_document": customer_document,
    }

    pix = db.query(PixPayment).filter(PixPayment.service_id == service.id).first()
    if pix is None:
        pix = PixPayment(service_id=service.id, **values)
        db.add(pix)
        try:
            db.commit()
            db.refresh(pix)
            return pix
        except IntegrityError:
            # Outra requisição criou o registro antes: vira atualização
            db.rollback()
            pix = db.query(PixPayment).filter(PixPayment.service_id == service.id).one()

    if pix.status == APPROVED:
        logger.warning("Serviço %s já tinha PIX aprovado (%s); substituindo.", service.id, pix.mercadopago_id)
    for field, value in values.items():
        setattr(pix, field, value)
    pix.created_at = utcnow()
    db.commit()
    db.refresh(pix)
    return pix


def pix_for_service(db: Session, service_id: int) -> List[PixPayment]:
    return (
        db.query(PixPayment)
        .filter(PixPayment.service_id == service_id)
        .order_by(PixPayment.created_at.desc())
        .all()
    )


def apply_gateway_status(db: Session, mercadopago_id: str, status_info: dict) -> PixPayment:
    """Atualiza o status local com o que o gateway respondeu.

    Na primeira vez que a cobrança passa a `approved` o valor é somado ao
    `pix_pago` do serviço. Notificações repetidas não creditam de novo.
    """
    pix = (
        db.query(PixPayment)
        .filter(PixPayment.mercadopago_id == str(mercadopago_id))
        .with_for_update()
        .first()
    )
    if pix is None:
        raise NotFound("Pagamento PIX não encontrado.")

    new_status = status_info.get("status") or pix.status
    previous = pix.status
    pix.status = new_status
    approved_date = parse_gateway_datetime(status_info.get("date_approved"))
    if approved_date is not None:
        pix.approved_date = approved_date

    if new_status == APPROVED and previous != APPROVED:
        service = db.get(Service, pix.service_id)
        credit_payment(service, "pix", pix.amount)
        if pix.approved_date is None:
            pix.approved_date = utcnow()
        logger.info("PIX %s aprovado: %s creditado no serviço %s", pix.mercadopago_id, to_decimal(pix.amount), service.id)

    db.commit()
    db.refresh(pix)
    return pix

"""Conciliação de pagamentos de um serviço.

O valor pago (`valor_pago`) é sempre a soma dos quatro subtotais por forma de
pagamento. A situação (pendente/parcial/pago) e o saldo são derivados a cada
leitura e nunca gravados.
"""
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from carhub.database_models import Payment, Service
from carhub.services.brazil_time import today_brazil

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
CENTS = Decimal("0.01")

# Forma de pagamento -> coluna de subtotal no serviço
METHOD_COLUMNS = {
    "pix": "pix_pago",
    "transfer": "pix_pago",
    "cash": "dinheiro_pago",
    "check": "cheque_pago",
    "card": "cartao_pago",
}
SUBTOTAL_COLUMNS = ("pix_pago", "dinheiro_pago", "cheque_pago", "cartao_pago")


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    try:
        return Decimal(str(value)).quantize(CENTS)
    except (InvalidOperation, ValueError):
        return ZERO


def compute_valor_pago(pix=None, cash=None, check=None, card=None) -> Decimal:
    return to_decimal(pix) + to_decimal(cash) + to_decimal(check) + to_decimal(card)


def classify_payment(paid, total) -> str:
    paid = to_decimal(paid)
    total = to_decimal(total)
    if paid <= ZERO:
        return PaymentStatus.PENDING.value
    if paid < total:
        return PaymentStatus.PARTIAL.value
    return PaymentStatus.PAID.value


def balance_due(total, paid) -> Decimal:
    """Saldo devedor. Fica negativo quando o cliente pagou a mais."""
    return to_decimal(total) - to_decimal(paid)


def display_balance(total, paid) -> Decimal:
    return max(balance_due(total, paid), ZERO)


def service_total(service: Service) -> Decimal:
    final_value = to_decimal(service.final_value)
    if final_value > ZERO:
        return final_value
    return to_decimal(service.estimated_value)


def recompute_valor_pago(service: Service) -> Decimal:
    service.valor_pago = compute_valor_pago(
        service.pix_pago, service.dinheiro_pago, service.cheque_pago, service.cartao_pago
    )
    return service.valor_pago


def apply_payment_breakdown(service: Service, **subtotals) -> Decimal:
    """Atualiza os subtotais informados (pix_pago, dinheiro_pago, ...) e recalcula o total pago."""
    for column, value in subtotals.items():
        if column not in SUBTOTAL_COLUMNS:
            raise ValueError(f"Subtotal desconhecido: {column}")
        if value is not None:
            setattr(service, column, to_decimal(value))
    return recompute_valor_pago(service)


def credit_payment(service: Service, method: str, amount) -> Decimal:
    column = METHOD_COLUMNS[method]
    setattr(service, column, to_decimal(getattr(service, column)) + to_decimal(amount))
    return recompute_valor_pago(service)


def register_payment(
    db: Session,
    service: Service,
    amount,
    method: str,
    payment_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> Payment:
    """Grava um pagamento avulso e soma o valor no subtotal da forma usada (um único commit)."""
    payment = Payment(
        service_id=service.id,
        amount=to_decimal(amount),
        payment_method=method,
        payment_date=payment_date or today_brazil(),
        notes=notes,
    )
    db.add(payment)
    credit_payment(service, method, amount)
    db.commit()
    db.refresh(payment)
    logger.info("Pagamento %s de %s registrado no serviço %s", method, payment.amount, service.id)
    return payment


def payment_summary(service: Service) -> dict:
    total = service_total(service)
    paid = to_decimal(service.valor_pago)
    return {
        "payment_status": classify_payment(paid, total),
        "saldo": display_balance(total, paid),
    }

"""Cliente HTTP do MercadoPago para cobranças PIX."""
import base64
import io
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytz
import qrcode
import requests

from carhub.config import settings
from carhub.errors import GatewayError
from carhub.services.brazil_time import now_brazil
from carhub.services.payments import to_decimal

logger = logging.getLogger(__name__)

API_URL = "https://api.mercadopago.com/v1/payments"
TIMEOUT = 5
EXPIRATION_MINUTES = 30

# Códigos PIX menores que isso vêm truncados do gateway
MIN_QR_TEXT_LENGTH = 30

_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class PixCharge:
    id: str
    status: str
    qr_code: str
    qr_code_base64: str
    pix_copy_paste: str
    expiration_date: Optional[datetime]
    amount: Decimal


def qr_data_url(text: str) -> str:
    """Imagem PNG do QR Code como data URL (vazia quando o texto é inválido)."""
    if not text or len(text) <= MIN_QR_TEXT_LENGTH:
        logger.warning("Texto PIX inválido ou curto demais (%d caracteres)", len(text or ""))
        return ""
    img = qrcode.make(text, error_correction=qrcode.constants.ERROR_CORRECT_M, border=4)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def parse_gateway_datetime(value) -> Optional[datetime]:
    """Datas ISO do gateway (com fuso) para UTC sem tzinfo."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Data inválida recebida do MercadoPago: %s", value)
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(pytz.utc).replace(tzinfo=None)
    return parsed


def valid_email(email: Optional[str]) -> Optional[str]:
    if email and _EMAIL.match(email):
        return email
    return None


class MercadoPagoService:
    def __init__(self, access_token: Optional[str] = None, public_key: str = "", session: Optional[requests.Session] = None):
        self.access_token = access_token
        self.public_key = public_key
        self.session = session or requests.Session()
        if not access_token:
            logger.warning("MercadoPago não configurado. A funcionalidade PIX ficará desabilitada.")

    def is_configured(self) -> bool:
        return bool(self.access_token)

    def _require_config(self):
        if not self.is_configured():
            raise GatewayError("MercadoPago não configurado. Configure as credenciais para usar PIX.")

    def _headers(self, idempotency_key: Optional[str] = None) -> dict:
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def create_pix_payment(
        self,
        amount: Decimal,
        description: str,
        external_reference: str,
        customer_email: Optional[str] = None,
        customer_name: Optional[str] = None,
        customer_document: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> PixCharge:
        self._require_config()
        expiration = (now or now_brazil()) + timedelta(minutes=EXPIRATION_MINUTES)
        body = {
            "transaction_amount": float(to_decimal(amount)),
            "description": description,
            "payment_method_id": "pix",
            "external_reference": external_reference,
            "payer": {
                "email": valid_email(customer_email) or "cliente@exemplo.com",
                "first_name": customer_name or "Cliente",
                "identification": {"type": "CPF", "number": customer_document or "11111111111"},
            },
            "date_of_expiration": expiration.isoformat(timespec="milliseconds"),
        }

        try:
            response = self.session.post(
                API_URL, json=body, headers=self._headers(str(uuid.uuid4())), timeout=TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Erro ao criar pagamento PIX (%s): %s", external_reference, e)
            raise GatewayError("Falha ao criar pagamento PIX.") from e

        transaction = (data.get("point_of_interaction") or {}).get("transaction_data")
        if not transaction:
            logger.error("Resposta do MercadoPago sem transaction_data: %s", data.get("id"))
            raise GatewayError("Falha ao gerar o pagamento PIX.")

        qr_text = transaction.get("qr_code") or ""
        charge = PixCharge(
            id=str(data.get("id") or ""),
            status=data.get("status") or "",
            qr_code=qr_text,
            qr_code_base64=qr_data_url(qr_text),
            pix_copy_paste=qr_text,
            expiration_date=parse_gateway_datetime(data.get("date_of_expiration")),
            amount=to_decimal(data.get("transaction_amount", amount)),
        )
        logger.info("PIX %s criado (%s) no valor de %s", charge.id, charge.status, charge.amount)
        return charge

    def get_payment_status(self, payment_id: str) -> dict:
        self._require_config()
        try:
            response = self.session.get(f"{API_URL}/{payment_id}", headers=self._headers(), timeout=TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Erro ao consultar pagamento %s: %s", payment_id, e)
            raise GatewayError("Falha ao consultar o status do pagamento.") from e

        return {
            "id": str(data.get("id") or payment_id),
            "status": data.get("status"),
            "status_detail": data.get("status_detail"),
            "transaction_amount": data.get("transaction_amount"),
            "date_approved": data.get("date_approved"),
            "external_reference": data.get("external_reference"),
        }


mercadopago_service = MercadoPagoService(settings.mercadopago_access_token, settings.mercadopago_public_key)

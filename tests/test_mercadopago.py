from datetime import datetime
from decimal import Decimal

import pytest
import requests

from carhub.database_models import PixPayment, Service
from carhub.errors import GatewayError
from carhub.services.brazil_time import TIMEZONE
from carhub.services.mercadopago import MercadoPagoService, PixCharge, mercadopago_service, qr_data_url

PIX_TEXT = "00020126580014br.gov.bcb.pix0136a1b2c3d4-e5f6-7890-abcd-ef1234567890520400005303986"


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self.response

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self.response


def test_qr_code_data_url():
    assert qr_data_url(PIX_TEXT).startswith("data:image/png;base64,")
    assert qr_data_url("curto") == ""


def test_create_pix_payment_request():
    session = FakeSession(
        FakeResponse(
            {
                "id": 123456,
                "status": "pending",
                "transaction_amount": 150.0,
                "date_of_expiration": "2024-03-15T15:00:00.000-03:00",
                "point_of_interaction": {"transaction_data": {"qr_code": PIX_TEXT}},
            }
        )
    )
    service = MercadoPagoService("TOKEN", "PUBLIC", session=session)
    now = TIMEZONE.localize(datetime(2024, 3, 15, 14, 30))

    charge = service.create_pix_payment(Decimal("150"), "OS #1", "SERVICE_1_1", customer_email="invalido", now=now)

    method, url, kwargs = session.calls[0]
    assert url == "https://api.mercadopago.com/v1/payments"
    assert kwargs["headers"]["Authorization"] == "Bearer TOKEN"
    assert kwargs["headers"]["X-Idempotency-Key"]
    assert kwargs["timeout"] == 5
    body = kwargs["json"]
    assert body["payment_method_id"] == "pix"
    assert body["payer"]["email"] == "cliente@exemplo.com"
    assert body["payer"]["identification"] == {"type": "CPF", "number": "11111111111"}
    assert body["date_of_expiration"].startswith("2024-03-15T15:00:00.000")

    assert charge.id == "123456"
    assert charge.pix_copy_paste == PIX_TEXT
    assert charge.qr_code_base64.startswith("data:image/png;base64,")
    assert charge.expiration_date == datetime(2024, 3, 15, 18, 0)


def test_gateway_failure_is_reported():
    service = MercadoPagoService("TOKEN", session=FakeSession(FakeResponse({}, status_code=500)))
    with pytest.raises(GatewayError):
        service.get_payment_status("1")


def test_not_configured():
    with pytest.raises(GatewayError):
        MercadoPagoService(None).create_pix_payment(Decimal("1"), "x", "ref")


def _charge(payment_id="pay-1", amount="80.00"):
    return PixCharge(
        id=payment_id,
        status="pending",
        qr_code=PIX_TEXT,
        qr_code_base64="data:image/png;base64,AAA",
        pix_copy_paste=PIX_TEXT,
        expiration_date=None,
        amount=Decimal(amount),
    )


@pytest.fixture
def fake_gateway(monkeypatch):
    state = {"charges": [_charge("pay-1"), _charge("pay-2", "90.00")], "status": "pending"}

    def create_pix_payment(amount, description, external_reference, **kwargs):
        return state["charges"].pop(0)

    def get_payment_status(payment_id):
        return {"id": payment_id, "status": state["status"], "date_approved": "2024-03-15T10:00:00.000-03:00"}

    monkeypatch.setattr(mercadopago_service, "create_pix_payment", create_pix_payment)
    monkeypatch.setattr(mercadopago_service, "get_payment_status", get_payment_status)
    return state


def test_one_pix_record_per_service(admin_client, db, fake_gateway, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()))

    first = admin_client.post("/api/mercadopago/create-pix", json={"service_id": service.id, "amount": "80"})
    assert first.status_code == 200, first.text
    second = admin_client.post("/api/mercadopago/create-pix", json={"service_id": service.id, "amount": "90"})
    assert second.json()["mercadopago_id"] == "pay-2"

    db.expire_all()
    assert db.query(PixPayment).filter(PixPayment.service_id == service.id).count() == 1
    listed = admin_client.get(f"/api/mercadopago/service/{service.id}/pix").json()
    assert [p["mercadopago_id"] for p in listed] == ["pay-2"]


def test_webhook_credits_once(admin_client, anon_client, db, fake_gateway, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), estimated_value="80.00")
    admin_client.post("/api/mercadopago/create-pix", json={"service_id": service.id, "amount": "80"})

    notification = {"type": "payment", "action": "payment.updated", "data": {"id": "pay-1"}}
    assert anon_client.post("/api/mercadopago/webhook", json=notification).status_code == 200
    db.expire_all()
    assert db.get(Service, service.id).pix_pago == Decimal("0.00")

    fake_gateway["status"] = "approved"
    for _ in range(3):
        assert anon_client.post("/api/mercadopago/webhook", json=notification).status_code == 200

    db.expire_all()
    refreshed = db.get(Service, service.id)
    assert refreshed.pix_pago == Decimal("80.00")
    assert refreshed.valor_pago == Decimal("80.00")
    pix = db.query(PixPayment).one()
    assert pix.status == "approved"
    assert pix.approved_date == datetime(2024, 3, 15, 13, 0)

    # Consulta manual depois do webhook também não credita de novo
    status = admin_client.get("/api/mercadopago/payment/pay-1").json()
    assert status["status"] == "approved"
    db.expire_all()
    assert db.get(Service, service.id).pix_pago == Decimal("80.00")
    assert admin_client.get(f"/api/services/{service.id}").json()["payment_status"] == "paid"


def test_webhook_ignores_unknown_payment(anon_client, fake_gateway):
    fake_gateway["status"] = "approved"
    response = anon_client.post("/api/mercadopago/webhook", json={"type": "payment", "data": {"id": 999}})
    assert response.status_code == 200


def test_webhook_ignores_other_topics(anon_client):
    assert anon_client.post("/api/mercadopago/webhook", json={"type": "merchant_order"}).json() == {"status": "ignored"}


def test_config(admin_client):
    assert admin_client.get("/api/mercadopago/config").json() == {"public_key": "", "is_configured": False}


def test_create_pix_without_credentials(admin_client, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()))
    response = admin_client.post("/api/mercadopago/create-pix", json={"service_id": service.id, "amount": "10"})
    assert response.status_code == 502


@pytest.mark.parametrize(
    "kwargs",
    [
        {"json": {"type": "payment", "data": {"id": None}}},
        {"json": ["payment"]},
        {"content": b"type=payment&data.id=", "headers": {"Content-Type": "application/x-www-form-urlencoded"}},
        {"content": b""},
    ],
)
def test_webhook_answers_200_for_malformed_bodies(anon_client, kwargs):
    response = anon_client.post("/api/mercadopago/webhook", **kwargs)
    assert response.status_code == 200
    assert response.json() == {"status": "ignored"}


def test_webhook_query_string_notification(admin_client, anon_client, db, fake_gateway, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), estimated_value="80.00")
    admin_client.post("/api/mercadopago/create-pix", json={"service_id": service.id, "amount": "80"})
    fake_gateway["status"] = "approved"

    response = anon_client.post("/api/mercadopago/webhook?topic=payment&id=pay-1")
    assert response.json() == {"status": "ok"}
    db.expire_all()
    assert db.get(Service, service.id).pix_pago == Decimal("80.00")


def test_webhook_survives_unexpected_errors(anon_client, monkeypatch):
    def broken(payment_id):
        raise RuntimeError("resposta inesperada")

    monkeypatch.setattr(mercadopago_service, "get_payment_status", broken)
    response = anon_client.post("/api/mercadopago/webhook", json={"type": "payment", "data": {"id": "pay-9"}})
    assert response.status_code == 200

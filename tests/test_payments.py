from decimal import Decimal

import pytest

from carhub.database_models import Payment, Service
from carhub.services.payments import (
    apply_payment_breakdown,
    balance_due,
    classify_payment,
    compute_valor_pago,
    display_balance,
    payment_summary,
    service_total,
)


def test_valor_pago_is_sum_of_subtotals():
    assert compute_valor_pago("10.50", None, "4", Decimal("5.5")) == Decimal("20.00")
    assert compute_valor_pago() == Decimal("0.00")


@pytest.mark.parametrize(
    "paid, total, expected",
    [
        ("0", "100", "pending"),
        ("-5", "100", "pending"),
        ("40", "100", "partial"),
        ("100", "100", "paid"),
        ("120", "100", "paid"),
        ("10", "0", "paid"),
    ],
)
def test_classify_payment(paid, total, expected):
    assert classify_payment(paid, total) == expected


def test_overpayment_balance():
    assert balance_due("100", "120") == Decimal("-20.00")
    assert display_balance("100", "120") == Decimal("0.00")
    assert display_balance("100", "30") == Decimal("70.00")


def test_service_total_prefers_positive_final_value():
    assert service_total(Service(estimated_value=Decimal("80"), final_value=Decimal("95"))) == Decimal("95.00")
    assert service_total(Service(estimated_value=Decimal("80"), final_value=Decimal("0"))) == Decimal("80.00")
    assert service_total(Service()) == Decimal("0.00")


def test_breakdown_keeps_paid_total_in_sync():
    service = Service(pix_pago=Decimal("10"), dinheiro_pago=Decimal("0"), cheque_pago=Decimal("0"), cartao_pago=Decimal("0"))
    apply_payment_breakdown(service, dinheiro_pago="15", cartao_pago=None)
    assert service.valor_pago == Decimal("25.00")
    assert service.pix_pago == Decimal("10.00")


def test_breakdown_rejects_unknown_column():
    with pytest.raises(ValueError):
        apply_payment_breakdown(Service(), troco="1")


def test_summary():
    service = Service(estimated_value=Decimal("200"), valor_pago=Decimal("50"))
    assert payment_summary(service) == {"payment_status": "partial", "saldo": Decimal("150.00")}


def test_register_payment_endpoint(admin_client, db, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), estimated_value="150.00")

    response = admin_client.post(
        "/api/payments",
        json={"service_id": service.id, "amount": "50", "payment_method": "transfer", "notes": "sinal"},
    )
    assert response.status_code == 201, response.text
    assert response.json()["payment_method"] == "transfer"

    db.expire_all()
    refreshed = db.get(Service, service.id)
    assert refreshed.pix_pago == Decimal("50.00")
    assert refreshed.valor_pago == Decimal("50.00")
    assert db.query(Payment).count() == 1

    body = admin_client.get(f"/api/services/{service.id}").json()
    assert body["payment_status"] == "partial"
    assert Decimal(str(body["saldo"])) == Decimal("100.00")

    listed = admin_client.get(f"/api/services/{service.id}/payments").json()
    assert [p["notes"] for p in listed] == ["sinal"]


def test_payment_for_unknown_service(admin_client):
    response = admin_client.post("/api/payments", json={"service_id": 999, "amount": "10", "payment_method": "cash"})
    assert response.status_code == 400


def test_payment_amount_must_be_positive(admin_client, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()))
    response = admin_client.post("/api/payments", json={"service_id": service.id, "amount": "0", "payment_method": "cash"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Dados inválidos"

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from carhub.database_models import Customer, Service, ServiceItem, ServiceReminder
from carhub.models.service import ServiceCreate
from carhub.services import service_repository
from carhub.services.brazil_time import TIMEZONE

from conftest import service_type


def _payload(customer, vehicle, **kwargs):
    body = {
        "customer_id": customer.id,
        "vehicle_id": vehicle.id,
        "scheduled_date": (date.today() + timedelta(days=2)).isoformat(),
        "scheduled_time": "10:00:00",
    }
    body.update(kwargs)
    return body


def test_create_recomputes_estimated_value(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    vehicle = make_vehicle(customer)
    oil = service_type(db, "Troca de Óleo")
    wash = service_type(db, "Lavagem")

    response = admin_client.post(
        "/api/services",
        json=_payload(
            customer,
            vehicle,
            estimated_value="9999",
            service_items=[
                {"service_type_id": oil.id, "quantity": 2, "unit_price": "85.50", "total_price": "1"},
                {"service_type_id": wash.id},
            ],
        ),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert Decimal(str(body["estimated_value"])) == Decimal("201.00")
    assert body["status"] == "scheduled"
    assert body["customer_name"] == customer.name
    assert body["vehicle_plate"] == vehicle.license_plate
    assert [Decimal(str(i["total_price"])) for i in body["items"]] == [Decimal("171.00"), Decimal("30.00")]
    assert body["items"][1]["service_type_name"] == "Lavagem"


def test_create_accepts_legacy_extras_and_skips_zero(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    vehicle = make_vehicle(customer)
    brakes = service_type(db, "Freios")
    other = service_type(db, "Outros")

    response = admin_client.post(
        "/api/services",
        json=_payload(
            customer,
            vehicle,
            service_extras=[
                {"service_extra_id": brakes.id, "valor": "140", "observacao": "pastilhas"},
                {"service_extra_id": other.id, "valor": "0"},
            ],
        ),
    )
    assert response.status_code == 201, response.text
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["notes"] == "pastilhas"
    assert Decimal(str(response.json()["estimated_value"])) == Decimal("140.00")


def test_create_requires_items(admin_client, make_customer, make_vehicle):
    customer = make_customer()
    response = admin_client.post("/api/services", json=_payload(customer, make_vehicle(customer)))
    assert response.status_code == 400
    assert "pelo menos um" in response.json()["detail"]


def test_vehicle_must_belong_to_customer(admin_client, db, make_customer, make_vehicle):
    owner = make_customer()
    stranger = make_customer()
    vehicle = make_vehicle(owner)
    wash = service_type(db, "Lavagem")
    response = admin_client.post(
        "/api/services", json=_payload(stranger, vehicle, service_items=[{"service_type_id": wash.id}])
    )
    assert response.status_code == 400


def test_unknown_service_type_is_rejected(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    response = admin_client.post(
        "/api/services",
        json=_payload(customer, make_vehicle(customer), service_items=[{"service_type_id": 4242}]),
    )
    assert response.status_code == 400
    assert db.query(Service).count() == 0


def test_subtotals_define_valor_pago(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    wash = service_type(db, "Lavagem")
    response = admin_client.post(
        "/api/services",
        json=_payload(
            customer,
            make_vehicle(customer),
            service_items=[{"service_type_id": wash.id, "unit_price": "100"}],
            pix_pago="30",
            dinheiro_pago="",
            cartao_pago="20.5",
        ),
    )
    body = response.json()
    assert Decimal(str(body["valor_pago"])) == Decimal("50.50")
    assert body["payment_status"] == "partial"

    updated = admin_client.put(f"/api/services/{body['id']}", json={"cheque_pago": "49.50"}).json()
    assert Decimal(str(updated["valor_pago"])) == Decimal("100.00")
    assert updated["payment_status"] == "paid"
    assert Decimal(str(updated["saldo"])) == Decimal("0")


def test_missing_schedule_is_filled_with_brazil_now(db, make_customer, make_vehicle):
    customer = make_customer()
    vehicle = make_vehicle(customer)
    wash = service_type(db, "Lavagem")
    now = TIMEZONE.localize(datetime(2024, 6, 3, 16, 45, 0))

    service = service_repository.create_service(
        db,
        ServiceCreate(customer_id=customer.id, vehicle_id=vehicle.id, service_items=[{"service_type_id": wash.id}]),
        now=now,
    )
    assert service.scheduled_date == date(2024, 6, 3)
    assert service.scheduled_time == time(16, 45)


def test_status_flow_sets_timestamps_and_loyalty(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    vehicle = make_vehicle(customer)
    oil = service_type(db, "Troca de Óleo")
    wash = service_type(db, "Lavagem")
    created = admin_client.post(
        "/api/services",
        json=_payload(
            customer,
            vehicle,
            service_items=[{"service_type_id": oil.id}, {"service_type_id": wash.id, "quantity": 2}],
        ),
    ).json()

    started = admin_client.put(f"/api/services/{created['id']}", json={"status": "in_progress"}).json()
    assert started["started_at"] is not None
    assert started["completed_at"] is None

    done = admin_client.put(f"/api/services/{created['id']}", json={"status": "completed"}).json()
    assert done["completed_at"] is not None

    db.expire_all()
    # 10 pontos da troca de óleo + 2 x 5 da lavagem
    assert db.get(Customer, customer.id).loyalty_points == 20

    again = admin_client.put(f"/api/services/{created['id']}", json={"status": "completed"})
    assert again.status_code == 200
    db.expire_all()
    assert db.get(Customer, customer.id).loyalty_points == 20

    back = admin_client.put(f"/api/services/{created['id']}", json={"status": "scheduled"})
    assert back.status_code == 400


def test_invalid_transition_changes_nothing(admin_client, db, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), status="cancelled")
    response = admin_client.put(f"/api/services/{service.id}", json={"status": "in_progress", "notes": "reabrir"})
    assert response.status_code == 400
    db.expire_all()
    assert db.get(Service, service.id).notes is None


def test_replacing_items_recomputes_total(admin_client, db, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), estimated_value="30.00")
    review = service_type(db, "Revisão Geral")

    body = admin_client.put(
        f"/api/services/{service.id}",
        json={"service_items": [{"service_type_id": review.id, "unit_price": "250"}]},
    ).json()
    assert Decimal(str(body["estimated_value"])) == Decimal("250.00")
    assert [i["service_type_name"] for i in body["items"]] == ["Revisão Geral"]

    db.expire_all()
    assert db.query(ServiceItem).filter(ServiceItem.service_id == service.id).count() == 1


def test_empty_item_list_keeps_items(admin_client, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), estimated_value="30.00")
    body = admin_client.put(f"/api/services/{service.id}", json={"service_items": []}).json()
    assert len(body["items"]) == 1
    assert Decimal(str(body["estimated_value"])) == Decimal("30.00")


def test_delete_cascades_items(admin_client, db, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()))
    assert admin_client.delete(f"/api/services/{service.id}").status_code == 204
    db.expire_all()
    assert db.query(ServiceItem).count() == 0
    assert admin_client.get(f"/api/services/{service.id}").status_code == 404


def test_items_endpoint(admin_client, make_customer, make_vehicle, make_service):
    service = make_service(make_vehicle(make_customer()), type_name="Alinhamento", estimated_value="120.00")
    items = admin_client.get(f"/api/services/{service.id}/items").json()
    assert items[0]["service_type_name"] == "Alinhamento"
    assert items[0]["service_type_description"] == "Alinhamento e balanceamento"
    assert Decimal(str(items[0]["default_price"])) == Decimal("120.00")


def test_technician_sees_only_own_services(
    admin_client, tech_client, technician, make_customer, make_vehicle, make_service
):
    vehicle = make_vehicle(make_customer())
    mine = make_service(vehicle, technician=technician)
    other = make_service(vehicle)

    listed = tech_client.get("/api/services").json()
    assert [s["id"] for s in listed] == [mine.id]
    assert tech_client.get(f"/api/services/{other.id}").status_code == 404
    assert tech_client.put(f"/api/services/{other.id}", json={"notes": "x"}).status_code == 404
    assert tech_client.delete(f"/api/services/{other.id}").status_code == 404

    assert len(admin_client.get("/api/services").json()) == 2


def test_technician_is_assigned_to_own_service(tech_client, technician, db, make_customer, make_vehicle):
    customer = make_customer()
    wash = service_type(db, "Lavagem")
    body = tech_client.post(
        "/api/services", json=_payload(customer, make_vehicle(customer), service_items=[{"service_type_id": wash.id}])
    ).json()
    assert body["technician_id"] == technician.id
    assert body["technician_name"] == "Bruno Lima"


def test_technician_cannot_reassign_service(
    tech_client, admin_client, admin_user, technician, db, make_customer, make_vehicle, make_service
):
    service = make_service(make_vehicle(make_customer()), technician=technician)

    for new_owner in (admin_user.id, None):
        response = tech_client.put(f"/api/services/{service.id}", json={"technician_id": new_owner, "notes": "ok"})
        assert response.status_code == 200, response.text
        assert response.json()["technician_id"] == technician.id
        assert response.json()["notes"] == "ok"

    moved = admin_client.put(f"/api/services/{service.id}", json={"technician_id": admin_user.id})
    assert moved.json()["technician_id"] == admin_user.id


def test_status_filter(admin_client, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    make_service(vehicle, status="completed")
    scheduled = make_service(vehicle)
    listed = admin_client.get("/api/services", params={"status": "scheduled"}).json()
    assert [s["id"] for s in listed] == [scheduled.id]


def test_reminder_lifecycle(admin_client, db, make_customer, make_vehicle):
    customer = make_customer()
    wash = service_type(db, "Lavagem")
    body = admin_client.post(
        "/api/services",
        json=_payload(
            customer,
            make_vehicle(customer),
            scheduled_date="2030-01-10",
            scheduled_time="09:00:00",
            service_items=[{"service_type_id": wash.id}],
            reminder_enabled=True,
            reminder_minutes=60,
        ),
    ).json()

    info = admin_client.get(f"/api/services/{body['id']}/reminders").json()
    assert info["has_reminder"] is True
    assert info["reminder_minutes"] == 60
    # 09:00 em São Paulo = 12:00 UTC, menos uma hora
    assert info["scheduled_for"].startswith("2030-01-10T11:00")

    admin_client.put(f"/api/services/{body['id']}", json={"scheduled_time": "14:00:00"})
    db.expire_all()
    reminders = db.query(ServiceReminder).filter(ServiceReminder.service_id == body["id"]).all()
    assert len(reminders) == 1
    assert reminders[0].scheduled_for.hour == 16

    admin_client.put(f"/api/services/{body['id']}", json={"reminder_enabled": False})
    info = admin_client.get(f"/api/services/{body['id']}/reminders").json()
    assert info == {"has_reminder": False, "reminder_minutes": 30, "scheduled_for": None}


def test_requires_login(anon_client):
    assert anon_client.get("/api/services").status_code == 401

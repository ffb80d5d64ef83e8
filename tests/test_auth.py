from fastapi.testclient import TestClient

from main import app
from carhub.auth_utils import DEFAULT_SERVICE_TYPES, authenticate, technician_scope
from carhub.database_models import Service, ServiceType, User

from conftest import PASSWORD


def test_register_logs_in_as_technician(anon_client):
    response = anon_client.post(
        "/api/register", json={"username": "novato", "password": "segredo1", "first_name": "Caio"}
    )
    assert response.status_code == 201, response.text
    assert response.json()["role"] == "technician"
    me = anon_client.get("/api/user").json()
    assert me["username"] == "novato"


def test_register_duplicate_username(anon_client, technician):
    response = anon_client.post("/api/register", json={"username": technician.username, "password": "segredo1"})
    assert response.status_code == 400


def test_login_and_logout(technician):
    client = TestClient(app)
    assert client.post("/api/login", json={"username": "tecnico", "password": "errada"}).status_code == 401
    assert client.post("/api/login", json={"username": "tecnico", "password": PASSWORD}).status_code == 200
    assert client.get("/api/user").json()["first_name"] == "Bruno"
    assert client.post("/api/logout").status_code == 204
    assert client.get("/api/user").status_code == 401


def test_inactive_user_cannot_authenticate(db, technician):
    technician.is_active = False
    db.commit()
    assert authenticate(db, "tecnico", PASSWORD) is None


def test_technician_scope(admin_user, technician):
    assert technician_scope(admin_user) is None
    assert technician_scope(technician) == technician.id


def test_catalog_is_seeded(db):
    names = {name for (name,) in db.query(ServiceType.name).all()}
    assert names == {entry[0] for entry in DEFAULT_SERVICE_TYPES}


def test_admin_user_management(admin_client, tech_client, db, technician, make_customer, make_vehicle, make_service):
    assert tech_client.get("/api/admin/users").status_code == 403

    created = admin_client.post(
        "/api/admin/users", json={"username": "gerente", "password": "segredo1", "role": "admin"}
    )
    assert created.status_code == 201
    assert created.json()["role"] == "admin"

    patched = admin_client.patch(f"/api/admin/users/{technician.id}", json={"is_active": False})
    assert patched.json()["is_active"] is False
    assert tech_client.get("/api/user").status_code == 401

    service = make_service(make_vehicle(make_customer()), technician=technician)
    assert admin_client.delete(f"/api/admin/users/{technician.id}").status_code == 204
    db.expire_all()
    assert db.get(User, technician.id) is None
    assert db.get(Service, service.id).technician_id is None


def test_admin_cannot_remove_self(admin_client, admin_user):
    assert admin_client.delete(f"/api/admin/users/{admin_user.id}").status_code == 400
    assert admin_client.patch(f"/api/admin/users/{admin_user.id}", json={"role": "technician"}).status_code == 400


def test_service_type_admin(admin_client, tech_client, db):
    created = admin_client.post(
        "/api/admin/service-types",
        json={"name": "Polimento", "default_price": "120", "loyalty_points": 12, "estimated_duration": 90},
    )
    assert created.status_code == 201
    type_id = created.json()["id"]

    updated = admin_client.put(f"/api/admin/service-types/{type_id}", json={"default_price": "135.50"})
    assert updated.json()["default_price"] in ("135.50", 135.5)

    assert admin_client.delete(f"/api/admin/service-types/{type_id}").status_code == 204
    active = [t["name"] for t in tech_client.get("/api/service-types").json()]
    assert "Polimento" not in active
    every = [t["name"] for t in admin_client.get("/api/admin/service-types").json()]
    assert "Polimento" in every
    assert tech_client.post("/api/admin/service-types", json={"name": "X"}).status_code == 403

import os
import tempfile
from datetime import date, time
from decimal import Decimal

# Configuração precisa existir antes de importar o app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SESSION_SECRET"] = "segredo-de-teste"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="carhub-uploads-")
os.environ.pop("INITIAL_ADMIN_PASSWORD", None)
os.environ.pop("MERCADOPAGO_ACCESS_TOKEN", None)
os.environ.pop("PLATE_RECOGNIZER_API_KEY", None)
os.environ.pop("OCR_SPACE_API_KEY", None)

import pytest
from fastapi.testclient import TestClient

from main import app
from carhub.auth_utils import get_password_hash, seed_service_types
from carhub.database import Base, SessionLocal, engine
from carhub.database_models import Customer, Service, ServiceItem, ServiceType, User, Vehicle

PASSWORD = "senha123"


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    seed_service_types()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_user(db, username, role="technician", **kwargs):
    user = User(username=username, password_hash=get_password_hash(PASSWORD), role=role, **kwargs)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login(username):
    client = TestClient(app)
    response = client.post("/api/login", json={"username": username, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return client


@pytest.fixture
def admin_user(db):
    return make_user(db, "chefe", role="admin", first_name="Ana", last_name="Souza")


@pytest.fixture
def technician(db):
    return make_user(db, "tecnico", first_name="Bruno", last_name="Lima")


@pytest.fixture
def admin_client(admin_user):
    return login(admin_user.username)


@pytest.fixture
def tech_client(technician):
    return login(technician.username)


@pytest.fixture
def anon_client():
    return TestClient(app)


@pytest.fixture
def make_customer(db):
    counter = {"n": 0}

    def factory(**kwargs):
        counter["n"] += 1
        values = {"code": f"CLI{counter['n']:04d}", "name": f"Cliente {counter['n']}"}
        values.update(kwargs)
        customer = Customer(**values)
        db.add(customer)
        db.commit()
        db.refresh(customer)
        return customer

    return factory


@pytest.fixture
def make_vehicle(db):
    counter = {"n": 0}

    def factory(customer, **kwargs):
        counter["n"] += 1
        values = {
            "customer_id": customer.id,
            "license_plate": f"ABC{1000 + counter['n']}",
            "brand": "Fiat",
            "model": "Uno",
            "year": 2018,
        }
        values.update(kwargs)
        vehicle = Vehicle(**values)
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle

    return factory


def service_type(db, name):
    return db.query(ServiceType).filter(ServiceType.name == name).one()


@pytest.fixture
def make_service(db):
    """Serviço gravado direto no banco, com um item do tipo informado."""

    def factory(
        vehicle,
        status="scheduled",
        estimated_value="100.00",
        scheduled_date=None,
        scheduled_time=time(9, 0),
        technician=None,
        type_name="Lavagem",
        **kwargs
    ):
        st = service_type(db, type_name)
        service = Service(
            customer_id=vehicle.customer_id,
            vehicle_id=vehicle.id,
            technician_id=technician.id if technician else None,
            service_type_id=st.id,
            status=status,
            scheduled_date=scheduled_date or date.today(),
            scheduled_time=scheduled_time,
            estimated_value=Decimal(estimated_value),
            **kwargs
        )
        service.items = [
            ServiceItem(
                service_type_id=st.id,
                quantity=1,
                unit_price=Decimal(estimated_value),
                total_price=Decimal(estimated_value),
            )
        ]
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return factory

from datetime import datetime, timezone

from sqlalchemy import (
    TEXT,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import relationship

from .database import Base

MONEY = Numeric(10, 2)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# 1. Usuários (administradores e técnicos)
class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    email = Column(String(255))
    first_name = Column(String(100))
    last_name = Column(String(100))
    role = Column(String(20), nullable=False, default="technician")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    services = relationship("Service", back_populates="technician")

    @property
    def full_name(self):
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) or None


# 2. Clientes
class Customer(Base):
    __tablename__ = "customers"
    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(30), unique=True, nullable=False)
    document = Column(String(20), unique=True)  # CPF ou CNPJ
    document_type = Column(String(10))
    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(TEXT)
    city = Column(String(100))
    state = Column(String(2))
    zip_code = Column(String(10))
    observations = Column(TEXT)
    loyalty_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    vehicles = relationship("Vehicle", back_populates="owner")
    services = relationship("Service", back_populates="customer")


# 3. Veículos
class Vehicle(Base):
    __tablename__ = "vehicles"
    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    license_plate = Column(String(10), unique=True, nullable=False, index=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(50))
    chassis = Column(String(50))
    engine = Column(String(50))
    fuel_type = Column(String(30))
    notes = Column(TEXT)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("Customer", back_populates="vehicles")
    # Só serviços finalizados/cancelados chegam aqui na exclusão (ver vehicles.delete_vehicle)
    services = relationship("Service", back_populates="vehicle", cascade="all, delete-orphan")


# 4. Catálogo de tipos de serviço
class ServiceType(Base):
    __tablename__ = "service_types"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(TEXT)
    default_price = Column(MONEY, nullable=False, default=0)
    estimated_duration = Column(Integer)  # minutos
    is_active = Column(Boolean, nullable=False, default=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    interval_months = Column(Integer)
    loyalty_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# 5. Serviços (ordens de serviço / agendamentos)
class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled')",
            name="ck_services_status",
        ),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    technician_id = Column(Integer, ForeignKey("users.id"), index=True)
    service_type_id = Column(Integer, ForeignKey("service_types.id"))
    status = Column(String(20), nullable=False, default="scheduled", index=True)
    scheduled_date = Column(Date, index=True)
    scheduled_time = Column(Time)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    estimated_value = Column(MONEY)
    final_value = Column(MONEY)
    valor_pago = Column(MONEY, nullable=False, default=0)
    pix_pago = Column(MONEY, nullable=False, default=0)
    dinheiro_pago = Column(MONEY, nullable=False, default=0)
    cheque_pago = Column(MONEY, nullable=False, default=0)
    cartao_pago = Column(MONEY, nullable=False, default=0)
    notes = Column(TEXT)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    customer = relationship("Customer", back_populates="services")
    vehicle = relationship("Vehicle", back_populates="services")
    technician = relationship("User", back_populates="services")
    service_type = relationship("ServiceType")
    items = relationship(
        "ServiceItem",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="ServiceItem.id",
    )
    reminders = relationship("ServiceReminder", back_populates="service", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="service", cascade="all, delete-orphan")
    pix_payment = relationship("PixPayment", back_populates="service", uselist=False, cascade="all, delete-orphan")


# 6. Itens do serviço (um tipo de serviço por linha)
class ServiceItem(Base):
    __tablename__ = "service_items"
    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(MONEY, nullable=False, default=0)
    total_price = Column(MONEY, nullable=False, default=0)
    notes = Column(TEXT)
    created_at = Column(DateTime, default=utcnow)

    service = relationship("Service", back_populates="items")
    service_type = relationship("ServiceType")


# 7. Pagamentos avulsos
class Payment(Base):
    __tablename__ = "payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    payment_method = Column(String(20), nullable=False)
    payment_date = Column(Date, nullable=False)
    notes = Column(TEXT)
    created_at = Column(DateTime, default=utcnow)

    service = relationship("Service", back_populates="payments")


# 8. Cobranças PIX do MercadoPago (no máximo uma por serviço)
class PixPayment(Base):
    __tablename__ = "pix_payments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, unique=True)
    mercadopago_id = Column(String(50), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    qr_code = Column(TEXT)
    qr_code_base64 = Column(TEXT)
    pix_copy_paste = Column(TEXT)
    expiration_date = Column(DateTime)
    approved_date = Column(DateTime)
    customer_email = Column(String(255))
    customer_name = Column(String(255))
    customer_document = Column(String(20))
    external_reference = Column(String(100))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    service = relationship("Service", back_populates="pix_payment")


# 9. Fotos (dono: cliente, veículo ou serviço)
class Photo(Base):
    __tablename__ = "photos"
    __table_args__ = (
        CheckConstraint("entity_type IN ('customer', 'vehicle', 'service')", name="ck_photos_entity_type"),
    )
    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    category = Column(String(20), nullable=False, default="other")
    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(50), nullable=False)
    file_size = Column(Integer, nullable=False)
    url = Column(String(500), nullable=False)
    description = Column(TEXT)
    uploaded_by = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=utcnow)


# 10. Lembretes de agendamento
class ServiceReminder(Base):
    __tablename__ = "service_reminders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_minutes = Column(Integer, nullable=False, default=30)
    notification_sent = Column(Boolean, nullable=False, default=False)
    scheduled_for = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    service = relationship("Service", back_populates="reminders")

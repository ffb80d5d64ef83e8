import logging
import random
import string
import time
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from carhub.database_models import Customer, Service, Vehicle
from carhub.errors import DomainError, DuplicateDocument, NotFound
from carhub.models.customer import CustomerCreate, CustomerUpdate
from carhub.services.photos import OwnerKind, PhotoOwner, delete_owner_photos, remove_files

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(number: int) -> str:
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_customer_code(now_ms: Optional[int] = None) -> str:
    """Código curto do cliente: milissegundos em base 36 + 4 caracteres aleatórios."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(random.choices(_BASE36, k=4))
    return f"{_to_base36(now_ms)}{suffix}"


def list_customers(db: Session, search: Optional[str] = None) -> List[Customer]:
    query = db.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(pattern), Customer.document.ilike(pattern), Customer.code.ilike(pattern))
        )
    return query.order_by(Customer.name).all()


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFound("Cliente não encontrado.")
    return customer


def _check_document(db: Session, document: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not document:
        return
    query = db.query(Customer.id).filter(Customer.document == document)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise DuplicateDocument(document)


def _check_code(db: Session, code: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Customer.id).filter(Customer.code == code)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise DomainError(f"O código '{code}' já está em uso.")


def create_customer(db: Session, data: CustomerCreate) -> Customer:
    _check_document(db, data.document)
    values = data.model_dump()
    if values.get("document_type") is not None:
        values["document_type"] = values["document_type"].value
    if data.code:
        _check_code(db, data.code)
    else:
        values["code"] = generate_customer_code()

    customer = Customer(**values)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    logger.info("Cliente %s (%s) cadastrado", customer.id, customer.code)
    return customer


def update_customer(db: Session, customer_id: int, data: CustomerUpdate) -> Customer:
    customer = get_customer(db, customer_id)
    values = data.model_dump(exclude_unset=True)
    if "document" in values:
        _check_document(db, values["document"], exclude_id=customer_id)
    if values.get("code"):
        _check_code(db, values["code"], exclude_id=customer_id)
    if values.get("document_type") is not None:
        values["document_type"] = values["document_type"].value
    if "name" in values and not values["name"]:
        raise DomainError("O nome do cliente é obrigatório.")

    for field, value in values.items():
        setattr(customer, field, value)
    db.commit()
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer_id: int) -> None:
    """Exclui o cliente. Clientes com veículos ou serviços não podem ser excluídos."""
    customer = get_customer(db, customer_id)
    vehicles = db.query(func.count(Vehicle.id)).filter(Vehicle.customer_id == customer_id).scalar()
    services = db.query(func.count(Service.id)).filter(Service.customer_id == customer_id).scalar()
    if vehicles or services:
        raise DomainError(
            f"Não é possível excluir este cliente pois há {vehicles} veículo(s) e "
            f"{services} serviço(s) vinculados."
        )

    file_names = delete_owner_photos(db, PhotoOwner(OwnerKind.CUSTOMER, customer_id))
    db.delete(customer)
    db.commit()
    remove_files(file_names)
    logger.info("Cliente %s excluído", customer_id)

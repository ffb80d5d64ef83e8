import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from carhub.database_models import Customer, Service, Vehicle
from carhub.errors import DomainError, DuplicatePlate, NotFound, VehicleHasOpenServices
from carhub.models.vehicle import VehicleCreate, VehicleUpdate
from carhub.services.photos import OwnerKind, PhotoOwner, delete_owner_photos, remove_files
from carhub.services.service_repository import TERMINAL_STATUSES

logger = logging.getLogger(__name__)


def list_vehicles(db: Session, customer_id: Optional[int] = None) -> List[Vehicle]:
    query = db.query(Vehicle).options(joinedload(Vehicle.owner))
    if customer_id is not None:
        query = query.filter(Vehicle.customer_id == customer_id)
    return query.order_by(Vehicle.license_plate).all()


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).options(joinedload(Vehicle.owner)).filter(Vehicle.id == vehicle_id).first()
    if vehicle is None:
        raise NotFound("Veículo não encontrado.")
    return vehicle


def _check_plate(db: Session, plate: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Vehicle.id).filter(Vehicle.license_plate == plate)
    if exclude_id is not None:
        query = query.filter(Vehicle.id != exclude_id)
    if query.first() is not None:
        raise DuplicatePlate(plate)


def _check_customer(db: Session, customer_id: int) -> None:
    if db.get(Customer, customer_id) is None:
        raise DomainError("Cliente informado não existe.")


def create_vehicle(db: Session, data: VehicleCreate) -> Vehicle:
    _check_customer(db, data.customer_id)
    _check_plate(db, data.license_plate)
    vehicle = Vehicle(**data.model_dump())
    db.add(vehicle)
    db.commit()
    logger.info("Veículo %s (%s) cadastrado", vehicle.id, vehicle.license_plate)
    return get_vehicle(db, vehicle.id)


def update_vehicle(db: Session, vehicle_id: int, data: VehicleUpdate) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    values = data.model_dump(exclude_unset=True)
    if values.get("customer_id") is not None:
        _check_customer(db, values["customer_id"])
    if values.get("license_plate"):
        _check_plate(db, values["license_plate"], exclude_id=vehicle_id)

    for field, value in values.items():
        if value is None and field in ("customer_id", "license_plate", "brand", "model", "year"):
            continue
        setattr(vehicle, field, value)
    db.commit()
    return get_vehicle(db, vehicle_id)


def count_open_services(db: Session, vehicle_id: int) -> int:
    return (
        db.query(func.count(Service.id))
        .filter(Service.vehicle_id == vehicle_id, Service.status.notin_(TERMINAL_STATUSES))
        .scalar()
    )


def delete_vehicle(db: Session, vehicle_id: int) -> None:
    """Exclui o veículo e seus serviços já encerrados.

    Com serviço agendado ou em andamento nada é alterado e
    VehicleHasOpenServices é levantado.
    """
    vehicle = get_vehicle(db, vehicle_id)
    open_count = count_open_services(db, vehicle_id)
    if open_count > 0:
        raise VehicleHasOpenServices(open_count)

    file_names = delete_owner_photos(db, PhotoOwner(OwnerKind.VEHICLE, vehicle_id))
    for service in vehicle.services:
        file_names += delete_owner_photos(db, PhotoOwner(OwnerKind.SERVICE, service.id))
    db.delete(vehicle)
    db.commit()
    remove_files(file_names)
    logger.info("Veículo %s excluído", vehicle_id)

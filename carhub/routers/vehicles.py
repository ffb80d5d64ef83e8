import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user, technician_scope
from carhub.database import get_db
from carhub.database_models import User
from carhub.models.photo import CameraPhoto, Photo, PhotoCategory
from carhub.models.service import Service
from carhub.models.vehicle import VehicleCreate, VehicleUpdate, VehicleWithOwner
from carhub.routers.photos import store_camera_photo, store_upload
from carhub.services import photos, service_repository, vehicles
from carhub.services.photos import OwnerKind, PhotoOwner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vehicles", tags=["vehicles"])


@router.get("", response_model=List[VehicleWithOwner])
def list_vehicles(
    customer_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return [VehicleWithOwner.from_vehicle(v) for v in vehicles.list_vehicles(db, customer_id)]


@router.post("", response_model=VehicleWithOwner, status_code=status.HTTP_201_CREATED)
def create_vehicle(data: VehicleCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return VehicleWithOwner.from_vehicle(vehicles.create_vehicle(db, data))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao criar veículo: %s", e)
        raise HTTPException(status_code=500, detail="Falha ao criar veículo")


@router.get("/{vehicle_id}", response_model=VehicleWithOwner)
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return VehicleWithOwner.from_vehicle(vehicles.get_vehicle(db, vehicle_id))


@router.put("/{vehicle_id}", response_model=VehicleWithOwner)
def update_vehicle(
    vehicle_id: int,
    data: VehicleUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return VehicleWithOwner.from_vehicle(vehicles.update_vehicle(db, vehicle_id, data))
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar veículo %s: %s", vehicle_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar veículo")


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(vehicle_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Recusa (400) se o veículo ainda tiver serviço agendado ou em andamento."""
    try:
        vehicles.delete_vehicle(db, vehicle_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao excluir veículo %s: %s", vehicle_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir veículo")


@router.get("/{vehicle_id}/services", response_model=List[Service])
def vehicle_services(vehicle_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicles.get_vehicle(db, vehicle_id)
    services = service_repository.list_services(db, technician_id=technician_scope(user), vehicle_id=vehicle_id)
    return [Service.from_service(s) for s in services]


@router.get("/{vehicle_id}/photos", response_model=List[Photo])
def vehicle_photos(vehicle_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    vehicles.get_vehicle(db, vehicle_id)
    return photos.list_photos(db, vehicle_id=vehicle_id)


@router.post("/{vehicle_id}/photos", response_model=Photo, status_code=status.HTTP_201_CREATED)
async def upload_vehicle_photo(
    vehicle_id: int,
    photo: UploadFile = File(...),
    category: PhotoCategory = Form(PhotoCategory.VEHICLE),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await store_upload(db, PhotoOwner(OwnerKind.VEHICLE, vehicle_id), photo, category, description, user)


@router.post("/{vehicle_id}/photos/camera", response_model=Photo, status_code=status.HTTP_201_CREATED)
def vehicle_camera_photo(
    vehicle_id: int,
    data: CameraPhoto,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return store_camera_photo(db, PhotoOwner(OwnerKind.VEHICLE, vehicle_id), data, user)

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user
from carhub.database import get_db
from carhub.database_models import User
from carhub.models.customer import Customer, CustomerCreate, CustomerUpdate
from carhub.models.photo import CameraPhoto, Photo, PhotoCategory
from carhub.models.vehicle import VehicleWithOwner
from carhub.routers.photos import store_camera_photo, store_upload
from carhub.services import customers, photos, vehicles
from carhub.services.photos import OwnerKind, PhotoOwner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get("", response_model=List[Customer])
def list_customers(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return customers.list_customers(db, search)


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return customers.create_customer(db, data)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao criar cliente: %s", e)
        raise HTTPException(status_code=500, detail="Falha ao criar cliente")


@router.get("/{customer_id}", response_model=Customer)
def get_customer(customer_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return customers.get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=Customer)
def update_customer(
    customer_id: int,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return customers.update_customer(db, customer_id, data)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar cliente %s: %s", customer_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar cliente")


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        customers.delete_customer(db, customer_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao excluir cliente %s: %s", customer_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir cliente")


@router.get("/{customer_id}/vehicles", response_model=List[VehicleWithOwner])
def customer_vehicles(customer_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    customers.get_customer(db, customer_id)
    return [VehicleWithOwner.from_vehicle(v) for v in vehicles.list_vehicles(db, customer_id=customer_id)]


@router.get("/{customer_id}/photos", response_model=List[Photo])
def customer_photos(customer_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    customers.get_customer(db, customer_id)
    return photos.list_photos(db, customer_id=customer_id)


@router.post("/{customer_id}/photos", response_model=Photo, status_code=status.HTTP_201_CREATED)
async def upload_customer_photo(
    customer_id: int,
    photo: UploadFile = File(...),
    category: PhotoCategory = Form(PhotoCategory.OTHER),
    description: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return await store_upload(db, PhotoOwner(OwnerKind.CUSTOMER, customer_id), photo, category, description, user)


@router.post("/{customer_id}/photos/camera", response_model=Photo, status_code=status.HTTP_201_CREATED)
def customer_camera_photo(
    customer_id: int,
    data: CameraPhoto,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return store_camera_photo(db, PhotoOwner(OwnerKind.CUSTOMER, customer_id), data, user)

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user
from carhub.database import get_db
from carhub.database_models import User
from carhub.models.photo import CameraPhoto, Photo, PhotoCategory, PhotoUpdate
from carhub.services import photos
from carhub.services.photos import PhotoOwner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/photos", tags=["photos"])


async def store_upload(
    db: Session,
    owner: PhotoOwner,
    upload: UploadFile,
    category: PhotoCategory,
    description: Optional[str],
    user: User,
):
    """Lê o arquivo multipart e grava a foto do dono informado."""
    try:
        # Lê no máximo um byte além do limite
        content = await upload.read(photos.MAX_UPLOAD_BYTES + 1)
    finally:
        await upload.close()
    photos.check_size(content)
    try:
        return photos.save_photo(
            db,
            owner,
            content,
            upload.filename,
            upload.content_type,
            category=category.value,
            description=description,
            uploaded_by=user.id,
        )
    except SQLAlchemyError as e:
        logger.error("Erro ao salvar foto de %s %s: %s", owner.kind.value, owner.id, e)
        raise HTTPException(status_code=500, detail="Falha ao salvar a foto")


def store_camera_photo(db: Session, owner: PhotoOwner, data: CameraPhoto, user: User):
    content = photos.decode_data_url(data.photo)
    try:
        return photos.save_photo(
            db,
            owner,
            content,
            f"camera_{owner.kind.value}_{owner.id}.jpg",
            "image/jpeg",
            category=data.category.value,
            description=data.description,
            uploaded_by=user.id,
            prefix="camera",
        )
    except SQLAlchemyError as e:
        logger.error("Erro ao salvar foto da câmera de %s %s: %s", owner.kind.value, owner.id, e)
        raise HTTPException(status_code=500, detail="Falha ao salvar a foto")


@router.get("", response_model=List[Photo])
def list_photos(
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    service_id: Optional[int] = None,
    category: Optional[PhotoCategory] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return photos.list_photos(
        db,
        customer_id=customer_id,
        vehicle_id=vehicle_id,
        service_id=service_id,
        category=category.value if category else None,
    )


@router.post("/upload", response_model=Photo, status_code=status.HTTP_201_CREATED)
async def upload_photo(
    photo: UploadFile = File(...),
    category: PhotoCategory = Form(PhotoCategory.OTHER),
    description: Optional[str] = Form(None),
    customer_id: Optional[int] = Form(None),
    vehicle_id: Optional[int] = Form(None),
    service_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Upload genérico: exatamente um entre customer_id, vehicle_id e service_id."""
    owner = PhotoOwner.from_ids(customer_id, vehicle_id, service_id)
    return await store_upload(db, owner, photo, category, description, user)


@router.get("/{photo_id}", response_model=Photo)
def get_photo(photo_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return photos.get_photo(db, photo_id)


@router.put("/{photo_id}", response_model=Photo)
def update_photo(
    photo_id: int,
    data: PhotoUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    try:
        return photos.update_photo(db, photo_id, data)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar foto %s: %s", photo_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar a foto")


@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_photo(photo_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        photos.delete_photo(db, photo_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao excluir foto %s: %s", photo_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir a foto")

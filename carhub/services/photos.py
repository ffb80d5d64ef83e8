"""Fotos de clientes, veículos e serviços.

Toda imagem recebida é reduzida para caber em 480x480 (sem ampliar) e
regravada como JPEG progressivo antes de ir para o disco.
"""
import base64
import binascii
import io
import logging
import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from PIL import Image, UnidentifiedImageError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from carhub.config import settings
from carhub.database_models import Customer, Photo, Service, Vehicle
from carhub.errors import DomainError, InvalidPhotoOwner, NotFound
from carhub.models.photo import PhotoUpdate

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024
MAX_DIMENSIONS = (480, 480)
JPEG_QUALITY = 70

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")


class OwnerKind(str, Enum):
    CUSTOMER = "customer"
    VEHICLE = "vehicle"
    SERVICE = "service"


OWNER_MODELS = {
    OwnerKind.CUSTOMER: Customer,
    OwnerKind.VEHICLE: Vehicle,
    OwnerKind.SERVICE: Service,
}

OWNER_LABELS = {
    OwnerKind.CUSTOMER: "Cliente",
    OwnerKind.VEHICLE: "Veículo",
    OwnerKind.SERVICE: "Serviço",
}


@dataclass(frozen=True)
class PhotoOwner:
    kind: OwnerKind
    id: int

    @classmethod
    def from_ids(
        cls,
        customer_id: Optional[int] = None,
        vehicle_id: Optional[int] = None,
        service_id: Optional[int] = None,
    ) -> "PhotoOwner":
        """Exatamente um dos ids deve ser informado."""
        given = [
            (kind, owner_id)
            for kind, owner_id in (
                (OwnerKind.CUSTOMER, customer_id),
                (OwnerKind.VEHICLE, vehicle_id),
                (OwnerKind.SERVICE, service_id),
            )
            if owner_id is not None
        ]
        if len(given) != 1:
            raise InvalidPhotoOwner("Informe exatamente um entre customer_id, vehicle_id ou service_id.")
        kind, owner_id = given[0]
        return cls(kind, owner_id)


def ensure_owner_exists(db: Session, owner: PhotoOwner) -> None:
    if db.get(OWNER_MODELS[owner.kind], owner.id) is None:
        raise NotFound(f"{OWNER_LABELS[owner.kind]} não encontrado.")


def upload_dir() -> Path:
    path = Path(settings.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def decode_data_url(data: str) -> bytes:
    """Converte a foto da câmera (data URL ou base64 puro) em bytes."""
    try:
        return base64.b64decode(_DATA_URL_PREFIX.sub("", data.strip()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DomainError("Imagem em base64 inválida.") from e


def compress_image(content: bytes) -> bytes:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise DomainError("Arquivo de imagem inválido.") from e

    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    # thumbnail mantém a proporção e nunca amplia
    image.thumbnail(MAX_DIMENSIONS)

    output = io.BytesIO()
    image.save(output, format="JPEG", quality=JPEG_QUALITY, progressive=True)
    return output.getvalue()


def _unique_name(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}.jpg"


def check_size(content: bytes) -> None:
    if len(content) > MAX_UPLOAD_BYTES:
        raise DomainError("A imagem excede o limite de 10 MB.")


def save_photo(
    db: Session,
    owner: PhotoOwner,
    content: bytes,
    original_name: Optional[str],
    mime_type: Optional[str],
    category: str = "other",
    description: Optional[str] = None,
    uploaded_by: Optional[int] = None,
    prefix: str = "compressed",
) -> Photo:
    if not mime_type or not mime_type.startswith("image/"):
        raise DomainError("Apenas arquivos de imagem são permitidos.")
    if not content:
        raise DomainError("Nenhuma foto enviada.")
    check_size(content)
    ensure_owner_exists(db, owner)

    compressed = compress_image(content)
    file_name = _unique_name(prefix)
    path = upload_dir() / file_name
    path.write_bytes(compressed)

    photo = Photo(
        entity_type=owner.kind.value,
        entity_id=owner.id,
        category=category or "other",
        file_name=file_name,
        original_name=original_name or file_name,
        mime_type="image/jpeg",
        file_size=len(compressed),
        url=f"/uploads/{file_name}",
        description=description or None,
        uploaded_by=uploaded_by,
    )
    db.add(photo)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        path.unlink(missing_ok=True)
        raise
    db.refresh(photo)
    logger.info("Foto %s salva para %s %s (%d bytes)", file_name, owner.kind.value, owner.id, len(compressed))
    return photo


def list_photos(
    db: Session,
    customer_id: Optional[int] = None,
    vehicle_id: Optional[int] = None,
    service_id: Optional[int] = None,
    category: Optional[str] = None,
) -> List[Photo]:
    query = db.query(Photo)
    for kind, owner_id in (
        (OwnerKind.CUSTOMER, customer_id),
        (OwnerKind.VEHICLE, vehicle_id),
        (OwnerKind.SERVICE, service_id),
    ):
        if owner_id is not None:
            query = query.filter(Photo.entity_type == kind.value, Photo.entity_id == owner_id)
    if category:
        query = query.filter(Photo.category == category)
    return query.order_by(Photo.created_at.desc(), Photo.id.desc()).all()


def get_photo(db: Session, photo_id: int) -> Photo:
    photo = db.get(Photo, photo_id)
    if photo is None:
        raise NotFound("Foto não encontrada.")
    return photo


def update_photo(db: Session, photo_id: int, data: PhotoUpdate) -> Photo:
    photo = get_photo(db, photo_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if field == "category" and value is not None:
            value = value.value
        setattr(photo, field, value)
    db.commit()
    db.refresh(photo)
    return photo


def remove_files(file_names: List[str]) -> None:
    for file_name in file_names:
        (upload_dir() / file_name).unlink(missing_ok=True)


def delete_photo(db: Session, photo_id: int) -> None:
    photo = get_photo(db, photo_id)
    db.delete(photo)
    db.commit()
    remove_files([photo.file_name])
    logger.info("Foto %s excluída", photo.file_name)


def delete_owner_photos(db: Session, owner: PhotoOwner) -> List[str]:
    """Marca as fotos de um dono para exclusão. Não faz commit.

    Devolve os nomes dos arquivos, que só devem ser apagados com
    `remove_files` depois que o commit der certo.
    """
    photos = db.query(Photo).filter(Photo.entity_type == owner.kind.value, Photo.entity_id == owner.id).all()
    for photo in photos:
        db.delete(photo)
    return [photo.file_name for photo in photos]

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PhotoCategory(str, Enum):
    VEHICLE = "vehicle"
    SERVICE = "service"
    DAMAGE = "damage"
    BEFORE = "before"
    AFTER = "after"
    OTHER = "other"


class PhotoUpdate(BaseModel):
    category: Optional[PhotoCategory] = None
    description: Optional[str] = None


class CameraPhoto(BaseModel):
    """Foto tirada pela câmera do app, enviada como data URL em base64."""

    photo: str
    category: PhotoCategory = PhotoCategory.OTHER
    description: Optional[str] = None


class Photo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int
    category: PhotoCategory
    file_name: str
    original_name: str
    mime_type: str
    file_size: int
    url: str
    description: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

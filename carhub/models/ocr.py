from typing import Optional

from pydantic import BaseModel, Field


class ReadPlateRequest(BaseModel):
    base64_image: str = Field(..., min_length=1)


class ValidatePlateRequest(BaseModel):
    plate: str = Field(..., min_length=1)


class LocalPlateRequest(BaseModel):
    plate_text: str = Field(..., min_length=1)


class PlateResult(BaseModel):
    plate: str
    confidence: float
    country: str = "Brazil"
    state: Optional[str] = ""
    is_valid: bool
    format: str

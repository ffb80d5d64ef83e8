from fastapi import APIRouter, Depends

from carhub.auth_utils import get_current_user
from carhub.database_models import User
from carhub.models.ocr import LocalPlateRequest, PlateResult, ReadPlateRequest, ValidatePlateRequest
from carhub.services import plate_reader

router = APIRouter(prefix="/api/ocr", tags=["ocr"])


@router.post("/read-plate", response_model=PlateResult)
def read_plate(data: ReadPlateRequest, user: User = Depends(get_current_user)):
    """Lê a placa da foto usando os provedores de OCR configurados."""
    return plate_reader.read_plate(data.base64_image)


@router.post("/validate-plate")
def validate_plate(data: ValidatePlateRequest, user: User = Depends(get_current_user)):
    return {
        "is_valid": plate_reader.validate_brazilian_plate(data.plate),
        "formatted_plate": plate_reader.format_plate_display(data.plate),
        "plate": data.plate.upper(),
    }


@router.post("/read-plate-local", response_model=PlateResult)
def read_plate_local(data: LocalPlateRequest, user: User = Depends(get_current_user)):
    """Placa digitada manualmente, quando não há OCR disponível."""
    return plate_reader.read_plate_local(data.plate_text)

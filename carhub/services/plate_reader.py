"""Leitura de placas brasileiras: validação local e provedores de OCR."""
import base64
import binascii
import logging
import re
from typing import List, Optional

import requests

from carhub.config import settings
from carhub.errors import GatewayError
from carhub.models.ocr import PlateResult

logger = logging.getLogger(__name__)

TIMEOUT = 15

OLD_FORMAT = re.compile(r"^[A-Z]{3}[0-9]{4}$")
MERCOSUL_FORMAT = re.compile(r"^[A-Z]{3}[0-9][A-Z][0-9]{2}$")

# Ordem importa: Mercosul tem prioridade, depois as variantes com espaço ou hífen
TEXT_PATTERNS = (
    re.compile(r"[A-Z]{3}[0-9][A-Z][0-9]{2}"),
    re.compile(r"[A-Z]{3}[0-9]{4}"),
    re.compile(r"[A-Z]{3}\s*-?\s*[0-9][A-Z][0-9]{2}"),
    re.compile(r"[A-Z]{3}\s*-?\s*[0-9]{4}"),
)

_DATA_URL_PREFIX = re.compile(r"^data:image/[a-z]+;base64,")

PLATE_RECOGNIZER_MIN_CONFIDENCE = 0.7
OCR_SPACE_MIN_CONFIDENCE = 0.8


def clean_plate(plate: Optional[str]) -> str:
    if not plate:
        return ""
    return re.sub(r"[^A-Z0-9]", "", plate.upper())


def validate_brazilian_plate(plate: Optional[str]) -> bool:
    cleaned = clean_plate(plate)
    return bool(OLD_FORMAT.match(cleaned) or MERCOSUL_FORMAT.match(cleaned))


def plate_format(plate: Optional[str]) -> str:
    if not plate:
        return "Desconhecido"
    cleaned = clean_plate(plate)
    if OLD_FORMAT.match(cleaned):
        return "Antigo (ABC1234)"
    if MERCOSUL_FORMAT.match(cleaned):
        return "Mercosul (ABC1D23)"
    return "Formato inválido"


def format_plate_display(plate: Optional[str]) -> str:
    """Placa antiga ganha hífen (ABC-1234); Mercosul fica como está."""
    cleaned = clean_plate(plate)
    if OLD_FORMAT.match(cleaned):
        return f"{cleaned[:3]}-{cleaned[3:]}"
    return cleaned


def empty_result() -> PlateResult:
    return PlateResult(plate="", confidence=0, country="Brasil", is_valid=False, format="Desconhecido")


def read_plate_local(text: str) -> PlateResult:
    """Placa digitada pelo usuário: confiança total, sem estado."""
    cleaned = clean_plate(text)
    return PlateResult(
        plate=cleaned,
        confidence=1.0,
        country="Brazil",
        state="",
        is_valid=validate_brazilian_plate(cleaned),
        format=plate_format(cleaned),
    )


def extract_plate_from_text(text: Optional[str]) -> Optional[str]:
    """Procura uma placa no texto bruto devolvido pelo OCR."""
    if not text:
        return None
    normalized = re.sub(r"\s+", " ", re.sub(r"[\r\n]+", " ", text)).upper()

    for pattern in TEXT_PATTERNS:
        match = pattern.search(normalized)
        if match:
            return re.sub(r"[\s-]", "", match.group(0))

    for token in re.findall(r"[A-Z0-9]+", normalized):
        if MERCOSUL_FORMAT.match(token) or OLD_FORMAT.match(token):
            return token
    return None


def strip_data_url(image: str) -> str:
    return _DATA_URL_PREFIX.sub("", image.strip())


def decode_image(image: str) -> bytes:
    try:
        return base64.b64decode(strip_data_url(image), validate=True)
    except (binascii.Error, ValueError) as e:
        raise GatewayError("Imagem inválida: base64 mal formado.") from e


class PlateRecognizerService:
    URL = "https://api.platerecognizer.com/v1/plate-reader/"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def read_plate(self, image: str) -> PlateResult:
        content = decode_image(image)
        try:
            response = self.session.post(
                self.URL,
                headers={"Authorization": f"Token {self.api_key}"},
                files={"upload": ("image.jpg", content, "image/jpeg")},
                data={"regions": "br", "camera_id": "carhub-ocr"},
                timeout=TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Erro no Plate Recognizer: %s", e)
            raise GatewayError(f"Erro ao processar a imagem da placa: {e}") from e

        results = data.get("results") or []
        if not results:
            return empty_result()

        best = results[0]
        plate = (best.get("plate") or "").upper()
        region = best.get("region") or {}
        logger.info("Plate Recognizer leu %s (score %s)", plate, best.get("score"))
        return PlateResult(
            plate=plate,
            confidence=best.get("score") or 0,
            country="Brasil",
            state=region.get("code") or "",
            is_valid=validate_brazilian_plate(plate),
            format=plate_format(plate),
        )


class OcrSpaceService:
    URL = "https://api.ocr.space/parse/image"

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.session = session or requests.Session()

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def read_plate(self, image: str) -> PlateResult:
        form = {
            "apikey": self.api_key,
            "base64Image": "data:image/jpeg;base64," + strip_data_url(image),
            "language": "eng",
            "isOverlayRequired": "true",
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": "2",
            "isTable": "false",
            "filetype": "jpg",
        }
        try:
            response = self.session.post(self.URL, data=form, timeout=TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Erro no OCR.Space: %s", e)
            raise GatewayError("Erro ao processar a imagem da placa") from e

        parsed = data.get("ParsedResults") or []
        if data.get("IsErroredOnProcessing") or not parsed:
            logger.warning("OCR.Space não retornou texto: %s", data.get("ErrorMessage"))
            return empty_result()

        plate = extract_plate_from_text(parsed[0].get("ParsedText"))
        if plate is None:
            return empty_result()
        return read_plate_local(plate)


plate_recognizer_service = PlateRecognizerService(settings.plate_recognizer_api_key)
ocr_space_service = OcrSpaceService(settings.ocr_space_api_key)


def read_plate(
    image: str,
    providers: Optional[List[tuple]] = None,
) -> PlateResult:
    """Tenta os provedores em ordem e aceita a primeira leitura válida e confiável.

    `providers` é uma lista de (serviço, confiança mínima). Sem leitura
    aceita, devolve a de maior confiança; sem nenhuma leitura, GatewayError.
    """
    if providers is None:
        providers = [
            (plate_recognizer_service, PLATE_RECOGNIZER_MIN_CONFIDENCE),
            (ocr_space_service, OCR_SPACE_MIN_CONFIDENCE),
        ]
    configured = [(service, minimum) for service, minimum in providers if service.is_configured()]
    if not configured:
        raise GatewayError("Nenhum serviço de OCR configurado.")

    candidates = []
    last_error = None
    for service, minimum in configured:
        try:
            result = service.read_plate(image)
        except GatewayError as e:
            last_error = e
            continue
        if result.is_valid and result.confidence >= minimum:
            return result
        candidates.append(result)

    if candidates:
        return max(candidates, key=lambda r: r.confidence)
    raise last_error

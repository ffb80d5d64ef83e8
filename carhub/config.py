import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class Settings:
    database_url: str
    session_secret: str
    upload_dir: str = "uploads"
    log_level: str = "INFO"
    session_max_age: int = 7 * 24 * 60 * 60  # uma semana
    https_only: bool = False
    initial_admin_password: Optional[str] = None
    mercadopago_access_token: Optional[str] = None
    mercadopago_public_key: str = ""
    plate_recognizer_api_key: Optional[str] = None
    ocr_space_api_key: Optional[str] = None


def _required(name: str) -> str:
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"Variável de ambiente obrigatória ausente: {name}")
    return value


def load_settings() -> Settings:
    """Lê a configuração do ambiente (e do .env). Falha se faltar algo obrigatório."""
    # Heroku e afins ainda entregam o esquema antigo
    database_url = _required("DATABASE_URL").replace("postgres://", "postgresql://", 1)

    try:
        session_max_age = int(os.getenv("SESSION_MAX_AGE", str(7 * 24 * 60 * 60)))
    except ValueError as e:
        raise ConfigError(f"SESSION_MAX_AGE inválido: {e}") from e

    return Settings(
        database_url=database_url,
        session_secret=_required("SESSION_SECRET"),
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        session_max_age=session_max_age,
        https_only=os.getenv("HTTPS_ONLY", "false").lower() == "true",
        initial_admin_password=os.getenv("INITIAL_ADMIN_PASSWORD") or None,
        mercadopago_access_token=os.getenv("MERCADOPAGO_ACCESS_TOKEN") or None,
        mercadopago_public_key=os.getenv("MERCADOPAGO_PUBLIC_KEY", ""),
        plate_recognizer_api_key=os.getenv("PLATE_RECOGNIZER_API_KEY") or None,
        ocr_space_api_key=os.getenv("OCR_SPACE_API_KEY") or None,
    )


settings = load_settings()

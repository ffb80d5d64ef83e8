import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette import status as status_codes
from starlette.middleware.sessions import SessionMiddleware

from carhub.config import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# --- Banco de dados ---
from carhub.database import Base, engine
from carhub import database_models  # noqa: F401  (registra as tabelas no Base)
from carhub.auth_utils import create_admin_user_if_not_exists, seed_service_types
from carhub.errors import DomainError, GatewayError, NotFound

# --- Roteadores ---
from carhub.routers import (
    admin,
    auth,
    customers,
    dashboard,
    mercadopago,
    ocr,
    payments,
    photos,
    service_types,
    services,
    vehicles,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="CarHub Oficina")
Base.metadata.create_all(bind=engine)
create_admin_user_if_not_exists()
seed_service_types()

app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age,
    https_only=settings.https_only,
)

UPLOAD_DIR = Path(settings.upload_dir)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status_codes.HTTP_400_BAD_REQUEST,
        content={"detail": "Dados inválidos", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status_codes.HTTP_404_NOT_FOUND, content={"detail": exc.message})


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(status_code=status_codes.HTTP_400_BAD_REQUEST, content={"detail": exc.message})


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    logger.error("Falha em serviço externo em %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_codes.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})


# Inclui os roteadores (ordem não importa)
app.include_router(auth.router)
app.include_router(customers.router)
app.include_router(vehicles.router)
app.include_router(services.router)
app.include_router(service_types.router)
app.include_router(payments.router)
app.include_router(dashboard.router)
app.include_router(photos.router)
app.include_router(ocr.router)
app.include_router(mercadopago.router)
app.include_router(admin.router)


@app.get("/status")
def status(request: Request):
    return {
        "status": "ok",
        "host": request.client.host if request.client else None,
        "scheme": request.url.scheme,
        "path": request.url.path,
    }


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)

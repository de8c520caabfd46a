import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes.auth import ensure_bootstrap_admin, router as auth_router
from app.api.routes.clients import router as clients_router
from app.api.routes.configuration import router as configuration_router
from app.api.routes.inventory import router as inventory_router
from app.api.routes.orders import router as orders_router
from app.api.routes.users import router as users_router
from app.api.routes.vouchers import router as vouchers_router
from app.core.config import settings
from app.db.database import SessionLocal
from app.services.errors import InventoryError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.bootstrap_admin_enabled:
        db = SessionLocal()
        try:
            ensure_bootstrap_admin(db)
        finally:
            db.close()
    logger.info(f"{settings.app_name} started, allocation lock mode {settings.allocation_lock_mode}")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InventoryError)
async def inventory_error_handler(_: Request, exc: InventoryError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(inventory_router)
app.include_router(orders_router)
app.include_router(clients_router)
app.include_router(vouchers_router)
app.include_router(configuration_router)


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}

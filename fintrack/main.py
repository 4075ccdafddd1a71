import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fintrack.data.base import SessionLocal, create_tables
from fintrack.domain.services.auth_service import bootstrap_superadmin
from fintrack.logging_config import configure_logging
from fintrack.presentation.admin_api import router as admin_router
from fintrack.presentation.errors import register_error_handlers
from fintrack.presentation.guard import RouteGuardMiddleware
from fintrack.presentation.invoices_api import router as invoices_router
from fintrack.presentation.pages import router as pages_router
from fintrack.presentation.reference_api import routers as reference_routers
from fintrack.presentation.reports_api import router as reports_router
from fintrack.presentation.user_api import router as auth_router

load_dotenv()  # Load environment variables from .env
configure_logging()

logger = logging.getLogger(__name__)

create_tables()


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = SessionLocal()
    try:
        bootstrap_superadmin(
            db,
            os.getenv("BOOTSTRAP_SUPERADMIN_EMAIL"),
            os.getenv("BOOTSTRAP_SUPERADMIN_PASSWORD"),
            os.getenv("BOOTSTRAP_SUPERADMIN_NAME", "Super Admin"),
        )
    finally:
        db.close()
    yield


app = FastAPI(title="FinTrack API", version="1.0.0", lifespan=lifespan)

cors_origins = os.getenv("CORS_ORIGINS", "")
origins = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]

# Added last so it wraps the guard and preflight requests never need a session.
app.add_middleware(RouteGuardMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.get("/api/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(invoices_router)
for reference_router in reference_routers:
    app.include_router(reference_router)
app.include_router(reports_router)
app.include_router(pages_router)

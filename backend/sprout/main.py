"""
Sprout ERP - FastAPI Backend
Hauptanwendung und Router-Konfiguration
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from sprout.config import get_settings
from sprout.database import engine, Base
from sprout.api.v1 import lookups, consumables, products, crops, crop_plans, customers, orders

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup und Shutdown Events"""
    # Startup: Tabellen erstellen (für Entwicklung)
    # In Produktion: Alembic Migrations verwenden
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Sprout ERP API

    ERP-Kern für Microgreens-Produktion.

    ### Module
    - **Verbrauchsmaterial**: Saatgut, Erde, Verpackung mit Buchungsjournal
    - **Fertigware**: Chargen, MHD und Reservierungen
    - **Anbau**: Rezepte, Crops, Phasenwechsel und Aufgaben
    - **Planung**: Anbaupläne aus Bestellpositionen
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health Check
@app.get("/health", tags=["System"])
async def health_check():
    """
    Systemstatus prüfen.
    Wird von Docker für Health Checks verwendet.
    """
    return {"status": "healthy", "version": settings.app_version}


@app.get("/", tags=["System"])
async def root():
    """API Root - Zeigt Willkommensnachricht"""
    return {
        "message": "Willkommen bei Sprout ERP",
        "version": settings.app_version,
        "docs": "/docs",
    }


# API Router einbinden
for module in (lookups, consumables, products, crops, crop_plans, customers, orders):
    app.include_router(module.router, prefix="/api/v1")


# Exception Handler
@app.exception_handler(StaleDataError)
async def stale_data_handler(request, exc):
    """Gleichzeitige Änderung desselben Datensatzes"""
    logger.warning(f"Versionskonflikt bei {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": "Der Datensatz wurde zwischenzeitlich geändert. Bitte erneut versuchen."},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Globaler Exception Handler"""
    logger.exception(f"Unbehandelter Fehler bei {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Ein interner Fehler ist aufgetreten.",
            "error": str(exc) if settings.debug else None
        }
    )

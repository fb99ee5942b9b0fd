import logging
from contextlib import asynccontextmanager
import traceback
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from newport.core.config import settings
from newport.core.errors import ServiceError
from newport.db.session import create_db_and_tables
from newport.core.startup import ensure_payme_configured, expire_invites_on_startup

from newport.routers.payment_router import router as payment_router
from newport.routers.payme_router import router as payme_router
from newport.routers.invite_router import router as invite_router
from newport.routers.directory_router import router as directory_router

logging.basicConfig(
    filename=settings.LOG_FILE,
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        logger.info("Creating database and tables...")
        create_db_and_tables()
        logger.info("Database and tables created successfully")

        logger.info("Checking Payme configuration...")
        await ensure_payme_configured()

        await expire_invites_on_startup()
    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}")
        logger.error(f"Traceback: {traceback.format_exc()}")
        raise

    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"Service error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()}
    )

# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error: {str(exc)}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error"}
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()[0].get("msg", "Validation Error")}
    )

app.include_router(payment_router)
app.include_router(payme_router)
app.include_router(invite_router)
app.include_router(directory_router)

@app.get("/", include_in_schema=False)
@app.head("/", include_in_schema=False)
def root():
    return {"message": "Service is up"}

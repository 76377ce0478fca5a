import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clinic.core import config
from clinic.core.errors import ClinicError
from clinic.core.logger import setup_logging
from clinic.database import Base, SessionLocal, engine, ensure_clinic_schema
from clinic.middleware.log_middleware import LogMiddleware
from clinic.models import appointment, clinic_setting, schedule, user, vacation  # noqa: F401
from clinic.routes import admin_routes, appointment_routes, auth_routes, slot_routes
from clinic.services.configuration_service import get_or_create_settings

app = FastAPI(title=config.CLINIC_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)
app.add_middleware(LogMiddleware)

logger = logging.getLogger(__name__)


@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError) -> JSONResponse:
    logger.info('%s %s rejected: %s', request.method, request.url.path, exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event('startup')
def initialize_database() -> None:
    setup_logging()
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_clinic_schema()
        db = SessionLocal()
        try:
            get_or_create_settings(db)
        finally:
            db.close()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': f'{config.CLINIC_NAME} API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(slot_routes.router, prefix='/slots')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(admin_routes.router, prefix='/admin')

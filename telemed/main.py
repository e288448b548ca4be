import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from telemed.core import config
from telemed.database import Base, SessionLocal, engine, ensure_appointment_schema, ensure_slot_schema
from telemed.models import appointment, availability, payment, user  # noqa: F401
from telemed.routes import appointment_routes, auth_routes, availability_routes
from telemed.routes.common import get_clock
from telemed.services.expiry import ExpirySweeper

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

config.validate_runtime_config()

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)

expiry_sweeper = ExpirySweeper(SessionLocal, get_clock())


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_slot_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.on_event('startup')
def start_expiry_sweep() -> None:
    if config.EXPIRY_SWEEP_ENABLED:
        expiry_sweeper.start()


@app.on_event('shutdown')
def stop_expiry_sweep() -> None:
    if config.EXPIRY_SWEEP_ENABLED:
        expiry_sweeper.stop()


@app.get('/')
def root():
    return {'status': 'Telemedicine Booking API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')

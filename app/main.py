import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import CORS_ORIGINS, LOG_LEVEL
from app.core.errors import RegistrationError, registration_error_handler
from app.database.db import Base, engine
from app.models import events, participations  # noqa: F401  register tables
from app.routes import events as events_routes
from app.routes import participations as participations_routes

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Campus Events")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RegistrationError, registration_error_handler)  # type: ignore[arg-type]

# Create all tables (in production, use migrations such as Alembic)
Base.metadata.create_all(bind=engine)

# Include the routers
app.include_router(events_routes.router)
app.include_router(participations_routes.router)

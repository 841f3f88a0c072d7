import os

# Database configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./campus_events.db")

# Redis configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

# Per-event lock: lease seconds and how long a request may wait for it
EVENT_LOCK_TIMEOUT = float(os.getenv("EVENT_LOCK_TIMEOUT", "10"))
EVENT_LOCK_BLOCKING_TIMEOUT = float(os.getenv("EVENT_LOCK_BLOCKING_TIMEOUT", "5"))

# Tokens are issued by the identity provider and signed with a shared secret
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def get_redis_url():
    return REDIS_URL


def get_database_url():
    return DATABASE_URL

"""
Gurukul configuration
Everything is read from the environment once at import time
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "gurukul")

# Auth (tokens are issued by the login service, we only verify them)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# CORS
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Return sample dashboard data instead of a 500 when the database is down.
# Development only.
MOCK_FALLBACK_ENABLED = os.getenv("GURUKUL_MOCK_FALLBACK", "0").lower() in ("1", "true", "yes")

# Notifications
ANNOUNCEMENT_WINDOW_DAYS = int(os.getenv("ANNOUNCEMENT_WINDOW_DAYS", "30"))
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = 100

# Active student window used by the admin dashboard
ACTIVE_STUDENT_WINDOW_DAYS = 30

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Server (python -m gurukul.main)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

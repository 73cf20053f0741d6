"""
Runtime settings read from the environment.

A ``.env`` file in the working directory is loaded first so local
development does not need exported variables.
"""

import os

from dotenv import load_dotenv

load_dotenv()

APP_NAME = "Synos Medical API"
APP_VERSION = "1.0.0"

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# Public site used when building absolute URLs (sitemaps, canonical links)
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")

# Sessions
SESSION_TTL_DAYS = 7

# Pagination
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

# Form submissions: at most RATE_LIMIT_MAX per IP inside the window
RATE_LIMIT_MAX = int(os.getenv("RATE_LIMIT_MAX", 5))
RATE_LIMIT_WINDOW_MINUTES = int(os.getenv("RATE_LIMIT_WINDOW_MINUTES", 15))

GDPR_CONSENT_VERSION = "1.0"

# Sitemap responses may be cached by proxies for an hour
SITEMAP_CACHE_SECONDS = 3600

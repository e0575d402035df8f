"""
Django settings for smart-recipe-cache
Ready for local dev and Render.com deployment.
"""

from pathlib import Path
import os
import warnings
import dj_database_url
from dotenv import load_dotenv


# ---------------------------------------------------------------------
# BASE & ENV
# ---------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # loads .env from project root


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        warnings.warn(f"{name} is not an integer; using {default}.")
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        warnings.warn(f"{name} is not a number; using {default}.")
        return default


# ---------------------------------------------------------------------
# SPOONACULAR
# ---------------------------------------------------------------------
SPOONACULAR_API_KEY = os.getenv("SPOONACULAR_API_KEY")
SPOONACULAR_BASE_URL = os.getenv("SPOONACULAR_BASE_URL", "https://api.spoonacular.com")

# ---------------------------------------------------------------------
# RECIPE CACHE (quota, TTLs, pacing, fallback)
# ---------------------------------------------------------------------
HOUR = 60 * 60

RECIPE_CACHE = {
    # Spoonacular free tier: 150 points/day. Keep a reserve for critical paths.
    "DAILY_QUOTA_LIMIT": _env_int("RECIPE_CACHE_DAILY_QUOTA_LIMIT", 150),
    "QUOTA_BUFFER": _env_int("RECIPE_CACHE_QUOTA_BUFFER", 10),
    "QUOTA_RETENTION_DAYS": _env_int("RECIPE_CACHE_QUOTA_RETENTION_DAYS", 30),
    "TTL_SECONDS": {
        "search": _env_int("RECIPE_CACHE_SEARCH_TTL", 24 * HOUR),
        "recipe": _env_int("RECIPE_CACHE_RECIPE_TTL", 7 * 24 * HOUR),
        "ingredients": _env_int("RECIPE_CACHE_INGREDIENTS_TTL", 2 * HOUR),
        "popular": _env_int("RECIPE_CACHE_POPULAR_TTL", 6 * HOUR),
    },
    # 2 requests per second against the provider
    "MIN_REQUEST_INTERVAL": _env_float("RECIPE_CACHE_MIN_REQUEST_INTERVAL", 0.5),
    "REQUEST_TIMEOUT": _env_float("RECIPE_CACHE_REQUEST_TIMEOUT", 12),
    "RETRY_ATTEMPTS": _env_int("RECIPE_CACHE_RETRY_ATTEMPTS", 3),
    "RETRY_BASE_DELAY": _env_float("RECIPE_CACHE_RETRY_BASE_DELAY", 1.0),
    "SINGLE_FLIGHT": os.getenv("RECIPE_CACHE_SINGLE_FLIGHT", "true").lower() in ("1", "true", "yes"),
    "FALLBACK_DATASET": os.getenv(
        "RECIPE_CACHE_FALLBACK_DATASET",
        str(BASE_DIR / "recipecache" / "data" / "fallback_recipes.json"),
    ),
    "WARMUP_QUERIES": [
        x.strip()
        for x in os.getenv("RECIPE_CACHE_WARMUP_QUERIES", "chicken,pasta,salad,vegan,dessert").split(",")
        if x.strip()
    ],
}

# ---------------------------------------------------------------------
# SECURITY
# ---------------------------------------------------------------------
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-secret")
DEBUG = os.getenv("DEBUG", "False").lower() == "true"

ALLOWED_HOSTS = [
    x.strip()
    for x in os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost,testserver,.onrender.com").split(",")
    if x.strip()
]

CSRF_TRUSTED_ORIGINS = [
    x.strip()
    for x in os.getenv(
        "CSRF_TRUSTED_ORIGINS",
        "http://127.0.0.1:8000,http://localhost:8000,https://*.onrender.com",
    ).split(",")
    if x.strip()
]

# --- Production security hardening ---
if not DEBUG and os.getenv("SECURE_SSL_REDIRECT", "false").lower() == "true":
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

    # HTTP Strict Transport Security (HSTS)
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

    SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
    X_FRAME_OPTIONS = "DENY"


# Correct scheme/host when behind Render’s proxy
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True

# ---------------------------------------------------------------------
# APPS
# ---------------------------------------------------------------------
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # third-party
    "rest_framework",
    # local
    "recipecache",
]

# ---------------------------------------------------------------------
# MIDDLEWARE
# ---------------------------------------------------------------------
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# ---------------------------------------------------------------------
# URLS / WSGI
# ---------------------------------------------------------------------
ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"

# ---------------------------------------------------------------------
# TEMPLATES  (needed for admin)
# ---------------------------------------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# ---------------------------------------------------------------------
# DATABASE
# - Postgres on Render via DATABASE_URL (cache records + quota ledger)
# - Falls back to SQLite locally if DATABASE_URL not provided
# ---------------------------------------------------------------------
db_from_env = dj_database_url.config(default=None, conn_max_age=600, ssl_require=True)

if db_from_env:
    DATABASES = {"default": db_from_env}
else:
    warnings.warn("No DATABASE_URL set; falling back to local sqlite3.")
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
            # ledger writers queue on the write lock instead of failing
            "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
            # file-backed so threaded tests get their own connections
            "TEST": {"NAME": BASE_DIR / "test_db.sqlite3"},
        }
    }

# ---------------------------------------------------------------------
# REST FRAMEWORK (cache management API)
# ---------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    # admin session login gates the maintenance endpoints
    "DEFAULT_AUTHENTICATION_CLASSES": ["rest_framework.authentication.SessionAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
}

# ---------------------------------------------------------------------
# I18N / TZ
# ---------------------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ---------------------------------------------------------------------
# STATIC
# ---------------------------------------------------------------------
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"  # collectstatic destination on Render
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}
WHITENOISE_AUTOREFRESH = False
WHITENOISE_USE_FINDERS = False
WHITENOISE_MAX_AGE = 31536000


# ---------------------------------------------------------------------
# LOGGING (show errors in Render logs)
# ---------------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "simple"}},
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "django.request": {
            "handlers": ["console"],
            "level": "ERROR",
            "propagate": False,
        },
        "recipecache": {
            "handlers": ["console"],
            "level": os.getenv("RECIPE_CACHE_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# ---------------------------------------------------------------------
# Default primary key field type
# ---------------------------------------------------------------------
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

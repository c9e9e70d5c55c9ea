"""Django settings for the VTU top-up platform.


The project exposes a single app (`topups`) that settles airtime, data and
bill purchases against a wallet balance:
- Account wallets and an append-only transaction ledger (Django ORM)
- Vendor gateways reached over HTTP (requests), with a demo gateway for dev
- SMS notifications dispatched to Celery after each committed settlement


Every tunable is read from the environment so the same settings module serves
local development, CI and production.
"""

import os
from decimal import Decimal
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DEBUG", "1") in ("1", "true", "True", "yes")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "*").split(",")
CSRF_TRUSTED_ORIGINS = os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if os.getenv("CSRF_TRUSTED_ORIGINS") else []


def env_bool(name, default=""):
    v = os.getenv(name, default)
    return v.lower() in ("1", "true", "yes", "on")


def env_decimal(name, default):
    return Decimal(os.getenv(name, default))


INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    # local apps
    "topups",
]


MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "topups.middleware.RequestResponseLoggingMiddleware",
]


ROOT_URLCONF = "vtu_platform.urls"
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


WSGI_APPLICATION = "vtu_platform.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")
if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "vtu"),
            "USER": os.getenv("POSTGRES_USER", "vtu"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "vtu"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }


AUTH_PASSWORD_VALIDATORS = []


LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
}


#######################
# Celery: notifications are queued after commit and never awaited by a request.
# The in-memory transport keeps dev and tests broker-free; production sets redis.
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "cache+memory://")
CELERY_TASK_ALWAYS_EAGER = env_bool("CELERY_TASK_ALWAYS_EAGER", "0")
CELERY_TASK_ACKS_LATE = True
CELERY_TIMEZONE = TIME_ZONE
#######################


#######################
# Pricing: flat per-service fees and airtime percentage multipliers.
VTU_SERVICE_FEES = {
    "airtime": env_decimal("VTU_FEE_AIRTIME", "0"),
    "data": env_decimal("VTU_FEE_DATA", "0"),
    "cable": env_decimal("VTU_FEE_CABLE", "100"),
    "electricity": env_decimal("VTU_FEE_ELECTRICITY", "100"),
}
VTU_AIRTIME_COST_PERCENTAGE = env_decimal("VTU_AIRTIME_COST_PERCENTAGE", "98")
VTU_AIRTIME_SELLING_PERCENTAGE = env_decimal("VTU_AIRTIME_SELLING_PERCENTAGE", "100")
#######################


#######################
# Vendor gateways. Keys are per vendor; an empty key means "not configured".
VENDOR_ACTIVE = os.getenv("VENDOR_ACTIVE", "BILALSADA")
VENDOR_API_KEYS = {
    "BILALSADA": os.getenv("VENDOR_KEY_BILALSADA", ""),
    "MASKAWA": os.getenv("VENDOR_KEY_MASKAWA", ""),
    "ALRAHUZ": os.getenv("VENDOR_KEY_ALRAHUZ", ""),
    "ABBAPHANTAMI": os.getenv("VENDOR_KEY_ABBAPHANTAMI", ""),
    "SIMHOST": os.getenv("VENDOR_KEY_SIMHOST", ""),
}
# Overrides for the built-in base URLs, e.g. VENDOR_URL_MASKAWA=https://...
VENDOR_BASE_URLS = {
    vendor: os.getenv(f"VENDOR_URL_{vendor}")
    for vendor in VENDOR_API_KEYS
    if os.getenv(f"VENDOR_URL_{vendor}")
}
VENDOR_TIMEOUT = int(os.getenv("VENDOR_TIMEOUT", "15"))
VENDOR_SIMULATED_FAILURE_RATE = float(os.getenv("VENDOR_SIMULATED_FAILURE_RATE", "0"))
# Demo gateway is only wired when explicitly allowed and no key is configured.
VENDOR_DEMO_MODE = env_bool("VENDOR_DEMO_MODE", "1" if DEBUG else "0")
VENDOR_DEMO_DELAY = float(os.getenv("VENDOR_DEMO_DELAY", "1.0"))
VENDOR_DEMO_BALANCE = env_decimal("VENDOR_DEMO_BALANCE", "50000.00")
#######################


#######################
# Notifications
SMS_ENABLED = env_bool("SMS_ENABLED", "0")
SMS_SENDER_ID = os.getenv("SMS_SENDER_ID", "JadanPay")
SMS_COUNTRY_PREFIX = os.getenv("SMS_COUNTRY_PREFIX", "+234")
SMS_API_URL = os.getenv("SMS_API_URL", "")
SMS_API_KEY = os.getenv("SMS_API_KEY", "")
SMS_TIMEOUT = int(os.getenv("SMS_TIMEOUT", "10"))
#######################


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}

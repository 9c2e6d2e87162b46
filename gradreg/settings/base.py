from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-change-me")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "payments.apps.PaymentsConfig",
    "registrations.apps.RegistrationsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "gradreg.urls"

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

WSGI_APPLICATION = "gradreg.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DB_PATH", str(BASE_DIR / "data" / "graduation.db")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
# bd-timestamp and order_date are expressed in IST
TIME_ZONE = os.getenv("TIME_ZONE", "Asia/Kolkata")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
MEDIA_URL = "/media/"
MEDIA_ROOT = Path(os.getenv("MEDIA_ROOT", str(BASE_DIR / "uploads")))

DATA_UPLOAD_MAX_MEMORY_SIZE = 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 5 * 1024 * 1024

# ---------- Payment gateway ----------
# Missing or "your_..." placeholder secrets run the gateway in mock mode.
BILLDESK = {
    "BASE_URL": os.getenv("BILLDESK_BASE_URL", "https://uat1.billdesk.com/u2/payments/ve1_2"),
    "MERCHANT_ID": os.getenv("BILLDESK_MERC_ID", ""),
    "CLIENT_ID": os.getenv("BILLDESK_CLIENT_ID", ""),
    "SIGNING_SECRET": os.getenv("BILLDESK_SIGNING_SECRET", os.getenv("BILLDESK_SECRET", "")),
    "ENCRYPTION_SECRET": os.getenv("BILLDESK_ENCRYPTION_SECRET", ""),
    "KEY_ID": os.getenv("BILLDESK_KEY_ID", ""),
    "RETURN_URL": os.getenv("BILLDESK_RETURN_URL", os.getenv("RU_PUBLIC", "")),
    "ENVELOPE": os.getenv("BILLDESK_ENVELOPE", "jwe"),  # "jwe" (encrypt-then-sign) or "jws" (legacy sign-only)
    "ADDITIONAL_INFO_SLOTS": int(os.getenv("BILLDESK_ADDITIONAL_INFO_SLOTS", "7")),
    "TIMEOUT": float(os.getenv("BILLDESK_TIMEOUT", "30")),
    "ADAPTER": os.getenv("BILLDESK_ADAPTER", "payments.integrations.billdesk.BillDeskAdapter"),
    "CURRENCY": os.getenv("BILLDESK_CURRENCY", "356"),
    "REGISTRATION_FEE": os.getenv("REGISTRATION_FEE", "500.00"),
    "RECONCILE_INTERVAL_MINUTES": int(os.getenv("RECONCILE_INTERVAL_MINUTES", "15")),
    "RECONCILE_THRESHOLD_MINUTES": int(os.getenv("RECONCILE_THRESHOLD_MINUTES", "10")),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "verbose"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "payments": {
            "handlers": ["console"],
            "level": os.getenv("PAYMENTS_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        "registrations": {
            "handlers": ["console"],
            "level": os.getenv("PAYMENTS_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

import tempfile
from pathlib import Path

from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

MEDIA_ROOT = Path(tempfile.mkdtemp(prefix="gradreg-test-media-"))

BILLDESK = {
    **BILLDESK,
    "BASE_URL": "https://uat.example-gateway.test/payments/ve1_2",
    "MERCHANT_ID": "GRADUATKTK",
    "CLIENT_ID": "gradkttest",
    "SIGNING_SECRET": "test-signing-secret-0123456789abcdef",
    "ENCRYPTION_SECRET": "0123456789abcdef0123456789abcdef",
    "KEY_ID": "HMAC",
    "RETURN_URL": "https://register.example.test/payments/return",
    "ENVELOPE": "jwe",
    "ADDITIONAL_INFO_SLOTS": 7,
    "TIMEOUT": 30,
    "CURRENCY": "356",
    "REGISTRATION_FEE": "500.00",
    "ADAPTER": "payments.integrations.billdesk.BillDeskAdapter",
}

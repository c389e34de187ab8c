from .base import *

DEBUG = False
SECRET_KEY = 'test-only-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

VERIFICATION = {
    'PAYLOAD_MAX_AGE': 0,
    'FEATURE_TELEMETRY': False,
    'FEATURE_PASSKEY_UNLOCK': False,
}

LOGGING['root'] = {'handlers': ['console'], 'level': 'WARNING'}

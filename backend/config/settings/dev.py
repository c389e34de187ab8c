from .base import *

DEBUG = True

# Local runs without MySQL/Redis
if env('DB_NAME', default='') == '':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        }
    }

VERIFICATION = {
    **VERIFICATION,
    'FEATURE_TELEMETRY': env.bool('FEATURE_TELEMETRY', default=True),
}

LOGGING['root'] = {'handlers': ['console'], 'level': 'DEBUG'}
LOGGING['loggers']['verification'] = {'handlers': ['console'], 'level': 'DEBUG', 'propagate': False}

"""
Test Settings

Django settings for running tests.
"""

import os
import tempfile

from .base import *

# Test mode
DEBUG = False
TESTING = True

# File-backed SQLite so threaded tests get their own connections; IMMEDIATE
# transactions take the write lock at BEGIN.
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.path.join(tempfile.gettempdir(), 'booking_policy.sqlite3'),
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': 20,
        },
        'TEST': {
            'NAME': os.path.join(tempfile.gettempdir(), 'test_booking_policy.sqlite3'),
        },
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]


# Disable migrations for faster tests
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


MIGRATION_MODULES = DisableMigrations()

# Use local memory cache
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    },
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

# JWT settings for testing
JWT_SECRET_KEY = 'test-secret-key-for-testing-only'
JWT_ALGORITHM = 'HS256'

# Event backend for testing
EVENT_PUBLISHING_ENABLED = True
EVENT_BACKEND = 'memory'

DEFAULT_FACILITY_TIMEZONE = 'UTC'

# Logging - minimal output during tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
    'loggers': {
        'django': {
            'handlers': ['null'],
            'level': 'CRITICAL',
            'propagate': False,
        },
        'apps': {
            'handlers': ['null'],
            'level': 'CRITICAL',
            'propagate': False,
        },
    },
}

CORS_ALLOW_ALL_ORIGINS = True

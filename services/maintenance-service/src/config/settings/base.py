"""
Base settings for Maintenance Service
"""

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent
REPO_DIR = BASE_DIR.parent.parent.parent
if str(REPO_DIR) not in sys.path:
    sys.path.insert(0, str(REPO_DIR))

SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
DEBUG = False
ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

SERVICE_NAME = 'maintenance-service'
SERVICE_VERSION = os.environ.get('SERVICE_VERSION', '1.0.0')
SERVICE_PORT = int(os.environ.get('SERVICE_PORT', 8004))

ROOT_URLCONF = 'config.urls'

DJANGO_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
]

LOCAL_APPS = [
    'apps.core',
]

INSTALLED_APPS = DJANGO_APPS + LOCAL_APPS

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'maintenance_service_db'),
        'USER': os.environ.get('DB_USER', 'maintenance_service'),
        'PASSWORD': os.environ.get('DB_PASSWORD', 'maintenance_service_password'),
        'HOST': os.environ.get('DB_HOST', 'localhost'),
        'PORT': os.environ.get('DB_PORT', '5432'),
        'CONN_MAX_AGE': 60,
        'OPTIONS': {
            'connect_timeout': 10,
            'options': '-c statement_timeout=30000',
        },
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Maintenance Policy
MAINTENANCE_ADVANCE_NOTICE_DAYS = int(os.environ.get('MAINTENANCE_ADVANCE_NOTICE_DAYS', 7))
MAINTENANCE_APPROVAL_COST_THRESHOLD = os.environ.get('MAINTENANCE_APPROVAL_COST_THRESHOLD', '5000')
MAINTENANCE_AUTO_STAMP_COMPLETION = os.environ.get(
    'MAINTENANCE_AUTO_STAMP_COMPLETION', 'true'
).lower() == 'true'
MAINTENANCE_HOLD_EQUIPMENT_ON_START = os.environ.get(
    'MAINTENANCE_HOLD_EQUIPMENT_ON_START', 'false'
).lower() == 'true'
MAINTENANCE_RELEASE_EQUIPMENT_ON_COMPLETION = os.environ.get(
    'MAINTENANCE_RELEASE_EQUIPMENT_ON_COMPLETION', 'false'
).lower() == 'true'
EQUIPMENT_MAX_ASSIGNMENTS_PER_OPERATOR = int(
    os.environ.get('EQUIPMENT_MAX_ASSIGNMENTS_PER_OPERATOR', 1)
)
PART_COST_TOLERANCE = os.environ.get('PART_COST_TOLERANCE', '0.01')

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'pythonjsonlogger.jsonlogger.JsonFormatter',
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s'
        },
        'standard': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'json',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

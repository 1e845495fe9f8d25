"""
Testing Settings

Settings for running tests.
"""

from .base import *

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

LOGGING['handlers']['console']['formatter'] = 'standard'
LOGGING['loggers']['apps']['level'] = 'WARNING'

"""
Development settings for Maintenance Service
"""

from .base import *

DEBUG = True

ALLOWED_HOSTS = ['*']

# Simplified logging
LOGGING['handlers']['console']['formatter'] = 'standard'
LOGGING['root']['level'] = 'DEBUG'
LOGGING['loggers']['apps']['level'] = 'DEBUG'

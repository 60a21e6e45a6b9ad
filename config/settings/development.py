# config/settings/development.py

from .base import *

DEBUG = True
ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0']

# SQLite and in-process layers unless Postgres/Redis are configured
if env.bool('USE_SQLITE', default=not env('DATABASE_URL', default=None)):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

if not env('REDIS_URL', default=None):
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'corkboard-dev',
        },
        'offline': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'corkboard-dev-offline',
            'TIMEOUT': None,
        },
    }
    CHANNEL_LAYERS = {'default': {'BACKEND': 'channels.layers.InMemoryChannelLayer'}}

LOGGING['loggers']['apps']['level'] = 'DEBUG'

try:
    import debug_toolbar  # noqa: F401
except ImportError:
    pass
else:
    INSTALLED_APPS += ['debug_toolbar']
    MIDDLEWARE.insert(0, 'debug_toolbar.middleware.DebugToolbarMiddleware')
    INTERNAL_IPS = ['127.0.0.1']
    DEBUG_TOOLBAR_CONFIG = {'SHOW_COLLAPSED': True}

SHELL_PLUS_IMPORTS = [
    'from apps.core.utils import move_card, reorder_columns, board_statistics',
    'from apps.offline.client import build_offline_client',
]

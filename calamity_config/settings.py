import os
from pathlib import Path

import dj_database_url

# Build paths inside the project like this: BASE_DIR / 'subdir'.
# settings.py lives at /project_root/calamity_config/settings.py, so BASE_DIR is /project_root/
BASE_DIR = Path(__file__).resolve().parent.parent

ALLOWED_HOSTS = ['localhost', '127.0.0.1', 'testserver']

# Add extra hostnames (comma separated) when deployed behind a proxy
EXTRA_ALLOWED_HOSTS = os.environ.get('CALAMITY_ALLOWED_HOSTS')
if EXTRA_ALLOWED_HOSTS:
    ALLOWED_HOSTS.extend(host.strip() for host in EXTRA_ALLOWED_HOSTS.split(',') if host.strip())

# Security settings
SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-calamity-watch-local-development-key')
DEBUG = os.environ.get('DJANGO_DEBUG', 'False') == 'True'

# CORS: the dashboard front end runs on its own origin
DASHBOARD_ORIGINS = [
    origin.strip()
    for origin in os.environ.get('CALAMITY_DASHBOARD_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
    if origin.strip()
]
CORS_ALLOWED_ORIGINS = DASHBOARD_ORIGINS
CSRF_TRUSTED_ORIGINS = DASHBOARD_ORIGINS
CORS_ALLOW_CREDENTIALS = True
SESSION_COOKIE_SAMESITE = 'Lax'
CSRF_COOKIE_SAMESITE = 'Lax'

# Running behind a proxy
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'whitenoise.runserver_nostatic',
    'django.contrib.staticfiles',
    'channels',
    'rest_framework',
    'rest_framework.authtoken',
    'apps.monitoring',
    'django_celery_beat',
    'corsheaders',
    'drf_spectacular',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'calamity_config.urls'
WSGI_APPLICATION = 'calamity_config.wsgi.application'
ASGI_APPLICATION = 'calamity_config.asgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# Static files configuration
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'whitenoise.storage.CompressedStaticFilesStorage'},
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Database (falls back to a local SQLite file when DATABASE_URL is not set)
DATABASES = {
    'default': dj_database_url.config(
        default=os.environ.get('DATABASE_URL', f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
        conn_health_checks=True,
    )
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Channels/Redis
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = int(os.environ.get('REDIS_PORT', 6379))

CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {"hosts": [(REDIS_HOST, REDIS_PORT)]},
    }
}

if not os.environ.get('REDIS_HOST'):
    CHANNEL_LAYERS['default'] = {'BACKEND': 'channels.layers.InMemoryChannelLayer'}

# Celery
CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'
CELERY_BEAT_SCHEDULE = {
    'simulate-device-health': {
        'task': 'simulate_device_health',
        'schedule': 30.0,
    },
}

# FCM
FCM_SERVICE_ACCOUNT_KEY = os.environ.get('FCM_SERVICE_ACCOUNT_KEY', None)
FCM_RESPONDER_TOPIC = os.environ.get('FCM_RESPONDER_TOPIC', 'calamity-responders')

# Dashboard WebSocket group
DASHBOARD_GROUP_NAME = os.environ.get('DASHBOARD_GROUP_NAME', 'calamity_dashboard')


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, '') else default


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, '') else default


# Monitoring loop tuning. The probabilities and intervals are simulation
# defaults, not hard requirements; override through CALAMITY_<KEY>.
CALAMITY_MONITORING = {
    'REFRESH_INTERVAL_SECONDS': _env_float('CALAMITY_REFRESH_INTERVAL_SECONDS', 5.0),
    'JITTER_PROBABILITY': _env_float('CALAMITY_JITTER_PROBABILITY', 0.3),
    'STATUS_CHANGE_PROBABILITY': _env_float('CALAMITY_STATUS_CHANGE_PROBABILITY', 0.02),
    'JITTER_DEGREES': _env_float('CALAMITY_JITTER_DEGREES', 0.0001),
    'ALERT_HISTORY_LIMIT': _env_int('CALAMITY_ALERT_HISTORY_LIMIT', 50),
    'ALERT_SEED_LIMIT': _env_int('CALAMITY_ALERT_SEED_LIMIT', 10),
    'EVENT_HISTORY_LIMIT': _env_int('CALAMITY_EVENT_HISTORY_LIMIT', 1000),
    'AUTOSAVE_INTERVAL_SECONDS': _env_float('CALAMITY_AUTOSAVE_INTERVAL_SECONDS', 60.0),
    'CAMPUS_RADIUS_METERS': _env_float('CALAMITY_CAMPUS_RADIUS_METERS', 500.0),
    'RESUME_ON_BOOT': os.environ.get('CALAMITY_RESUME_ON_BOOT', 'True') == 'True',
    'RANDOM_SEED': _env_int('CALAMITY_RANDOM_SEED', None),
}

# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
}

# DRF Spectacular
SPECTACULAR_SETTINGS = {
    'TITLE': 'Calamity Watch API',
    'DESCRIPTION': 'Emergency monitoring and SOS alerting for a single campus',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'SCHEMA_PATH_PREFIX': r'/api/',
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {'format': '%(asctime)s %(levelname)s %(name)s: %(message)s'},
    },
    'handlers': {
        'console': {'class': 'logging.StreamHandler', 'formatter': 'simple'},
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': os.environ.get('CALAMITY_LOG_LEVEL', 'INFO'),
        },
    },
}

# Production settings specific block
if not DEBUG:
    SECURE_CONTENT_TYPE_NOSNIFF = True
    X_FRAME_OPTIONS = 'DENY'

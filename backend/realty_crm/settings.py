"""
Django settings for the Realty CRM lead distribution service.

Uses PostgreSQL as the database and django-rest-framework for the API layer.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')

DEBUG = os.environ.get('DEBUG', 'True').lower() in ('true', '1', 'yes')

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'rest_framework',
    'corsheaders',
    'django_q',
    'app',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

# Don't redirect to add trailing slashes — API clients send exact URLs
APPEND_SLASH = False

ROOT_URLCONF = 'realty_crm.urls'

WSGI_APPLICATION = 'realty_crm.wsgi.application'

# Upper bound on any single store round-trip; exceeded queries surface as
# TransientStoreError instead of hanging the caller.
STORE_TIMEOUT_SECONDS = int(os.environ.get('STORE_TIMEOUT_SECONDS', '5'))

# Database — PostgreSQL in production, SQLite for local dev
DB_ENGINE = os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3')

if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
            'OPTIONS': {'timeout': STORE_TIMEOUT_SECONDS},
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', 'realty_crm'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', 'postgres'),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
            'OPTIONS': {
                'connect_timeout': STORE_TIMEOUT_SECONDS,
                'options': (
                    f'-c statement_timeout={STORE_TIMEOUT_SECONDS * 1000} '
                    f'-c lock_timeout={STORE_TIMEOUT_SECONDS * 1000}'
                ),
            },
        }
    }

# CORS
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = [
    'http://localhost:5173',
    'http://localhost:3000',
    'http://127.0.0.1:5173',
]

# DRF
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PAGINATION_CLASS': None,
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
}

# SLA policy config
SLA_WINDOW_MINUTES = int(os.environ.get('SLA_WINDOW_MINUTES', '30'))
SLA_MAX_REASSIGNMENTS = int(os.environ.get('SLA_MAX_REASSIGNMENTS', '3'))
SLA_SWEEP_INTERVAL_MINUTES = int(os.environ.get('SLA_SWEEP_INTERVAL_MINUTES', '5'))

# Assignment retries on optimistic-concurrency conflicts before giving up
ASSIGNMENT_MAX_RETRIES = int(os.environ.get('ASSIGNMENT_MAX_RETRIES', '3'))

# Missed calls (no_answer / busy) after which a lead is closed as lost
OUTCOME_MAX_MISSED_CALLS = int(os.environ.get('OUTCOME_MAX_MISSED_CALLS', '3'))

# Auto follow-up due offsets, keyed by lead stage (minutes)
AUTO_FOLLOWUP_OFFSET_MINUTES = {
    'new': int(os.environ.get('AUTO_FOLLOWUP_OFFSET_NEW_MINUTES', '60')),
    'contacted': int(os.environ.get('AUTO_FOLLOWUP_OFFSET_CONTACTED_MINUTES', '120')),
    'qualified': int(os.environ.get('AUTO_FOLLOWUP_OFFSET_QUALIFIED_MINUTES', '1440')),
    'negotiating': int(os.environ.get('AUTO_FOLLOWUP_OFFSET_NEGOTIATING_MINUTES', '2880')),
}

# django-q2 — lightweight task queue using the ORM broker (no Redis needed)
Q_CLUSTER = {
    'name': 'realty-crm',
    'workers': 2,
    'timeout': 120,
    'retry': 180,
    'orm': 'default',
    'bulk': 10,
    'catch_up': False,
}

# All datetimes are timezone-aware UTC
USE_TZ = True
TIME_ZONE = 'UTC'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
}

"""Django settings for onetime_project project."""

import json
import os
from pathlib import Path
from dotenv import load_dotenv

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Load environment variables from .env file at project root
load_dotenv(BASE_DIR / '.env')

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-secret-key-change-me')

# SECURITY WARNING: don’t run with debug turned on in production!
DEBUG = os.getenv('DJANGO_DEBUG', 'True').lower() == 'true'

# -------------------------
# HOSTS / ENVIRONMENTS
# -------------------------

if DEBUG:
    ALLOWED_HOSTS = ['*']
else:
    raw_hosts = os.getenv('DJANGO_ALLOWED_HOSTS', '')
    ALLOWED_HOSTS = [h.strip() for h in raw_hosts.split(',') if h.strip()]

# -------------------------
# APPLICATION DEFINITION
# -------------------------

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'channels',

    # Local apps
    'payments',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'onetime_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION = 'onetime_project.asgi.application'

# -------------------------
# DATABASE
# -------------------------

if os.getenv('DB_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DB_NAME'),
            'USER': os.getenv('DB_USER'),
            'PASSWORD': os.getenv('DB_PASSWORD'),
            'HOST': os.getenv('DB_HOST', 'localhost'),
            'PORT': os.getenv('DB_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

# Custom user model
AUTH_USER_MODEL = 'payments.CustomUser'

# -------------------------
# INTERNATIONALIZATION
# -------------------------

LANGUAGE_CODE = 'ko-kr'
TIME_ZONE = 'Asia/Seoul'
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# -------------------------
# CACHE (payment locks)
# -------------------------

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'onetime-payments',
    }
}

if os.getenv('REDIS_URL'):
    CACHES['default'] = {
        'BACKEND': 'django.core.cache.backends.redis.RedisCache',
        'LOCATION': os.getenv('REDIS_URL'),
    }

# -------------------------
# DRF
# -------------------------

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
}

# -------------------------
# CHANNELS
# -------------------------

if os.getenv("USE_REDIS", "false").lower() == "true":
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels_redis.core.RedisChannelLayer',
            'CONFIG': {
                'hosts': [('127.0.0.1', 6379)],
            },
        },
    }
else:
    CHANNEL_LAYERS = {
        'default': {
            'BACKEND': 'channels.layers.InMemoryChannelLayer',
        },
    }

# -------------------------
# CELERY
# -------------------------

CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'false').lower() == 'true'

# Hour of day (local time) for the daily settlement run, weekday (0=Sunday) for
# the weekly settlement sweep.
SETTLEMENT_DAILY_CRON_HOUR = int(os.getenv('SETTLEMENT_DAILY_CRON_HOUR', '9'))
SETTLEMENT_WEEKLY_CRON_DAY = int(os.getenv('SETTLEMENT_WEEKLY_CRON_DAY', '1'))
SETTLEMENT_WEEKLY_CRON_HOUR = int(os.getenv('SETTLEMENT_WEEKLY_CRON_HOUR', '10'))

# -------------------------
# PAYMENTS / TOSS PAYMENTS
# -------------------------

TOSS_PAYMENTS_SECRET_KEY = os.getenv('TOSS_PAYMENTS_SECRET_KEY', '')
TOSS_PAYMENTS_API_URL = os.getenv('TOSS_PAYMENTS_API_URL', 'https://api.tosspayments.com/v1')

PAYMENT_GATEWAY_BACKEND = os.getenv(
    'PAYMENT_GATEWAY_BACKEND', 'payments.services.gateway.TossPaymentsGateway'
)
PAYMENT_GATEWAY_TIMEOUT = float(os.getenv('PAYMENT_GATEWAY_TIMEOUT', '10'))

PAYMENT_FEE_RATE = os.getenv('PAYMENT_FEE_RATE', '0.05')
# e.g. {"worker": "0.033", "business": "0.055"}
PAYMENT_FEE_RATES_BY_ROLE = json.loads(os.getenv('PAYMENT_FEE_RATES_BY_ROLE', '{}'))

# Seconds a confirm/cancel holds the per-payment lock
PAYMENT_LOCK_TIMEOUT = int(os.getenv('PAYMENT_LOCK_TIMEOUT', '30'))

# -------------------------
# SETTLEMENTS
# -------------------------

SETTLEMENT_DELAY_DAYS = int(os.getenv('SETTLEMENT_DELAY_DAYS', '3'))
SETTLEMENT_WEEKLY_WINDOW_DAYS = int(os.getenv('SETTLEMENT_WEEKLY_WINDOW_DAYS', '7'))
SETTLEMENT_BATCH_CONCURRENCY = int(os.getenv('SETTLEMENT_BATCH_CONCURRENCY', '4'))

SETTLEMENT_BANK_BACKEND = os.getenv(
    'SETTLEMENT_BANK_BACKEND', 'payments.services.bank.SimulatedBankTransfer'
)
SETTLEMENT_BANK_FAILURE_RATE = float(os.getenv('SETTLEMENT_BANK_FAILURE_RATE', '0.1'))

# -------------------------
# LOGGING
# -------------------------

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
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
        'level': 'WARNING',
    },
    'loggers': {
        'payments': {
            'handlers': ['console'],
            'level': os.getenv('PAYMENTS_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

# -------------------------
# SECURITY FOR PRODUCTION
# -------------------------

if not DEBUG:
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_CONTENT_TYPE_NOSNIFF = True

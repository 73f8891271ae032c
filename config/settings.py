import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

DEBUG = os.getenv('DEBUG', '0') == '1'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third-party apps
    'ckeditor',
    'rest_framework',
    # Local apps
    'accounts',
    'letters',
    'referrals',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',  # Serve static files in production
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
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

WSGI_APPLICATION = 'config.wsgi.application'

# Database
import dj_database_url

DATABASE_URL = os.getenv('DATABASE_URL', '')

if DATABASE_URL:
    DATABASES = {
        'default': dj_database_url.parse(DATABASE_URL)
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage'},
}

# Security settings for production
if not DEBUG:
    SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
    SECURE_SSL_REDIRECT = os.getenv('SECURE_SSL_REDIRECT', '1') == '1'
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    CSRF_TRUSTED_ORIGINS = [
        origin for origin in os.getenv('CSRF_TRUSTED_ORIGINS', '').split(',') if origin
    ]

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
AUTH_USER_MODEL = 'accounts.User'

# =============================================================================
# API CONFIGURATION
# =============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        # JWT first so unauthenticated API calls get 401 rather than 403
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'EXCEPTION_HANDLER': 'common.api.service_exception_handler',
}

# =============================================================================
# PRICING CONFIGURATION
# =============================================================================

# Letter plans: price in dollars and number of letter credits granted
LETTER_PLANS = {
    'one_time': {'name': 'Single Letter', 'price': '299', 'letters': 1},
    'standard_4_month': {'name': 'Monthly Plan', 'price': '299', 'letters': 4},
    'premium_8_month': {'name': 'Yearly Plan', 'price': '599', 'letters': 8},
}

SUBSCRIPTION_PERIOD_DAYS = 30          # Credits are valid for one period

# Employee referral coupons
EMPLOYEE_COUPON_DISCOUNT_PERCENT = 20  # Default discount for new employee coupons
COMMISSION_RATE = '0.05'               # 5% of the commission base

# Bypass token: 100% off, not super-user granting, commission on list price
BYPASS_COUPON_CODE = os.getenv('BYPASS_COUPON_CODE', 'TALK3')
BYPASS_COUPON_EMPLOYEE_EMAIL = os.getenv('BYPASS_COUPON_EMPLOYEE_EMAIL', '')

# Stripe Configuration
STRIPE_PUBLIC_KEY = os.getenv('STRIPE_PUBLIC_KEY', '')
STRIPE_SECRET_KEY = os.getenv('STRIPE_SECRET_KEY', '')
STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET', '')

APP_URL = os.getenv('APP_URL', 'http://localhost:8000')
CHECKOUT_SUCCESS_URL = os.getenv(
    'CHECKOUT_SUCCESS_URL',
    APP_URL + '/dashboard/subscription?success=true&session_id={CHECKOUT_SESSION_ID}'
)
CHECKOUT_CANCEL_URL = os.getenv('CHECKOUT_CANCEL_URL', APP_URL + '/dashboard/subscription?canceled=true')

# =============================================================================
# AI CONFIGURATION
# =============================================================================

OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_LETTER_MODEL = os.getenv('OPENAI_LETTER_MODEL', 'gpt-4-turbo')
OPENAI_LETTER_TEMPERATURE = float(os.getenv('OPENAI_LETTER_TEMPERATURE', '0.7'))
OPENAI_LETTER_MAX_TOKENS = int(os.getenv('OPENAI_LETTER_MAX_TOKENS', '2048'))

# =============================================================================
# EMAIL CONFIGURATION
# =============================================================================

# Without a Resend key, letter emails are simulated and logged
RESEND_API_KEY = os.getenv('RESEND_API_KEY', '')
RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com/emails')
LETTER_EMAIL_FROM = os.getenv('LETTER_EMAIL_FROM', 'Letter Desk <noreply@letterdesk.example>')

# App Branding
APP_NAME = os.getenv('APP_NAME', 'Letter Desk')

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} [{name}] {message}',
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
        'accounts': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'letters': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
        'referrals': {'handlers': ['console'], 'level': LOG_LEVEL, 'propagate': False},
    },
}

# CKEditor Configuration
CKEDITOR_CONFIGS = {
    'default': {
        'toolbar': 'full',
        'height': 400,
        'width': '100%',
        'removePlugins': 'elementspath',
        'resize_enabled': True,
    },
    'letter': {
        'toolbar': [
            ['Bold', 'Italic', 'Underline'],
            ['NumberedList', 'BulletedList', '-', 'Outdent', 'Indent'],
            ['JustifyLeft', 'JustifyCenter', 'JustifyRight'],
            ['RemoveFormat', 'Source'],
            ['Undo', 'Redo'],
        ],
        'height': 500,
        'width': '100%',
        'removePlugins': 'elementspath',
        'resize_enabled': True,
    },
}

# sgs/settings.py

"""Django settings for sgs project."""

from __future__ import annotations

import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "django-insecure-key-for-development-only")
DEBUG = os.environ.get("DJANGO_DEBUG", "True") == "True"
TESTING = bool(os.environ.get("PYTEST_CURRENT_TEST")) or "pytest" in sys.modules

ALLOWED_HOSTS = [h.strip() for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")]

CSRF_TRUSTED_ORIGINS = [
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]

INSTALLED_APPS = [
    # Aplicações do Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Aplicações de terceiros
    "rest_framework",
    "corsheaders",
    # Aplicações do SGS
    "core.apps.CoreConfig",
    "wizards.apps.WizardsConfig",
]


MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "core.middleware.TenantMiddleware",
    "core.middleware.CorrelationIdMiddleware",
]

ROOT_URLCONF = "sgs.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "APP_DIRS": True,
        "DIRS": [],
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "sgs.wsgi.application"
ASGI_APPLICATION = "sgs.asgi.application"

REDIS_URL = os.environ.get("REDIS_URL") or os.environ.get("REDIS_HOST")
if REDIS_URL and not REDIS_URL.startswith("redis://"):
    # Permitir formatos: redis://host:port/0 ou apenas host
    REDIS_URL = f"redis://{REDIS_URL}:{os.environ.get('REDIS_PORT', '6379')}/0"

# Sessões de wizard, gerações de opções e agendamentos de rascunho vivem no cache:
# precisam ser compartilhados entre requisições concorrentes e workers Celery.
if REDIS_URL and not TESTING:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
            "KEY_PREFIX": "sgs",
        },
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "sgs-local",
        },
    }

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
        "OPTIONS": {
            "timeout": 30,
        },
    },
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]
AUTH_USER_MODEL = "core.CustomUser"

LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CORS_ALLOWED_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]
CORS_ALLOW_ALL_ORIGINS = False
CORS_EXPOSE_HEADERS = ["X-Wizard-Correlation-Id"]

# ---------------------------------------------------------------------------
# Hardening básico (ativo somente quando DEBUG=False)
# ---------------------------------------------------------------------------
if not DEBUG:
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = int(os.environ.get("SECURE_HSTS_SECONDS", "31536000"))  # 1 ano
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
    SECURE_SSL_REDIRECT = os.environ.get("SECURE_SSL_REDIRECT", "True") == "True"
    CSRF_COOKIE_SAMESITE = os.environ.get("CSRF_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "UNAUTHENTICATED_USER": "django.contrib.auth.models.AnonymousUser",
}

# =============================
# API REMOTA (sistema de registro)
# =============================
SGS_API_BASE_URL = os.environ.get("SGS_API_BASE_URL", "http://localhost:3000/api")
SGS_API_TIMEOUT_SECONDS = float(os.environ.get("SGS_API_TIMEOUT_SECONDS", "15"))

# =============================
# WIZARDS
# =============================
# Debounce do auto-save de rascunho (segundos após a última edição)
WIZARD_DRAFT_DEBOUNCE_SECONDS = float(os.environ.get("WIZARD_DRAFT_DEBOUNCE_SECONDS", "1.0"))
# Tempo de vida da sessão de wizard no cache (abandono = descarte)
WIZARD_SESSION_TTL_SECONDS = int(os.environ.get("WIZARD_SESSION_TTL_SECONDS", "86400"))
# Janela do lock que impede dois POSTs de criação simultâneos para a mesma sessão
WIZARD_DRAFT_CREATE_LOCK_SECONDS = int(os.environ.get("WIZARD_DRAFT_CREATE_LOCK_SECONDS", "30"))
WIZARD_MAX_ANEXO_BYTES = int(os.environ.get("WIZARD_MAX_ANEXO_BYTES", str(5 * 1024 * 1024)))
WIZARD_MAX_ANEXOS_POR_CATEGORIA = int(os.environ.get("WIZARD_MAX_ANEXOS_POR_CATEGORIA", "5"))
WIZARD_DEBUG = os.environ.get("WIZARD_DEBUG", "False") == "True"
WIZARD_ABANDON_THRESHOLD_SECONDS = int(os.environ.get("WIZARD_ABANDON_THRESHOLD_SECONDS", "1800"))
WIZARD_LATENCY_WARN_THRESHOLD = (
    float(os.environ["WIZARD_LATENCY_WARN_THRESHOLD"]) if os.environ.get("WIZARD_LATENCY_WARN_THRESHOLD") else None
)
# Política de preservação da sessão quando a finalização falha.
# True (default) mantém os dados para o usuário corrigir e tentar de novo.
PRESERVE_WIZARD_SESSION_ON_EXCEPTION = os.environ.get("PRESERVE_WIZARD_SESSION_ON_EXCEPTION", "True") == "True"
# Risco associado pré-selecionado no relato conversacional de desvios (vazio = sem padrão)
DESVIO_RISCO_ASSOCIADO_PADRAO = os.environ.get("DESVIO_RISCO_ASSOCIADO_PADRAO") or None

# =============================
# OTIMIZAÇÕES EM AMBIENTE DE TESTE (pytest)
if TESTING:
    PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    AUTH_PASSWORD_VALIDATORS = []
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_TASK_EAGER_PROPAGATES = True

# =============================
# LOGGING
# =============================
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "wizard_debug": {"()": "wizards.services.wizard_logging.WizardDebugFilter"},
    },
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
            "filters": ["wizard_debug"],
        },
    },
    "loggers": {
        "": {"handlers": ["console"], "level": "INFO"},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "wizards": {"level": "DEBUG"},
    },
}

if os.environ.get("STRUCTURED_LOG_JSON", "False") == "True":
    LOGGING["formatters"]["json"] = {
        "()": "django.utils.log.ServerFormatter",
        "format": '{"time":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}',
    }
    LOGGING["handlers"]["console"]["formatter"] = "json"


"""
=============================================================================
CELERY / TAREFAS ASSÍNCRONAS
=============================================================================
Usa Redis como broker/result backend quando REDIS_URL está definido. Em
desenvolvimento (sem Redis) cai para um broker em memória.
"""

if REDIS_URL:
    CELERY_BROKER_URL = REDIS_URL
    CELERY_RESULT_BACKEND = REDIS_URL
else:
    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "cache+memory://"

CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_ENABLE_UTC = True
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 60 * 2
CELERY_TASK_ACKS_LATE = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_DEFAULT_QUEUE = "default"
CELERY_TASK_ROUTES = {
    "wizards.tasks.salvar_rascunho_agendado": {"queue": "wizards"},
}

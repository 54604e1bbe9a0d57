"""Middlewares centrais do SGS: resolução de tenant e id de correlação."""

from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING

from django.utils.deprecation import MiddlewareMixin

from .utils import get_current_tenant

if TYPE_CHECKING:
    from django.http import HttpRequest, HttpResponse

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Wizard-Correlation-Id"
_CORRELATION_META = "HTTP_X_WIZARD_CORRELATION_ID"
_CORRELATION_RE = re.compile(r"^[A-Za-z0-9\-]{8,64}$")

EXEMPT_TENANT_PATHS = [
    "/admin/",
    "/static/",
    "/metrics",
]


class TenantMiddleware(MiddlewareMixin):
    """Anexa `request.tenant` (ou None) às requisições autenticadas.

    Não bloqueia nada: a autorização de cada fluxo decide o que fazer sem tenant.
    """

    def process_request(self, request: HttpRequest) -> None:
        request.tenant = None
        if any(request.path.startswith(p) for p in EXEMPT_TENANT_PATHS):
            return
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return
        request.tenant = get_current_tenant(request)
        if request.tenant is None:
            logger.debug("Nenhum tenant resolvido para user=%s path=%s", user.get_username(), request.path)


class CorrelationIdMiddleware(MiddlewareMixin):
    """Gera (ou reaproveita do cliente) um id de correlação por requisição."""

    def process_request(self, request: HttpRequest) -> None:
        incoming = request.META.get(_CORRELATION_META, "")
        request.correlation_id = incoming if _CORRELATION_RE.match(incoming) else uuid.uuid4().hex

    def process_response(self, request: HttpRequest, response: HttpResponse) -> HttpResponse:
        cid = getattr(request, "correlation_id", None)
        if cid and request.path.startswith("/wizards/"):
            response[CORRELATION_HEADER] = cid
        return response

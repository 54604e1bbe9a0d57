"""Utilitários de resolução de tenant a partir da requisição."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import Tenant

if TYPE_CHECKING:
    from django.http import HttpRequest

logger = logging.getLogger(__name__)


def _get_tenant_id_from_session(request: HttpRequest) -> int | None:
    """Obtém o ID do tenant da sessão."""
    session = getattr(request, "session", None)
    if session is None:
        return None
    tenant_id = session.get("tenant_id")
    if not tenant_id:
        return None
    try:
        return int(tenant_id)
    except (TypeError, ValueError):
        logger.warning("tenant_id inválido na sessão: %r", tenant_id)
        return None


def _get_tenant_from_header(request: HttpRequest) -> Tenant | None:
    """Cabeçalho explícito X-Tenant (subdomínio) usado pelo front-end SPA."""
    explicit = request.META.get("HTTP_X_TENANT")
    if not explicit:
        return None
    return Tenant.objects.filter(subdomain=explicit, status="active").first()


def _get_tenant_from_user_fallback(request: HttpRequest) -> int | None:
    """Usuário com um único vínculo não precisa escolher empresa."""
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    tenants = list(user.tenant_memberships.values_list("tenant_id", flat=True)[:2])
    if len(tenants) == 1:
        return tenants[0]
    return None


def get_current_tenant(request: HttpRequest) -> Tenant | None:
    """Obtém o tenant (empresa) atual da requisição.

    Ordem: cabeçalho X-Tenant, `tenant_id` da sessão, vínculo único do usuário.
    O resultado fica em cache no objeto request.
    """
    if hasattr(request, "_cached_tenant"):
        return request._cached_tenant  # noqa: SLF001

    tenant = _get_tenant_from_header(request)
    if tenant is None:
        tenant_id = _get_tenant_id_from_session(request) or _get_tenant_from_user_fallback(request)
        if tenant_id:
            tenant = Tenant.objects.filter(id=tenant_id, status="active").first()
            if tenant is None and getattr(request, "session", None) is not None:
                request.session.pop("tenant_id", None)

    request._cached_tenant = tenant  # noqa: SLF001
    return tenant

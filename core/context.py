"""Contexto imutável da requisição, passado explicitamente aos serviços de wizard."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from django.conf import settings

if TYPE_CHECKING:
    from django.http import HttpRequest

    from .models import Tenant


@dataclass(frozen=True)
class RequestContext:
    """Quem está chamando, em qual empresa e com quais permissões.

    Os serviços nunca leem `request` ou variáveis globais: recebem este objeto.
    """

    user_id: int | None
    username: str
    matricula: str = ""
    contrato_raiz: str = ""
    tenant_id: int | None = None
    api_base_url: str = ""
    api_token: str = ""
    permissoes: frozenset[str] = field(default_factory=frozenset)
    is_superuser: bool = False
    is_staff: bool = False
    session_key: str = ""
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_request(cls, request: HttpRequest) -> RequestContext:
        user = request.user
        tenant: Tenant | None = getattr(request, "tenant", None)
        permissoes: frozenset[str] = frozenset()
        if tenant is not None and user.is_authenticated:
            vinculo = user.tenant_memberships.filter(tenant=tenant).first()
            if vinculo is not None:
                permissoes = frozenset(vinculo.lista_permissoes())
        session = request.session
        if not session.session_key:
            session.save()
        return cls(
            user_id=user.pk,
            username=user.get_username(),
            matricula=getattr(user, "matricula", "") or "",
            contrato_raiz=getattr(user, "contrato_raiz", "") or "",
            tenant_id=tenant.pk if tenant else None,
            api_base_url=tenant.get_api_base_url() if tenant else settings.SGS_API_BASE_URL.rstrip("/"),
            api_token=tenant.api_token if tenant else "",
            permissoes=permissoes,
            is_superuser=bool(user.is_superuser),
            is_staff=bool(user.is_staff),
            session_key=session.session_key,
            correlation_id=getattr(request, "correlation_id", None) or uuid.uuid4().hex,
        )

    def to_dict(self) -> dict[str, Any]:
        """Forma serializável em JSON, usada para repassar o contexto a tarefas Celery.

        O token da API não trafega pelo broker; a tarefa o recarrega do tenant.
        """
        data = asdict(self)
        data["permissoes"] = sorted(self.permissoes)
        data.pop("api_token", None)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RequestContext:
        data = dict(data)
        data["permissoes"] = frozenset(data.get("permissoes") or ())
        return cls(**data)

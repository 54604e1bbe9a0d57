"""Camada central de autorização dos fluxos de wizard.

Decide, a partir do `RequestContext`, se o chamador pode operar um fluxo.
A decisão acontece antes de qualquer mutação da sessão.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import prometheus_client as _prom

if TYPE_CHECKING:
    from .context import RequestContext

logger = logging.getLogger(__name__)

WIZARD_DENY_COUNTER = _prom.Counter(
    "sgs_wizard_denials_total",
    "Total de negações de acesso a fluxos de wizard.",
    ["permissao", "reason"],
)

# Razões padronizadas
REASON_OK = "OK"
REASON_SUPERUSER = "SUPERUSER_BYPASS"
REASON_ANONYMOUS = "ANONYMOUS"
REASON_NO_TENANT = "NO_TENANT"
REASON_MISSING_PERMISSION = "MISSING_PERMISSION"

PERMISSAO_CURINGA = "*"


class AcessoNegado(Exception):  # noqa: N818
    """Chamador sem permissão para a ação solicitada."""

    def __init__(self, mensagem: str, reason: str = REASON_MISSING_PERMISSION) -> None:
        super().__init__(mensagem)
        self.reason = reason


@dataclass(frozen=True)
class AccessDecision:
    """Representa o resultado de uma verificação de acesso."""

    allowed: bool
    reason: str = REASON_OK


def permissao_fluxo(fluxo: str) -> str:
    return f"wizards.{fluxo}"


def can_access(contexto: RequestContext, permissao: str) -> AccessDecision:
    if contexto.user_id is None:
        return AccessDecision(allowed=False, reason=REASON_ANONYMOUS)
    if contexto.is_superuser:
        return AccessDecision(allowed=True, reason=REASON_SUPERUSER)
    if contexto.tenant_id is None:
        return AccessDecision(allowed=False, reason=REASON_NO_TENANT)
    if PERMISSAO_CURINGA in contexto.permissoes or permissao in contexto.permissoes:
        return AccessDecision(allowed=True)
    return AccessDecision(allowed=False, reason=REASON_MISSING_PERMISSION)


def tem_permissao(contexto: RequestContext, permissao: str) -> bool:
    return can_access(contexto, permissao).allowed


def exigir_permissao(contexto: RequestContext, permissao: str) -> None:
    """Levanta `AcessoNegado` quando o contexto não concede `permissao`."""
    decision = can_access(contexto, permissao)
    if decision.allowed:
        return
    WIZARD_DENY_COUNTER.labels(permissao=permissao, reason=decision.reason).inc()
    logger.info(
        "Acesso negado: user=%s tenant=%s permissao=%s reason=%s cid=%s",
        contexto.username,
        contexto.tenant_id,
        permissao,
        decision.reason,
        contexto.correlation_id,
    )
    if decision.reason == REASON_NO_TENANT:
        raise AcessoNegado("Nenhuma empresa selecionada para este usuário.", reason=decision.reason)
    raise AcessoNegado("Você não tem permissão para executar esta ação.", reason=decision.reason)

"""Agendamento (debounce) do auto-save de rascunho.

Operação explícita, chamada pela API depois de um lote de edições. Cada
agendamento incrementa a geração da sessão e enfileira uma tarefa Celery com
`countdown`; quando a tarefa dispara, só prossegue se ainda for a geração
mais recente e lê a sessão do cache naquele momento (cancela-e-reagenda).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings

from shared.cache_utils import get_int, incr_atomic

from .sessao import carregar_por_chave, chave_sessao

if TYPE_CHECKING:
    from core.context import RequestContext

    from .sessao import FormSession

logger = logging.getLogger(__name__)

RESULTADO_SALVO = "salvo"
RESULTADO_OBSOLETO = "obsoleto"
RESULTADO_SEM_SESSAO = "sem_sessao"
RESULTADO_FALHOU = "falhou"


def _chave_geracao(contexto: RequestContext, fluxo: str) -> str:
    return f"{chave_sessao(contexto, fluxo)}:agenda"


def agendar_salvamento(contexto: RequestContext, fluxo: str, sessao: FormSession) -> bool:
    """Agenda o salvamento; devolve False quando não há registro remoto para atualizar."""
    from ..tasks import salvar_rascunho_agendado

    if sessao.remote_id is None or sessao.concluida:
        return False
    ttl = int(getattr(settings, "WIZARD_SESSION_TTL_SECONDS", 86400))
    geracao = incr_atomic(_chave_geracao(contexto, fluxo), ttl=ttl)
    atraso = float(getattr(settings, "WIZARD_DRAFT_DEBOUNCE_SECONDS", 1.0))
    salvar_rascunho_agendado.apply_async(args=[contexto.to_dict(), fluxo, geracao], countdown=atraso)
    logger.debug("Salvamento agendado fluxo=%s geracao=%s atraso=%ss", fluxo, geracao, atraso)
    return True


def geracao_atual(contexto: RequestContext, fluxo: str) -> int:
    return get_int(_chave_geracao(contexto, fluxo))


def cancelar_agendamentos(contexto: RequestContext, fluxo: str) -> int:
    """Invalida qualquer salvamento pendente: a tarefa já enfileirada vira obsoleta ao disparar."""
    ttl = int(getattr(settings, "WIZARD_SESSION_TTL_SECONDS", 86400))
    return incr_atomic(_chave_geracao(contexto, fluxo), ttl=ttl)


def executar_salvamento_agendado(contexto: RequestContext, fluxo: str, geracao: int) -> str:
    """Corpo da tarefa: salva o estado do cache no instante do disparo."""
    from ..fluxos import get_fluxo
    from .rascunho import DraftPersistenceGateway

    if geracao != geracao_atual(contexto, fluxo):
        logger.debug("Salvamento agendado obsoleto fluxo=%s geracao=%s", fluxo, geracao)
        return RESULTADO_OBSOLETO

    definicao = get_fluxo(fluxo)
    sessao = carregar_por_chave(chave_sessao(contexto, fluxo), definicao.dependencias)
    if sessao is None or sessao.concluida:
        return RESULTADO_SEM_SESSAO

    # o remote_id já existe: o PUT não altera a sessão, então nada é regravado no cache
    resultado = DraftPersistenceGateway(definicao, contexto).salvar_rascunho(sessao)
    return RESULTADO_FALHOU if resultado.avisos else RESULTADO_SALVO

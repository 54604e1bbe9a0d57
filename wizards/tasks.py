"""Tarefas Celery dos wizards."""

from __future__ import annotations

import dataclasses
import logging

from celery import shared_task

from core.context import RequestContext
from core.models import Tenant

from .services.agendamento import executar_salvamento_agendado

logger = logging.getLogger(__name__)


@shared_task(name="wizards.tasks.salvar_rascunho_agendado", ignore_result=True)
def salvar_rascunho_agendado(contexto_dict: dict, fluxo: str, geracao: int) -> str:
    contexto = RequestContext.from_dict(contexto_dict)
    if contexto.tenant_id is not None:
        tenant = Tenant.objects.filter(pk=contexto.tenant_id).only("api_token").first()
        if tenant is not None:
            contexto = dataclasses.replace(contexto, api_token=tenant.api_token)
    resultado = executar_salvamento_agendado(contexto, fluxo, geracao)
    logger.debug("Tarefa de rascunho fluxo=%s geracao=%s resultado=%s", fluxo, geracao, resultado)
    return resultado

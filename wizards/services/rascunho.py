"""Gateway de persistência de rascunho (draft-then-finalize).

`salvar_rascunho` é um upsert idempotente: cria (POST) quando a sessão ainda
não tem registro remoto e atualiza (PUT) depois. Criações concorrentes da
mesma sessão passam por um lock `cache.add`, então só uma delas chega ao
POST. Falha de rascunho nunca é fatal; falha de finalização levanta
`FinalizacaoError` e deixa a sessão como estava.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import cache

from shared.cache_utils import adquirir_lock, liberar_lock
from shared.exceptions import FinalizacaoError, RemoteApiError

from . import wizard_metrics
from .agendamento import cancelar_agendamentos
from .api_client import SgsApiClient, extrair_id
from .sessao import chave_sessao

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..fluxos.base import FluxoBase
    from .sessao import FormSession

logger = logging.getLogger(__name__)

AVISO_RASCUNHO = "Não foi possível salvar o rascunho agora. Suas respostas continuam aqui e serão salvas na próxima tentativa."
MENSAGEM_FINALIZACAO = "Não foi possível concluir o registro. Seus dados foram mantidos; tente novamente."


@dataclass
class ResultadoRascunho:
    remote_id: str | None
    criado: bool = False
    avisos: list[str] = field(default_factory=list)


class DraftPersistenceGateway:
    def __init__(self, fluxo: FluxoBase, contexto: RequestContext, client: SgsApiClient | None = None) -> None:
        self.fluxo = fluxo
        self.contexto = contexto
        self.client = client or SgsApiClient.para_contexto(contexto)
        self._chave = chave_sessao(contexto, fluxo.nome)

    @property
    def _chave_remote_id(self) -> str:
        return f"{self._chave}:remote_id"

    @property
    def _chave_lock_criacao(self) -> str:
        return f"{self._chave}:criando"

    def _ttl(self) -> int:
        return int(getattr(settings, "WIZARD_SESSION_TTL_SECONDS", 86400))

    def _recuperar_remote_id(self, sessao: FormSession) -> str | None:
        """Id já criado por outra requisição/worker da mesma sessão."""
        if sessao.remote_id is None:
            conhecido = cache.get(self._chave_remote_id)
            if conhecido:
                sessao.vincular_remote_id(conhecido)
        return sessao.remote_id

    def _criar(self, sessao: FormSession, payload: dict) -> str:
        remote_id = extrair_id(self.client.post(self.fluxo.colecao, payload), "POST", self.fluxo.colecao)
        cache.set(self._chave_remote_id, remote_id, self._ttl())
        sessao.vincular_remote_id(remote_id)
        logger.info("Registro remoto criado fluxo=%s id=%s cid=%s", self.fluxo.nome, remote_id, self.contexto.correlation_id)
        return remote_id

    def salvar_rascunho(self, sessao: FormSession) -> ResultadoRascunho:
        if sessao.concluida or not self.fluxo.rascunho_habilitado:
            return ResultadoRascunho(remote_id=sessao.remote_id)

        payload = self.fluxo.payload_rascunho(sessao, self.contexto)
        remote_id = self._recuperar_remote_id(sessao)
        try:
            if remote_id is not None:
                self.client.put(self.fluxo.caminho_item(remote_id), payload)
                wizard_metrics.inc("draft_save_ok", self.fluxo.nome)
                return ResultadoRascunho(remote_id=remote_id)

            if not adquirir_lock(self._chave_lock_criacao, int(settings.WIZARD_DRAFT_CREATE_LOCK_SECONDS)):
                # outra requisição está criando; o próximo salvamento fará o PUT
                wizard_metrics.inc("draft_save_skipped", self.fluxo.nome)
                logger.debug("Criação de rascunho já em andamento fluxo=%s", self.fluxo.nome)
                return ResultadoRascunho(remote_id=None)
            try:
                remote_id = self._recuperar_remote_id(sessao)
                if remote_id is not None:
                    self.client.put(self.fluxo.caminho_item(remote_id), payload)
                    wizard_metrics.inc("draft_save_ok", self.fluxo.nome)
                    return ResultadoRascunho(remote_id=remote_id)
                remote_id = self._criar(sessao, payload)
            finally:
                liberar_lock(self._chave_lock_criacao)
        except RemoteApiError as exc:
            wizard_metrics.inc("draft_save_failed", self.fluxo.nome)
            wizard_metrics.register_finish_error("draft", f"fluxo={self.fluxo.nome} cid={self.contexto.correlation_id} {exc}")
            logger.warning("Falha ao salvar rascunho fluxo=%s cid=%s: %s", self.fluxo.nome, self.contexto.correlation_id, exc)
            return ResultadoRascunho(remote_id=sessao.remote_id, avisos=[AVISO_RASCUNHO])

        wizard_metrics.inc("draft_created", self.fluxo.nome)
        wizard_metrics.inc("draft_save_ok", self.fluxo.nome)
        return ResultadoRascunho(remote_id=remote_id, criado=True)

    def esquecer(self) -> None:
        """Desvincula a sessão do registro remoto (sessão descartada ou substituída)."""
        cache.delete(self._chave_remote_id)

    def finalizar(self, sessao: FormSession) -> str:
        """Envia o payload final e devolve o id do registro concluído."""
        # auto-save disparado depois do PUT final devolveria o registro a rascunho
        cancelar_agendamentos(self.contexto, self.fluxo.nome)
        payload = self.fluxo.payload_final(sessao, self.contexto)
        try:
            remote_id = self._recuperar_remote_id(sessao)
            if remote_id is None and self.fluxo.precisa_registro_previo(sessao):
                remote_id = self._criar(sessao, self.fluxo.payload_rascunho(sessao, self.contexto))
            self.fluxo.antes_de_finalizar(self.client, sessao, remote_id)
            if remote_id is not None:
                self.client.put(self.fluxo.caminho_item(remote_id), payload)
            else:
                remote_id = self._criar(sessao, payload)
        except RemoteApiError as exc:
            logger.warning(
                "Falha ao finalizar fluxo=%s remote_id=%s cid=%s: %s",
                self.fluxo.nome,
                sessao.remote_id,
                self.contexto.correlation_id,
                exc,
            )
            raise FinalizacaoError(MENSAGEM_FINALIZACAO, causa=exc) from exc
        self.esquecer()
        return remote_id

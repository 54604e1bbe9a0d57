"""Controlador de navegação do wizard (avançar, voltar, finalizar).

Falhas de validação não são exceções: voltam como `{campo: mensagem}` no
resultado e a etapa atual não muda. A permissão do fluxo é checada antes de
qualquer mutação.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from core.authorization import exigir_permissao
from shared.exceptions import FinalizacaoError

from . import wizard_metrics
from .sessao import STATUS_CONCLUIDO
from .validators import validar_etapa

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..fluxos.base import FluxoBase
    from .rascunho import DraftPersistenceGateway
    from .sessao import FormSession

logger = logging.getLogger(__name__)

ERRO_ETAPA = "_etapa"
ERRO_CAMPO_DESCONHECIDO = "Campo desconhecido neste fluxo"


@dataclass
class ResultadoNavegacao:
    ok: bool
    etapa: str
    indice: int
    erros: dict[str, str] = field(default_factory=dict)
    # sair desta etapa deve criar o registro remoto imediatamente
    salvar_agora: bool = False


@dataclass
class ResultadoEdicao:
    limpos: list[str] = field(default_factory=list)
    erros: dict[str, str] = field(default_factory=dict)


@dataclass
class ResultadoFinalizacao:
    ok: bool
    remote_id: str | None = None
    erros: dict[str, str] = field(default_factory=dict)


class WizardController:
    def __init__(self, fluxo: FluxoBase, sessao: FormSession, contexto: RequestContext) -> None:
        self.fluxo = fluxo
        self.sessao = sessao
        self.contexto = contexto

    @property
    def etapa(self):  # noqa: ANN201
        return self.fluxo.etapas[self.sessao.etapa_atual]

    def _autorizar(self) -> None:
        exigir_permissao(self.contexto, self.fluxo.permissao)

    def _resultado(self, ok: bool, erros: dict[str, str] | None = None, salvar_agora: bool = False) -> ResultadoNavegacao:
        return ResultadoNavegacao(
            ok=ok,
            etapa=self.etapa.id,
            indice=self.sessao.etapa_atual,
            erros=dict(erros or {}),
            salvar_agora=salvar_agora,
        )

    def atualizar_campos(self, valores: dict[str, Any]) -> ResultadoEdicao:
        self._autorizar()
        if self.sessao.concluida:
            return ResultadoEdicao(erros={ERRO_ETAPA: "Registro já concluído"})
        desconhecidos = [k for k in valores if k not in self.fluxo.campos_conhecidos]
        if desconhecidos:
            return ResultadoEdicao(erros=dict.fromkeys(desconhecidos, ERRO_CAMPO_DESCONHECIDO))
        limpos = self.sessao.campos.update(valores)
        if limpos:
            logger.debug("Campos dependentes limpos fluxo=%s: %s", self.fluxo.nome, limpos)
        wizard_metrics.touch_session_activity(self.contexto.session_key)
        return ResultadoEdicao(limpos=limpos)

    def validar_atual(self) -> dict[str, str]:
        return validar_etapa(self.etapa, self.sessao.campos, self.sessao.metadados)

    def avancar(self) -> ResultadoNavegacao:
        self._autorizar()
        if self.sessao.concluida:
            return self._resultado(False, {ERRO_ETAPA: "Registro já concluído"})
        atual = self.sessao.etapa_atual
        proximo = self.fluxo.etapas.proximo_indice(atual, self.sessao.campos)
        if proximo is None:
            return self._resultado(False, {ERRO_ETAPA: "Esta é a última etapa; use finalizar"})

        erros = self.validar_atual()
        if erros:
            self.sessao.erros = erros
            wizard_metrics.inc("advance_blocked", self.fluxo.nome)
            return self._resultado(False, erros)

        deixada = self.etapa
        self.sessao.historico.append(atual)
        self.sessao.etapa_atual = proximo
        self.sessao.erros = {}
        wizard_metrics.inc("advance_ok", self.fluxo.nome)
        wizard_metrics.touch_session_activity(self.contexto.session_key)
        salvar_agora = deixada.id in self.fluxo.criar_ao_sair_de and self.sessao.remote_id is None
        return self._resultado(True, salvar_agora=salvar_agora)

    def voltar(self) -> ResultadoNavegacao:
        self._autorizar()
        if self.sessao.concluida:
            return self._resultado(False, {ERRO_ETAPA: "Registro já concluído"})
        if self.sessao.etapa_atual == 0:
            return self._resultado(False, {ERRO_ETAPA: "Já está na primeira etapa"})
        deixada = self.etapa
        anterior = self.sessao.historico.pop() if self.sessao.historico else self.sessao.etapa_atual - 1
        self.sessao.etapa_atual = anterior
        for campo in deixada.campos:
            self.sessao.erros.pop(campo, None)
        self.sessao.erros.pop(ERRO_ETAPA, None)
        wizard_metrics.touch_session_activity(self.contexto.session_key)
        return self._resultado(True)

    def erros_de_conclusao(self) -> dict[str, str]:
        """Valida o caminho efetivo inteiro mais as regras do fluxo."""
        erros: dict[str, str] = {}
        for etapa in self.fluxo.etapas.caminho_efetivo(self.sessao.campos):
            for campo, mensagem in validar_etapa(etapa, self.sessao.campos, self.sessao.metadados).items():
                erros.setdefault(campo, mensagem)
        for campo, mensagem in self.fluxo.verificar_conclusao(self.sessao).items():
            erros.setdefault(campo, mensagem)
        return erros

    def finalizar(self, gateway: DraftPersistenceGateway) -> ResultadoFinalizacao:
        """Conclui o registro; `FinalizacaoError` do gateway sobe com a sessão intacta."""
        self._autorizar()
        if self.sessao.concluida:
            return ResultadoFinalizacao(ok=True, remote_id=self.sessao.remote_id)
        if self.sessao.etapa_atual != self.fluxo.etapas.ultimo_indice:
            return ResultadoFinalizacao(ok=False, erros={ERRO_ETAPA: "Finalização só é possível na última etapa"})

        inicio = time.perf_counter()
        erros = self.erros_de_conclusao()
        if erros:
            self.sessao.erros = erros
            wizard_metrics.inc("finish_blocked", self.fluxo.nome)
            wizard_metrics.record_finish_latency(time.perf_counter() - inicio, "blocked")
            return ResultadoFinalizacao(ok=False, erros=erros)

        wizard_metrics.set_last_finish_correlation_id(self.contexto.correlation_id)
        try:
            remote_id = gateway.finalizar(self.sessao)
        except FinalizacaoError as exc:
            wizard_metrics.inc("finish_exception", self.fluxo.nome)
            wizard_metrics.record_finish_latency(time.perf_counter() - inicio, "exception")
            wizard_metrics.register_finish_error(
                "finish",
                f"fluxo={self.fluxo.nome} cid={self.contexto.correlation_id} {exc.causa or exc}",
            )
            raise

        self.sessao.status = STATUS_CONCLUIDO
        self.sessao.erros = {}
        wizard_metrics.inc("finish_success", self.fluxo.nome)
        wizard_metrics.record_finish_latency(time.perf_counter() - inicio, "success")
        wizard_metrics.unregister_active_session(self.contexto.session_key)
        logger.info(
            "Fluxo %s concluído remote_id=%s user=%s cid=%s",
            self.fluxo.nome,
            remote_id,
            self.contexto.username,
            self.contexto.correlation_id,
        )
        return ResultadoFinalizacao(ok=True, remote_id=remote_id)

    def estado(self) -> dict[str, Any]:
        etapas = self.fluxo.etapas
        return {
            "fluxo": self.fluxo.nome,
            "etapa": self.etapa.id,
            "indice": self.sessao.etapa_atual,
            "total_etapas": len(etapas),
            "ultima": self.sessao.etapa_atual == etapas.ultimo_indice,
            "campos": self.sessao.campos.snapshot(),
            "erros": dict(self.sessao.erros),
            "remote_id": self.sessao.remote_id,
            "status": self.sessao.status,
            "planos_acao": [vars(p).copy() for p in self.sessao.planos_acao],
            "anexos": list(self.sessao.anexos),
            "metadados": dict(self.sessao.metadados),
        }

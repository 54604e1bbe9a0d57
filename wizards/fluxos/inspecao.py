"""Execução de inspeção: local, participantes, perguntas e finalização.

A execução remota é criada assim que o local é escolhido. Perguntas
impeditivas respondidas como não conformes exigem ao menos um plano de ação
antes da finalização.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from shared.exceptions import NegocioError, RemoteApiError

from ..services.api_client import extrair_dados, extrair_id
from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.sessao import FormSession, PlanoAcao
from ..services.validators import lista_nao_vazia, obrigatorio, todas_respondidas
from .base import FluxoBase

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.api_client import SgsApiClient

logger = logging.getLogger(__name__)

RESPOSTA_NAO_CONFORME = "nao_conforme"
STATUS_EM_ANDAMENTO = "em_andamento"
STATUS_CONCLUIDA = "concluida"
MENSAGEM_PLANO_FALTANDO = "Pergunta impeditiva não conforme sem plano de ação"
AVISO_PLANO_LOCAL = "Plano de ação guardado; será enviado ao concluir a inspeção."


def _normalizar_pergunta(bruta: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(bruta["id"]),
        "texto": bruta.get("pergunta") or bruta.get("texto") or "",
        "impeditivo": bool(bruta.get("impeditivo", False)),
        "permite_conforme": bool(bruta.get("permite_conforme", True)),
        "permite_nao_conforme": bool(bruta.get("permite_nao_conforme", True)),
        "permite_nao_aplica": bool(bruta.get("permite_nao_aplica", True)),
    }


class Inspecao(FluxoBase):
    nome = "inspecao"
    titulo = "Executar inspeção"
    colecao = "/inspecoes/execucoes"
    status_rascunho = STATUS_EM_ANDAMENTO
    status_final = STATUS_CONCLUIDA
    criar_ao_sair_de = ("local",)
    etapas = TabelaEtapas(
        [
            StepDefinition(
                id="local",
                titulo="Local",
                campos=("local_id",),
                regras=(obrigatorio("local_id", "Selecione um local para continuar"),),
            ),
            StepDefinition(
                id="participantes",
                titulo="Participantes",
                campos=("participantes",),
                regras=(lista_nao_vazia("participantes", "Adicione pelo menos um participante"),),
            ),
            StepDefinition(
                id="perguntas",
                titulo="Perguntas",
                campos=("respostas", "observacoes"),
                regras=(todas_respondidas("respostas"),),
            ),
            StepDefinition(id="finalizacao", titulo="Finalização", campos=("observacoes_gerais",)),
        ],
        campos_finais=("local_id", "participantes", "respostas"),
    )

    def caminho_planos(self, remote_id: str) -> str:
        return f"{self.colecao}/{remote_id}/planos-acao"

    def valores_iniciais(self, contexto: RequestContext) -> dict[str, Any]:
        return {"participantes": [], "respostas": {}, "observacoes": {}}

    def nova_sessao(self, contexto: RequestContext, client: SgsApiClient, params: dict[str, Any]) -> FormSession:
        formulario_id = params.get("formulario_id")
        if not formulario_id:
            raise NegocioError("Informe o formulário de inspeção (formulario_id).")
        formulario = extrair_dados(client.get(f"/inspecoes/formularios/{formulario_id}"))
        sessao = super().nova_sessao(contexto, client, params)
        sessao.metadados = self._metadados(formulario, formulario_id)
        sessao.campos.set("data_inicio", datetime.now(timezone.utc).isoformat())
        return sessao

    def _metadados(self, formulario: Any, formulario_id: Any) -> dict[str, Any]:  # noqa: ANN401
        formulario = formulario if isinstance(formulario, dict) else {}
        return {
            "formulario_id": str(formulario.get("id") or formulario_id),
            "formulario_titulo": formulario.get("titulo") or "",
            "perguntas": [_normalizar_pergunta(p) for p in formulario.get("perguntas") or [] if "id" in p],
        }

    @property
    def campos_conhecidos(self) -> frozenset[str]:
        return super().campos_conhecidos | {"data_inicio"}

    def perguntas_sem_plano(self, sessao: FormSession) -> list[str]:
        respostas = sessao.campos.get("respostas") or {}
        faltando = []
        for pergunta in sessao.metadados.get("perguntas") or []:
            pid = pergunta["id"]
            if pergunta["impeditivo"] and respostas.get(pid) == RESPOSTA_NAO_CONFORME and not sessao.planos_da_pergunta(pid):
                faltando.append(pid)
        return faltando

    def verificar_conclusao(self, sessao: FormSession) -> dict[str, str]:
        return {f"planos_acao.{pid}": MENSAGEM_PLANO_FALTANDO for pid in self.perguntas_sem_plano(sessao)}

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        campos = sessao.campos
        respostas = campos.get("respostas") or {}
        observacoes = campos.get("observacoes") or {}
        return {
            "formulario_id": sessao.metadados.get("formulario_id"),
            "local_id": campos.get("local_id"),
            "data_inicio": campos.get("data_inicio"),
            "participantes": list(campos.get("participantes") or []),
            "respostas": [
                {"pergunta_id": pid, "resposta": valor, "observacoes": observacoes.get(pid) or None}
                for pid, valor in respostas.items()
            ],
            "observacoes_gerais": campos.get("observacoes_gerais") or None,
        }

    def payload_final(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = super().payload_final(sessao, contexto)
        payload["concluir"] = True
        return payload

    def enviar_plano(self, client: SgsApiClient, remote_id: str, plano: PlanoAcao) -> None:
        resposta = client.post(self.caminho_planos(remote_id), plano.to_payload())
        plano.remote_id = extrair_id(resposta, "POST", self.caminho_planos(remote_id))

    def _planos_pendentes(self, sessao: FormSession) -> list[PlanoAcao]:
        return [p for p in sessao.planos_acao if p.remote_id is None]

    def precisa_registro_previo(self, sessao: FormSession) -> bool:
        return bool(self._planos_pendentes(sessao))

    def antes_de_finalizar(self, client: SgsApiClient, sessao: FormSession, remote_id: str | None) -> None:
        if remote_id is None:
            return
        for plano in self._planos_pendentes(sessao):
            self.enviar_plano(client, remote_id, plano)

    def adicionar_plano(self, client: SgsApiClient, sessao: FormSession, dados: dict[str, Any]) -> tuple[PlanoAcao | None, dict[str, str], list[str]]:
        """Valida e registra um plano de ação; falha remota mantém o plano local."""
        plano = PlanoAcao.from_dict({**dados, "pergunta_id": str(dados.get("pergunta_id") or "")})
        erros = plano.validar()
        respostas = sessao.campos.get("respostas") or {}
        if "pergunta_id" not in erros and respostas.get(plano.pergunta_id) != RESPOSTA_NAO_CONFORME:
            erros["pergunta_id"] = "Planos de ação só se aplicam a perguntas não conformes"
        if erros:
            return None, erros, []

        avisos: list[str] = []
        if sessao.remote_id is not None:
            try:
                self.enviar_plano(client, sessao.remote_id, plano)
            except RemoteApiError as exc:
                logger.warning("Plano de ação não enviado execucao=%s: %s", sessao.remote_id, exc)
                avisos.append(AVISO_PLANO_LOCAL)
        else:
            avisos.append(AVISO_PLANO_LOCAL)
        sessao.planos_acao.append(plano)
        return plano, {}, avisos

    def retomar(self, client: SgsApiClient, contexto: RequestContext, execucao_id: str) -> tuple[FormSession, list[str]]:
        """Reconstrói a sessão de uma execução em andamento.

        Com respostas já gravadas, a sessão volta direto na etapa de perguntas.
        """
        execucao = extrair_dados(client.get(self.caminho_item(execucao_id)))
        if not isinstance(execucao, dict):
            raise NegocioError("Execução não encontrada.")
        if execucao.get("status", STATUS_EM_ANDAMENTO) != STATUS_EM_ANDAMENTO:
            raise NegocioError("Só é possível continuar execuções em andamento.")

        formulario = execucao.get("formulario") or {}
        respostas: dict[str, str] = {}
        observacoes: dict[str, str] = {}
        for item in execucao.get("respostas") or []:
            pid = str(item.get("pergunta_id"))
            respostas[pid] = item.get("resposta") or ""
            if item.get("observacoes"):
                observacoes[pid] = item["observacoes"]
        participantes = []
        for item in execucao.get("participantes") or []:
            if isinstance(item, dict):
                matricula = (item.get("participante") or item).get("matricula")
            else:
                matricula = item
            if matricula not in (None, ""):
                participantes.append(matricula)

        sessao = FormSession(
            fluxo=self.nome,
            campos=self._store(
                {
                    "local_id": execucao.get("local_id"),
                    "participantes": participantes,
                    "respostas": respostas,
                    "observacoes": observacoes,
                    "data_inicio": execucao.get("data_inicio"),
                },
            ),
            metadados=self._metadados(formulario, execucao.get("formulario_id")),
        )
        sessao.vincular_remote_id(str(execucao_id))

        if respostas:
            sessao.historico = [self.etapas.indice("local"), self.etapas.indice("participantes")]
            sessao.etapa_atual = self.etapas.indice("perguntas")

        avisos: list[str] = []
        try:
            planos = extrair_dados(client.get(self.caminho_planos(execucao_id)))
        except RemoteApiError as exc:
            logger.warning("Planos da execução %s não carregados: %s", execucao_id, exc)
            avisos.append("Não foi possível carregar os planos de ação existentes.")
        else:
            for bruto in planos if isinstance(planos, list) else []:
                sessao.planos_acao.append(
                    PlanoAcao(
                        pergunta_id=str(bruto.get("pergunta_id")),
                        descricao_desvio=bruto.get("desvio") or "",
                        o_que_fazer=bruto.get("o_que_fazer") or "",
                        como_fazer=bruto.get("como_fazer") or "",
                        responsavel_id=str(bruto.get("responsavel_matricula") or bruto.get("responsavel") or ""),
                        prazo=bruto.get("prazo") or "",
                        prioridade=bruto.get("prioridade") or "",
                        status=bruto.get("status") or "pendente",
                        remote_id=str(bruto["id"]) if bruto.get("id") is not None else None,
                    ),
                )
        return sessao, avisos

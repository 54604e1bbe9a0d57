"""Registro 3P: Pausar, Processar e Prosseguir antes de iniciar uma atividade."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.validators import escolha, obrigatorio, tri_estado
from .base import FluxoBase

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.sessao import FormSession

TIPOS_3P = ("Melhoria", "Aprendizado")

PERGUNTAS_PROCESSAR = (
    "riscos_avaliados",
    "ambiente_avaliado",
    "passo_descrito",
    "hipoteses_levantadas",
    "atividade_segura",
)


class Registro3P(FluxoBase):
    nome = "registro_3p"
    titulo = "Novo registro 3P"
    colecao = "/3ps"
    etapas = TabelaEtapas(
        [
            StepDefinition(
                id="basicos",
                titulo="Atividade",
                descricao="Informe a área e descreva a atividade que será avaliada.",
                campos=("area_id", "atividade"),
                regras=(
                    obrigatorio("area_id", "Área é obrigatória"),
                    obrigatorio("atividade", "Descrição da atividade é obrigatória"),
                ),
            ),
            StepDefinition(
                id="pausar",
                titulo="Pausar",
                descricao="Antes de iniciar qualquer atividade, é fundamental pausar e avaliar.",
                campos=("paralisacao_realizada",),
                regras=(tri_estado("paralisacao_realizada"),),
            ),
            StepDefinition(
                id="processar",
                titulo="Processar",
                campos=PERGUNTAS_PROCESSAR,
                regras=tuple(tri_estado(c) for c in PERGUNTAS_PROCESSAR),
            ),
            StepDefinition(
                id="prosseguir",
                titulo="Prosseguir",
                descricao="Finalize o registro identificando oportunidades e adicionando participantes.",
                campos=("tipo", "oportunidades", "participantes"),
                regras=(escolha("tipo", TIPOS_3P),),
            ),
        ],
        campos_finais=("area_id", "atividade", "paralisacao_realizada", *PERGUNTAS_PROCESSAR, "tipo"),
    )

    def valores_iniciais(self, contexto: RequestContext) -> dict[str, Any]:
        return {"participantes": []}

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        campos = sessao.campos
        payload = {
            "area_id": campos.get("area_id"),
            "atividade": (campos.get("atividade") or "").strip(),
            "paralisacao_realizada": campos.get("paralisacao_realizada"),
            "oportunidades": (campos.get("oportunidades") or "").strip(),
            "tipo": campos.get("tipo") or "",
            "participantes": [int(p) if str(p).isdigit() else p for p in campos.get("participantes") or []],
        }
        for pergunta in PERGUNTAS_PROCESSAR:
            payload[pergunta] = campos.get(pergunta)
        return payload

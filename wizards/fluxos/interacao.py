"""Nova interação de segurança (coaching em campo)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.validators import obrigatorio
from .base import FluxoBase

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.sessao import FormSession

# nome no rascunho -> nome esperado pela API no envio final
RENOMEAR_FINAL = {
    "data_interacao": "data",
    "local_instalacao_id": "local_interacao_id",
}


class Interacao(FluxoBase):
    nome = "interacao"
    titulo = "Nova interação"
    colecao = "/interacoes"
    etapas = TabelaEtapas(
        [
            StepDefinition(
                id="basicos",
                titulo="Informações Básicas",
                descricao="Tipo, método, data, empresa e localização",
                campos=(
                    "tipo_id",
                    "metodo_coach",
                    "data_interacao",
                    "unidade_id",
                    "empresa",
                    "area_id",
                    "local_id",
                    "local_instalacao_id",
                ),
                regras=(
                    obrigatorio("tipo_id", "Tipo de interação é obrigatório"),
                    obrigatorio("metodo_coach", "Método coach é obrigatório"),
                    obrigatorio("data_interacao", "Data da interação é obrigatória"),
                    obrigatorio("unidade_id", "Unidade é obrigatória"),
                    obrigatorio("empresa", "Empresa é obrigatória"),
                    obrigatorio("area_id", "Área é obrigatória"),
                    obrigatorio("local_id", "Local é obrigatório"),
                    obrigatorio("local_instalacao_id", "Local de instalação é obrigatório"),
                ),
            ),
            StepDefinition(
                id="detalhes",
                titulo="Detalhes da Interação",
                descricao="Evento, instante, desvios e classificação",
                campos=("evento", "instante", "houve_desvios", "classificacao_id", "violacao_id", "grande_risco_id"),
                regras=(
                    obrigatorio("evento", "Evento é obrigatório"),
                    obrigatorio("instante", "Instante é obrigatório"),
                    obrigatorio("houve_desvios", 'Campo "Houve desvios" é obrigatório'),
                    obrigatorio("classificacao_id", "Classificação é obrigatória"),
                ),
            ),
            StepDefinition(
                id="responsaveis",
                titulo="Descrição e Responsáveis",
                campos=("descricao", "acao", "matricula_coordenador", "matricula_supervisor"),
                regras=(
                    obrigatorio("descricao", "Descrição é obrigatória"),
                    obrigatorio("acao", "Ação imediata é obrigatória"),
                    obrigatorio("matricula_coordenador", "Coordenador responsável é obrigatório"),
                    obrigatorio("matricula_supervisor", "Supervisor responsável é obrigatório"),
                ),
            ),
        ],
        campos_finais=(
            "tipo_id",
            "data_interacao",
            "local_instalacao_id",
            "classificacao_id",
            "descricao",
            "matricula_coordenador",
            "matricula_supervisor",
        ),
    )

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = sessao.campos.snapshot()
        payload["matricula_colaborador"] = contexto.matricula
        return payload

    def payload_final(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = super().payload_final(sessao, contexto)
        for antigo, novo in RENOMEAR_FINAL.items():
            payload[novo] = payload.pop(antigo, None)
        return payload

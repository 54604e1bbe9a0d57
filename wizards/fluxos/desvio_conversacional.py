"""Relato de desvio conversacional: uma pergunta por etapa.

O ramo Ver & Agir é declarado na tabela de transições: resolvido na hora
vai direto para a ação realizada (pulando o responsável); caso contrário
passa pelo responsável e pula a ação. O registro remoto é criado assim que
`gerou_recusa` é respondida, antes das imagens.
"""

from __future__ import annotations

from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.validators import (
    TAMANHO_MINIMO_ACAO_VER_AGIR,
    TAMANHO_MINIMO_DESCRICAO,
    escolha,
    obrigatorio,
    tamanho_minimo,
    tri_estado,
)
from .base import FluxoBase
from .desvio import POTENCIAIS, FluxoDesvioMixin


def _pergunta(id_: str, titulo: str, campo: str, *regras, **extra) -> StepDefinition:  # noqa: ANN002, ANN003
    return StepDefinition(id=id_, titulo=titulo, campos=extra.pop("campos", (campo,)), regras=regras, **extra)


class DesvioConversacional(FluxoDesvioMixin, FluxoBase):
    nome = "desvio_conversacional"
    titulo = "Relato de desvio (conversa)"
    categorias_anexo = ("evidencia",)
    criar_ao_sair_de = ("gerou_recusa",)
    etapas = TabelaEtapas(
        [
            _pergunta(
                "descricao",
                "Agora descreva detalhadamente o que aconteceu:",
                "descricao",
                tamanho_minimo("descricao", TAMANHO_MINIMO_DESCRICAO),
            ),
            _pergunta("local", "Onde exatamente ocorreu este desvio?", "local", obrigatorio("local")),
            _pergunta(
                "data_ocorrencia",
                "Qual a data da ocorrência?",
                "data_ocorrencia",
                obrigatorio("data_ocorrencia"),
            ),
            _pergunta("natureza", "Qual é a natureza deste desvio?", "natureza_id", obrigatorio("natureza_id")),
            _pergunta("tipo", "Agora me diga qual é o tipo específico:", "tipo_id", obrigatorio("tipo_id")),
            _pergunta(
                "potencial",
                "Qual é o potencial de risco deste desvio?",
                "potencial_local",
                obrigatorio("potencial_local"),
                escolha("potencial", POTENCIAIS),
                campos=("potencial_local", "potencial"),
            ),
            _pergunta(
                "risco_associado",
                "Qual é o risco associado ao desvio?",
                "riscoassociado_id",
                obrigatorio("riscoassociado_id"),
            ),
            _pergunta(
                "ver_agir",
                "Este desvio foi resolvido de forma imediata (Ver & Agir)?",
                "ver_agir",
                tri_estado("ver_agir"),
                campo_desvio="ver_agir",
                transicoes={True: "acao_ver_agir", False: "responsavel"},
            ),
            _pergunta(
                "responsavel",
                "Quem deve tratar este desvio?",
                "responsavel",
                obrigatorio("responsavel"),
                padrao_proximo="gerou_recusa",
            ),
            _pergunta(
                "acao_ver_agir",
                "Qual ação foi realizada?",
                "acao",
                tamanho_minimo("acao", TAMANHO_MINIMO_ACAO_VER_AGIR),
            ),
            _pergunta("gerou_recusa", "Este desvio gerou alguma recusa?", "gerou_recusa", tri_estado("gerou_recusa")),
            StepDefinition(id="imagens", titulo="Por último, você tem alguma imagem para anexar? (Opcional)"),
        ],
        campos_finais=("descricao", "local", "natureza_id", "tipo_id", "potencial", "riscoassociado_id", "ver_agir"),
    )

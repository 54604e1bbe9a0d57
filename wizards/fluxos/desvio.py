"""Relato de desvio em etapas (básicos, detalhes, imagens, revisão)."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from django.conf import settings

from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.validators import (
    TAMANHO_MINIMO_ACAO_VER_AGIR,
    TAMANHO_MINIMO_DESCRICAO,
    escolha,
    obrigatorio,
    quando,
    tamanho_minimo,
    tri_estado,
)
from .base import FluxoBase

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.sessao import FormSession

POTENCIAIS = ("Intolerável", "Substancial", "Moderado", "Trivial")
STATUS_CONCLUIDO_VER_AGIR = "Concluído"
STATUS_AGUARDANDO_AVALIACAO = "Aguardando Avaliação"


def _ver_agir(campos: Any) -> bool:  # noqa: ANN401
    return campos.get("ver_agir") is True


def _inteiro(valor: Any) -> Any:  # noqa: ANN401
    if isinstance(valor, str) and valor.isdigit():
        return int(valor)
    return valor


class FluxoDesvioMixin:
    """Partes comuns aos dois formatos de relato de desvio."""

    colecao = "/desvios"
    dependencias = {"natureza_id": ("tipo_id",)}
    anexos_habilitados = True
    caminho_upload = "/desvios/upload-image"
    caminho_registro_anexo = "/desvios/imagens"
    campo_pai_anexo = "desvio_id"

    def valores_iniciais(self, contexto: RequestContext) -> dict[str, Any]:
        valores: dict[str, Any] = {"data_ocorrencia": date.today().isoformat()}
        risco_padrao = getattr(settings, "DESVIO_RISCO_ASSOCIADO_PADRAO", None)
        if risco_padrao:
            valores["riscoassociado_id"] = str(risco_padrao)
        return valores

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        campos = sessao.campos
        ver_agir = campos.get("ver_agir") is True
        return {
            "descricao": (campos.get("descricao") or "").strip(),
            "local": campos.get("local"),
            "data_ocorrencia": campos.get("data_ocorrencia"),
            "natureza_id": _inteiro(campos.get("natureza_id")),
            "tipo_id": _inteiro(campos.get("tipo_id")),
            "potencial": campos.get("potencial"),
            "potencial_local": campos.get("potencial_local"),
            "riscoassociado_id": _inteiro(campos.get("riscoassociado_id")),
            "contrato": contexto.contrato_raiz,
            "ver_agir": ver_agir,
            "gerou_recusa": campos.get("gerou_recusa") is True,
            # resposta de um ramo pulado não vai para o registro
            "acao": (campos.get("acao") or "").strip() or None if ver_agir else None,
            "responsavel": None if ver_agir else campos.get("responsavel"),
        }

    def payload_final(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = self.payload_base(sessao, contexto)
        payload["status"] = STATUS_CONCLUIDO_VER_AGIR if payload["ver_agir"] else STATUS_AGUARDANDO_AVALIACAO
        return payload


class Desvio(FluxoDesvioMixin, FluxoBase):
    nome = "desvio"
    titulo = "Novo desvio"
    categorias_anexo = ("antes", "durante", "depois")
    # imagens precisam do registro criado
    criar_ao_sair_de = ("detalhes",)
    etapas = TabelaEtapas(
        [
            StepDefinition(
                id="basicos",
                titulo="Informações básicas",
                campos=("descricao", "local", "data_ocorrencia"),
                regras=(
                    obrigatorio("descricao", "Descrição é obrigatória"),
                    tamanho_minimo("descricao", TAMANHO_MINIMO_DESCRICAO),
                    obrigatorio("local", "Local é obrigatório"),
                    obrigatorio("data_ocorrencia", "Data da ocorrência é obrigatória"),
                ),
            ),
            StepDefinition(
                id="detalhes",
                titulo="Classificação",
                campos=(
                    "natureza_id",
                    "tipo_id",
                    "potencial",
                    "potencial_local",
                    "riscoassociado_id",
                    "ver_agir",
                    "acao",
                    "responsavel",
                    "gerou_recusa",
                ),
                regras=(
                    obrigatorio("natureza_id", "Natureza é obrigatória"),
                    obrigatorio("tipo_id", "Tipo é obrigatório"),
                    escolha("potencial", POTENCIAIS, "Potencial é obrigatório"),
                    obrigatorio("potencial_local", "Potencial local é obrigatório"),
                    obrigatorio("riscoassociado_id", "Risco associado é obrigatório"),
                    tri_estado("ver_agir"),
                    quando(_ver_agir, tamanho_minimo("acao", TAMANHO_MINIMO_ACAO_VER_AGIR)),
                    quando(lambda c: c.get("ver_agir") is False, obrigatorio("responsavel", "Responsável é obrigatório")),
                    tri_estado("gerou_recusa"),
                ),
            ),
            StepDefinition(id="imagens", titulo="Imagens", descricao="Fotos de antes, durante e depois (opcional)"),
            StepDefinition(id="revisao", titulo="Revisão", descricao="Confira os dados antes de enviar"),
        ],
        campos_finais=("descricao", "local", "natureza_id", "tipo_id", "potencial", "riscoassociado_id", "ver_agir"),
    )

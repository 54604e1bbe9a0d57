"""Complemento de cadastro: contrato, letra e equipe do usuário logado.

Não há rascunho: o registro remoto é o próprio usuário, identificado pela
matrícula, e só recebe o PUT na finalização.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from shared.exceptions import NegocioError

from ..services.etapas import StepDefinition, TabelaEtapas
from ..services.validators import obrigatorio
from .base import FluxoBase

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.api_client import SgsApiClient
    from ..services.sessao import FormSession


class DadosUsuario(FluxoBase):
    nome = "dados_usuario"
    titulo = "Complete seus dados"
    colecao = "/users"
    rascunho_habilitado = False
    dependencias = {"contrato": ("letra_id", "equipe_id"), "letra_id": ("equipe_id",)}
    etapas = TabelaEtapas(
        [
            StepDefinition(
                id="dados",
                titulo="Dados de lotação",
                campos=("contrato", "letra_id", "equipe_id"),
                regras=(
                    obrigatorio("contrato", "Contrato é obrigatório"),
                    obrigatorio("letra_id", "Letra é obrigatória"),
                    obrigatorio("equipe_id", "Equipe é obrigatória"),
                ),
            ),
        ],
        campos_finais=("contrato", "letra_id", "equipe_id"),
    )

    def valores_iniciais(self, contexto: RequestContext) -> dict[str, Any]:
        return {"contrato": contexto.contrato_raiz} if contexto.contrato_raiz else {}

    def nova_sessao(self, contexto: RequestContext, client: SgsApiClient, params: dict[str, Any]) -> FormSession:
        if not contexto.matricula:
            raise NegocioError("Usuário sem matrícula cadastrada.")
        sessao = super().nova_sessao(contexto, client, params)
        sessao.vincular_remote_id(contexto.matricula)
        return sessao

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        campos = sessao.campos
        return {"contrato": campos.get("contrato"), "letra_id": campos.get("letra_id"), "equipe_id": campos.get("equipe_id")}

    def payload_final(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        # o cadastro de usuário não tem campo de status
        return self.payload_base(sessao, contexto)

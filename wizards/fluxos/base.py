"""Base declarativa dos fluxos de wizard.

Um fluxo junta a tabela de etapas, os resets de campos dependentes, a coleção
remota onde o rascunho vive e as transformações de payload (rascunho e final).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from core.authorization import permissao_fluxo

from ..services.field_store import FieldValueStore
from ..services.sessao import FormSession

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..services.api_client import SgsApiClient
    from ..services.etapas import TabelaEtapas

logger = logging.getLogger(__name__)


class FluxoBase:
    nome: ClassVar[str] = ""
    titulo: ClassVar[str] = ""
    etapas: ClassVar[TabelaEtapas]
    dependencias: ClassVar[dict[str, tuple[str, ...]]] = {}

    colecao: ClassVar[str] = ""
    campo_status: ClassVar[str] = "status"
    status_rascunho: ClassVar[str] = "rascunho"
    status_final: ClassVar[str] = "concluido"
    rascunho_habilitado: ClassVar[bool] = True
    # etapas cuja saída cria o registro remoto na hora (sem esperar o debounce)
    criar_ao_sair_de: ClassVar[tuple[str, ...]] = ()

    anexos_habilitados: ClassVar[bool] = False
    categorias_anexo: ClassVar[tuple[str, ...]] = ()
    caminho_upload: ClassVar[str] = ""
    caminho_registro_anexo: ClassVar[str] = ""
    campo_pai_anexo: ClassVar[str] = ""

    @property
    def permissao(self) -> str:
        return permissao_fluxo(self.nome)

    @property
    def campos_conhecidos(self) -> frozenset[str]:
        return frozenset(c for etapa in self.etapas for c in etapa.campos)

    def caminho_item(self, remote_id: str) -> str:
        return f"{self.colecao}/{remote_id}"

    def valores_iniciais(self, contexto: RequestContext) -> dict[str, Any]:
        return {}

    def nova_sessao(self, contexto: RequestContext, client: SgsApiClient, params: dict[str, Any]) -> FormSession:
        """Sessão vazia; fluxos com dados remotos de partida sobrescrevem."""
        sessao = FormSession(fluxo=self.nome, campos=self._store(self.valores_iniciais(contexto)))
        return sessao

    def _store(self, valores: dict[str, Any]) -> FieldValueStore:
        return FieldValueStore(valores, self.dependencias)

    def verificar_conclusao(self, sessao: FormSession) -> dict[str, str]:
        """Regras entre entidades checadas só na finalização."""
        return {}

    def payload_base(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        return sessao.campos.snapshot()

    def payload_rascunho(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = self.payload_base(sessao, contexto)
        payload[self.campo_status] = self.status_rascunho
        return payload

    def payload_final(self, sessao: FormSession, contexto: RequestContext) -> dict[str, Any]:
        payload = self.payload_base(sessao, contexto)
        payload[self.campo_status] = self.status_final
        return payload

    def precisa_registro_previo(self, sessao: FormSession) -> bool:
        """True quando sub-recursos pendentes exigem o registro criado antes do envio final."""
        return False

    def antes_de_finalizar(self, client: SgsApiClient, sessao: FormSession, remote_id: str | None) -> None:
        """Sincronizações de sub-recursos antes do envio final (pode levantar RemoteApiError)."""

    def as_dict(self) -> dict[str, Any]:
        return {
            "nome": self.nome,
            "titulo": self.titulo,
            "etapas": [e.as_dict() for e in self.etapas],
            "anexos": list(self.categorias_anexo) if self.anexos_habilitados else [],
        }

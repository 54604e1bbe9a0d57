"""Anexo de imagens em duas fases: upload (multipart) e registro (JSON).

Falha no upload não registra nada. Falha no registro levanta `AnexoError`
com a URL já enviada, para o usuário ver que o arquivo subiu mas não foi
vinculado.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from django.conf import settings

from shared.exceptions import AnexoError, RemoteApiError

from . import wizard_metrics
from .api_client import SgsApiClient, extrair_dados

if TYPE_CHECKING:
    from core.context import RequestContext

    from ..fluxos.base import FluxoBase
    from .sessao import FormSession

logger = logging.getLogger(__name__)


class AnexoService:
    def __init__(self, fluxo: FluxoBase, contexto: RequestContext, client: SgsApiClient | None = None) -> None:
        self.fluxo = fluxo
        self.contexto = contexto
        self.client = client or SgsApiClient.para_contexto(contexto)

    def validar(self, sessao: FormSession, nome: str, tamanho: int, content_type: str, categoria: str) -> None:
        if not self.fluxo.anexos_habilitados:
            raise AnexoError("Este fluxo não aceita anexos.")
        if categoria not in self.fluxo.categorias_anexo:
            raise AnexoError(f"Categoria inválida: {categoria}")
        if not (content_type or "").startswith("image/"):
            raise AnexoError(f"{nome}: apenas imagens são permitidas.")
        limite = int(settings.WIZARD_MAX_ANEXO_BYTES)
        if tamanho > limite:
            raise AnexoError(f"{nome}: arquivo maior que {limite // (1024 * 1024)}MB.")
        maximo = int(settings.WIZARD_MAX_ANEXOS_POR_CATEGORIA)
        if sum(1 for a in sessao.anexos if a.get("categoria") == categoria) >= maximo:
            raise AnexoError(f"Máximo de {maximo} imagens por categoria.")
        if sessao.remote_id is None:
            raise AnexoError("Salve o registro antes de anexar imagens.")

    def anexar(self, sessao: FormSession, nome: str, conteudo: bytes, content_type: str, categoria: str) -> dict[str, Any]:
        self.validar(sessao, nome, len(conteudo), content_type, categoria)

        try:
            enviado = extrair_dados(self.client.upload(self.fluxo.caminho_upload, nome, conteudo, content_type))
        except RemoteApiError as exc:
            wizard_metrics.inc("attach_failed", self.fluxo.nome)
            logger.warning("Upload de %s falhou fluxo=%s cid=%s: %s", nome, self.fluxo.nome, self.contexto.correlation_id, exc)
            raise AnexoError(f"Falha no envio de {nome}. Nada foi registrado.") from exc

        url = None
        if isinstance(enviado, dict):
            url = enviado.get("publicUrl") or enviado.get("url")
        if not url:
            wizard_metrics.inc("attach_failed", self.fluxo.nome)
            raise AnexoError(f"Falha no envio de {nome}: resposta sem URL.")

        registro = {
            self.fluxo.campo_pai_anexo: sessao.remote_id,
            "url": url,
            "categoria": categoria,
            "nome_arquivo": nome,
            "tamanho": len(conteudo),
            "tipo_mime": content_type,
        }
        try:
            resposta = extrair_dados(self.client.post(self.fluxo.caminho_registro_anexo, registro))
        except RemoteApiError as exc:
            wizard_metrics.inc("attach_failed", self.fluxo.nome)
            wizard_metrics.register_finish_error("anexo", f"cid={self.contexto.correlation_id} url={url} {exc}")
            logger.error(
                "Imagem enviada mas não registrada fluxo=%s remote_id=%s url=%s cid=%s: %s",
                self.fluxo.nome,
                sessao.remote_id,
                url,
                self.contexto.correlation_id,
                exc,
            )
            raise AnexoError(f"{nome} foi enviada mas não pôde ser vinculada ao registro.", url=url) from exc

        anexo = {
            "url": url,
            "categoria": categoria,
            "nome": nome,
            "remote_id": str(resposta["id"]) if isinstance(resposta, dict) and resposta.get("id") is not None else None,
        }
        sessao.anexos.append(anexo)
        wizard_metrics.inc("attach_ok", self.fluxo.nome)
        return anexo

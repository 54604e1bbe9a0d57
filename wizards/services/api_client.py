"""Cliente HTTP da API remota de registro (sistema de origem dos dados).

Envelope de resposta aceito: `{"success": bool, "data": ...}`, lista pura ou
objeto com `id`. Status HTTP fora de 2xx ou `success: false` viram
`RemoteApiError`.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import requests
from django.conf import settings

from shared.exceptions import RemoteApiError

from . import wizard_metrics

if TYPE_CHECKING:
    from core.context import RequestContext

logger = logging.getLogger(__name__)


class SgsApiClient:
    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float | None = None,
        session: requests.Session | None = None,
        correlation_id: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else float(getattr(settings, "SGS_API_TIMEOUT_SECONDS", 15))
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"
        if correlation_id:
            self.session.headers["X-Correlation-Id"] = correlation_id

    @classmethod
    def para_contexto(cls, contexto: RequestContext, session: requests.Session | None = None) -> SgsApiClient:
        return cls(
            contexto.api_base_url,
            token=contexto.api_token,
            session=session,
            correlation_id=contexto.correlation_id,
        )

    def _request(self, metodo: str, caminho: str, **kwargs: Any) -> Any:  # noqa: ANN401
        url = f"{self.base_url}/{caminho.lstrip('/')}"
        inicio = time.perf_counter()
        try:
            response = self.session.request(metodo, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            wizard_metrics.record_remote_latency(time.perf_counter() - inicio, "erro")
            logger.warning("Falha de rede em %s %s: %s", metodo, caminho, exc)
            raise RemoteApiError(metodo, caminho, None, str(exc)) from exc
        wizard_metrics.record_remote_latency(time.perf_counter() - inicio, "ok" if response.ok else "erro")

        if not response.ok:
            raise RemoteApiError(metodo, caminho, response.status_code, _mensagem_erro(response))
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteApiError(metodo, caminho, response.status_code, "resposta não é JSON") from exc
        if isinstance(payload, dict) and payload.get("success") is False:
            detalhe = payload.get("error") or payload.get("message") or ""
            raise RemoteApiError(metodo, caminho, response.status_code, str(detalhe))
        return payload

    def get(self, caminho: str, params: dict[str, Any] | None = None) -> Any:  # noqa: ANN401
        return self._request("GET", caminho, params=params)

    def post(self, caminho: str, dados: dict[str, Any]) -> Any:  # noqa: ANN401
        return self._request("POST", caminho, json=dados)

    def put(self, caminho: str, dados: dict[str, Any]) -> Any:  # noqa: ANN401
        return self._request("PUT", caminho, json=dados)

    def upload(self, caminho: str, nome: str, conteudo: bytes, content_type: str) -> Any:  # noqa: ANN401
        return self._request("POST", caminho, files={"file": (nome, conteudo, content_type)})


def _mensagem_erro(response: requests.Response) -> str:
    try:
        corpo = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(corpo, dict):
        return str(corpo.get("error") or corpo.get("message") or "")[:200]
    return ""


def extrair_dados(payload: Any) -> Any:  # noqa: ANN401
    """Desembrulha `{"success", "data"}`; listas e objetos puros passam direto."""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def extrair_id(payload: Any, metodo: str = "POST", caminho: str = "") -> str:  # noqa: ANN401
    dados = extrair_dados(payload)
    remote_id = None
    if isinstance(dados, dict):
        remote_id = dados.get("id")
    if remote_id is None and isinstance(payload, dict):
        remote_id = payload.get("id")
    if remote_id in (None, ""):
        raise RemoteApiError(metodo, caminho, None, "resposta sem id do registro")
    return str(remote_id)

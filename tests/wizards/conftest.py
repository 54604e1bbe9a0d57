from __future__ import annotations

from typing import Any

import pytest

from core.context import RequestContext


class FakeClient:
    """Dublê do SgsApiClient: registra chamadas e devolve respostas roteirizadas.

    Uma resposta que é exceção é levantada. A última resposta da fila se repete.
    """

    def __init__(self) -> None:
        self.chamadas: list[tuple[str, str, Any]] = []
        self._respostas: dict[tuple[str, str], list[Any]] = {}

    def responder(self, metodo: str, caminho: str, *respostas: Any) -> None:
        self._respostas.setdefault((metodo, caminho), []).extend(respostas)

    def _chamar(self, metodo: str, caminho: str, dados: Any) -> Any:
        self.chamadas.append((metodo, caminho, dados))
        fila = self._respostas.get((metodo, caminho)) or [{}]
        resposta = fila.pop(0) if len(fila) > 1 else fila[0]
        if isinstance(resposta, Exception):
            raise resposta
        return resposta

    def get(self, caminho: str, params: dict[str, Any] | None = None) -> Any:
        return self._chamar("GET", caminho, params)

    def post(self, caminho: str, dados: dict[str, Any]) -> Any:
        return self._chamar("POST", caminho, dados)

    def put(self, caminho: str, dados: dict[str, Any]) -> Any:
        return self._chamar("PUT", caminho, dados)

    def upload(self, caminho: str, nome: str, conteudo: bytes, content_type: str) -> Any:
        return self._chamar("UPLOAD", caminho, {"nome": nome, "tamanho": len(conteudo), "content_type": content_type})

    def metodos(self, metodo: str) -> list[tuple[str, str, Any]]:
        return [c for c in self.chamadas if c[0] == metodo]


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_contexto():
    def _make(**overrides: Any) -> RequestContext:
        dados = {
            "user_id": 1,
            "username": "ana.souza",
            "matricula": "123456",
            "contrato_raiz": "CT-01",
            "tenant_id": 1,
            "api_base_url": "http://api.test/api",
            "permissoes": frozenset({"*"}),
            "session_key": "sessao-teste",
            "correlation_id": "cid-teste-0001",
        }
        dados.update(overrides)
        return RequestContext(**dados)

    return _make


@pytest.fixture
def contexto(make_contexto) -> RequestContext:
    return make_contexto()

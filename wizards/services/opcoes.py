"""Carregamento de opções de referência (locais, naturezas, tipos, usuários...).

Cada fonte remota devolve um formato próprio (`nome`, `local`, `tipo`,
`natureza`...). Tudo é normalizado aqui para `ReferenceOption` antes de
chegar à API ou à validação.

Opções dependentes (tipo depende de natureza, letra/equipe de contrato)
seguem "a última requisição vence": cada carga tira uma senha de um contador
por sessão e tipo no cache, e só a senha mais recente grava o resultado.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.core.cache import cache

from shared.cache_utils import get_int, incr_atomic, lock_cache
from shared.exceptions import RemoteApiError

from . import wizard_metrics
from .api_client import SgsApiClient, extrair_dados

if TYPE_CHECKING:
    from core.context import RequestContext

logger = logging.getLogger(__name__)

# Ordem importa: a primeira chave presente com valor vira o rótulo
LABEL_KEYS = (
    "nome",
    "local",
    "tipo",
    "natureza",
    "unidade",
    "area",
    "classificacao",
    "violacao",
    "grandes_riscos",
    "local_instalacao",
    "risco_associado",
    "potencial_local",
    "potencial",
    "letra",
    "equipe",
    "contrato",
    "descricao",
)
ID_KEYS = ("id", "matricula", "codigo")

AVISO_FALHA = "Não foi possível carregar as opções de {tipo}. Tente novamente."


@dataclass(frozen=True)
class ReferenceOption:
    id: str
    label: str
    parent_id: str | None = None


@dataclass(frozen=True)
class TipoOpcao:
    nome: str
    caminho: str
    # filtro recebido -> parâmetro de query da fonte remota
    filtros: dict[str, str] = field(default_factory=dict)
    filtros_obrigatorios: tuple[str, ...] = ()
    usa_contrato: bool = False
    params_fixos: dict[str, Any] = field(default_factory=dict)
    chave_pai: str | None = None


TIPOS_OPCAO: dict[str, TipoOpcao] = {
    t.nome: t
    for t in (
        TipoOpcao("locais", "/security-params/locations", usa_contrato=True, params_fixos={"limit": 500}),
        TipoOpcao("naturezas", "/security-params/natures", usa_contrato=True),
        TipoOpcao(
            "tipos",
            "/security-params/types",
            filtros={"natureza_id": "nature_id"},
            filtros_obrigatorios=("natureza_id",),
            usa_contrato=True,
            chave_pai="natureza_id",
        ),
        TipoOpcao("potenciais", "/security-params/potentials", usa_contrato=True),
        TipoOpcao("riscos_associados", "/security-params/associated-risks"),
        TipoOpcao("usuarios", "/usuarios"),
        TipoOpcao("interacao_tipos", "/interacoes/tipos"),
        TipoOpcao("interacao_unidades", "/interacoes/unidades"),
        TipoOpcao("interacao_areas", "/interacoes/areas"),
        TipoOpcao("interacao_classificacoes", "/interacoes/classificacoes"),
        TipoOpcao("interacao_violacoes", "/interacoes/violacoes"),
        TipoOpcao("interacao_grandes_riscos", "/interacoes/grandes-riscos"),
        TipoOpcao("interacao_locais_instalacao", "/interacoes/local-instalacao"),
        TipoOpcao("inspecao_locais", "/inspecoes/locais", params_fixos={"limit": 100}),
        TipoOpcao("inspecao_usuarios", "/inspecoes/usuarios", filtros={"busca": "search"}, params_fixos={"limit": 50}),
        TipoOpcao("contratos", "/users/contracts"),
        TipoOpcao(
            "letras",
            "/users/letters",
            filtros={"contrato": "contrato"},
            filtros_obrigatorios=("contrato",),
            chave_pai="contrato",
        ),
        TipoOpcao(
            "equipes",
            "/users/teams",
            filtros={"contrato": "contrato", "letra_id": "letra_id"},
            filtros_obrigatorios=("contrato",),
            chave_pai="contrato",
        ),
    )
}


def normalizar_opcao(item: Any, chave_pai: str | None = None, pai_padrao: Any = None) -> ReferenceOption | None:  # noqa: ANN401
    """Converte um registro heterogêneo em `ReferenceOption`; None se não houver id."""
    if not isinstance(item, dict):
        return None
    bruto_id = next((item[k] for k in ID_KEYS if item.get(k) not in (None, "")), None)
    if bruto_id is None:
        return None
    label = next((str(item[k]) for k in LABEL_KEYS if item.get(k) not in (None, "")), str(bruto_id))
    pai = item.get(chave_pai) if chave_pai else None
    if pai in (None, ""):
        pai = pai_padrao
    return ReferenceOption(id=str(bruto_id), label=label, parent_id=str(pai) if pai not in (None, "") else None)


def normalizar_opcoes(itens: Any, chave_pai: str | None = None, pai_padrao: Any = None) -> list[ReferenceOption]:  # noqa: ANN401
    if not isinstance(itens, list):
        return []
    opcoes = []
    for item in itens:
        opcao = normalizar_opcao(item, chave_pai, pai_padrao)
        if opcao is not None:
            opcoes.append(opcao)
    return opcoes


@dataclass
class ResultadoOpcoes:
    opcoes: list[ReferenceOption]
    avisos: list[str] = field(default_factory=list)
    obsoleto: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "opcoes": [asdict(o) for o in self.opcoes],
            "avisos": list(self.avisos),
            "obsoleto": self.obsoleto,
        }


class RemoteOptionLoader:
    def __init__(self, contexto: RequestContext, fluxo: str, client: SgsApiClient | None = None) -> None:
        self.contexto = contexto
        self.fluxo = fluxo
        self.client = client or SgsApiClient.para_contexto(contexto)

    def _base(self, tipo: str) -> str:
        c = self.contexto
        return f"wizards:opcoes:{c.tenant_id or 0}:{c.session_key}:{self.fluxo}:{tipo}"

    def _ttl(self) -> int:
        return int(getattr(settings, "WIZARD_SESSION_TTL_SECONDS", 86400))

    def opcoes_atuais(self, tipo: str) -> list[ReferenceOption]:
        """Últimas opções aceitas para `tipo` nesta sessão."""
        gravado = cache.get(f"{self._base(tipo)}:dados")
        if not gravado:
            return []
        return [ReferenceOption(**o) for o in gravado.get("opcoes", [])]

    def _params(self, definicao: TipoOpcao, filtros: dict[str, Any]) -> dict[str, Any]:
        params: dict[str, Any] = dict(definicao.params_fixos)
        if definicao.usa_contrato and self.contexto.contrato_raiz:
            params["contrato"] = self.contexto.contrato_raiz
        for nome, param in definicao.filtros.items():
            valor = filtros.get(nome)
            if valor not in (None, ""):
                params[param] = valor
        return params

    def _gravar(self, tipo: str, senha: int, filtros: dict[str, Any], opcoes: list[ReferenceOption]) -> bool:
        base = self._base(tipo)
        with lock_cache(f"{base}:lock") as obtido:
            if senha != get_int(f"{base}:gen"):
                return False
            if not obtido:
                # senha mais recente grava mesmo sem o lock
                logger.debug("Lock de opções %s indisponível; gravando a senha %s", tipo, senha)
            cache.set(
                f"{base}:dados",
                {"senha": senha, "filtros": filtros, "opcoes": [asdict(o) for o in opcoes]},
                self._ttl(),
            )
            return True

    def _obsoleto(self, tipo: str) -> ResultadoOpcoes:
        wizard_metrics.inc("options_stale", self.fluxo)
        logger.debug("Resposta de opções %s descartada (seleção mudou) fluxo=%s", tipo, self.fluxo)
        return ResultadoOpcoes(opcoes=self.opcoes_atuais(tipo), obsoleto=True)

    def carregar(self, tipo: str, filtros: dict[str, Any] | None = None) -> ResultadoOpcoes:
        """Carrega opções de `tipo`. Nunca levanta: falha vira lista vazia + aviso."""
        filtros = {k: v for k, v in (filtros or {}).items() if v not in (None, "")}
        definicao = TIPOS_OPCAO.get(tipo)
        if definicao is None:
            return ResultadoOpcoes(opcoes=[], avisos=[f"Tipo de opção desconhecido: {tipo}"])

        base = self._base(tipo)
        senha = incr_atomic(f"{base}:gen", ttl=self._ttl())

        if any(f not in filtros for f in definicao.filtros_obrigatorios):
            # seleção-pai vazia: nada a buscar, e respostas antigas em voo perdem a vez
            self._gravar(tipo, senha, filtros, [])
            return ResultadoOpcoes(opcoes=[])

        try:
            payload = self.client.get(definicao.caminho, params=self._params(definicao, filtros))
        except RemoteApiError as exc:
            wizard_metrics.inc("options_failed", self.fluxo)
            logger.warning("Falha ao carregar opções %s fluxo=%s cid=%s: %s", tipo, self.fluxo, self.contexto.correlation_id, exc)
            if senha != get_int(f"{base}:gen"):
                return self._obsoleto(tipo)
            return ResultadoOpcoes(opcoes=[], avisos=[AVISO_FALHA.format(tipo=tipo)])

        pai_padrao = filtros.get(definicao.chave_pai) if definicao.chave_pai else None
        opcoes = normalizar_opcoes(extrair_dados(payload), definicao.chave_pai, pai_padrao)
        if not self._gravar(tipo, senha, filtros, opcoes):
            return self._obsoleto(tipo)
        return ResultadoOpcoes(opcoes=opcoes)

"""Regras de validação por etapa.

Cada regra é um objeto imutável que olha um único campo e devolve
`{campo: mensagem}` quando falha. `validar_etapa` é pura: mesma entrada,
mesma saída, sem tocar no armazenamento de valores.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from .etapas import StepDefinition

MENSAGEM_OBRIGATORIO = "Campo obrigatório"

# Limites mínimos de texto livre usados pelos fluxos de desvio
TAMANHO_MINIMO_DESCRICAO = 10
TAMANHO_MINIMO_ACAO_VER_AGIR = 5

RESPOSTAS_INSPECAO = ("conforme", "nao_conforme", "nao_aplica")


def _vazio(valor: Any) -> bool:  # noqa: ANN401
    if valor is None:
        return True
    if isinstance(valor, str):
        return not valor.strip()
    if isinstance(valor, list | tuple | set | dict):
        return len(valor) == 0
    return False


@dataclass(frozen=True)
class Regra(ABC):
    campo: str
    mensagem: str = MENSAGEM_OBRIGATORIO

    # Regras que exigem valor contam como "campo obrigatório" da etapa
    exige_valor: ClassVar[bool] = True

    @abstractmethod
    def valido(self, valor: Any, campos: Mapping[str, Any], metadados: Mapping[str, Any]) -> bool:  # noqa: ANN401
        ...

    def __call__(self, campos: Mapping[str, Any], metadados: Mapping[str, Any] | None = None) -> dict[str, str]:
        valor = campos.get(self.campo)
        if self.valido(valor, campos, metadados or {}):
            return {}
        return {self.campo: self.mensagem}


@dataclass(frozen=True)
class Obrigatorio(Regra):
    def valido(self, valor, campos, metadados):
        return not _vazio(valor)


@dataclass(frozen=True)
class TriEstado(Regra):
    """Sim/Não obrigatório: None significa "não respondido"; False é resposta válida."""

    def valido(self, valor, campos, metadados):
        return isinstance(valor, bool)


@dataclass(frozen=True)
class TamanhoMinimo(Regra):
    minimo: int = 1

    def valido(self, valor, campos, metadados):
        return isinstance(valor, str) and len(valor.strip()) >= self.minimo


@dataclass(frozen=True)
class ListaNaoVazia(Regra):
    def valido(self, valor, campos, metadados):
        return isinstance(valor, list | tuple) and len(valor) > 0


@dataclass(frozen=True)
class Escolha(Regra):
    opcoes: tuple[Any, ...] = ()

    def valido(self, valor, campos, metadados):
        return valor in self.opcoes


@dataclass(frozen=True)
class TodasRespondidas(Regra):
    """Todas as perguntas do formulário (em `metadados["perguntas"]`) têm resposta válida."""

    def valido(self, valor, campos, metadados):
        perguntas = metadados.get("perguntas") or []
        if not isinstance(valor, Mapping):
            return not perguntas
        for pergunta in perguntas:
            if valor.get(str(pergunta["id"])) not in RESPOSTAS_INSPECAO:
                return False
        return True


@dataclass(frozen=True)
class SeCondicao(Regra):
    """Aplica `regra` apenas quando `condicao(campos)` é verdadeira."""

    regra: Regra | None = None
    condicao: Callable[[Mapping[str, Any]], bool] | None = None

    def __call__(self, campos, metadados=None):
        if self.regra is None or self.condicao is None or not self.condicao(campos):
            return {}
        return self.regra(campos, metadados)


# Construtores curtos usados nas definições de fluxo


def obrigatorio(campo: str, mensagem: str = MENSAGEM_OBRIGATORIO) -> Regra:
    return Obrigatorio(campo, mensagem)


def tri_estado(campo: str, mensagem: str = MENSAGEM_OBRIGATORIO) -> Regra:
    return TriEstado(campo, mensagem)


def tamanho_minimo(campo: str, minimo: int, mensagem: str | None = None) -> Regra:
    return TamanhoMinimo(campo, mensagem or f"Informe pelo menos {minimo} caracteres", minimo=minimo)


def lista_nao_vazia(campo: str, mensagem: str = MENSAGEM_OBRIGATORIO) -> Regra:
    return ListaNaoVazia(campo, mensagem)


def escolha(campo: str, opcoes: tuple[Any, ...] | list[Any], mensagem: str = MENSAGEM_OBRIGATORIO) -> Regra:
    return Escolha(campo, mensagem, opcoes=tuple(opcoes))


def todas_respondidas(campo: str, mensagem: str = "Responda todas as perguntas") -> Regra:
    return TodasRespondidas(campo, mensagem)


def quando(condicao: Callable[[Mapping[str, Any]], bool], regra: Regra) -> Regra:
    return SeCondicao(regra.campo, regra.mensagem, regra=regra, condicao=condicao)


def validar_etapa(
    etapa: StepDefinition,
    campos: Mapping[str, Any],
    metadados: Mapping[str, Any] | None = None,
) -> dict[str, str]:
    """Roda as regras da etapa; a primeira falha de cada campo vence."""
    erros: dict[str, str] = {}
    for regra in etapa.regras:
        for campo, mensagem in regra(campos, metadados).items():
            erros.setdefault(campo, mensagem)
    return erros

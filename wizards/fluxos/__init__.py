"""Registro dos fluxos de wizard disponíveis."""

from __future__ import annotations

from .base import FluxoBase
from .dados_usuario import DadosUsuario
from .desvio import Desvio
from .desvio_conversacional import DesvioConversacional
from .inspecao import Inspecao
from .interacao import Interacao
from .registro_3p import Registro3P

FLUXOS: dict[str, FluxoBase] = {
    fluxo.nome: fluxo
    for fluxo in (Registro3P(), Desvio(), DesvioConversacional(), Interacao(), Inspecao(), DadosUsuario())
}


def get_fluxo(nome: str) -> FluxoBase:
    """Fluxo pelo nome; KeyError para nomes desconhecidos."""
    return FLUXOS[nome]


__all__ = ["FLUXOS", "FluxoBase", "get_fluxo"]

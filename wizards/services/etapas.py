"""Definição de etapas e tabela de transições de um fluxo.

Desvios condicionais são declarados por etapa (`campo_desvio` + `transicoes`
valor -> id da próxima etapa), nunca por aritmética de índice. A tabela
valida a definição na construção e levanta `DefinicaoWizardError`.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from shared.exceptions import DefinicaoWizardError

from .validators import Regra


@dataclass(frozen=True)
class StepDefinition:
    id: str
    titulo: str
    campos: tuple[str, ...] = ()
    regras: tuple[Regra, ...] = ()
    descricao: str = ""
    campo_desvio: str | None = None
    transicoes: Mapping[Any, str] = field(default_factory=dict)
    padrao_proximo: str | None = None

    @property
    def campos_obrigatorios(self) -> frozenset[str]:
        return frozenset(r.campo for r in self.regras if r.exige_valor)

    def proximo_id(self, campos: Mapping[str, Any]) -> str | None:
        """Id da próxima etapa declarada; None = seguir a ordem da tabela."""
        if self.campo_desvio is not None:
            valor = campos.get(self.campo_desvio)
            try:
                if valor in self.transicoes:
                    return self.transicoes[valor]
            except TypeError:  # valor não hashável (lista) nunca é chave de transição
                pass
        return self.padrao_proximo

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "titulo": self.titulo,
            "descricao": self.descricao,
            "campos": list(self.campos),
            "obrigatorios": sorted(self.campos_obrigatorios),
        }


class TabelaEtapas:
    def __init__(self, etapas: list[StepDefinition] | tuple[StepDefinition, ...], campos_finais: tuple[str, ...] = ()):
        self._etapas: tuple[StepDefinition, ...] = tuple(etapas)
        self.campos_finais = tuple(campos_finais)
        self._indices: dict[str, int] = {}
        self._validar()

    def _validar(self) -> None:
        if not self._etapas:
            raise DefinicaoWizardError("Fluxo sem etapas")

        for i, etapa in enumerate(self._etapas):
            if etapa.id in self._indices:
                raise DefinicaoWizardError(f"Etapa duplicada: {etapa.id}")
            self._indices[etapa.id] = i

        dono: dict[str, str] = {}
        for etapa in self._etapas:
            for regra in etapa.regras:
                if regra.campo not in etapa.campos:
                    raise DefinicaoWizardError(f"Etapa {etapa.id} valida campo que não possui: {regra.campo}")
            for campo in etapa.campos_obrigatorios:
                if campo in dono:
                    raise DefinicaoWizardError(
                        f"Campo obrigatório {campo} reivindicado pelas etapas {dono[campo]} e {etapa.id}"
                    )
                dono[campo] = etapa.id

        possuidos = {c for etapa in self._etapas for c in etapa.campos}
        faltando = [c for c in self.campos_finais if c not in possuidos]
        if faltando:
            raise DefinicaoWizardError(f"Campos finais sem etapa dona: {', '.join(faltando)}")

        for i, etapa in enumerate(self._etapas):
            alvos = [*etapa.transicoes.values()]
            if etapa.padrao_proximo is not None:
                alvos.append(etapa.padrao_proximo)
            for alvo in alvos:
                if alvo not in self._indices:
                    raise DefinicaoWizardError(f"Transição de {etapa.id} para etapa inexistente: {alvo}")
                # somente para frente: garante que todo caminho termina na última etapa
                if self._indices[alvo] <= i:
                    raise DefinicaoWizardError(f"Transição de {etapa.id} para trás: {alvo}")
            if etapa.campo_desvio is not None and etapa.campo_desvio not in etapa.campos:
                raise DefinicaoWizardError(f"Etapa {etapa.id} desvia por campo que não possui: {etapa.campo_desvio}")

    def __len__(self) -> int:
        return len(self._etapas)

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._etapas)

    def __getitem__(self, indice: int) -> StepDefinition:
        return self._etapas[indice]

    def indice(self, etapa_id: str) -> int:
        try:
            return self._indices[etapa_id]
        except KeyError:
            raise DefinicaoWizardError(f"Etapa inexistente: {etapa_id}") from None

    @property
    def ultimo_indice(self) -> int:
        return len(self._etapas) - 1

    def proximo_indice(self, indice: int, campos: Mapping[str, Any]) -> int | None:
        """Próximo índice a partir de `indice`, ou None na última etapa."""
        if indice >= self.ultimo_indice:
            return None
        alvo = self._etapas[indice].proximo_id(campos)
        if alvo is None:
            return indice + 1
        return self._indices[alvo]

    def caminho_efetivo(self, campos: Mapping[str, Any]) -> list[StepDefinition]:
        """Etapas realmente visitadas com os valores atuais (as puladas ficam de fora)."""
        caminho = []
        indice: int | None = 0
        while indice is not None:
            caminho.append(self._etapas[indice])
            indice = self.proximo_indice(indice, campos)
        return caminho

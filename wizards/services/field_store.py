"""Armazenamento dos valores de campo de uma sessão de wizard.

Só guarda valores e aplica os resets de campos dependentes declarados pelo
fluxo (trocar `contrato` limpa `letra_id` e `equipe_id`, trocar `natureza_id`
limpa `tipo_id`...). Não valida e não agenda salvamento de rascunho.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

_AUSENTE = object()


class FieldValueStore:
    def __init__(
        self,
        valores: Mapping[str, Any] | None = None,
        dependencias: Mapping[str, tuple[str, ...] | list[str]] | None = None,
    ) -> None:
        self._valores: dict[str, Any] = dict(valores or {})
        self._dependencias: dict[str, tuple[str, ...]] = {k: tuple(v) for k, v in (dependencias or {}).items()}

    def get(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        return self._valores.get(key, default)

    def set(self, key: str, value: Any) -> list[str]:  # noqa: ANN401
        """Define o valor e devolve os campos dependentes que foram limpos."""
        anterior = self._valores.get(key, _AUSENTE)
        self._valores[key] = value
        if anterior is not _AUSENTE and anterior == value:
            return []
        return self._resetar_dependentes(key)

    def update(self, valores: Mapping[str, Any]) -> list[str]:
        """Aplica um lote de edições.

        Um filho editado no mesmo lote que o pai mantém o valor enviado,
        independentemente da ordem das chaves.
        """
        limpos: list[str] = []
        for key, value in valores.items():
            limpos.extend(self.set(key, value))
        for key in limpos:
            if key in valores:
                self._valores[key] = valores[key]
        return [k for k in dict.fromkeys(limpos) if k not in valores]

    def _resetar_dependentes(self, key: str) -> list[str]:
        limpos: list[str] = []
        pendentes = list(self._dependencias.get(key, ()))
        vistos = {key}
        while pendentes:
            filho = pendentes.pop(0)
            if filho in vistos:
                continue
            vistos.add(filho)
            if self._valores.pop(filho, _AUSENTE) is not _AUSENTE:
                limpos.append(filho)
            pendentes.extend(self._dependencias.get(filho, ()))
        return limpos

    def snapshot(self) -> dict[str, Any]:
        return dict(self._valores)

    @property
    def dependencias(self) -> dict[str, tuple[str, ...]]:
        return dict(self._dependencias)

    def __contains__(self, key: object) -> bool:
        return key in self._valores

    def __iter__(self) -> Iterator[str]:
        return iter(self._valores)

    def __len__(self) -> int:
        return len(self._valores)

"""Configuração do pytest do SGS.

- Aponta o Django para `sgs.settings`;
- Zera cache e métricas em memória entre testes (sessões de wizard, contadores
  de geração e locks vivem no cache).
"""

from __future__ import annotations

import os

import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "sgs.settings")


@pytest.fixture(autouse=True)
def _estado_limpo():
    from django.core.cache import cache

    from wizards.services.wizard_metrics import reset_all_metrics

    cache.clear()
    reset_all_metrics()
    yield
    cache.clear()

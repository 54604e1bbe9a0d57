"""Utils de cache resilientes.

Inclui get_int, incr_atomic e um lock simples baseado em `cache.add`,
compartilhados entre requisições concorrentes e workers Celery.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager

from django.core.cache import cache

_local_lock = threading.Lock()


def get_int(key: str, default: int = 0) -> int:
    val = cache.get(key)
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def incr_atomic(key: str, delta: int = 1, ttl: int | None = None) -> int:
    """Incrementa contador inteiro de forma resiliente.

    `add` + `incr` são atômicos no Redis; o lock local cobre a corrida em que a
    chave expira entre as duas chamadas.
    """
    cache.add(key, 0, ttl)
    try:
        return cache.incr(key, delta)
    except ValueError:
        with _local_lock:
            current = get_int(key, 0) + delta
            cache.set(key, current, ttl)
            return current


def adquirir_lock(key: str, ttl: int) -> bool:
    """True se este chamador obteve o lock (chave ainda não existia)."""
    return bool(cache.add(key, 1, ttl))


def liberar_lock(key: str) -> None:
    cache.delete(key)


@contextmanager
def lock_cache(key: str, ttl: int = 5, tentativas: int = 50, espera: float = 0.01) -> Iterator[bool]:
    """Seção crítica curta entre processos; entrega False se o lock não vier."""
    obtido = False
    for _ in range(tentativas):
        if adquirir_lock(key, ttl):
            obtido = True
            break
        time.sleep(espera)
    try:
        yield obtido
    finally:
        if obtido:
            liberar_lock(key)

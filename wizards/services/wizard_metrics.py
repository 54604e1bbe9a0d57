"""Métricas dos wizards de coleta.

Contadores e séries de latência em memória (para o snapshot JSON do staff)
espelhados em métricas Prometheus.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any

from django.conf import settings
from prometheus_client import Counter, Gauge, Histogram

# Configurações
_MAX_LAT_SAMPLES: int = getattr(settings, "WIZARD_MAX_LATENCIES", 200)
_MAX_ERRORS: int = getattr(settings, "WIZARD_MAX_ERRORS", 25)
_MAX_ABANDON_SAMPLES: int = getattr(settings, "WIZARD_MAX_ABANDON_LATENCIES", 200)


# Limiar de abandono será lido dinamicamente de settings a cada processamento
def _get_abandon_threshold() -> int:
    try:
        return int(getattr(settings, "WIZARD_ABANDON_THRESHOLD_SECONDS", 1800))
    except (TypeError, ValueError):
        return 1800


def _get_latency_warn_threshold() -> float | None:
    return getattr(settings, "WIZARD_LATENCY_WARN_THRESHOLD", None)


COUNTER_KEYS = (
    "advance_ok",
    "advance_blocked",
    "finish_success",
    "finish_blocked",
    "finish_exception",
    "draft_created",
    "draft_save_ok",
    "draft_save_failed",
    "draft_save_skipped",
    "options_failed",
    "options_stale",
    "attach_ok",
    "attach_failed",
)

# Estado interno do módulo
_lock = threading.RLock()
_counters: dict[str, int] = dict.fromkeys(COUNTER_KEYS, 0)
_latencies: deque[float] = deque(maxlen=_MAX_LAT_SAMPLES)
_latencies_by_outcome: dict[str, deque[float]] = {
    "success": deque(maxlen=_MAX_LAT_SAMPLES),
    "blocked": deque(maxlen=_MAX_LAT_SAMPLES),
    "exception": deque(maxlen=_MAX_LAT_SAMPLES),
}
_remote_latencies: deque[float] = deque(maxlen=_MAX_LAT_SAMPLES)
_last_errors: deque[dict[str, Any]] = deque(maxlen=_MAX_ERRORS)
_active_sessions: set[str] = set()
_session_activity: dict[str, float] = {}
_session_start: dict[str, float] = {}
_abandon_durations: deque[float] = deque(maxlen=_MAX_ABANDON_SAMPLES)
_last_finish_correlation_id: str | None = None

# Métricas Prometheus
_buckets = (0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10)
PROM_COUNTER = Counter(
    "sgs_wizard_events_total",
    "Eventos dos wizards de coleta (avanço, finalização, rascunho, opções, anexos)",
    ["fluxo", "evento"],
)
PROM_HISTO_FINISH = Histogram(
    "sgs_wizard_finish_latency_seconds",
    "Latência da finalização dos wizards",
    ["outcome"],
    buckets=_buckets,
)
PROM_HISTO_REMOTE = Histogram(
    "sgs_wizard_remote_latency_seconds",
    "Latência das chamadas à API remota de registro",
    ["outcome"],
    buckets=_buckets,
)
PROM_GAUGES: dict[str, Any] = {
    "active_sessions": Gauge("sgs_wizard_active_sessions", "Sessões de wizard ativas"),
    "abandoned_sessions": Gauge(
        "sgs_wizard_abandoned_sessions",
        "Sessões abandonadas detectadas no último snapshot",
    ),
}

__all__ = [
    "inc",
    "record_finish_latency",
    "record_remote_latency",
    "register_finish_error",
    "snapshot_metrics",
    "register_active_session",
    "unregister_active_session",
    "touch_session_activity",
    "get_last_finish_correlation_id",
    "set_last_finish_correlation_id",
    "reset_all_metrics",
]

logger = logging.getLogger(__name__)


def inc(key: str, fluxo: str = "") -> None:
    """Incrementa um contador interno e a métrica Prometheus correspondente."""
    with _lock:
        _counters[key] = _counters.get(key, 0) + 1
    PROM_COUNTER.labels(fluxo=fluxo or "-", evento=key).inc()


def record_finish_latency(seconds: float, outcome: str | None = None) -> None:
    """Registra a latência de finalização.

    Args:
        seconds: O tempo de latência em segundos.
        outcome: O resultado da operação ('success', 'blocked', 'exception').

    """
    if seconds < 0:
        return

    outcome_key = outcome if outcome in _latencies_by_outcome else None

    with _lock:
        _latencies.append(seconds)
        if outcome_key:
            _latencies_by_outcome[outcome_key].append(seconds)
    PROM_HISTO_FINISH.labels(outcome=outcome_key or "unknown").observe(seconds)


def record_remote_latency(seconds: float, outcome: str) -> None:
    if seconds < 0:
        return
    with _lock:
        _remote_latencies.append(seconds)
    PROM_HISTO_REMOTE.labels(outcome=outcome).observe(seconds)


def register_finish_error(kind: str, message: str | None = None) -> None:
    """Registra um erro ocorrido durante finalização, rascunho ou anexo."""
    with _lock:
        _last_errors.append(
            {"ts": time.time(), "kind": kind, "msg": (message or "")[:300]},
        )


def _update_session_gauge() -> None:
    PROM_GAUGES["active_sessions"].set(len(_active_sessions))


def register_active_session(session_key: str | None) -> None:
    """Registra uma sessão como ativa."""
    if not session_key:
        return
    with _lock:
        now = time.time()
        _active_sessions.add(session_key)
        _session_activity[session_key] = now
        if session_key not in _session_start:
            _session_start[session_key] = now
        _update_session_gauge()


def unregister_active_session(session_key: str | None) -> None:
    """Remove uma sessão da lista de ativas (finalizada ou cancelada)."""
    if not session_key:
        return
    with _lock:
        _active_sessions.discard(session_key)
        _session_activity.pop(session_key, None)
        _session_start.pop(session_key, None)
        _update_session_gauge()


def touch_session_activity(session_key: str | None) -> None:
    """Atualiza o timestamp de última atividade de uma sessão."""
    if not session_key:
        return
    with _lock:
        now = time.time()
        _session_activity[session_key] = now
        if session_key not in _session_start:
            _session_start[session_key] = now


def get_last_finish_correlation_id() -> str | None:
    with _lock:
        return _last_finish_correlation_id


def set_last_finish_correlation_id(cid: str | None) -> None:
    with _lock:
        globals()["_last_finish_correlation_id"] = cid


def _compute_stats(series: deque[float] | list[float]) -> dict[str, float]:
    """Calcula estatísticas básicas de uma série de números."""
    if not series:
        return {}
    ordered = sorted(series)
    n = len(ordered)
    return {
        "count": n,
        "p50": ordered[int(0.5 * (n - 1))],
        "p90": ordered[int(0.9 * (n - 1))],
        "p95": ordered[int(0.95 * (n - 1))],
        "p99": ordered[int(0.99 * (n - 1))],
        "max": ordered[-1],
    }


def _process_abandoned_sessions(now: float) -> int:
    """Sessões ativas sem atividade além do limiar contam como abandonadas."""
    abandoned = []
    threshold = _get_abandon_threshold()
    for sk, ts in _session_activity.items():
        if (now - ts) > threshold:
            abandoned.append(sk)

    for sk in abandoned:
        _session_activity.pop(sk, None)
        _active_sessions.discard(sk)
        if start_ts := _session_start.pop(sk, None):
            _abandon_durations.append(now - start_ts)

    return len(abandoned)


def _check_latency_warning(stats: dict[str, float]) -> None:
    threshold = _get_latency_warn_threshold()
    if threshold is None or not stats:
        return
    p95_latency = stats.get("p95")
    if p95_latency is not None and p95_latency > threshold:
        logger.warning("Latência p95 de finalização (%s) acima do limiar (%s)", p95_latency, threshold)


def snapshot_metrics() -> dict[str, Any]:
    """Tira um snapshot das métricas atuais em memória."""
    with _lock:
        now = time.time()
        abandoned = _process_abandoned_sessions(now)

        lat_stats = _compute_stats(list(_latencies))
        _check_latency_warning(lat_stats)
        lat_stats_outcomes = {k: _compute_stats(list(v)) for k, v in _latencies_by_outcome.items() if v}
        remote_stats = _compute_stats(list(_remote_latencies))
        abandon_time_stats = _compute_stats(list(_abandon_durations))
        if _abandon_durations:
            abandon_time_stats["avg"] = sum(_abandon_durations) / len(_abandon_durations)

        _update_session_gauge()
        PROM_GAUGES["abandoned_sessions"].set(abandoned)

        counters_copy = dict(_counters)
        last_cid = _last_finish_correlation_id
        active_count = len(_active_sessions)
        last_errors_copy = list(_last_errors)

    return {
        "counters": counters_copy,
        "latency": lat_stats,
        "latency_by_outcome": lat_stats_outcomes,
        "remote_latency": remote_stats,
        "last_errors": last_errors_copy,
        "active_sessions": active_count,
        "abandoned_sessions": abandoned,
        "time_to_abandon": abandon_time_stats,
        "last_finish_correlation_id": last_cid,
    }


def reset_all_metrics() -> None:
    """Reseta todas as estruturas in-memory (testes e manutenção)."""
    with _lock:
        for k in list(_counters.keys()):
            _counters[k] = 0
        _latencies.clear()
        for lst in _latencies_by_outcome.values():
            lst.clear()
        _remote_latencies.clear()
        _last_errors.clear()
        _active_sessions.clear()
        _session_activity.clear()
        _session_start.clear()
        _abandon_durations.clear()
        globals()["_last_finish_correlation_id"] = None
        _update_session_gauge()
        PROM_GAUGES["abandoned_sessions"].set(0)

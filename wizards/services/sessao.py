"""Estado de uma sessão de wizard e sua persistência no cache.

A sessão vive no cache (Redis em produção) indexada por tenant, chave da
sessão Django e fluxo, para ser lida tanto pelas requisições quanto pelos
workers Celery que executam o auto-save.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar

from django.conf import settings
from django.core.cache import cache

from shared.exceptions import RascunhoConflitoError

from .field_store import FieldValueStore

if TYPE_CHECKING:
    from core.context import RequestContext

logger = logging.getLogger(__name__)

STATUS_RASCUNHO = "rascunho"
STATUS_CONCLUIDO = "concluido"


@dataclass
class PlanoAcao:
    """Plano de ação de uma pergunta não conforme da inspeção."""

    PRIORIDADES: ClassVar[tuple[str, ...]] = ("baixa", "media", "alta", "urgente")
    STATUS: ClassVar[tuple[str, ...]] = ("pendente", "em_andamento", "concluido", "cancelado")

    pergunta_id: str
    descricao_desvio: str = ""
    o_que_fazer: str = ""
    como_fazer: str = ""
    responsavel_id: str = ""
    prazo: str = ""
    prioridade: str = ""
    status: str = "pendente"
    remote_id: str | None = None

    def validar(self) -> dict[str, str]:
        erros: dict[str, str] = {}
        if not str(self.pergunta_id or "").strip():
            erros["pergunta_id"] = "Pergunta é obrigatória"
        if not self.descricao_desvio.strip():
            erros["descricao_desvio"] = "Descrição do desvio é obrigatória"
        if not self.o_que_fazer.strip():
            erros["o_que_fazer"] = "O que deve ser feito é obrigatório"
        if not self.como_fazer.strip():
            erros["como_fazer"] = "Como executar é obrigatório"
        if not str(self.responsavel_id or "").strip():
            erros["responsavel_id"] = "Responsável é obrigatório"
        if not self.prazo:
            erros["prazo"] = "Prazo é obrigatório"
        if self.prioridade not in self.PRIORIDADES:
            erros["prioridade"] = "Prioridade é obrigatória"
        if self.status not in self.STATUS:
            erros["status"] = "Status inválido"
        return erros

    def to_payload(self) -> dict[str, Any]:
        return {
            "pergunta_id": self.pergunta_id,
            "desvio": self.descricao_desvio.strip(),
            "o_que_fazer": self.o_que_fazer.strip(),
            "como_fazer": self.como_fazer.strip(),
            "responsavel_matricula": self.responsavel_id,
            "prazo": self.prazo,
            "prioridade": self.prioridade,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PlanoAcao:
        nomes = {f for f in cls.__dataclass_fields__}
        valores = {k: v for k, v in data.items() if k in nomes}
        for nome in nomes - {"remote_id"}:
            if nome in valores:
                valores[nome] = "" if valores[nome] is None else str(valores[nome])
        return cls(**valores)


@dataclass
class FormSession:
    fluxo: str
    campos: FieldValueStore
    etapa_atual: int = 0
    erros: dict[str, str] = field(default_factory=dict)
    historico: list[int] = field(default_factory=list)
    status: str = STATUS_RASCUNHO
    planos_acao: list[PlanoAcao] = field(default_factory=list)
    anexos: list[dict[str, Any]] = field(default_factory=list)
    metadados: dict[str, Any] = field(default_factory=dict)
    criado_em: float = field(default_factory=time.time)
    atualizado_em: float = field(default_factory=time.time)
    _remote_id: str | None = None

    @property
    def remote_id(self) -> str | None:
        return self._remote_id

    def vincular_remote_id(self, remote_id: str) -> None:
        """Fixa o id do registro remoto; uma vez definido, não muda mais."""
        remote_id = str(remote_id)
        if self._remote_id is None:
            self._remote_id = remote_id
        elif self._remote_id != remote_id:
            raise RascunhoConflitoError(self._remote_id, remote_id)

    @property
    def concluida(self) -> bool:
        return self.status == STATUS_CONCLUIDO

    def planos_da_pergunta(self, pergunta_id: str) -> list[PlanoAcao]:
        return [p for p in self.planos_acao if str(p.pergunta_id) == str(pergunta_id)]

    def tocar(self) -> None:
        self.atualizado_em = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "fluxo": self.fluxo,
            "campos": self.campos.snapshot(),
            "etapa_atual": self.etapa_atual,
            "erros": dict(self.erros),
            "historico": list(self.historico),
            "status": self.status,
            "planos_acao": [asdict(p) for p in self.planos_acao],
            "anexos": list(self.anexos),
            "metadados": dict(self.metadados),
            "criado_em": self.criado_em,
            "atualizado_em": self.atualizado_em,
            "remote_id": self._remote_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], dependencias: dict[str, tuple[str, ...]] | None = None) -> FormSession:
        return cls(
            fluxo=data["fluxo"],
            campos=FieldValueStore(data.get("campos") or {}, dependencias),
            etapa_atual=int(data.get("etapa_atual", 0)),
            erros=dict(data.get("erros") or {}),
            historico=[int(i) for i in data.get("historico") or []],
            status=data.get("status", STATUS_RASCUNHO),
            planos_acao=[PlanoAcao.from_dict(p) for p in data.get("planos_acao") or []],
            anexos=list(data.get("anexos") or []),
            metadados=dict(data.get("metadados") or {}),
            criado_em=float(data.get("criado_em") or time.time()),
            atualizado_em=float(data.get("atualizado_em") or time.time()),
            _remote_id=data.get("remote_id"),
        )


# ============================================================================
# Repositório em cache
# ============================================================================


def chave_sessao(contexto: RequestContext, fluxo: str) -> str:
    return f"wizards:sessao:{contexto.tenant_id or 0}:{contexto.session_key}:{fluxo}"


def _ttl() -> int:
    return int(getattr(settings, "WIZARD_SESSION_TTL_SECONDS", 86400))


def carregar_por_chave(chave: str, dependencias: dict[str, tuple[str, ...]] | None = None) -> FormSession | None:
    data = cache.get(chave)
    if not data:
        return None
    try:
        return FormSession.from_dict(data, dependencias)
    except (KeyError, TypeError, ValueError):
        logger.warning("Sessão de wizard corrompida descartada: %s", chave, exc_info=True)
        cache.delete(chave)
        return None


def salvar_por_chave(chave: str, sessao: FormSession) -> None:
    sessao.tocar()
    cache.set(chave, sessao.to_dict(), _ttl())


def descartar_por_chave(chave: str) -> None:
    cache.delete(chave)

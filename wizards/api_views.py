"""Este módulo contém as views da API dos wizards de registro.

Cada requisição carrega a sessão do cache, executa uma operação do
`WizardController` e grava a sessão de volta. A resposta é sempre o estado
atual da sessão mais os avisos não fatais da operação.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from django.conf import settings
from django.http import Http404
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from core.authorization import AcessoNegado, exigir_permissao
from core.context import RequestContext
from shared.exceptions import AnexoError, FinalizacaoError, NegocioError, RascunhoConflitoError, RemoteApiError

from .fluxos import FluxoBase, get_fluxo
from .fluxos.inspecao import Inspecao
from .serializers import AnexoSerializer, CamposSerializer, PlanoAcaoSerializer
from .services import wizard_metrics
from .services.agendamento import agendar_salvamento
from .services.anexos import AnexoService
from .services.api_client import SgsApiClient
from .services.controller import WizardController
from .services.opcoes import RemoteOptionLoader
from .services.rascunho import DraftPersistenceGateway
from .services.sessao import FormSession, carregar_por_chave, chave_sessao, descartar_por_chave, salvar_por_chave

logger = logging.getLogger(__name__)


@dataclass
class Execucao:
    """Tudo que uma operação precisa: fluxo, contexto, sessão e dependências remotas."""

    fluxo: FluxoBase
    contexto: RequestContext
    sessao: FormSession
    client: SgsApiClient
    chave: str

    @property
    def controller(self) -> WizardController:
        return WizardController(self.fluxo, self.sessao, self.contexto)

    @property
    def gateway(self) -> DraftPersistenceGateway:
        return DraftPersistenceGateway(self.fluxo, self.contexto, self.client)

    def salvar(self) -> None:
        salvar_por_chave(self.chave, self.sessao)

    def estado(self, **extra: Any) -> dict[str, Any]:  # noqa: ANN401
        return {**self.controller.estado(), **extra}


def _fluxo(nome: str) -> FluxoBase:
    try:
        return get_fluxo(nome)
    except KeyError:
        raise Http404(f"Fluxo desconhecido: {nome}") from None


class WizardAPIView(APIView):
    """Base das views: resolve fluxo e sessão e traduz erros de negócio em HTTP."""

    def handle_exception(self, exc: Exception) -> Response:
        if isinstance(exc, AcessoNegado):
            return Response({"detail": str(exc), "reason": exc.reason}, status=status.HTTP_403_FORBIDDEN)
        if isinstance(exc, RascunhoConflitoError):
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        if isinstance(exc, RemoteApiError):
            logger.warning("Falha remota em %s: %s", self.request.path, exc)
            return Response({"detail": "Serviço de registro indisponível. Tente novamente."}, status=status.HTTP_502_BAD_GATEWAY)
        if isinstance(exc, NegocioError):
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return super().handle_exception(exc)

    def contexto(self, request: Request) -> RequestContext:
        return RequestContext.from_request(request)

    def execucao(self, request: Request, nome: str, criar: bool = True, params: dict[str, Any] | None = None) -> Execucao:
        fluxo = _fluxo(nome)
        contexto = self.contexto(request)
        # nenhuma sessão é criada ou alterada sem a permissão do fluxo
        exigir_permissao(contexto, fluxo.permissao)
        chave = chave_sessao(contexto, fluxo.nome)
        client = SgsApiClient.para_contexto(contexto)
        sessao = carregar_por_chave(chave, fluxo.dependencias)
        if sessao is None:
            if not criar:
                raise Http404("Nenhuma sessão em andamento para este fluxo.")
            sessao = fluxo.nova_sessao(contexto, client, params if params is not None else request.query_params.dict())
            salvar_por_chave(chave, sessao)
            wizard_metrics.register_active_session(contexto.session_key)
            logger.debug("Sessão criada fluxo=%s cid=%s", fluxo.nome, contexto.correlation_id)
        return Execucao(fluxo=fluxo, contexto=contexto, sessao=sessao, client=client, chave=chave)


class WizardSessaoView(WizardAPIView):
    """GET inicia (ou retoma) a sessão do fluxo; DELETE descarta."""

    def get(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo)
        if execucao.sessao.concluida:
            # registro anterior concluído: começa um novo
            descartar_por_chave(execucao.chave)
            execucao = self.execucao(request, fluxo)
        return Response(execucao.estado(definicao=execucao.fluxo.as_dict()))

    def delete(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo, criar=False)
        descartar_por_chave(execucao.chave)
        execucao.gateway.esquecer()
        wizard_metrics.unregister_active_session(execucao.contexto.session_key)
        return Response(status=status.HTTP_204_NO_CONTENT)


class WizardCamposView(WizardAPIView):
    def post(self, request: Request, fluxo: str) -> Response:
        serializer = CamposSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        execucao = self.execucao(request, fluxo, criar=False)
        resultado = execucao.controller.atualizar_campos(serializer.validated_data["campos"])
        if resultado.erros:
            return Response(execucao.estado(erros=resultado.erros), status=status.HTTP_400_BAD_REQUEST)
        execucao.salvar()
        agendado = False
        if serializer.validated_data["agendar"] and execucao.fluxo.rascunho_habilitado:
            agendado = agendar_salvamento(execucao.contexto, execucao.fluxo.nome, execucao.sessao)
        return Response(execucao.estado(limpos=resultado.limpos, agendado=agendado))


class WizardAvancarView(WizardAPIView):
    def post(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo, criar=False)
        resultado = execucao.controller.avancar()
        avisos: list[str] = []
        if resultado.ok and resultado.salvar_agora:
            avisos = execucao.gateway.salvar_rascunho(execucao.sessao).avisos
        execucao.salvar()
        codigo = status.HTTP_200_OK if resultado.ok else status.HTTP_400_BAD_REQUEST
        return Response(execucao.estado(ok=resultado.ok, erros=resultado.erros, avisos=avisos), status=codigo)


class WizardVoltarView(WizardAPIView):
    def post(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo, criar=False)
        resultado = execucao.controller.voltar()
        execucao.salvar()
        codigo = status.HTTP_200_OK if resultado.ok else status.HTTP_400_BAD_REQUEST
        return Response(execucao.estado(ok=resultado.ok), status=codigo)


class WizardRascunhoView(WizardAPIView):
    """Salvamento explícito do rascunho (sem debounce)."""

    def post(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo, criar=False)
        resultado = execucao.gateway.salvar_rascunho(execucao.sessao)
        execucao.salvar()
        return Response(execucao.estado(criado=resultado.criado, avisos=resultado.avisos))


class WizardFinalizarView(WizardAPIView):
    def post(self, request: Request, fluxo: str) -> Response:
        execucao = self.execucao(request, fluxo, criar=False)
        try:
            resultado = execucao.controller.finalizar(execucao.gateway)
        except FinalizacaoError as exc:
            if getattr(settings, "PRESERVE_WIZARD_SESSION_ON_EXCEPTION", True):
                execucao.salvar()
            else:
                descartar_por_chave(execucao.chave)
            return Response(execucao.estado(ok=False, detail=str(exc)), status=status.HTTP_502_BAD_GATEWAY)
        execucao.salvar()
        codigo = status.HTTP_200_OK if resultado.ok else status.HTTP_400_BAD_REQUEST
        return Response(execucao.estado(ok=resultado.ok), status=codigo)


class WizardOpcoesView(WizardAPIView):
    """Opções de referência; falhas remotas voltam como aviso, nunca como erro."""

    def get(self, request: Request, fluxo: str, tipo: str) -> Response:
        definicao = _fluxo(fluxo)
        contexto = self.contexto(request)
        exigir_permissao(contexto, definicao.permissao)
        resultado = RemoteOptionLoader(contexto, definicao.nome).carregar(tipo, request.query_params.dict())
        return Response(resultado.as_dict())


class WizardAnexosView(WizardAPIView):
    def post(self, request: Request, fluxo: str) -> Response:
        serializer = AnexoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        execucao = self.execucao(request, fluxo, criar=False)
        arquivo = serializer.validated_data["arquivo"]
        servico = AnexoService(execucao.fluxo, execucao.contexto, execucao.client)
        try:
            anexo = servico.anexar(
                execucao.sessao,
                arquivo.name,
                arquivo.read(),
                getattr(arquivo, "content_type", "") or "",
                serializer.validated_data["categoria"],
            )
        except AnexoError as exc:
            return Response({"detail": str(exc), "url": exc.url}, status=status.HTTP_400_BAD_REQUEST)
        execucao.salvar()
        return Response(execucao.estado(anexo=anexo), status=status.HTTP_201_CREATED)


class InspecaoPlanoAcaoView(WizardAPIView):
    def post(self, request: Request) -> Response:
        serializer = PlanoAcaoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        execucao = self.execucao(request, Inspecao.nome, criar=False)
        if execucao.sessao.concluida:
            raise NegocioError("Inspeção já concluída.")
        plano, erros, avisos = execucao.fluxo.adicionar_plano(execucao.client, execucao.sessao, serializer.validated_data)
        if erros:
            return Response({"erros": erros}, status=status.HTTP_400_BAD_REQUEST)
        execucao.salvar()
        return Response(execucao.estado(plano=vars(plano).copy(), avisos=avisos), status=status.HTTP_201_CREATED)


class InspecaoRetomarView(WizardAPIView):
    """Substitui a sessão atual pela execução em andamento informada."""

    def post(self, request: Request, execucao_id: str) -> Response:
        fluxo = _fluxo(Inspecao.nome)
        contexto = self.contexto(request)
        exigir_permissao(contexto, fluxo.permissao)
        client = SgsApiClient.para_contexto(contexto)
        sessao, avisos = fluxo.retomar(client, contexto, execucao_id)
        execucao = Execucao(fluxo=fluxo, contexto=contexto, sessao=sessao, client=client, chave=chave_sessao(contexto, fluxo.nome))
        execucao.gateway.esquecer()
        execucao.salvar()
        wizard_metrics.register_active_session(contexto.session_key)
        return Response(execucao.estado(avisos=avisos))


class WizardMetricsView(APIView):
    def get(self, request: Request) -> Response:
        if not request.user.is_staff:
            return Response({"detail": "Staff only"}, status=status.HTTP_403_FORBIDDEN)
        return Response({"wizard_metrics": wizard_metrics.snapshot_metrics()})

# wizards/urls.py
from django.urls import path

from . import api_views

app_name = "wizards"

urlpatterns = [
    path("metricas/", api_views.WizardMetricsView.as_view(), name="metricas"),
    path("inspecao/planos-acao/", api_views.InspecaoPlanoAcaoView.as_view(), name="inspecao-planos-acao"),
    path("inspecao/retomar/<str:execucao_id>/", api_views.InspecaoRetomarView.as_view(), name="inspecao-retomar"),
    path("<slug:fluxo>/", api_views.WizardSessaoView.as_view(), name="sessao"),
    path("<slug:fluxo>/campos/", api_views.WizardCamposView.as_view(), name="campos"),
    path("<slug:fluxo>/avancar/", api_views.WizardAvancarView.as_view(), name="avancar"),
    path("<slug:fluxo>/voltar/", api_views.WizardVoltarView.as_view(), name="voltar"),
    path("<slug:fluxo>/rascunho/", api_views.WizardRascunhoView.as_view(), name="rascunho"),
    path("<slug:fluxo>/finalizar/", api_views.WizardFinalizarView.as_view(), name="finalizar"),
    path("<slug:fluxo>/opcoes/<slug:tipo>/", api_views.WizardOpcoesView.as_view(), name="opcoes"),
    path("<slug:fluxo>/anexos/", api_views.WizardAnexosView.as_view(), name="anexos"),
]

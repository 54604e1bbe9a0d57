import pytest
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from core.models import Tenant, TenantUser
from shared.exceptions import RemoteApiError
from wizards import tasks
from wizards.services.api_client import SgsApiClient

User = get_user_model()


@pytest.fixture
def api(monkeypatch, fake_client):
    monkeypatch.setattr(SgsApiClient, "para_contexto", staticmethod(lambda *a, **k: fake_client))
    monkeypatch.setattr(tasks.salvar_rascunho_agendado, "apply_async", lambda *a, **k: None)
    return fake_client


@pytest.fixture
def logar(client):
    def _logar(permissoes, **extra):
        tenant = Tenant.objects.create(name="Usina Norte", subdomain=f"usina-{len(permissoes)}-{extra.get('username', 'op')}")
        user = User.objects.create_user(
            username=extra.pop("username", "operador"),
            password="x12345678",
            matricula="123456",
            contrato_raiz="CT-01",
            **extra,
        )
        TenantUser.objects.create(tenant=tenant, user=user, permissoes=permissoes)
        client.force_login(user)
        return user

    return _logar


def _post(client, nome, fluxo, dados=None):
    return client.post(reverse(f"wizards:{nome}", kwargs={"fluxo": fluxo}), dados or {}, content_type="application/json")


@pytest.mark.django_db
def test_inicia_sessao_com_definicao_e_correlation_id(client, logar, api):
    logar(["wizards.registro_3p"])
    resp = client.get(reverse("wizards:sessao", kwargs={"fluxo": "registro_3p"}))
    assert resp.status_code == 200
    data = resp.json()
    assert data["etapa"] == "basicos"
    assert data["total_etapas"] == 4
    assert [e["id"] for e in data["definicao"]["etapas"]] == ["basicos", "pausar", "processar", "prosseguir"]
    assert len(resp["X-Wizard-Correlation-Id"]) == 32


@pytest.mark.django_db
def test_correlation_id_do_cliente_e_reaproveitado(client, logar, api):
    logar(["wizards.registro_3p"])
    resp = client.get(
        reverse("wizards:sessao", kwargs={"fluxo": "registro_3p"}),
        HTTP_X_WIZARD_CORRELATION_ID="front-1234-abcd",
    )
    assert resp["X-Wizard-Correlation-Id"] == "front-1234-abcd"


@pytest.mark.django_db
def test_sem_permissao_recebe_403(client, logar, api):
    logar(["wizards.interacao"])
    resp = client.get(reverse("wizards:sessao", kwargs={"fluxo": "registro_3p"}))
    assert resp.status_code == 403
    assert resp.json()["reason"] == "MISSING_PERMISSION"
    resp = _post(client, "campos", "registro_3p", {"campos": {"area_id": "A1"}})
    assert resp.status_code == 403
    assert api.chamadas == []


@pytest.mark.django_db
def test_fluxo_desconhecido_404(client, logar, api):
    logar(["*"])
    assert client.get(reverse("wizards:sessao", kwargs={"fluxo": "nada"})).status_code == 404


@pytest.mark.django_db
def test_navegacao_completa_ate_finalizar(client, logar, api):
    logar(["wizards.registro_3p"])
    api.responder("POST", "/3ps", {"success": True, "data": {"id": "abc123"}})
    client.get(reverse("wizards:sessao", kwargs={"fluxo": "registro_3p"}))

    resp = _post(client, "avancar", "registro_3p")
    assert resp.status_code == 400
    assert resp.json()["erros"]["area_id"] == "Área é obrigatória"

    assert _post(client, "campos", "registro_3p", {"campos": {"area_id": "A1", "atividade": "Pintura"}}).status_code == 200
    assert _post(client, "avancar", "registro_3p").json()["etapa"] == "pausar"
    _post(client, "campos", "registro_3p", {"campos": {"paralisacao_realizada": False}})
    assert _post(client, "avancar", "registro_3p").json()["etapa"] == "processar"
    respostas = dict.fromkeys(
        ["riscos_avaliados", "ambiente_avaliado", "passo_descrito", "hipoteses_levantadas", "atividade_segura"],
        True,
    )
    _post(client, "campos", "registro_3p", {"campos": respostas})
    assert _post(client, "avancar", "registro_3p").json()["etapa"] == "prosseguir"
    _post(client, "campos", "registro_3p", {"campos": {"tipo": "Aprendizado"}})

    resp = _post(client, "finalizar", "registro_3p")
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    assert data["status"] == "concluido"
    assert data["remote_id"] == "abc123"
    assert api.metodos("POST")[0][2]["status"] == "concluido"


@pytest.mark.django_db
def test_falha_na_finalizacao_responde_502_e_mantem_sessao(client, logar, api, settings):
    settings.PRESERVE_WIZARD_SESSION_ON_EXCEPTION = True
    logar(["wizards.dados_usuario"])
    api.responder("PUT", "/users/123456", RemoteApiError("PUT", "/users/123456", 503))
    client.get(reverse("wizards:sessao", kwargs={"fluxo": "dados_usuario"}))
    _post(client, "campos", "dados_usuario", {"campos": {"letra_id": "L1", "equipe_id": "E1"}})

    resp = _post(client, "finalizar", "dados_usuario")
    assert resp.status_code == 502
    assert resp.json()["status"] == "rascunho"

    estado = client.get(reverse("wizards:sessao", kwargs={"fluxo": "dados_usuario"})).json()
    assert estado["campos"] == {"contrato": "CT-01", "letra_id": "L1", "equipe_id": "E1"}


@pytest.mark.django_db
def test_campos_informa_dependentes_limpos(client, logar, api):
    logar(["wizards.dados_usuario"])
    client.get(reverse("wizards:sessao", kwargs={"fluxo": "dados_usuario"}))
    _post(client, "campos", "dados_usuario", {"campos": {"letra_id": "L1", "equipe_id": "E1"}})
    resp = _post(client, "campos", "dados_usuario", {"campos": {"contrato": "CT-02"}})
    assert resp.json()["limpos"] == ["letra_id", "equipe_id"]


@pytest.mark.django_db
def test_opcoes_com_falha_remota_respondem_200_com_aviso(client, logar, api):
    logar(["wizards.desvio"])
    api.responder("GET", "/security-params/natures", RemoteApiError("GET", "/security-params/natures", 500))
    resp = client.get(reverse("wizards:opcoes", kwargs={"fluxo": "desvio", "tipo": "naturezas"}))
    assert resp.status_code == 200
    assert resp.json()["opcoes"] == []
    assert resp.json()["avisos"]


@pytest.mark.django_db
def test_anexo_sem_registro_criado(client, logar, api):
    logar(["wizards.desvio"])
    client.get(reverse("wizards:sessao", kwargs={"fluxo": "desvio"}))
    arquivo = SimpleUploadedFile("foto.png", b"\x89PNG" + b"0" * 32, content_type="image/png")
    resp = client.post(reverse("wizards:anexos", kwargs={"fluxo": "desvio"}), {"arquivo": arquivo, "categoria": "antes"})
    assert resp.status_code == 400
    assert "Salve o registro" in resp.json()["detail"]
    assert api.chamadas == []


@pytest.mark.django_db
def test_descartar_sessao(client, logar, api):
    logar(["wizards.registro_3p"])
    url = reverse("wizards:sessao", kwargs={"fluxo": "registro_3p"})
    client.get(url)
    _post(client, "campos", "registro_3p", {"campos": {"area_id": "A1"}})
    assert client.delete(url).status_code == 204
    assert client.get(url).json()["campos"] == {"participantes": []}


@pytest.mark.django_db
def test_metricas_somente_staff(client, logar):
    logar(["*"])
    url = reverse("wizards:metricas")
    assert client.get(url).status_code == 403
    staff = User.objects.create_user(username="staff", password="x12345678", is_staff=True)
    client.force_login(staff)
    resp = client.get(url)
    assert resp.status_code == 200
    assert "wizard_metrics" in resp.json()


@pytest.mark.django_db
def test_endpoint_prometheus(client):
    resp = client.get(reverse("metrics"))
    assert resp.status_code == 200
    assert b"sgs_wizard_events" in resp.content

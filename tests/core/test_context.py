import pytest
from django.contrib.auth import get_user_model
from django.contrib.sessions.backends.cache import SessionStore
from django.test import RequestFactory

from core.context import RequestContext
from core.models import Tenant, TenantUser

User = get_user_model()


@pytest.mark.django_db
def test_contexto_a_partir_da_requisicao(settings):
    settings.SGS_API_BASE_URL = "http://global.test/api/"
    tenant = Tenant.objects.create(name="Mina Sul", subdomain="mina-sul", api_token="segredo")
    user = User.objects.create_user(username="maria", password="x12345678", matricula="555", contrato_raiz="CT-9")
    TenantUser.objects.create(tenant=tenant, user=user, permissoes=["wizards.desvio", "wizards.interacao"])

    request = RequestFactory().get("/wizards/desvio/")
    request.user = user
    request.tenant = tenant
    request.session = SessionStore()
    request.correlation_id = "cid-abcdef12"

    contexto = RequestContext.from_request(request)

    assert contexto.matricula == "555"
    assert contexto.contrato_raiz == "CT-9"
    assert contexto.tenant_id == tenant.pk
    assert contexto.api_base_url == "http://global.test/api"
    assert contexto.api_token == "segredo"
    assert contexto.permissoes == frozenset({"wizards.desvio", "wizards.interacao"})
    assert contexto.session_key
    assert contexto.correlation_id == "cid-abcdef12"


def test_serializacao_para_tarefas_omite_token():
    contexto = RequestContext(user_id=1, username="a", tenant_id=2, api_token="segredo", permissoes=frozenset({"b", "a"}))
    dados = contexto.to_dict()
    assert "api_token" not in dados
    assert dados["permissoes"] == ["a", "b"]
    restaurado = RequestContext.from_dict(dados)
    assert restaurado.permissoes == contexto.permissoes
    assert restaurado.api_token == ""


def test_contexto_e_imutavel():
    contexto = RequestContext(user_id=1, username="a")
    with pytest.raises(AttributeError):
        contexto.tenant_id = 9

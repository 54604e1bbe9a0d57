import pytest

from shared.exceptions import AnexoError, RemoteApiError
from wizards.fluxos import get_fluxo
from wizards.services.anexos import AnexoService
from wizards.services.wizard_metrics import snapshot_metrics

PNG = b"\x89PNG\r\n\x1a\n" + b"0" * 64


@pytest.fixture
def fluxo():
    return get_fluxo("desvio")


@pytest.fixture
def sessao(fluxo, contexto):
    sessao = fluxo.nova_sessao(contexto, None, {})
    sessao.vincular_remote_id("d-77")
    return sessao


def test_envio_e_registro_em_duas_fases(fluxo, sessao, contexto, fake_client):
    fake_client.responder("UPLOAD", "/desvios/upload-image", {"success": True, "data": {"publicUrl": "https://cdn/x.png"}})
    fake_client.responder("POST", "/desvios/imagens", {"success": True, "data": {"id": 301}})

    anexo = AnexoService(fluxo, contexto, fake_client).anexar(sessao, "x.png", PNG, "image/png", "antes")

    assert anexo == {"url": "https://cdn/x.png", "categoria": "antes", "nome": "x.png", "remote_id": "301"}
    registro = fake_client.chamadas[1][2]
    assert registro["desvio_id"] == "d-77"
    assert registro["url"] == "https://cdn/x.png"
    assert registro["tipo_mime"] == "image/png"
    assert sessao.anexos == [anexo]
    assert snapshot_metrics()["counters"]["attach_ok"] == 1


def test_falha_no_registro_informa_url_enviada(fluxo, sessao, contexto, fake_client):
    fake_client.responder("UPLOAD", "/desvios/upload-image", {"url": "https://cdn/y.png"})
    fake_client.responder("POST", "/desvios/imagens", RemoteApiError("POST", "/desvios/imagens", 500))

    with pytest.raises(AnexoError) as excinfo:
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, "y.png", PNG, "image/png", "durante")

    assert excinfo.value.url == "https://cdn/y.png"
    assert sessao.anexos == []
    assert snapshot_metrics()["counters"]["attach_failed"] == 1


def test_falha_no_upload_nao_registra(fluxo, sessao, contexto, fake_client):
    fake_client.responder("UPLOAD", "/desvios/upload-image", RemoteApiError("POST", "/desvios/upload-image", None))

    with pytest.raises(AnexoError) as excinfo:
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, "z.png", PNG, "image/png", "depois")

    assert excinfo.value.url is None
    assert fake_client.metodos("POST") == []


@pytest.mark.parametrize(
    ("nome", "conteudo", "content_type", "categoria"),
    [
        ("doc.pdf", PNG, "application/pdf", "antes"),
        ("x.png", PNG, "image/png", "ontem"),
        ("grande.png", b"0" * (5 * 1024 * 1024 + 1), "image/png", "antes"),
    ],
)
def test_validacao_antes_do_envio(fluxo, sessao, contexto, fake_client, nome, conteudo, content_type, categoria):
    with pytest.raises(AnexoError):
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, nome, conteudo, content_type, categoria)
    assert fake_client.chamadas == []


def test_limite_por_categoria(fluxo, sessao, contexto, fake_client, settings):
    settings.WIZARD_MAX_ANEXOS_POR_CATEGORIA = 1
    sessao.anexos.append({"url": "u", "categoria": "antes", "nome": "a.png", "remote_id": "1"})
    with pytest.raises(AnexoError, match="Máximo"):
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, "b.png", PNG, "image/png", "antes")


def test_anexo_exige_registro_criado(fluxo, contexto, fake_client):
    sessao = fluxo.nova_sessao(contexto, None, {})
    with pytest.raises(AnexoError, match="Salve o registro"):
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, "x.png", PNG, "image/png", "antes")


def test_fluxo_sem_anexos(contexto, fake_client):
    fluxo = get_fluxo("registro_3p")
    sessao = fluxo.nova_sessao(contexto, None, {})
    with pytest.raises(AnexoError):
        AnexoService(fluxo, contexto, fake_client).anexar(sessao, "x.png", PNG, "image/png", "antes")

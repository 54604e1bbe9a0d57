import pytest

from shared.exceptions import NegocioError, RemoteApiError
from wizards.fluxos import get_fluxo
from wizards.fluxos.inspecao import AVISO_PLANO_LOCAL, MENSAGEM_PLANO_FALTANDO
from wizards.services.controller import WizardController
from wizards.services.rascunho import DraftPersistenceGateway
from wizards.services.validators import validar_etapa

FORMULARIO = {
    "success": True,
    "data": {
        "id": 7,
        "titulo": "Checklist de andaimes",
        "perguntas": [
            {"id": 1, "pergunta": "Andaime ancorado?", "impeditivo": True},
            {"id": 2, "pergunta": "Rodapé instalado?", "impeditivo": False},
        ],
    },
}

PLANO = {
    "pergunta_id": "1",
    "descricao_desvio": "Andaime sem ancoragem no 3º nível",
    "o_que_fazer": "Ancorar andaime",
    "como_fazer": "Instalar tirantes a cada 4 m",
    "responsavel_id": "998877",
    "prazo": "2024-06-30",
    "prioridade": "alta",
}


@pytest.fixture
def fluxo():
    return get_fluxo("inspecao")


@pytest.fixture
def sessao(fluxo, contexto, fake_client):
    fake_client.responder("GET", "/inspecoes/formularios/7", FORMULARIO)
    return fluxo.nova_sessao(contexto, fake_client, {"formulario_id": "7"})


def _respondida(fluxo, sessao, respostas):
    sessao.campos.update({"local_id": "L1", "participantes": ["123456"], "respostas": respostas})
    sessao.historico = [0, 1, 2]
    sessao.etapa_atual = fluxo.etapas.ultimo_indice


def test_nova_sessao_carrega_perguntas(sessao):
    perguntas = sessao.metadados["perguntas"]
    assert [p["id"] for p in perguntas] == ["1", "2"]
    assert perguntas[0]["impeditivo"] is True
    assert sessao.metadados["formulario_titulo"] == "Checklist de andaimes"


def test_nova_sessao_exige_formulario(fluxo, contexto, fake_client):
    with pytest.raises(NegocioError):
        fluxo.nova_sessao(contexto, fake_client, {})


def test_perguntas_precisam_estar_todas_respondidas(fluxo, sessao):
    etapa = fluxo.etapas[fluxo.etapas.indice("perguntas")]
    sessao.campos.set("respostas", {"1": "conforme"})
    assert validar_etapa(etapa, sessao.campos, sessao.metadados) == {"respostas": "Responda todas as perguntas"}


def test_impeditiva_nao_conforme_bloqueia_ate_ter_plano(fluxo, sessao, contexto, fake_client):
    fake_client.responder("POST", "/inspecoes/execucoes", {"success": True, "data": {"id": 55}})
    fake_client.responder("POST", "/inspecoes/execucoes/55/planos-acao", {"success": True, "data": {"id": 900}})
    _respondida(fluxo, sessao, {"1": "nao_conforme", "2": "conforme"})
    ctrl = WizardController(fluxo, sessao, contexto)
    gateway = DraftPersistenceGateway(fluxo, contexto, fake_client)

    bloqueado = ctrl.finalizar(gateway)
    assert not bloqueado.ok
    assert bloqueado.erros == {"planos_acao.1": MENSAGEM_PLANO_FALTANDO}
    assert not any(c[0] in ("POST", "PUT") for c in fake_client.chamadas)

    plano, erros, avisos = fluxo.adicionar_plano(fake_client, sessao, PLANO)
    assert erros == {}
    assert avisos == [AVISO_PLANO_LOCAL]

    resultado = ctrl.finalizar(gateway)
    assert resultado.ok and resultado.remote_id == "55"
    caminhos = [(c[0], c[1]) for c in fake_client.chamadas if c[0] != "GET"]
    assert caminhos == [
        ("POST", "/inspecoes/execucoes"),
        ("POST", "/inspecoes/execucoes/55/planos-acao"),
        ("PUT", "/inspecoes/execucoes/55"),
    ]
    assert fake_client.chamadas[1][2]["status"] == "em_andamento"
    final = fake_client.chamadas[-1][2]
    assert final["status"] == "concluida" and final["concluir"] is True
    assert {"pergunta_id": "1", "resposta": "nao_conforme", "observacoes": None} in final["respostas"]
    assert plano.remote_id == "900"


def test_pergunta_nao_impeditiva_nao_exige_plano(fluxo, sessao):
    _respondida(fluxo, sessao, {"1": "conforme", "2": "nao_conforme"})
    assert fluxo.verificar_conclusao(sessao) == {}


def test_plano_so_para_pergunta_nao_conforme(fluxo, sessao, fake_client):
    _respondida(fluxo, sessao, {"1": "conforme", "2": "conforme"})
    plano, erros, _ = fluxo.adicionar_plano(fake_client, sessao, PLANO)
    assert plano is None
    assert "pergunta_id" in erros
    assert sessao.planos_acao == []


def test_plano_incompleto(fluxo, sessao, fake_client):
    _respondida(fluxo, sessao, {"1": "nao_conforme", "2": "conforme"})
    _, erros, _ = fluxo.adicionar_plano(fake_client, sessao, {"pergunta_id": "1", "prioridade": "qualquer"})
    assert erros["o_que_fazer"] == "O que deve ser feito é obrigatório"
    assert erros["prioridade"] == "Prioridade é obrigatória"


def test_falha_ao_enviar_plano_mantem_plano_local(fluxo, sessao, fake_client):
    _respondida(fluxo, sessao, {"1": "nao_conforme", "2": "conforme"})
    sessao.vincular_remote_id("55")
    fake_client.responder(
        "POST",
        "/inspecoes/execucoes/55/planos-acao",
        RemoteApiError("POST", "/inspecoes/execucoes/55/planos-acao", 500),
    )

    plano, erros, avisos = fluxo.adicionar_plano(fake_client, sessao, PLANO)

    assert erros == {}
    assert avisos == [AVISO_PLANO_LOCAL]
    assert plano.remote_id is None
    assert sessao.planos_da_pergunta("1") == [plano]


def test_retomar_execucao_em_andamento(fluxo, contexto, fake_client):
    fake_client.responder(
        "GET",
        "/inspecoes/execucoes/55",
        {
            "success": True,
            "data": {
                "id": 55,
                "status": "em_andamento",
                "local_id": "L1",
                "formulario_id": 7,
                "formulario": FORMULARIO["data"],
                "participantes": [{"participante": {"matricula": "123456"}}],
                "respostas": [{"pergunta_id": 1, "resposta": "nao_conforme", "observacoes": "sem tirante"}],
            },
        },
    )
    fake_client.responder(
        "GET",
        "/inspecoes/execucoes/55/planos-acao",
        {"success": True, "data": [{"id": 900, "pergunta_id": 1, "desvio": "x", "prioridade": "alta"}]},
    )

    sessao, avisos = fluxo.retomar(fake_client, contexto, "55")

    assert avisos == []
    assert sessao.remote_id == "55"
    assert fluxo.etapas[sessao.etapa_atual].id == "perguntas"
    assert sessao.historico == [0, 1]
    assert sessao.campos.get("participantes") == ["123456"]
    assert sessao.campos.get("respostas") == {"1": "nao_conforme"}
    assert sessao.campos.get("observacoes") == {"1": "sem tirante"}
    assert sessao.planos_da_pergunta("1")[0].remote_id == "900"


def test_retomar_execucao_concluida_falha(fluxo, contexto, fake_client):
    fake_client.responder("GET", "/inspecoes/execucoes/56", {"success": True, "data": {"id": 56, "status": "concluida"}})
    with pytest.raises(NegocioError):
        fluxo.retomar(fake_client, contexto, "56")

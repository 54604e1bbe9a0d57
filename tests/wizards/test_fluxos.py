from datetime import date

import pytest

from shared.exceptions import NegocioError
from wizards.fluxos import FLUXOS, get_fluxo
from wizards.fluxos.desvio import STATUS_AGUARDANDO_AVALIACAO, STATUS_CONCLUIDO_VER_AGIR


def test_registro_de_fluxos():
    assert set(FLUXOS) == {"registro_3p", "desvio", "desvio_conversacional", "interacao", "inspecao", "dados_usuario"}
    with pytest.raises(KeyError):
        get_fluxo("inexistente")


def test_definicao_publica(contexto):
    definicao = get_fluxo("desvio").as_dict()
    assert [e["id"] for e in definicao["etapas"]] == ["basicos", "detalhes", "imagens", "revisao"]
    assert definicao["anexos"] == ["antes", "durante", "depois"]
    assert "descricao" in definicao["etapas"][0]["obrigatorios"]


def test_interacao_renomeia_campos_no_envio_final(contexto):
    fluxo = get_fluxo("interacao")
    sessao = fluxo.nova_sessao(contexto, None, {})
    sessao.campos.update({"data_interacao": "2024-05-02", "local_instalacao_id": "LI-3", "tipo_id": "1"})

    rascunho = fluxo.payload_rascunho(sessao, contexto)
    final = fluxo.payload_final(sessao, contexto)

    assert rascunho["data_interacao"] == "2024-05-02"
    assert rascunho["local_instalacao_id"] == "LI-3"
    assert final["data"] == "2024-05-02"
    assert final["local_interacao_id"] == "LI-3"
    assert "data_interacao" not in final and "local_instalacao_id" not in final
    assert final["matricula_colaborador"] == "123456"


def test_desvio_comeca_com_data_de_hoje_e_sem_risco_padrao(contexto):
    sessao = get_fluxo("desvio").nova_sessao(contexto, None, {})
    assert sessao.campos.get("data_ocorrencia") == date.today().isoformat()
    assert "riscoassociado_id" not in sessao.campos


def test_risco_padrao_configuravel(contexto, settings):
    settings.DESVIO_RISCO_ASSOCIADO_PADRAO = "12"
    sessao = get_fluxo("desvio").nova_sessao(contexto, None, {})
    assert sessao.campos.get("riscoassociado_id") == "12"


def test_troca_de_natureza_limpa_tipo(contexto):
    sessao = get_fluxo("desvio").nova_sessao(contexto, None, {})
    sessao.campos.update({"natureza_id": "1", "tipo_id": "4"})
    assert sessao.campos.update({"natureza_id": "2"}) == ["tipo_id"]


def test_payload_do_desvio_descarta_ramo_pulado(contexto):
    fluxo = get_fluxo("desvio")
    sessao = fluxo.nova_sessao(contexto, None, {})
    sessao.campos.update({"descricao": "  Fiação exposta  ", "natureza_id": "3", "ver_agir": False, "acao": "antiga", "responsavel": "Bruno"})

    final = fluxo.payload_final(sessao, contexto)
    assert final["descricao"] == "Fiação exposta"
    assert final["natureza_id"] == 3
    assert final["acao"] is None
    assert final["responsavel"] == "Bruno"
    assert final["contrato"] == "CT-01"
    assert final["status"] == STATUS_AGUARDANDO_AVALIACAO

    sessao.campos.update({"ver_agir": True, "acao": "Desliguei o circuito"})
    final = fluxo.payload_final(sessao, contexto)
    assert final["responsavel"] is None
    assert final["acao"] == "Desliguei o circuito"
    assert final["status"] == STATUS_CONCLUIDO_VER_AGIR


def test_dados_usuario_atualiza_o_proprio_cadastro(contexto, fake_client):
    fluxo = get_fluxo("dados_usuario")
    sessao = fluxo.nova_sessao(contexto, fake_client, {})
    assert sessao.remote_id == "123456"
    assert sessao.campos.get("contrato") == "CT-01"
    assert fluxo.caminho_item(sessao.remote_id) == "/users/123456"

    sessao.campos.update({"letra_id": "L1", "equipe_id": "E2"})
    assert sessao.campos.update({"contrato": "CT-02"}) == ["letra_id", "equipe_id"]


def test_dados_usuario_sem_matricula(make_contexto, fake_client):
    with pytest.raises(NegocioError):
        get_fluxo("dados_usuario").nova_sessao(make_contexto(matricula=""), fake_client, {})

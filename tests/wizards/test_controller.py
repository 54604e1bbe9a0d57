import pytest

from core.authorization import AcessoNegado
from wizards.fluxos import get_fluxo
from wizards.services.controller import ERRO_ETAPA, WizardController
from wizards.services.wizard_metrics import snapshot_metrics


def _iniciar(nome, contexto):
    fluxo = get_fluxo(nome)
    sessao = fluxo.nova_sessao(contexto, None, {})
    return WizardController(fluxo, sessao, contexto)


def _responder(ctrl, **valores):
    ctrl.atualizar_campos(valores)
    resultado = ctrl.avancar()
    assert resultado.ok, resultado.erros
    return resultado


def test_avanco_bloqueado_mantem_etapa(contexto):
    ctrl = _iniciar("registro_3p", contexto)
    resultado = ctrl.avancar()
    assert not resultado.ok
    assert resultado.erros == {"area_id": "Área é obrigatória", "atividade": "Descrição da atividade é obrigatória"}
    assert ctrl.sessao.etapa_atual == 0
    assert ctrl.sessao.erros == resultado.erros
    assert snapshot_metrics()["counters"]["advance_blocked"] == 1


def test_paralisacao_nao_e_resposta_valida(contexto):
    ctrl = _iniciar("registro_3p", contexto)
    _responder(ctrl, area_id="A1", atividade="Troca de válvula da linha 3")

    resultado = ctrl.avancar()
    assert not resultado.ok
    assert resultado.erros == {"paralisacao_realizada": "Campo obrigatório"}
    assert ctrl.etapa.id == "pausar"

    resultado = _responder(ctrl, paralisacao_realizada=False)
    assert resultado.etapa == "processar"
    assert ctrl.sessao.erros == {}


def test_ultima_etapa_nao_avanca(contexto):
    ctrl = _iniciar("dados_usuario", contexto)
    resultado = ctrl.avancar()
    assert not resultado.ok
    assert ERRO_ETAPA in resultado.erros


def test_campo_desconhecido_e_rejeitado(contexto):
    ctrl = _iniciar("registro_3p", contexto)
    resultado = ctrl.atualizar_campos({"area_id": "A1", "inexistente": 1})
    assert resultado.erros == {"inexistente": "Campo desconhecido neste fluxo"}
    assert "area_id" not in ctrl.sessao.campos


def test_ver_agir_pula_responsavel_e_volta_pelo_historico(contexto):
    ctrl = _iniciar("desvio_conversacional", contexto)
    _responder(ctrl, descricao="Vazamento de óleo na bomba 2")
    _responder(ctrl, local="Galpão 2")
    _responder(ctrl)  # data da ocorrência já vem preenchida com hoje
    _responder(ctrl, natureza_id="1")
    _responder(ctrl, tipo_id="4")
    _responder(ctrl, potencial_local="Alto", potencial="Moderado")
    _responder(ctrl, riscoassociado_id="3")

    resultado = _responder(ctrl, ver_agir=True)
    assert resultado.etapa == "acao_ver_agir"

    resultado = _responder(ctrl, acao="Isolei a área e limpei")
    assert resultado.etapa == "gerou_recusa"

    assert ctrl.voltar().etapa == "acao_ver_agir"
    assert ctrl.voltar().etapa == "ver_agir"


def test_ver_agir_nao_pula_acao(contexto):
    ctrl = _iniciar("desvio_conversacional", contexto)
    for etapa in ctrl.fluxo.etapas:
        if etapa.id == "ver_agir":
            break
        ctrl.sessao.historico.append(ctrl.sessao.etapa_atual)
        ctrl.sessao.etapa_atual += 1

    resultado = _responder(ctrl, ver_agir=False)
    assert resultado.etapa == "responsavel"
    resultado = _responder(ctrl, responsavel="Carlos Lima")
    assert resultado.etapa == "gerou_recusa"


def test_sair_da_etapa_de_criacao_pede_salvamento(contexto):
    ctrl = _iniciar("desvio", contexto)
    _responder(ctrl, descricao="Piso escorregadio perto da prensa", local="Setor B")
    resultado = _responder(
        ctrl,
        natureza_id="1",
        tipo_id="2",
        potencial="Trivial",
        potencial_local="Baixo",
        riscoassociado_id="5",
        ver_agir=False,
        responsavel="Equipe de manutenção",
        gerou_recusa=False,
    )
    assert resultado.etapa == "imagens"
    assert resultado.salvar_agora is True


def test_voltar_na_primeira_etapa(contexto):
    ctrl = _iniciar("registro_3p", contexto)
    resultado = ctrl.voltar()
    assert not resultado.ok
    assert ctrl.sessao.etapa_atual == 0


def test_sem_permissao_nada_muda(make_contexto):
    contexto = make_contexto(permissoes=frozenset({"wizards.interacao"}))
    ctrl = _iniciar("registro_3p", contexto)
    with pytest.raises(AcessoNegado):
        ctrl.atualizar_campos({"area_id": "A1"})
    with pytest.raises(AcessoNegado):
        ctrl.avancar()
    assert ctrl.sessao.campos.snapshot() == {"participantes": []}
    assert ctrl.sessao.etapa_atual == 0


def test_finalizar_so_na_ultima_etapa(contexto):
    ctrl = _iniciar("registro_3p", contexto)
    resultado = ctrl.finalizar(gateway=None)
    assert not resultado.ok
    assert ERRO_ETAPA in resultado.erros

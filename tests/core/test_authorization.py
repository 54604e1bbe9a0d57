import pytest

from core.authorization import (
    REASON_ANONYMOUS,
    REASON_MISSING_PERMISSION,
    REASON_NO_TENANT,
    REASON_SUPERUSER,
    WIZARD_DENY_COUNTER,
    AcessoNegado,
    can_access,
    exigir_permissao,
    permissao_fluxo,
    tem_permissao,
)
from core.context import RequestContext


def _contexto(**overrides):
    dados = {"user_id": 7, "username": "joao", "tenant_id": 3, "session_key": "s"}
    dados.update(overrides)
    return RequestContext(**dados)


def _valor_negacoes(permissao, reason):
    for metrica in WIZARD_DENY_COUNTER.collect():
        for sample in metrica.samples:
            if sample.name.endswith("_total") and sample.labels == {"permissao": permissao, "reason": reason}:
                return sample.value
    return 0.0


def test_permissao_do_fluxo():
    assert permissao_fluxo("desvio") == "wizards.desvio"


@pytest.mark.parametrize(
    ("overrides", "allowed", "reason"),
    [
        ({"user_id": None}, False, REASON_ANONYMOUS),
        ({"is_superuser": True, "tenant_id": None}, True, REASON_SUPERUSER),
        ({"tenant_id": None, "permissoes": frozenset({"*"})}, False, REASON_NO_TENANT),
        ({"permissoes": frozenset({"wizards.desvio"})}, True, "OK"),
        ({"permissoes": frozenset({"*"})}, True, "OK"),
        ({"permissoes": frozenset({"wizards.interacao"})}, False, REASON_MISSING_PERMISSION),
    ],
)
def test_can_access(overrides, allowed, reason):
    decisao = can_access(_contexto(**overrides), "wizards.desvio")
    assert decisao.allowed is allowed
    assert decisao.reason == reason


def test_exigir_permissao_conta_negacao():
    antes = _valor_negacoes("wizards.inspecao", REASON_MISSING_PERMISSION)
    with pytest.raises(AcessoNegado) as excinfo:
        exigir_permissao(_contexto(), "wizards.inspecao")
    assert excinfo.value.reason == REASON_MISSING_PERMISSION
    assert _valor_negacoes("wizards.inspecao", REASON_MISSING_PERMISSION) == antes + 1


def test_tem_permissao():
    assert tem_permissao(_contexto(permissoes=frozenset({"wizards.desvio"})), "wizards.desvio")
    assert not tem_permissao(_contexto(), "wizards.desvio")

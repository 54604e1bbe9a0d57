import logging

from wizards.services.wizard_logging import WizardDebugFilter, is_wizard_debug_enabled


def _registro(nome, nivel):
    return logging.LogRecord(nome, nivel, __file__, 1, "msg", None, None)


def test_debug_do_wizard_bloqueado_sem_flag(settings):
    settings.WIZARD_DEBUG = False
    filtro = WizardDebugFilter()
    assert is_wizard_debug_enabled() is False
    assert filtro.filter(_registro("wizards.services.rascunho", logging.DEBUG)) is False
    assert filtro.filter(_registro("wizards.services.rascunho", logging.INFO)) is True


def test_debug_do_wizard_liberado_com_flag(settings):
    settings.WIZARD_DEBUG = True
    assert WizardDebugFilter().filter(_registro("wizards.api_views", logging.DEBUG)) is True


def test_outros_namespaces_nao_sao_filtrados(settings):
    settings.WIZARD_DEBUG = False
    assert WizardDebugFilter().filter(_registro("core.middleware", logging.DEBUG)) is True

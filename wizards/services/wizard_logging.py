from __future__ import annotations

import logging

from django.conf import settings

WIZARD_DEBUG_FLAG_NAME = "WIZARD_DEBUG"
WIZARD_LOGGER_NAMESPACE = "wizards"


def is_wizard_debug_enabled() -> bool:
    return bool(getattr(settings, WIZARD_DEBUG_FLAG_NAME, False))


class WizardDebugFilter(logging.Filter):
    """Descarta DEBUG do namespace `wizards` a menos que WIZARD_DEBUG esteja ligado."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.INFO:
            return True
        if not record.name.startswith(WIZARD_LOGGER_NAMESPACE):
            return True
        # só permite DEBUG se flag ligada
        return is_wizard_debug_enabled()


__all__ = ["is_wizard_debug_enabled", "WIZARD_DEBUG_FLAG_NAME", "WizardDebugFilter"]

from django.apps import AppConfig


class WizardsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "wizards"
    verbose_name = "Wizards de registro (SGS)"

    def ready(self) -> None:
        # monta as tabelas de etapas no boot; definição inconsistente falha aqui
        from . import fluxos  # noqa: F401

"""Core models for the SGS system."""

# core/models.py - empresas (tenants), usuários e vínculos com permissões de fluxo
import logging
from typing import ClassVar

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models
from django.utils.translation import gettext_lazy as _

logger = logging.getLogger(__name__)

# ============================================================================
# MODELO BASE PARA TIMESTAMPS
# ============================================================================


class TimestampedModel(models.Model):
    """Modelo abstrato base que adiciona campos de timestamp a todos os modelos."""

    created_at = models.DateTimeField(auto_now_add=True, verbose_name=_("Data de criação"))
    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("Data de atualização"))

    class Meta:
        """Opções Meta para TimestampedModel."""

        abstract = True


# ============================================================================
# TENANT - cada empresa aponta para o seu sistema de registro remoto
# ============================================================================


class Tenant(TimestampedModel):
    """Empresa/contrato atendido pelo SGS.

    Cada tenant pode ter a própria instância da API remota de registro
    (`api_base_url`); quando vazio, vale o `SGS_API_BASE_URL` global.
    """

    STATUS_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("active", "Ativo"),
        ("inactive", "Inativo"),
        ("suspended", "Suspenso"),
    ]

    name = models.CharField(max_length=100, verbose_name=_("Nome Fantasia"))
    subdomain = models.CharField(
        max_length=100,
        unique=True,
        verbose_name=_("Subdomínio"),
        help_text=_("Identificador usado no cabeçalho X-Tenant."),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="active", verbose_name=_("Status"))
    api_base_url = models.URLField(blank=True, default="", verbose_name=_("URL base da API de registro"))
    api_token = models.CharField(max_length=255, blank=True, default="", verbose_name=_("Token da API de registro"))

    class Meta(TimestampedModel.Meta):
        """Opções Meta para o modelo Tenant."""

        verbose_name = _("empresa")
        verbose_name_plural = _("empresas")
        ordering: ClassVar[list[str]] = ["name"]

    def __str__(self) -> str:
        """Return the string representation of the tenant."""
        return self.name

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def get_api_base_url(self) -> str:
        return (self.api_base_url or getattr(settings, "SGS_API_BASE_URL", "")).rstrip("/")


class CustomUser(AbstractUser):
    """Modelo de usuário customizado.

    `matricula` é a chave do usuário no sistema remoto; `contrato_raiz`
    filtra as opções de referência (locais, naturezas, potenciais).
    """

    matricula = models.CharField(max_length=30, blank=True, default="", db_index=True, verbose_name=_("Matrícula"))
    contrato_raiz = models.CharField(max_length=60, blank=True, default="", verbose_name=_("Contrato raiz"))

    class Meta:
        """Opções Meta para CustomUser."""

        verbose_name = _("usuário")
        verbose_name_plural = _("usuários")

    def __str__(self) -> str:
        """Return the string representation of the user."""
        return self.username


class TenantUser(TimestampedModel):
    """Vínculo usuário-empresa com as permissões de fluxo do usuário naquela empresa."""

    PAPEL_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("colaborador", "Colaborador"),
        ("supervisor", "Supervisor"),
        ("admin", "Administrador"),
    ]

    tenant = models.ForeignKey(Tenant, on_delete=models.CASCADE, related_name="tenant_users")
    user = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name="tenant_memberships")
    papel = models.CharField(max_length=20, choices=PAPEL_CHOICES, default="colaborador", verbose_name=_("Papel"))
    # Lista de permissões no formato "wizards.<fluxo>"; "*" libera todos os fluxos
    permissoes = models.JSONField(default=list, blank=True, verbose_name=_("Permissões"))

    class Meta(TimestampedModel.Meta):
        """Opções Meta para TenantUser."""

        unique_together: ClassVar[tuple[str, str]] = ("tenant", "user")
        verbose_name = _("vínculo usuário-empresa")
        verbose_name_plural = _("vínculos usuário-empresa")

    def __str__(self) -> str:
        """Return the string representation of the tenant-user relationship."""
        return f"{self.user.username} em {self.tenant.name}"

    def lista_permissoes(self) -> list[str]:
        if not isinstance(self.permissoes, list):
            logger.warning("Permissões inválidas no vínculo %s: %r", self.pk, self.permissoes)
            return []
        return [str(p) for p in self.permissoes]

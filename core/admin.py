"""Admin do app core."""

from typing import ClassVar

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.utils.translation import gettext_lazy as _

from .models import CustomUser, Tenant, TenantUser


class TenantUserInline(admin.TabularInline):
    model = TenantUser
    extra = 0
    fields: ClassVar[tuple[str, ...]] = ("user", "papel", "permissoes")
    autocomplete_fields: ClassVar[tuple[str, ...]] = ("user",)


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ("name", "subdomain", "status", "api_base_url")
    list_filter: ClassVar[tuple[str, ...]] = ("status",)
    search_fields: ClassVar[tuple[str, ...]] = ("name", "subdomain")
    inlines: ClassVar[list] = [TenantUserInline]


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    list_display: ClassVar[tuple[str, ...]] = ("username", "email", "matricula", "contrato_raiz", "is_staff")
    search_fields: ClassVar[tuple[str, ...]] = ("username", "email", "matricula")
    fieldsets = (
        *UserAdmin.fieldsets,
        (_("Sistema de registro"), {"fields": ("matricula", "contrato_raiz")}),
    )


@admin.register(TenantUser)
class TenantUserAdmin(admin.ModelAdmin):
    list_display: ClassVar[tuple[str, ...]] = ("user", "tenant", "papel")
    list_filter: ClassVar[tuple[str, ...]] = ("papel", "tenant")
    search_fields: ClassVar[tuple[str, ...]] = ("user__username", "tenant__name")

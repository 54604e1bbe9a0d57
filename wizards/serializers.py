# wizards/serializers.py

from rest_framework import serializers

from .services.sessao import PlanoAcao


class CamposSerializer(serializers.Serializer):
    """Lote de edições de campos de uma sessão."""

    campos = serializers.DictField(allow_empty=False)
    agendar = serializers.BooleanField(default=True)


class AnexoSerializer(serializers.Serializer):
    arquivo = serializers.FileField()
    categoria = serializers.CharField(max_length=40)


class PlanoAcaoSerializer(serializers.Serializer):
    pergunta_id = serializers.CharField()
    descricao_desvio = serializers.CharField(allow_blank=True, default="")
    o_que_fazer = serializers.CharField(allow_blank=True, default="")
    como_fazer = serializers.CharField(allow_blank=True, default="")
    responsavel_id = serializers.CharField(allow_blank=True, default="")
    prazo = serializers.CharField(allow_blank=True, default="")
    prioridade = serializers.CharField(allow_blank=True, default="")
    status = serializers.ChoiceField(choices=PlanoAcao.STATUS, default="pendente")

class NegocioError(Exception):
    """Erro de regra de negócio genérico."""

    pass


class DefinicaoWizardError(NegocioError):
    """Tabela de etapas inconsistente (detectada na montagem do fluxo)."""

    pass


class RemoteApiError(NegocioError):
    def __init__(self, metodo, caminho, status=None, detalhe=""):
        self.metodo = metodo
        self.caminho = caminho
        self.status = status
        self.detalhe = detalhe
        super().__init__(f"Falha na API remota {metodo} {caminho}: status={status} {detalhe}".strip())


class FinalizacaoError(NegocioError):
    """Falha fatal ao submeter o registro final; a sessão permanece como estava."""

    def __init__(self, mensagem, causa=None):
        self.causa = causa
        super().__init__(mensagem)


class AnexoError(NegocioError):
    def __init__(self, mensagem, url=None):
        # url preenchida quando o upload funcionou mas o registro falhou
        self.url = url
        super().__init__(mensagem)


class RascunhoConflitoError(NegocioError):
    def __init__(self, remote_id_atual, remote_id_novo):
        self.remote_id_atual = remote_id_atual
        self.remote_id_novo = remote_id_novo
        super().__init__(
            f"Sessão já vinculada ao registro remoto {remote_id_atual}; recusado novo id {remote_id_novo}"
        )

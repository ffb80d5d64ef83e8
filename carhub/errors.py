class DomainError(Exception):
    """Violação de regra de negócio. A mensagem vai direto para o usuário."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(DomainError):
    pass


class VehicleHasOpenServices(DomainError):
    def __init__(self, open_count: int):
        super().__init__(
            f"Não é possível excluir este veículo pois há {open_count} serviço(s) em aberto. "
            "Finalize ou cancele os serviços antes de excluir o veículo."
        )
        self.open_count = open_count


class DuplicateDocument(DomainError):
    def __init__(self, document: str):
        super().__init__(f"O documento '{document}' já está cadastrado.")


class DuplicatePlate(DomainError):
    def __init__(self, plate: str):
        super().__init__(f"A placa '{plate}' já está cadastrada.")


class DuplicateUsername(DomainError):
    def __init__(self, username: str):
        super().__init__(f"Nome de usuário '{username}' já existe.")


class InvalidStatusTransition(DomainError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Não é possível mudar o status de '{current}' para '{target}'.")
        self.current = current
        self.target = target


class InvalidPhotoOwner(DomainError):
    pass


class GatewayError(Exception):
    """Falha de um serviço externo (gateway de pagamento, OCR)."""

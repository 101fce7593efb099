"""Erros de domínio da apuração fiscal.

"Não encontrado" continua sendo ``ValueError`` (padrão dos services);
as classes abaixo cobrem o que o chamador precisa distinguir.
"""

from __future__ import annotations


class FiscalError(Exception):
    code: str = "fiscal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MethodUnsupported(FiscalError):
    """Método de cálculo sem fórmula registrada."""

    code = "method_unsupported"

    def __init__(self, calc_method: str):
        super().__init__(f"Método de cálculo '{calc_method}' não possui fórmula definida.")
        self.calc_method = calc_method


class StorageFailure(FiscalError):
    code = "storage_failure"

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class ExternalRenderFailure(FiscalError):
    code = "render_failure"

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


class InvalidTransition(FiscalError):
    code = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"Transição inválida: {current} -> {target}.")
        self.current = current
        self.target = target


class ObligationConflict(FiscalError):
    code = "obligation_conflict"

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Dict, Optional

from apuracao.core.config import settings
from apuracao.core.errors import MethodUnsupported
from apuracao.core.logging_config import get_logger
from apuracao.models.tax_rule import TaxRule
from apuracao.schemas.calculation import TaxLine

logger = get_logger("tax_lines")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# (base, rate) -> valor do imposto
TaxStrategy = Callable[[Decimal, Decimal], Decimal]

# Métodos sem fórmula definida pelo fiscal: não podem cair no percentual sem decisão explícita
PENDING_METHODS = ("mva", "reducao_base", "substituicao_tributaria")


def percentual(base: Decimal, rate: Decimal) -> Decimal:
    return base * (rate / HUNDRED)


def valor_fixo(base: Decimal, rate: Decimal) -> Decimal:
    return rate


def sem_tributo(base: Decimal, rate: Decimal) -> Decimal:
    return ZERO


def percentual_fallback(base: Decimal, rate: Decimal) -> Decimal:
    """Comportamento legado para mva / reducao_base / substituicao_tributaria."""
    return percentual(base, rate)


_STRATEGIES: Dict[str, TaxStrategy] = {}


def register_strategy(calc_method: str, strategy: TaxStrategy) -> None:
    _STRATEGIES[calc_method] = strategy


def unregister_strategy(calc_method: str) -> None:
    _STRATEGIES.pop(calc_method, None)


def get_strategy(calc_method: str) -> TaxStrategy:
    strategy = _STRATEGIES.get(calc_method)
    if strategy is None:
        raise MethodUnsupported(calc_method)
    return strategy


def reset_strategies(legacy_percentual_fallback: bool = False) -> None:
    _STRATEGIES.clear()
    register_strategy("percentual", percentual)
    register_strategy("valor_fixo", valor_fixo)
    register_strategy("isento", sem_tributo)
    register_strategy("nao_incidencia", sem_tributo)

    if legacy_percentual_fallback:
        for method in PENDING_METHODS:
            register_strategy(method, percentual_fallback)
        logger.warning(
            "legacy_percentual_fallback_enabled",
            extra={"methods": list(PENDING_METHODS)},
        )


def _to_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def compute_tax_line(rule: TaxRule, amount: Decimal) -> TaxLine:
    amount = _to_decimal(amount)
    rate = _to_decimal(rule.rate) or ZERO
    base_reduction = _to_decimal(rule.base_reduction)

    # 1) redução de base vale para qualquer método
    base = amount
    if base_reduction:
        base = amount * (1 - base_reduction / HUNDRED)

    # 2) fórmula do método
    tax_amount = get_strategy(rule.calc_method)(base, rate)

    tax_type = rule.tax_type
    return TaxLine(
        tax_type=tax_type.name if tax_type is not None else "Desconhecido",
        tax_code=tax_type.code if tax_type is not None else "",
        base=base,
        rate=rate,
        amount=tax_amount,
        calc_method=rule.calc_method,
        base_reduction=base_reduction or ZERO,
    )


reset_strategies(settings.LEGACY_PERCENTUAL_FALLBACK)

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from apuracao.core.logging_config import get_logger
from apuracao.models.tax_calculation import TaxCalculation
from apuracao.schemas.ledger import Period, PeriodSummary, TaxBreakdown

logger = get_logger("summary")


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise InvalidOperation(repr(value))
    return Decimal(str(value))


def _parse_lines(result) -> Optional[List[Tuple[str, Decimal]]]:
    """(tributo, valor) de cada linha; None se ``result.taxes`` estiver fora do formato."""
    if not isinstance(result, dict):
        return None
    taxes = result.get("taxes")
    if not isinstance(taxes, list):
        return None

    lines: List[Tuple[str, Decimal]] = []
    for line in taxes:
        if not isinstance(line, dict) or not isinstance(line.get("tax_type"), str):
            return None
        try:
            lines.append((line["tax_type"], _as_decimal(line.get("amount"))))
        except (InvalidOperation, ValueError, TypeError):
            return None
    return lines


def summarize_period(db: Session, period: Period) -> PeriodSummary:
    calculations = (
        db.query(TaxCalculation)
        .filter(
            TaxCalculation.calculated_at >= period.start,
            TaxCalculation.calculated_at <= period.end,
        )
        .order_by(TaxCalculation.id.asc())
        .all()
    )

    total_amount = Decimal("0")
    total_tax = Decimal("0")
    breakdown: dict[str, TaxBreakdown] = {}
    malformed = 0

    for calc in calculations:
        total_amount += _as_decimal(calc.amount)

        lines = _parse_lines(calc.result)
        if lines is None:
            # conta a operação, mas sem detalhamento por tributo
            malformed += 1
            continue

        for tax_type, amount in lines:
            entry = breakdown.setdefault(tax_type, TaxBreakdown())
            entry.total += amount
            entry.operations += 1
            total_tax += amount

    if malformed:
        logger.warning(
            "malformed_calculation_results",
            extra={"period": period.label(), "count": malformed},
        )

    return PeriodSummary(
        period=period,
        total_operations=len(calculations),
        total_amount=total_amount,
        total_tax=total_tax,
        tax_breakdown={key: breakdown[key] for key in sorted(breakdown)},
    )

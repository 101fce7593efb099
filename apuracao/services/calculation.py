from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from apuracao.core.logging_config import get_logger
from apuracao.models.tax_calculation import TaxCalculation
from apuracao.schemas.calculation import CalculationResult, TaxCalculationRequest, TaxLine
from apuracao.schemas.ledger import Period
from apuracao.services.rules import find_applicable_rules
from apuracao.services.tax_lines import compute_tax_line

logger = get_logger("calculation")


def build_result(
    amount: Decimal,
    lines: List[TaxLine],
    calculated_at: datetime,
) -> CalculationResult:
    total_tax = sum((line.amount for line in lines), Decimal("0"))
    return CalculationResult(
        taxes=lines,
        total_amount=amount,
        total_tax=total_tax,
        net_amount=amount - total_tax,
        calculated_at=calculated_at,
    )


def calculate_taxes(
    db: Session,
    request: TaxCalculationRequest,
    *,
    as_of: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Tuple[TaxCalculation, CalculationResult]:
    """
    Aplica as regras vigentes ao valor da operação e grava o cálculo.

    Nada é gravado se alguma linha falhar (ex.: método sem fórmula).
    """
    calculated_at = now or datetime.utcnow()
    as_of = as_of or calculated_at.date()

    rules = find_applicable_rules(
        db,
        regime_id=request.regime_id,
        operation=request.operation,
        as_of=as_of,
        classification_id=request.classification_id,
    )

    # uma linha por regra, na ordem das regras
    lines = [compute_tax_line(rule, request.amount) for rule in rules]
    result = build_result(request.amount, lines, calculated_at)

    calculation = TaxCalculation(
        order_id=request.order_id,
        operation=request.operation,
        regime_id=request.regime_id,
        classification_id=request.classification_id,
        amount=request.amount,
        origin_uf=request.origin_uf,
        destination_uf=request.destination_uf,
        notes=request.notes,
        result=result.model_dump(mode="json"),
        calculated_at=calculated_at,
    )
    db.add(calculation)
    db.commit()
    db.refresh(calculation)

    logger.info(
        "tax_calculation_recorded",
        extra={
            "calculation_id": calculation.id,
            "regime_id": request.regime_id,
            "operation": request.operation,
            "rules_applied": len(rules),
            "total_tax": result.total_tax,
        },
    )
    return calculation, result


def list_calculations(db: Session, period: Optional[Period] = None) -> List[TaxCalculation]:
    query = db.query(TaxCalculation)
    if period is not None:
        query = query.filter(
            TaxCalculation.calculated_at >= period.start,
            TaxCalculation.calculated_at <= period.end,
        )
    return query.order_by(TaxCalculation.calculated_at.desc(), TaxCalculation.id.desc()).all()


def get_calculation(db: Session, calculation_id: int) -> TaxCalculation:
    calculation = db.query(TaxCalculation).filter(TaxCalculation.id == calculation_id).first()
    if calculation is None:
        raise ValueError("Tax calculation not found")
    return calculation

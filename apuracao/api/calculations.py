# apuracao/api/calculations.py

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from apuracao.core.database import get_db
from apuracao.core.errors import MethodUnsupported
from apuracao.schemas.calculation import CalculationResult, TaxCalculationOut, TaxCalculationRequest
from apuracao.schemas.ledger import Period
from apuracao.services.calculation import calculate_taxes, get_calculation, list_calculations
from apuracao.services.render import tax_calculations_csv

router = APIRouter(prefix="/tax-calculations", tags=["cálculos"])


def _optional_period(month: Optional[int], year: Optional[int]) -> Optional[Period]:
    if month is None and year is None:
        return None
    if month is None or year is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Informe mês e ano juntos.",
        )
    return Period(month=month, year=year)


@router.post("/", response_model=CalculationResult, status_code=status.HTTP_201_CREATED)
def calculate(payload: TaxCalculationRequest, db: Session = Depends(get_db)):
    """
    Calcula os impostos da operação com as regras vigentes hoje
    e grava o cálculo (imutável).
    """
    try:
        _, result = calculate_taxes(db, payload)
    except MethodUnsupported as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)
    return result


@router.get("/", response_model=List[TaxCalculationOut])
def list_tax_calculations(
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=1900),
    db: Session = Depends(get_db),
):
    return list_calculations(db, _optional_period(month, year))


@router.get("/export")
def export_tax_calculations(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900),
    db: Session = Depends(get_db),
):
    """CSV com os cálculos do período."""
    period = Period(month=month, year=year)
    content = tax_calculations_csv(list_calculations(db, period))
    filename = f"calculos_impostos_{year}_{month:02d}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{calculation_id}", response_model=TaxCalculationOut)
def get_tax_calculation(calculation_id: int, db: Session = Depends(get_db)):
    try:
        return get_calculation(db, calculation_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cálculo não encontrado.")

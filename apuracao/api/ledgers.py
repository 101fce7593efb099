# apuracao/api/ledgers.py

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from apuracao.core.database import get_db
from apuracao.schemas.ledger import (
    ClosePeriodInput,
    LedgerOperationResult,
    Period,
    PeriodSummary,
    TaxLedgerOut,
)
from apuracao.services.ledger import close_period, list_ledgers, reopen_period
from apuracao.services.summary import summarize_period

router = APIRouter(prefix="/tax-ledgers", tags=["apuração"])


@router.get("/", response_model=List[TaxLedgerOut])
def get_ledgers(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900),
    db: Session = Depends(get_db),
):
    return list_ledgers(db, Period(month=month, year=year))


@router.get("/summary", response_model=PeriodSummary)
def get_period_summary(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900),
    db: Session = Depends(get_db),
):
    return summarize_period(db, Period(month=month, year=year))


@router.post("/close", response_model=LedgerOperationResult)
def close(payload: ClosePeriodInput, db: Session = Depends(get_db)):
    """
    Fecha o período. Falhas voltam com success=false e mensagem,
    para o front exibir e tentar de novo.
    """
    period = Period(month=payload.month, year=payload.year)
    return close_period(db, period, regime_id=payload.regime_id)


@router.post("/reopen", response_model=LedgerOperationResult)
def reopen(payload: ClosePeriodInput, db: Session = Depends(get_db)):
    return reopen_period(db, Period(month=payload.month, year=payload.year))

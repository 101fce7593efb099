from __future__ import annotations

import threading
from contextlib import contextmanager
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apuracao.core.logging_config import get_logger
from apuracao.models.tax_ledger import TaxLedger
from apuracao.models.tax_type import TaxType
from apuracao.schemas.ledger import LedgerOperationResult, Period, TaxLedgerOut
from apuracao.services.summary import summarize_period

logger = get_logger("ledger")

STATUS_OPEN = "aberto"
STATUS_CLOSED = "fechado"

# escala das colunas Numeric(14, 4) do livro; as linhas de cálculo ficam exatas no JSON
LEDGER_SCALE = Decimal("0.0001")

_period_locks: Dict[Tuple[int, int], threading.Lock] = {}
_period_locks_guard = threading.Lock()


@contextmanager
def period_lock(period: Period) -> Iterator[None]:
    """Serializa fechamento/reabertura do mesmo período."""
    with _period_locks_guard:
        lock = _period_locks.setdefault(period.key, threading.Lock())
    with lock:
        yield


def list_ledgers(db: Session, period: Period) -> List[TaxLedger]:
    return (
        db.query(TaxLedger)
        .filter(
            TaxLedger.period_month == period.month,
            TaxLedger.period_year == period.year,
        )
        .order_by(TaxLedger.tax_type_id.asc())
        .all()
    )


def _result(
    success: bool,
    period: Period,
    ledgers: List[TaxLedger],
    skipped: Optional[List[str]] = None,
    message: Optional[str] = None,
) -> LedgerOperationResult:
    return LedgerOperationResult(
        success=success,
        period=period,
        ledgers=[TaxLedgerOut.model_validate(l) for l in ledgers],
        skipped_tax_types=skipped or [],
        message=message,
    )


def close_period(db: Session, period: Period, regime_id: Optional[int] = None) -> LedgerOperationResult:
    """
    Fecha o período: recalcula os débitos por tributo a partir dos cálculos
    do mês e grava/atualiza uma linha de livro fiscal por tributo.

    Rodar de novo sem cálculos novos reproduz exatamente as mesmas linhas.
    """
    with period_lock(period):
        try:
            summary = summarize_period(db, period)

            tax_types = {
                t.name: t
                for t in db.query(TaxType).filter(TaxType.name.in_(list(summary.tax_breakdown))).all()
            }

            touched: List[TaxLedger] = []
            skipped: List[str] = []

            for tax_type_name, breakdown in summary.tax_breakdown.items():
                tax_type = tax_types.get(tax_type_name)
                if tax_type is None:
                    skipped.append(tax_type_name)
                    logger.warning(
                        "ledger_tax_type_unresolved",
                        extra={
                            "period": period.label(),
                            "tax_type": tax_type_name,
                            "total": breakdown.total,
                        },
                    )
                    continue

                ledger = (
                    db.query(TaxLedger)
                    .filter(
                        TaxLedger.period_month == period.month,
                        TaxLedger.period_year == period.year,
                        TaxLedger.tax_type_id == tax_type.id,
                    )
                    .first()
                )
                if ledger is None:
                    ledger = TaxLedger(
                        period_month=period.month,
                        period_year=period.year,
                        tax_type_id=tax_type.id,
                        total_credits=Decimal("0"),
                    )
                    db.add(ledger)

                if regime_id is not None:
                    ledger.regime_id = regime_id
                total = breakdown.total.quantize(LEDGER_SCALE, rounding=ROUND_HALF_EVEN)
                ledger.total_debits = total
                ledger.balance_due = total
                ledger.status = STATUS_CLOSED
                touched.append(ledger)

            db.commit()
            for ledger in touched:
                db.refresh(ledger)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("ledger_close_failed", extra={"period": period.label()})
            return _result(False, period, [], message=f"Erro ao fechar período: {e}")

    logger.info(
        "ledger_period_closed",
        extra={
            "period": period.label(),
            "ledgers": len(touched),
            "skipped": len(skipped),
            "total_tax": summary.total_tax,
        },
    )

    message = "Período fechado com sucesso."
    if skipped:
        message = f"Período fechado; tributos sem cadastro ignorados: {', '.join(skipped)}."
    return _result(True, period, touched, skipped, message)


def reopen_period(db: Session, period: Period) -> LedgerOperationResult:
    """Reabre o período; totais ficam como estão."""
    with period_lock(period):
        try:
            ledgers = list_ledgers(db, period)
            for ledger in ledgers:
                ledger.status = STATUS_OPEN
            db.commit()
            for ledger in ledgers:
                db.refresh(ledger)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("ledger_reopen_failed", extra={"period": period.label()})
            return _result(False, period, [], message=f"Erro ao reabrir período: {e}")

    logger.info("ledger_period_reopened", extra={"period": period.label(), "ledgers": len(ledgers)})

    if not ledgers:
        return _result(True, period, [], message="Nenhum livro fiscal encontrado para o período.")
    return _result(True, period, ledgers, message="Período reaberto com sucesso.")

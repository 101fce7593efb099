from __future__ import annotations

from datetime import date
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from apuracao.models.tax_rule import TaxRule


def find_applicable_rules(
    db: Session,
    regime_id: int,
    operation: str,
    as_of: date,
    classification_id: Optional[int] = None,
) -> List[TaxRule]:
    """
    Regras ativas e vigentes em ``as_of`` para o regime + operação.
    Ordem: prioridade crescente, depois id (desempate estável).
    Lista vazia não é erro: a operação simplesmente não é tributada.
    """
    query = (
        db.query(TaxRule)
        .options(joinedload(TaxRule.tax_type))
        .filter(TaxRule.regime_id == regime_id)
        .filter(TaxRule.operation == operation)
        .filter(TaxRule.is_active.is_(True))
        .filter(TaxRule.valid_from <= as_of)
        .filter(or_(TaxRule.valid_to.is_(None), TaxRule.valid_to >= as_of))
    )

    if classification_id is not None:
        query = query.filter(
            or_(
                TaxRule.classification_id.is_(None),
                TaxRule.classification_id == classification_id,
            )
        )

    return query.order_by(TaxRule.priority.asc(), TaxRule.id.asc()).all()

# apuracao/api/reference.py
# Cadastros de apoio: tributos, regimes, classificações, regras e tipos de obrigação.

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from apuracao.core.database import get_db
from apuracao.models.fiscal_classification import FiscalClassification
from apuracao.models.obligation import ObligationKind
from apuracao.models.tax_regime import TaxRegime
from apuracao.models.tax_rule import TaxRule
from apuracao.models.tax_type import TaxType
from apuracao.schemas.fiscal import (
    FiscalClassificationCreate,
    FiscalClassificationOut,
    ObligationKindCreate,
    ObligationKindOut,
    TaxRegimeCreate,
    TaxRegimeOut,
    TaxRegimeUpdate,
    TaxRuleCreate,
    TaxRuleOut,
    TaxTypeCreate,
    TaxTypeOut,
    TaxTypeUpdate,
)

router = APIRouter(tags=["cadastros fiscais"])


def _save(db: Session, obj, conflict_detail: str):
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=conflict_detail)
    db.refresh(obj)
    return obj


# === Tipos de tributo ===

def _tax_type_in_use(db: Session, tax_type: TaxType) -> bool:
    has_rule = db.query(TaxRule.id).filter(TaxRule.tax_type_id == tax_type.id).first() is not None
    return has_rule or bool(tax_type.ledgers)


@router.get("/tax-types", response_model=List[TaxTypeOut])
def list_tax_types(db: Session = Depends(get_db)):
    return db.query(TaxType).order_by(TaxType.name).all()


@router.post("/tax-types", response_model=TaxTypeOut, status_code=status.HTTP_201_CREATED)
def create_tax_type(payload: TaxTypeCreate, db: Session = Depends(get_db)):
    return _save(db, TaxType(**payload.model_dump()), "Já existe um tributo com esse código ou nome.")


@router.put("/tax-types/{tax_type_id}", response_model=TaxTypeOut)
def update_tax_type(tax_type_id: int, payload: TaxTypeUpdate, db: Session = Depends(get_db)):
    tax_type = db.query(TaxType).filter(TaxType.id == tax_type_id).first()
    if not tax_type:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tributo não encontrado.")

    changes = payload.model_dump(exclude_unset=True)

    # cálculos e livros guardam o nome do tributo; em uso, nome e código ficam fixos
    renames = any(
        field in changes and changes[field] != getattr(tax_type, field) for field in ("name", "code")
    )
    if renames and _tax_type_in_use(db, tax_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tributo em uso por regras ou livros fiscais: nome e código não podem mudar.",
        )

    for field, value in changes.items():
        setattr(tax_type, field, value)

    return _save(db, tax_type, "Já existe um tributo com esse código ou nome.")


@router.delete("/tax-types/{tax_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tax_type(tax_type_id: int, db: Session = Depends(get_db)):
    tax_type = db.query(TaxType).filter(TaxType.id == tax_type_id).first()
    if not tax_type:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tributo não encontrado.")

    # tributo referenciado por regra ou livro fiscal não pode sumir
    if _tax_type_in_use(db, tax_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tributo em uso por regras ou livros fiscais.",
        )

    db.delete(tax_type)
    db.commit()
    return None


# === Regimes ===

@router.get("/tax-regimes", response_model=List[TaxRegimeOut])
def list_tax_regimes(db: Session = Depends(get_db)):
    return db.query(TaxRegime).order_by(TaxRegime.name).all()


@router.post("/tax-regimes", response_model=TaxRegimeOut, status_code=status.HTTP_201_CREATED)
def create_tax_regime(payload: TaxRegimeCreate, db: Session = Depends(get_db)):
    return _save(db, TaxRegime(**payload.model_dump()), "Já existe um regime com esse código.")


@router.put("/tax-regimes/{regime_id}", response_model=TaxRegimeOut)
def update_tax_regime(regime_id: int, payload: TaxRegimeUpdate, db: Session = Depends(get_db)):
    regime = db.query(TaxRegime).filter(TaxRegime.id == regime_id).first()
    if not regime:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Regime não encontrado.")

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(regime, field, value)

    return _save(db, regime, "Já existe um regime com esse código.")


@router.delete("/tax-regimes/{regime_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tax_regime(regime_id: int, db: Session = Depends(get_db)):
    regime = db.query(TaxRegime).filter(TaxRegime.id == regime_id).first()
    if not regime:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Regime não encontrado.")

    if regime.rules:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Regime possui regras cadastradas.")

    db.delete(regime)
    db.commit()
    return None


# === Classificações fiscais ===

@router.get("/fiscal-classifications", response_model=List[FiscalClassificationOut])
def list_fiscal_classifications(db: Session = Depends(get_db)):
    return db.query(FiscalClassification).order_by(FiscalClassification.description).all()


@router.post("/fiscal-classifications", response_model=FiscalClassificationOut, status_code=status.HTTP_201_CREATED)
def create_fiscal_classification(payload: FiscalClassificationCreate, db: Session = Depends(get_db)):
    return _save(db, FiscalClassification(**payload.model_dump()), "Classificação inválida.")


# === Regras ===

@router.get("/tax-rules", response_model=List[TaxRuleOut])
def list_tax_rules(db: Session = Depends(get_db)):
    return db.query(TaxRule).order_by(TaxRule.priority.asc(), TaxRule.id.asc()).all()


@router.post("/tax-rules", response_model=TaxRuleOut, status_code=status.HTTP_201_CREATED)
def create_tax_rule(payload: TaxRuleCreate, db: Session = Depends(get_db)):
    if payload.valid_to is not None and payload.valid_to < payload.valid_from:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Fim de vigência anterior ao início.",
        )
    if not db.query(TaxRegime.id).filter(TaxRegime.id == payload.regime_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Regime não encontrado.")
    if not db.query(TaxType.id).filter(TaxType.id == payload.tax_type_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tributo não encontrado.")

    return _save(db, TaxRule(**payload.model_dump()), "Regra inválida.")


# === Tipos de obrigação ===

@router.get("/obligation-kinds", response_model=List[ObligationKindOut])
def list_obligation_kinds(db: Session = Depends(get_db)):
    return db.query(ObligationKind).order_by(ObligationKind.name).all()


@router.post("/obligation-kinds", response_model=ObligationKindOut, status_code=status.HTTP_201_CREATED)
def create_obligation_kind(payload: ObligationKindCreate, db: Session = Depends(get_db)):
    return _save(db, ObligationKind(**payload.model_dump()), "Já existe um tipo de obrigação com esse código.")

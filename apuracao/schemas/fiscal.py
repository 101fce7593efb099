# apuracao/schemas/fiscal.py

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints


Jurisdiction = Literal["federal", "estadual", "municipal"]
ClassificationType = Literal["produto", "servico"]
Operation = Literal["venda", "compra", "prestacao_servico"]
CalcMethod = Literal[
    "percentual",
    "valor_fixo",
    "mva",
    "reducao_base",
    "substituicao_tributaria",
    "isento",
    "nao_incidencia",
]
UF = Annotated[str, StringConstraints(pattern=r"^[A-Z]{2}$")]


# === Tipos de tributo ===

class TaxTypeBase(BaseModel):
    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1, max_length=120)
    jurisdiction: Jurisdiction
    description: Optional[str] = None


class TaxTypeCreate(TaxTypeBase):
    pass


class TaxTypeUpdate(BaseModel):
    code: Optional[str] = Field(default=None, max_length=20)
    name: Optional[str] = Field(default=None, max_length=120)
    jurisdiction: Optional[Jurisdiction] = None
    description: Optional[str] = None


class TaxTypeOut(TaxTypeBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None


# === Regimes ===

class TaxRegimeBase(BaseModel):
    code: str = Field(min_length=1, max_length=30)
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class TaxRegimeCreate(TaxRegimeBase):
    pass


class TaxRegimeUpdate(BaseModel):
    code: Optional[str] = Field(default=None, max_length=30)
    name: Optional[str] = Field(default=None, max_length=120)
    description: Optional[str] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None


class TaxRegimeOut(TaxRegimeBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


# === Classificações fiscais ===

class FiscalClassificationCreate(BaseModel):
    type: ClassificationType
    ncm_code: Optional[str] = Field(default=None, max_length=10)
    service_code: Optional[str] = Field(default=None, max_length=20)
    cest: Optional[str] = Field(default=None, max_length=10)
    description: str = Field(min_length=1, max_length=500)


class FiscalClassificationOut(FiscalClassificationCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


# === Regras ===

class TaxRuleCreate(BaseModel):
    regime_id: int
    tax_type_id: int
    operation: Operation
    origin_uf: Optional[UF] = None
    destination_uf: Optional[UF] = None
    classification_id: Optional[int] = None
    calc_method: CalcMethod
    rate: Optional[Decimal] = Field(default=None, ge=0)
    base_reduction: Optional[Decimal] = Field(default=None, ge=0, le=100)
    is_active: bool = True
    priority: int = 0
    valid_from: date
    valid_to: Optional[date] = None


class TaxRuleOut(TaxRuleCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int


# === Tipos de obrigação ===

class ObligationKindCreate(BaseModel):
    code: str = Field(min_length=1, max_length=30)
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None


class ObligationKindOut(ObligationKindCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int

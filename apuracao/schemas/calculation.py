# apuracao/schemas/calculation.py

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from apuracao.schemas.fiscal import UF, CalcMethod, Operation


class TaxCalculationRequest(BaseModel):
    regime_id: int
    operation: Operation
    amount: Decimal = Field(ge=0)
    classification_id: Optional[int] = None
    origin_uf: Optional[UF] = None
    destination_uf: Optional[UF] = None
    notes: Optional[str] = None
    order_id: Optional[str] = Field(default=None, max_length=64)


class TaxLine(BaseModel):
    tax_type: str
    tax_code: str
    base: Decimal
    rate: Decimal
    amount: Decimal
    calc_method: CalcMethod
    base_reduction: Decimal


class CalculationResult(BaseModel):
    taxes: List[TaxLine] = []
    total_amount: Decimal
    total_tax: Decimal
    net_amount: Decimal
    calculated_at: datetime


class TaxCalculationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: Optional[str] = None
    operation: Operation
    regime_id: int
    classification_id: Optional[int] = None
    amount: Decimal
    origin_uf: Optional[str] = None
    destination_uf: Optional[str] = None
    notes: Optional[str] = None
    # guardado como JSON; pode vir de registros antigos sem o formato completo
    result: Any
    calculated_at: datetime

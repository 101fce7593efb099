# apuracao/schemas/ledger.py

from __future__ import annotations

from calendar import monthrange
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


LedgerStatus = Literal["aberto", "fechado"]


class Period(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """Último instante do mês (inclusive)."""
        last_day = monthrange(self.year, self.month)[1]
        return datetime(self.year, self.month, last_day) + timedelta(days=1) - timedelta(microseconds=1)

    @property
    def key(self) -> tuple[int, int]:
        return (self.year, self.month)

    def label(self) -> str:
        return f"{self.month:02d}/{self.year}"


class TaxBreakdown(BaseModel):
    total: Decimal = Decimal("0")
    operations: int = 0


class PeriodSummary(BaseModel):
    period: Period
    total_operations: int = 0
    total_amount: Decimal = Decimal("0")
    total_tax: Decimal = Decimal("0")
    tax_breakdown: Dict[str, TaxBreakdown] = {}


class TaxLedgerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    period_month: int
    period_year: int
    tax_type_id: int
    regime_id: Optional[int] = None
    total_debits: Decimal
    total_credits: Decimal
    balance_due: Decimal
    status: LedgerStatus


class ClosePeriodInput(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)
    regime_id: Optional[int] = None


class LedgerOperationResult(BaseModel):
    success: bool
    period: Period
    ledgers: List[TaxLedgerOut] = []
    skipped_tax_types: List[str] = []
    message: Optional[str] = None

# apuracao/models/tax_ledger.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class TaxLedger(Base):
    """Livro fiscal: uma linha por tributo por período (mês/ano)."""
    __tablename__ = "tax_ledgers"
    __table_args__ = (
        UniqueConstraint("period_month", "period_year", "tax_type_id", name="uq_tax_ledger_period_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    period_month = Column(Integer, nullable=False)
    period_year = Column(Integer, nullable=False)
    tax_type_id = Column(Integer, ForeignKey("tax_types.id"), nullable=False)
    regime_id = Column(Integer, ForeignKey("tax_regimes.id"), nullable=True)

    # 4 casas: o fechamento arredonda (half-even) a soma exata das linhas
    total_debits = Column(Numeric(14, 4), nullable=False, default=0)
    # créditos vêm da escrituração, fora da apuração
    total_credits = Column(Numeric(14, 4), nullable=False, default=0)
    balance_due = Column(Numeric(14, 4), nullable=False, default=0)

    status = Column(String(10), nullable=False, default="aberto")  # aberto | fechado

    tax_type = relationship("TaxType", back_populates="ledgers")

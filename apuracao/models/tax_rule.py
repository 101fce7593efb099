# apuracao/models/tax_rule.py

from datetime import datetime, date
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Date,
    DateTime,
    Numeric,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class TaxRule(Base):
    __tablename__ = "tax_rules"

    id = Column(Integer, primary_key=True, index=True)
    regime_id = Column(Integer, ForeignKey("tax_regimes.id"), nullable=False, index=True)
    tax_type_id = Column(Integer, ForeignKey("tax_types.id"), nullable=False)

    operation = Column(String(30), nullable=False, index=True)  # venda | compra | prestacao_servico
    origin_uf = Column(String(2), nullable=True)
    destination_uf = Column(String(2), nullable=True)
    classification_id = Column(Integer, ForeignKey("fiscal_classifications.id"), nullable=True)

    calc_method = Column(String(30), nullable=False)
    rate = Column(Numeric(12, 4), nullable=True)           # % ou valor fixo, conforme o método
    base_reduction = Column(Numeric(7, 4), nullable=True)  # 0–100

    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=0, nullable=False)

    valid_from = Column(Date, nullable=False, default=date.today)
    valid_to = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    regime = relationship("TaxRegime", back_populates="rules")
    tax_type = relationship("TaxType", back_populates="rules")
    classification = relationship("FiscalClassification")

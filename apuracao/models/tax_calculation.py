# apuracao/models/tax_calculation.py

from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Numeric,
    JSON,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class TaxCalculation(Base):
    """
    Registro imutável de um cálculo de impostos.
    ``result`` guarda as linhas de imposto e os totais exatamente como calculados.
    """
    __tablename__ = "tax_calculations"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), nullable=True, index=True)

    operation = Column(String(30), nullable=False)
    regime_id = Column(Integer, ForeignKey("tax_regimes.id"), nullable=False)
    classification_id = Column(Integer, ForeignKey("fiscal_classifications.id"), nullable=True)

    amount = Column(Numeric(14, 2), nullable=False)
    origin_uf = Column(String(2), nullable=True)
    destination_uf = Column(String(2), nullable=True)

    result = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)

    calculated_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    regime = relationship("TaxRegime")
    classification = relationship("FiscalClassification")

# apuracao/models/tax_regime.py

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Date, DateTime
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class TaxRegime(Base):
    __tablename__ = "tax_regimes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), unique=True, index=True, nullable=False)  # ex.: "SIMPLES", "LUCRO_REAL"
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)

    effective_from = Column(Date, nullable=True)
    effective_to = Column(Date, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rules = relationship("TaxRule", back_populates="regime")

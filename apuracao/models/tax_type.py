# apuracao/models/tax_type.py

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class TaxType(Base):
    __tablename__ = "tax_types"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, index=True, nullable=False)   # ex.: "ICMS"
    name = Column(String(120), unique=True, index=True, nullable=False)
    jurisdiction = Column(String(20), nullable=False)                    # federal | estadual | municipal
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    rules = relationship("TaxRule", back_populates="tax_type")
    ledgers = relationship("TaxLedger", back_populates="tax_type")

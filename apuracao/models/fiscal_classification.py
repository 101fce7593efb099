# apuracao/models/fiscal_classification.py

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime
from apuracao.core.database import Base


class FiscalClassification(Base):
    __tablename__ = "fiscal_classifications"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False)  # produto | servico

    ncm_code = Column(String(10), nullable=True, index=True)   # ex.: "39269090"
    service_code = Column(String(20), nullable=True)           # item da lista de serviços
    cest = Column(String(10), nullable=True)

    description = Column(String(500), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

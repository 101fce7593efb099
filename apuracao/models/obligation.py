# apuracao/models/obligation.py

from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
)
from sqlalchemy.orm import relationship
from apuracao.core.database import Base


class ObligationKind(Base):
    __tablename__ = "obligation_kinds"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), unique=True, index=True, nullable=False)  # ex.: "RESUMO_MENSAL"
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    obligations = relationship("Obligation", back_populates="kind")


class Obligation(Base):
    __tablename__ = "obligations"

    id = Column(Integer, primary_key=True, index=True)
    obligation_kind_id = Column(Integer, ForeignKey("obligation_kinds.id"), nullable=False, index=True)

    period_month = Column(Integer, nullable=False)
    period_year = Column(Integer, nullable=False)

    # rascunho | gerado | validado | enviado | erro
    status = Column(String(20), nullable=False, default="rascunho")

    generated_file_path = Column(String(500), nullable=True)
    protocol = Column(String(120), nullable=True)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)
    message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    kind = relationship("ObligationKind", back_populates="obligations")
    files = relationship(
        "ObligationFile",
        back_populates="obligation",
        order_by="ObligationFile.id",
    )


class ObligationFile(Base):
    """Histórico de arquivos gerados; nunca sobrescrito."""
    __tablename__ = "obligation_files"

    id = Column(Integer, primary_key=True, index=True)
    obligation_id = Column(Integer, ForeignKey("obligations.id"), nullable=False, index=True)

    file_path = Column(String(500), nullable=False)
    file_name = Column(String(255), nullable=True)
    file_type = Column(String(50), nullable=False)   # TAX_SUMMARY, TAX_CALCULATIONS...
    format = Column(String(10), nullable=False)      # csv | json
    mime_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    hash_sha256 = Column(String(64), nullable=True)
    request_id = Column(String(64), nullable=True)

    generated_at = Column(DateTime, default=datetime.utcnow)

    obligation = relationship("Obligation", back_populates="files")

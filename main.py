# main.py

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from apuracao.core.config import settings
from apuracao.core.database import engine, Base
from apuracao.core.logging_config import configure_logging

# Importa os models para registrá-los no Base.metadata
from apuracao.models.tax_type import TaxType  # noqa: F401
from apuracao.models.tax_regime import TaxRegime  # noqa: F401
from apuracao.models.fiscal_classification import FiscalClassification  # noqa: F401
from apuracao.models.tax_rule import TaxRule  # noqa: F401
from apuracao.models.tax_calculation import TaxCalculation  # noqa: F401
from apuracao.models.tax_ledger import TaxLedger  # noqa: F401
from apuracao.models.obligation import ObligationKind, Obligation, ObligationFile  # noqa: F401

from apuracao.api.reference import router as reference_router
from apuracao.api.calculations import router as calculations_router
from apuracao.api.ledgers import router as ledgers_router
from apuracao.api.obligations import router as obligations_router

configure_logging(level=settings.LOG_LEVEL)

app = FastAPI(
    title="Apuração Fiscal API",
    version="0.1.0",
)

# === CORS: liberar acesso do front ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)


app.include_router(reference_router)
app.include_router(calculations_router)
app.include_router(ledgers_router)
app.include_router(obligations_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}

"""Fixtures da suíte: SQLite em memória, storage em tmp_path e TestClient."""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fastapi.testclient import TestClient

from main import app
from apuracao.core.database import Base, build_engine, get_db
from apuracao.models.obligation import ObligationKind
from apuracao.models.tax_calculation import TaxCalculation
from apuracao.models.tax_regime import TaxRegime
from apuracao.models.tax_rule import TaxRule
from apuracao.models.tax_type import TaxType
from apuracao.services.render import LocalRenderer, get_renderer
from apuracao.services.storage import LocalObjectStorage, get_storage

TEST_DATABASE_URL = "sqlite:///:memory:"

engine = build_engine(TEST_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(tmp_path, "fiscal-outputs")


@pytest.fixture
def client(db_session, storage):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_renderer] = lambda: LocalRenderer(db_session, storage)
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Dados de apoio
# =============================================================================


@pytest.fixture
def regime(db_session):
    regime = TaxRegime(code="LUCRO_REAL", name="Lucro Real")
    db_session.add(regime)
    db_session.commit()
    db_session.refresh(regime)
    return regime


@pytest.fixture
def icms(db_session):
    tax_type = TaxType(code="ICMS", name="ICMS", jurisdiction="estadual")
    db_session.add(tax_type)
    db_session.commit()
    db_session.refresh(tax_type)
    return tax_type


@pytest.fixture
def pis(db_session):
    tax_type = TaxType(code="PIS", name="PIS", jurisdiction="federal")
    db_session.add(tax_type)
    db_session.commit()
    db_session.refresh(tax_type)
    return tax_type


@pytest.fixture
def obligation_kind(db_session):
    kind = ObligationKind(code="RESUMO_MENSAL", name="Resumo Mensal")
    db_session.add(kind)
    db_session.commit()
    db_session.refresh(kind)
    return kind


@pytest.fixture
def make_rule(db_session, regime):
    def _make_rule(tax_type, **overrides):
        data = dict(
            regime_id=regime.id,
            tax_type_id=tax_type.id,
            operation="venda",
            calc_method="percentual",
            rate=Decimal("18"),
            is_active=True,
            priority=0,
            valid_from=date(2020, 1, 1),
        )
        data.update(overrides)
        rule = TaxRule(**data)
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule

    return _make_rule


@pytest.fixture
def make_calculation(db_session, regime):
    """Grava um cálculo já pronto (como se viesse do motor) numa data qualquer."""

    def _make_calculation(calculated_at: datetime, amount="1000", taxes=None, result=None):
        if result is None:
            taxes = taxes or []
            total_tax = sum((Decimal(t["amount"]) for t in taxes), Decimal("0"))
            result = {
                "taxes": taxes,
                "total_amount": str(amount),
                "total_tax": str(total_tax),
                "net_amount": str(Decimal(amount) - total_tax),
                "calculated_at": calculated_at.isoformat(),
            }
        calc = TaxCalculation(
            operation="venda",
            regime_id=regime.id,
            amount=Decimal(amount),
            result=result,
            calculated_at=calculated_at,
        )
        db_session.add(calc)
        db_session.commit()
        db_session.refresh(calc)
        return calc

    return _make_calculation


@pytest.fixture
def tax_line():
    def _tax_line(tax_type: str, amount: str) -> dict:
        return {
            "tax_type": tax_type,
            "tax_code": tax_type,
            "base": "1000",
            "rate": "0",
            "amount": amount,
            "calc_method": "percentual",
            "base_reduction": "0",
        }

    return _tax_line

import logging
import threading
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from apuracao.models.tax_ledger import TaxLedger
from apuracao.schemas.ledger import Period
from apuracao.services.ledger import close_period, list_ledgers, period_lock, reopen_period

JUNE = Period(month=6, year=2025)


def _snapshot(db_session):
    db_session.expire_all()
    return [
        (l.period_month, l.period_year, l.tax_type_id, l.regime_id,
         str(l.total_debits), str(l.total_credits), str(l.balance_due), l.status)
        for l in db_session.query(TaxLedger).order_by(TaxLedger.id).all()
    ]


def test_scenario_d_close_then_reopen(db_session, regime, icms, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])

    closed = close_period(db_session, JUNE, regime_id=regime.id)

    assert closed.success is True
    assert closed.skipped_tax_types == []
    [ledger] = closed.ledgers
    assert ledger.tax_type_id == icms.id
    assert ledger.regime_id == regime.id
    assert ledger.total_debits == Decimal("180")
    assert ledger.total_credits == Decimal("0")
    assert ledger.balance_due == Decimal("180")
    assert ledger.status == "fechado"

    reopened = reopen_period(db_session, JUNE)

    assert reopened.success is True
    [ledger] = reopened.ledgers
    assert ledger.status == "aberto"
    assert ledger.total_debits == Decimal("180")
    assert ledger.balance_due == Decimal("180")


def test_close_twice_is_idempotent(db_session, icms, pis, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180"), tax_line("PIS", "16.5")])
    make_calculation(datetime(2025, 6, 20), taxes=[tax_line("ICMS", "45.25")])

    close_period(db_session, JUNE)
    first = _snapshot(db_session)
    close_period(db_session, JUNE)
    second = _snapshot(db_session)

    assert first == second
    assert len(first) == 2


def test_reopen_only_touches_status(db_session, icms, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    close_period(db_session, JUNE)
    before = _snapshot(db_session)

    reopen_period(db_session, JUNE)
    after = _snapshot(db_session)

    assert [row[:-1] for row in before] == [row[:-1] for row in after]
    assert [row[-1] for row in after] == ["aberto"]


def test_close_after_new_calculations_overwrites_totals(db_session, icms, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    close_period(db_session, JUNE)

    make_calculation(datetime(2025, 6, 11), taxes=[tax_line("ICMS", "20")])
    result = close_period(db_session, JUNE)

    assert result.ledgers[0].total_debits == Decimal("200")
    assert db_session.query(TaxLedger).count() == 1


def test_credits_from_bookkeeping_survive_close(db_session, icms, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    close_period(db_session, JUNE)

    ledger = db_session.query(TaxLedger).one()
    ledger.total_credits = Decimal("30")
    db_session.commit()

    result = close_period(db_session, JUNE)

    assert result.ledgers[0].total_credits == Decimal("30")
    assert result.ledgers[0].total_debits == Decimal("180")


def test_unknown_tax_type_is_skipped_and_logged(db_session, icms, make_calculation, tax_line, caplog):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180"), tax_line("Desconhecido", "7")])

    with caplog.at_level(logging.WARNING, logger="apuracao"):
        result = close_period(db_session, JUNE)

    assert result.success is True
    assert result.skipped_tax_types == ["Desconhecido"]
    assert [l.tax_type_id for l in result.ledgers] == [icms.id]
    assert any(r.getMessage() == "ledger_tax_type_unresolved" for r in caplog.records)


def test_periods_are_independent(db_session, icms, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    make_calculation(datetime(2025, 7, 10), taxes=[tax_line("ICMS", "99")])

    close_period(db_session, JUNE)
    close_period(db_session, Period(month=7, year=2025))
    reopen_period(db_session, JUNE)

    june = list_ledgers(db_session, JUNE)
    july = list_ledgers(db_session, Period(month=7, year=2025))
    assert [l.status for l in june] == ["aberto"]
    assert [l.status for l in july] == ["fechado"]
    assert july[0].total_debits == Decimal("99")


def test_reopen_empty_period_succeeds_without_rows(db_session):
    result = reopen_period(db_session, JUNE)

    assert result.success is True
    assert result.ledgers == []


def test_period_lock_serializes_same_period():
    entered = threading.Event()
    release = threading.Event()
    order = []

    def holder():
        with period_lock(JUNE):
            entered.set()
            release.wait(timeout=5)
            order.append("holder")

    t = threading.Thread(target=holder)
    t.start()
    entered.wait(timeout=5)

    def contender():
        with period_lock(Period(month=6, year=2025)):
            order.append("contender")

    c = threading.Thread(target=contender)
    c.start()
    c.join(timeout=0.2)
    assert order == []

    release.set()
    t.join(timeout=5)
    c.join(timeout=5)
    assert order == ["holder", "contender"]


def _failing_commit(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


def test_close_failure_is_reported_and_rolled_back(db_session, icms, make_calculation, tax_line, monkeypatch):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    close_period(db_session, JUNE)
    make_calculation(datetime(2025, 6, 11), taxes=[tax_line("ICMS", "20")])
    before = _snapshot(db_session)

    monkeypatch.setattr(db_session, "commit", _failing_commit)
    result = close_period(db_session, JUNE)
    monkeypatch.undo()

    assert result.success is False
    assert result.message
    assert result.ledgers == []
    assert _snapshot(db_session) == before


def test_close_failure_on_first_close_leaves_no_rows(db_session, icms, make_calculation, tax_line, monkeypatch):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])

    monkeypatch.setattr(db_session, "commit", _failing_commit)
    result = close_period(db_session, JUNE)
    monkeypatch.undo()

    assert result.success is False
    assert db_session.query(TaxLedger).count() == 0


def test_reopen_failure_is_reported_and_rolled_back(db_session, icms, make_calculation, tax_line, monkeypatch):
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "180")])
    close_period(db_session, JUNE)

    monkeypatch.setattr(db_session, "commit", _failing_commit)
    result = reopen_period(db_session, JUNE)
    monkeypatch.undo()

    assert result.success is False
    assert result.message
    assert [row[-1] for row in _snapshot(db_session)] == ["fechado"]


def test_ledger_totals_rounded_to_storage_scale(db_session, icms, make_calculation, tax_line):
    # 123.45 com redução de 33.33% e alíquota de 17.5%
    make_calculation(datetime(2025, 6, 10), taxes=[tax_line("ICMS", "14.403220125")])
    make_calculation(datetime(2025, 6, 11), taxes=[tax_line("ICMS", "0.00005")])

    result = close_period(db_session, JUNE)

    # soma exata 14.403270125 -> 14.4033
    assert result.ledgers[0].total_debits == Decimal("14.4033")
    assert result.ledgers[0].balance_due == Decimal("14.4033")
    assert _snapshot(db_session)[0][4] == str(Decimal("14.4033"))

from datetime import date
from decimal import Decimal

import pytest

from apuracao.core.errors import MethodUnsupported
from apuracao.models.tax_rule import TaxRule
from apuracao.models.tax_type import TaxType
from apuracao.services import tax_lines
from apuracao.services.tax_lines import compute_tax_line, register_strategy, reset_strategies


def _rule(calc_method="percentual", rate="18", base_reduction=None, tax_type=None) -> TaxRule:
    return TaxRule(
        regime_id=1,
        tax_type_id=1,
        operation="venda",
        calc_method=calc_method,
        rate=Decimal(rate) if rate is not None else None,
        base_reduction=Decimal(base_reduction) if base_reduction is not None else None,
        is_active=True,
        priority=0,
        valid_from=date(2020, 1, 1),
        tax_type=tax_type if tax_type is not None else TaxType(code="ICMS", name="ICMS", jurisdiction="estadual"),
    )


@pytest.fixture(autouse=True)
def _default_strategies():
    reset_strategies(legacy_percentual_fallback=False)
    yield
    reset_strategies(legacy_percentual_fallback=False)


class TestPercentual:
    def test_scenario_a_rate_18(self):
        line = compute_tax_line(_rule(rate="18"), Decimal("1000"))
        assert line.amount == Decimal("180")
        assert line.base == Decimal("1000")
        assert line.rate == Decimal("18")
        assert line.tax_type == "ICMS"
        assert line.tax_code == "ICMS"
        assert line.base_reduction == Decimal("0")

    def test_base_reduction_applied_before_rate(self):
        line = compute_tax_line(_rule(rate="12", base_reduction="50"), Decimal("1000"))
        assert line.base == Decimal("500")
        assert line.amount == Decimal("60")
        assert line.base_reduction == Decimal("50")

    def test_missing_rate_is_zero_tax(self):
        line = compute_tax_line(_rule(rate=None), Decimal("1000"))
        assert line.amount == Decimal("0")
        assert line.rate == Decimal("0")


class TestValorFixo:
    def test_scenario_b_ignores_amount(self):
        for amount in ("1000", "1", "250000"):
            line = compute_tax_line(_rule(calc_method="valor_fixo", rate="50"), Decimal(amount))
            assert line.amount == Decimal("50")

    def test_missing_rate_is_zero_tax(self):
        line = compute_tax_line(_rule(calc_method="valor_fixo", rate=None), Decimal("1000"))
        assert line.amount == Decimal("0")

    def test_base_reduction_still_reported_on_base(self):
        line = compute_tax_line(_rule(calc_method="valor_fixo", rate="50", base_reduction="20"), Decimal("1000"))
        assert line.base == Decimal("800")
        assert line.amount == Decimal("50")


@pytest.mark.parametrize("method", ["isento", "nao_incidencia"])
def test_exempt_methods_always_zero(method):
    line = compute_tax_line(_rule(calc_method=method, rate="99"), Decimal("1000"))
    assert line.amount == Decimal("0")
    assert line.calc_method == method


@pytest.mark.parametrize("method", ["mva", "reducao_base", "substituicao_tributaria"])
def test_pending_methods_are_not_silently_percentual(method):
    with pytest.raises(MethodUnsupported) as exc:
        compute_tax_line(_rule(calc_method=method), Decimal("1000"))
    assert exc.value.calc_method == method


@pytest.mark.parametrize("method", ["mva", "reducao_base", "substituicao_tributaria"])
def test_legacy_fallback_must_be_enabled_explicitly(method):
    reset_strategies(legacy_percentual_fallback=True)
    line = compute_tax_line(_rule(calc_method=method, rate="10"), Decimal("1000"))
    assert line.amount == Decimal("100")


def test_custom_strategy_can_be_registered():
    # ex.: MVA de 40% sobre a base, alíquota sobre a base ajustada
    register_strategy("mva", lambda base, rate: base * Decimal("1.4") * rate / 100)
    line = compute_tax_line(_rule(calc_method="mva", rate="10"), Decimal("1000"))
    assert line.amount == Decimal("140")
    assert tax_lines.get_strategy("percentual") is tax_lines.percentual


def test_unregistered_method_becomes_unsupported():
    tax_lines.unregister_strategy("valor_fixo")
    with pytest.raises(MethodUnsupported):
        compute_tax_line(_rule(calc_method="valor_fixo", rate="50"), Decimal("1000"))


def test_rule_without_tax_type_uses_placeholder_label():
    rule = _rule()
    rule.tax_type = None
    line = compute_tax_line(rule, Decimal("100"))
    assert line.tax_type == "Desconhecido"
    assert line.tax_code == ""

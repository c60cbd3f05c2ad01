import logging
from decimal import Decimal

import pytest

from vnsalary.core.utils import setup_logging
from vnsalary.core.models import (
    Currency, InsuranceBasis, Mode, Nationality, Region, SalaryRequest, TaxMethod,
)
from vnsalary.payroll.engine import PayrollEngine, compute_gross_from_net, compute_salary
from vnsalary.tax.payroll import compute_net_from_gross

# spans every bracket boundary plus both insurance caps
GROSS_VALUES = ["8000000", "17000000", "25000000", "38000000", "52000000",
                "70000000", "95000000", "120000000", "250000000"]

@pytest.mark.parametrize("gross", GROSS_VALUES)
def test_round_trip_progressive(rates, make_request, gross):
    req = make_request(gross, dependent_count=1)
    net = compute_net_from_gross(Decimal(gross), req, rates).net_vnd
    solved = compute_gross_from_net(net, req, rates)
    assert solved.solver.converged
    assert abs(solved.gross_vnd - Decimal(gross)) <= 1000
    assert abs(solved.net_vnd - net) <= 1

@pytest.mark.parametrize("nationality,method", [
    (Nationality.FOREIGN, TaxMethod.PROGRESSIVE),
    (Nationality.DOMESTIC, TaxMethod.FLAT),
])
def test_round_trip_other_profiles(rates, make_request, nationality, method):
    for gross in GROSS_VALUES:
        req = make_request(gross, nationality=nationality, tax_method=method, region=Region.III)
        net = compute_net_from_gross(Decimal(gross), req, rates).net_vnd
        solved = compute_gross_from_net(net, req, rates)
        assert abs(solved.gross_vnd - Decimal(gross)) <= 1000

def test_solver_worked_example(rates, make_request):
    req = make_request(17775000, mode=Mode.NET_TO_GROSS, dependent_count=1)
    b = compute_gross_from_net(Decimal("17775000"), req, rates)
    assert abs(b.gross_vnd - Decimal("20000000")) <= 2
    assert b.solver.iterations >= 1
    assert abs(b.solver.residual) <= 1

def test_solver_small_target_below_insurance_floor(rates, make_request):
    # insurance is fixed at 548,100 here; plain rescaling oscillates
    req = make_request(100000, mode=Mode.NET_TO_GROSS)
    b = compute_gross_from_net(Decimal("100000"), req, rates)
    assert b.solver.converged
    assert abs(b.gross_vnd - Decimal("648100")) <= 2

def test_solver_zero_target(rates, make_request):
    b = compute_gross_from_net(Decimal("0"), make_request(0, mode=Mode.NET_TO_GROSS), rates)
    assert b.solver.converged
    assert b.gross_vnd == 0
    assert b.net_vnd == 0

def test_solver_gross_never_below_net(rates, make_request):
    for target in ["1", "500000", "5000000", "11000000", "40000000"]:
        b = compute_gross_from_net(Decimal(target), make_request(target), rates)
        assert b.gross_vnd >= Decimal(target)

def test_solver_best_effort_when_budget_exhausted(rates, make_request, caplog):
    req = make_request(50000000, mode=Mode.NET_TO_GROSS)
    # engine loggers do not propagate, so listen on the engine logger directly
    engine_logger = setup_logging("engine")
    engine_logger.addHandler(caplog.handler)
    try:
        b = compute_gross_from_net(Decimal("50000000"), req, rates, max_iterations=1)
    finally:
        engine_logger.removeHandler(caplog.handler)
    assert b.solver.converged is False
    assert b.solver.iterations == 1
    assert b.gross_vnd > 0
    assert len(b.tax_details) == len(rates.tax_brackets)
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "did not converge" in warnings[0].getMessage()

@pytest.mark.parametrize("max_iterations", [0, -1])
def test_solver_rejects_empty_iteration_budget(rates, make_request, max_iterations):
    req = make_request(5000000, mode=Mode.NET_TO_GROSS)
    with pytest.raises(ValueError, match="max_iterations"):
        compute_gross_from_net(Decimal("5000000"), req, rates, max_iterations=max_iterations)

@pytest.mark.parametrize("custom_base", ["46800000", "200000000"])
def test_solver_converges_when_insurance_dominates_target(rates, make_request, custom_base):
    # SI/HI is fixed at the cap (4,446,000 for a foreign national), close to the target net
    req = make_request(5000000, mode=Mode.NET_TO_GROSS, insurance_basis=InsuranceBasis.CUSTOM,
                       custom_insurance_base=Decimal(custom_base), nationality=Nationality.FOREIGN,
                       region=Region.IV)
    b = compute_gross_from_net(Decimal("5000000"), req, rates)
    assert b.solver.converged
    assert abs(b.net_vnd - Decimal("5000000")) <= 1
    assert abs(b.gross_vnd - Decimal("9446000")) <= 2
    assert b.insurance.total == Decimal("4446000")

def test_solver_converges_across_low_targets(rates, make_request):
    for target in ["1000", "300000", "2000000", "5000000", "9000000"]:
        for base in ["46800000", "20000000"]:
            req = make_request(target, mode=Mode.NET_TO_GROSS, insurance_basis=InsuranceBasis.CUSTOM,
                               custom_insurance_base=Decimal(base))
            b = compute_gross_from_net(Decimal(target), req, rates)
            assert b.solver.converged, (target, base)
            assert abs(b.net_vnd - Decimal(target)) <= 1

def test_solver_custom_basis(rates, make_request):
    req = make_request(30000000, insurance_basis=InsuranceBasis.CUSTOM,
                       custom_insurance_base=Decimal("8000000"), include_employer_union_fee=True)
    net = compute_net_from_gross(Decimal("30000000"), req, rates).net_vnd
    b = compute_gross_from_net(net, req, rates)
    assert abs(b.gross_vnd - Decimal("30000000")) <= 1000
    assert b.base_social_health == Decimal("8000000")

def test_compute_salary_gross_mode_vnd(rates, make_request):
    result = compute_salary(make_request(20000000, dependent_count=1), rates)
    assert result.is_gross_mode is True
    assert result.gross == Decimal("20000000")
    assert result.net == Decimal("17775000")
    assert result.currency == Currency.VND
    assert result.exchange_rate is None
    assert result.dependents == 1
    assert result.breakdown.solver is None
    assert result.converged

def test_compute_salary_gross_mode_foreign_currency(rates, make_request):
    req = make_request(1000, currency=Currency.USD, exchange_rate=Decimal("25000"))
    result = compute_salary(req, rates)
    assert result.gross == Decimal("1000")
    assert result.original_amount == Decimal("1000")
    assert result.breakdown.gross_vnd == Decimal("25000000")
    assert result.breakdown.net_vnd == Decimal("21418750")
    assert result.net == Decimal("856.75")
    assert result.exchange_rate == Decimal("25000")

def test_compute_salary_net_mode_foreign_currency(rates, make_request):
    req = make_request(800, mode=Mode.NET_TO_GROSS, currency=Currency.USD, exchange_rate=Decimal("25000"))
    result = compute_salary(req, rates)
    assert result.is_gross_mode is False
    # input side echoed unconverted
    assert result.net == Decimal("800")
    assert abs(result.breakdown.net_vnd - Decimal("20000000")) <= 1
    assert abs(result.gross * Decimal("25000") - result.breakdown.gross_vnd) < Decimal("0.01")
    assert result.gross > result.net

def test_compute_salary_net_mode_jpy(rates, make_request):
    req = make_request(150000, mode=Mode.NET_TO_GROSS, currency=Currency.JPY, exchange_rate=Decimal("165"))
    result = compute_salary(req, rates)
    assert result.converged
    assert abs(result.breakdown.net_vnd - Decimal("24750000")) <= 1

def test_compute_salary_without_exchange_rate_treats_amount_as_vnd(rates):
    req = SalaryRequest.model_construct(amount=Decimal("20000000"), currency=Currency.USD, dependent_count=1)
    result = compute_salary(req, rates)
    assert result.exchange_rate is None
    assert result.breakdown.gross_vnd == Decimal("20000000")
    assert result.net == Decimal("17775000")

def test_compute_salary_uses_active_rate_table(make_request):
    result = compute_salary(make_request(20000000, dependent_count=1))
    assert result.net == Decimal("17775000")

def test_result_to_dict_is_json_ready(rates, make_request):
    data = compute_salary(make_request(20000000, dependent_count=1), rates).to_dict()
    assert data["currency"] == "VND"
    assert data["is_gross_mode"] is True
    assert Decimal(data["breakdown"]["insurance"]["total"]) == Decimal("2100000")
    assert len(data["breakdown"]["tax_details"]) == 7

def test_payroll_engine_run_payroll(rates, make_request):
    engine = PayrollEngine(rates)
    results = engine.run_payroll([
        make_request(20000000, dependent_count=1),
        make_request(17775000, mode=Mode.NET_TO_GROSS, dependent_count=1),
    ])
    assert len(results) == 2
    assert results[0].net == Decimal("17775000")
    assert abs(results[1].gross - Decimal("20000000")) <= 2
    assert engine.compute_net_pay(Decimal("20000000"), make_request(0, dependent_count=1)).net_vnd == Decimal("17775000")

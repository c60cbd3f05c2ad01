"""
Net -> gross solver and the currency-aware entry point used by the form, history and export views.
"""
from decimal import Decimal
from typing import Iterable, List, Optional

from vnsalary.core.config import settings
from vnsalary.core.models import Currency, SalaryBreakdown, SalaryRequest, SalaryResult, SolverStatus
from vnsalary.core.utils import setup_logging
from vnsalary.tax.config_manager import get_rate_table
from vnsalary.tax.payroll import VietnamesePayroll, compute_net_from_gross
from vnsalary.tax.rates import RateTable

ZERO = Decimal("0")
BOOST = Decimal("1.5")

def _seed_gross(target: Decimal, req: SalaryRequest, rates: RateTable) -> Decimal:
    keep = 1 - rates.employee_insurance_rate(req.nationality)
    if target > rates.personal_deduction:
        keep -= settings.SOLVER_ASSUMED_TAX_RATE
    if keep <= 0:
        return target
    return max(target / keep, target)

def compute_gross_from_net(target_net_vnd: Decimal, req: SalaryRequest, rates: RateTable, *,
                           max_iterations: Optional[int] = None,
                           tolerance: Optional[Decimal] = None) -> SalaryBreakdown:
    """
    Find the gross salary whose net matches ``target_net_vnd`` within ``tolerance`` VND.

    Net is monotone in gross but kinked at the insurance caps and every bracket
    boundary, so the gross is found by fixed-point rescaling
    (``gross * target / net``). Each probe also tightens a [low, high] bracket
    around the answer. The next probe is the bracket midpoint instead of the
    rescaled step when that step leaves the bracket, or when the last probe did
    not at least halve the bracket. Rescaling alone oscillates when insurance
    is a large fixed share of the net, so the forced midpoints keep the bracket
    shrinking geometrically.

    If the budget runs out the last breakdown is returned anyway, with
    ``solver.converged`` set to False.
    """
    logger = setup_logging("engine")
    if max_iterations is None:
        max_iterations = settings.SOLVER_MAX_ITERATIONS
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
    tolerance = settings.SOLVER_TOLERANCE if tolerance is None else tolerance
    target = max(Decimal(target_net_vnd), ZERO)
    payroll = VietnamesePayroll(rates)

    gross = _seed_gross(target, req, rates)
    low: Optional[Decimal] = None   # largest gross seen with net below target
    high: Optional[Decimal] = None  # smallest gross seen with net above target
    widths: List[Decimal] = []
    breakdown = None
    residual = ZERO
    for iteration in range(1, max_iterations + 1):
        breakdown = payroll.payroll_breakdown(gross, req)
        computed = breakdown.net_vnd
        residual = computed - target
        if abs(residual) <= tolerance:
            logger.debug("net %s solved to gross %s in %d iterations", target, gross, iteration)
            status = SolverStatus(converged=True, iterations=iteration, residual=residual)
            return breakdown.model_copy(update={"solver": status})

        if computed < target:
            low = gross if low is None else max(low, gross)
        else:
            high = gross if high is None else min(high, gross)

        if computed > 0:
            next_gross = gross * (target / computed)
        else:
            next_gross = gross * BOOST + target
        next_gross = max(next_gross, target)
        if low is not None and high is not None:
            widths.append(high - low)
            stalled = len(widths) > 1 and widths[-1] * 2 > widths[-2]
            if stalled or not low < next_gross < high:
                next_gross = (low + high) / 2
        gross = next_gross

    logger.warning("net %s did not converge after %d iterations (residual %s), returning best effort",
                   target, max_iterations, residual)
    status = SolverStatus(converged=False, iterations=max_iterations, residual=residual)
    return breakdown.model_copy(update={"solver": status})

def _exchange_rate(req: SalaryRequest) -> Optional[Decimal]:
    if req.currency != Currency.VND and req.exchange_rate is not None and req.exchange_rate > 0:
        return req.exchange_rate
    return None

def compute_salary(req: SalaryRequest, rates: Optional[RateTable] = None) -> SalaryResult:
    """
    Run one request in its own currency.

    The amount is converted to VND, solved in VND, and only the computed side
    (net in gross mode, gross in net mode) is converted back. The input side is
    echoed as given so it never drifts through a round trip. The breakdown stays in VND.
    """
    if rates is None:
        rates = get_rate_table()
    fx = _exchange_rate(req)
    amount_vnd = req.amount * fx if fx else req.amount

    if req.is_gross_mode:
        breakdown = compute_net_from_gross(amount_vnd, req, rates)
        gross = req.amount
        net = breakdown.net_vnd / fx if fx else breakdown.net_vnd
    else:
        breakdown = compute_gross_from_net(amount_vnd, req, rates)
        net = req.amount
        gross = breakdown.gross_vnd / fx if fx else breakdown.gross_vnd

    return SalaryResult(
        gross=gross,
        net=net,
        breakdown=breakdown,
        currency=req.currency,
        original_amount=req.amount,
        is_gross_mode=req.is_gross_mode,
        dependents=req.dependent_count,
        exchange_rate=fx,
    )

class PayrollEngine:
    def __init__(self, rates: Optional[RateTable] = None):
        self.rates = rates
        self.logger = setup_logging("engine")

    @property
    def table(self) -> RateTable:
        return self.rates if self.rates is not None else get_rate_table()

    def compute_net_pay(self, gross_vnd: Decimal, req: SalaryRequest) -> SalaryBreakdown:
        return compute_net_from_gross(gross_vnd, req, self.table)

    def compute_gross_pay(self, net_vnd: Decimal, req: SalaryRequest) -> SalaryBreakdown:
        return compute_gross_from_net(net_vnd, req, self.table)

    def compute(self, req: SalaryRequest) -> SalaryResult:
        return compute_salary(req, self.table)

    def run_payroll(self, requests: Iterable[SalaryRequest]) -> List[SalaryResult]:
        # one table snapshot for the whole run
        rates = self.table
        results = [compute_salary(r, rates) for r in requests]
        unsolved = sum(1 for r in results if not r.converged)
        if unsolved:
            self.logger.warning("%d of %d payroll lines did not converge", unsolved, len(results))
        return results

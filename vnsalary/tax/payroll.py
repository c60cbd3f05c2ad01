from decimal import Decimal
from typing import List, Tuple

from vnsalary.core.models import (
    BracketDetail, EmployerContributions, InsuranceBasis, InsuranceContributions,
    Nationality, SalaryBreakdown, SalaryRequest, TaxMethod,
)
from vnsalary.tax.rates import RateTable

ZERO = Decimal("0")

class VietnamesePayroll:
    """Gross -> net for one rate table. Inputs are clamped, never rejected."""

    def __init__(self, rates: RateTable):
        self.rates = rates

    def insurance_bases(self, gross: Decimal, req: SalaryRequest) -> Tuple[Decimal, Decimal]:
        base = gross
        if req.insurance_basis == InsuranceBasis.CUSTOM and req.custom_insurance_base is not None:
            base = req.custom_insurance_base
        base = max(base, self.rates.minimum_wage(req.region))
        # SI/HI cap on the national base salary, UI cap on the regional minimum wage
        base_social_health = min(base, self.rates.social_health_cap)
        base_unemployment = min(base, self.rates.unemployment_cap(req.region))
        return base_social_health, base_unemployment

    def compute_employee_insurance(self, base_social_health: Decimal, base_unemployment: Decimal,
                                   nationality: Nationality) -> InsuranceContributions:
        r = self.rates.employee
        social = base_social_health * r.social
        health = base_social_health * r.health
        unemployment = base_unemployment * r.unemployment(nationality)
        return InsuranceContributions(social=social, health=health, unemployment=unemployment,
                                      total=social + health + unemployment)

    def compute_employer_contributions(self, gross: Decimal, base_social_health: Decimal,
                                       base_unemployment: Decimal, req: SalaryRequest) -> EmployerContributions:
        r = self.rates.employer
        social = base_social_health * r.social
        health = base_social_health * r.health
        unemployment = base_unemployment * r.unemployment(req.nationality)
        union_fee = ZERO
        if req.include_employer_union_fee:
            # assessed on actual payroll, not on the floored/custom insurance base
            union_fee = min(gross, self.rates.social_health_cap) * r.union_fee
        return EmployerContributions(social=social, health=health, unemployment=unemployment,
                                     union_fee=union_fee,
                                     total=social + health + unemployment + union_fee)

    def compute_progressive_tax(self, taxable_income: Decimal) -> Tuple[Decimal, List[BracketDetail]]:
        tax = ZERO
        details = []
        for bracket in self.rates.tax_brackets:
            income = max(taxable_income - bracket.lower_bound, ZERO)
            if bracket.width is not None:
                income = min(income, bracket.width)
            bracket_tax = income * bracket.rate
            tax += bracket_tax
            details.append(BracketDetail(label=bracket.label, rate=bracket.rate,
                                         income_in_bracket=income, tax_in_bracket=bracket_tax))
        return tax, details

    def compute_pit(self, income_before_tax: Decimal, dependents: int,
                    method: TaxMethod) -> Tuple[Decimal, Decimal, List[BracketDetail]]:
        deductions = self.rates.personal_deduction + max(dependents, 0) * self.rates.dependent_deduction
        taxable = max(income_before_tax - deductions, ZERO)
        if method == TaxMethod.FLAT:
            # deductions are reported but the flat rate applies to income before them
            details = [BracketDetail(label=b.label, rate=b.rate, income_in_bracket=ZERO, tax_in_bracket=ZERO)
                       for b in self.rates.tax_brackets]
            return taxable, max(income_before_tax * self.rates.flat_tax_rate, ZERO), details
        tax, details = self.compute_progressive_tax(taxable)
        return taxable, max(tax, ZERO), details

    def payroll_breakdown(self, gross: Decimal, req: SalaryRequest) -> SalaryBreakdown:
        gross = max(Decimal(gross), ZERO)
        base_sh, base_ui = self.insurance_bases(gross, req)
        insurance = self.compute_employee_insurance(base_sh, base_ui, req.nationality)
        taxable, pit, details = self.compute_pit(gross - insurance.total, req.dependent_count, req.tax_method)
        net = gross - insurance.total - pit
        employer = self.compute_employer_contributions(gross, base_sh, base_ui, req)
        return SalaryBreakdown(
            gross_vnd=gross,
            net_vnd=max(net, ZERO),
            net_clamped=net < 0,
            base_social_health=base_sh,
            base_unemployment=base_ui,
            insurance=insurance,
            taxable_income=taxable,
            personal_income_tax=pit,
            tax_details=details,
            total_deductions=insurance.total + pit,
            employer=employer,
            total_employer_cost=gross + employer.total,
        )

def compute_net_from_gross(gross_vnd: Decimal, req: SalaryRequest, rates: RateTable) -> SalaryBreakdown:
    return VietnamesePayroll(rates).payroll_breakdown(gross_vnd, req)

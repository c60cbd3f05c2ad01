"""
Request and result models shared by the calculator, the solver and the facade.
All breakdown amounts are in VND; only SalaryResult.gross/net follow the request currency.
"""
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

class Region(IntEnum):
    I = 1
    II = 2
    III = 3
    IV = 4

class Currency(str, Enum):
    VND = "VND"
    USD = "USD"
    JPY = "JPY"

class Mode(str, Enum):
    GROSS_TO_NET = "gross_to_net"
    NET_TO_GROSS = "net_to_gross"

class InsuranceBasis(str, Enum):
    OFFICIAL = "official"
    CUSTOM = "custom"

class TaxMethod(str, Enum):
    PROGRESSIVE = "progressive"
    FLAT = "flat10"

class Nationality(str, Enum):
    DOMESTIC = "VN"
    FOREIGN = "Foreign"

class SalaryRequest(BaseModel):
    """
    One calculation request, validated the way the input form validates it.

    The engine trusts whatever it is given: a request built with
    ``model_construct`` skips these checks and gets a best-effort answer.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., ge=0)
    mode: Mode = Mode.GROSS_TO_NET
    currency: Currency = Currency.VND
    exchange_rate: Optional[Decimal] = Field(None, gt=0, description="VND per 1 unit of currency")
    insurance_basis: InsuranceBasis = InsuranceBasis.OFFICIAL
    custom_insurance_base: Optional[Decimal] = Field(None, gt=0)
    tax_method: TaxMethod = TaxMethod.PROGRESSIVE
    region: Region = Region.I
    dependent_count: int = Field(0, ge=0)
    nationality: Nationality = Nationality.DOMESTIC
    include_employer_union_fee: bool = False

    @model_validator(mode="after")
    def _check_conditional_fields(self):
        if self.currency != Currency.VND and self.exchange_rate is None:
            raise ValueError(f"exchange_rate is required for {self.currency.value}")
        if self.insurance_basis == InsuranceBasis.CUSTOM and self.custom_insurance_base is None:
            raise ValueError("custom_insurance_base is required for a custom insurance basis")
        return self

    @property
    def is_gross_mode(self) -> bool:
        return self.mode == Mode.GROSS_TO_NET

class InsuranceContributions(BaseModel):
    model_config = ConfigDict(frozen=True)

    social: Decimal
    health: Decimal
    unemployment: Decimal
    total: Decimal

class EmployerContributions(InsuranceContributions):
    union_fee: Decimal = Decimal("0")

class BracketDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    rate: Decimal
    income_in_bracket: Decimal
    tax_in_bracket: Decimal

class SolverStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    converged: bool
    iterations: int
    residual: Decimal

class SalaryBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    gross_vnd: Decimal
    net_vnd: Decimal
    # True when gross - deductions went below zero and net_vnd was clamped to 0
    net_clamped: bool = False
    base_social_health: Decimal
    base_unemployment: Decimal
    insurance: InsuranceContributions
    taxable_income: Decimal
    personal_income_tax: Decimal
    tax_details: List[BracketDetail]
    total_deductions: Decimal
    employer: EmployerContributions
    total_employer_cost: Decimal
    solver: Optional[SolverStatus] = None

class SalaryResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    gross: Decimal
    net: Decimal
    breakdown: SalaryBreakdown
    currency: Currency
    original_amount: Decimal
    is_gross_mode: bool
    dependents: int
    exchange_rate: Optional[Decimal] = None

    @property
    def converged(self) -> bool:
        return self.breakdown.solver is None or self.breakdown.solver.converged

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
